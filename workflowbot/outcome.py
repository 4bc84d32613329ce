"""
outcome.py

Responsibility: Record what happened to a repository during one run.

An `Outcome` is a set over the closed `Result` enum. A repository run can combine
results (for example it may both update and create files); only results other than
`Result.SKIPPED` count as a change.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Union


class Result(Enum):
    SKIPPED = "Skipped"
    UPDATED = "Updated"
    DELETED = "Deleted"
    CREATED = "Created"


_ORDER = list(Result)

_Addable = Union[Result, "Outcome"]


class Outcome:
    __slots__ = ("_results",)

    def __init__(self, results: Iterable[Result] = ()) -> None:
        self._results: set[Result] = set(results)

    def add(self, other: _Addable) -> None:
        if isinstance(other, Outcome):
            self._results |= other._results
        else:
            self._results.add(other)

    def remove(self, result: Result) -> None:
        self._results.discard(result)

    def has_any(self, *results: Result) -> bool:
        return any(r in self._results for r in results)

    @property
    def changed(self) -> bool:
        return self.has_any(Result.UPDATED, Result.DELETED, Result.CREATED)

    def labels(self) -> list[str]:
        """Names of the changes recorded, in enum order."""
        return [r.value for r in self if r is not Result.SKIPPED]

    def __contains__(self, result: object) -> bool:
        return result in self._results

    def __iter__(self) -> Iterator[Result]:
        return iter([r for r in _ORDER if r in self._results])

    def __len__(self) -> int:
        return len(self._results)

    def __or__(self, other: _Addable) -> Outcome:
        merged = Outcome(self._results)
        merged.add(other)
        return merged

    def __ior__(self, other: _Addable) -> Outcome:
        self.add(other)
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Outcome):
            return NotImplemented
        return self._results == other._results

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if not self._results:
            return "No action"
        return "|".join(r.value for r in self)

    def __repr__(self) -> str:
        return f"Outcome({str(self)})"
