from __future__ import annotations

from itertools import combinations

import pytest

from workflowbot.outcome import Outcome, Result

CHANGES = {Result.UPDATED, Result.DELETED, Result.CREATED}


def _all_outcomes():
    members = list(Result)
    for size in range(len(members) + 1):
        for combo in combinations(members, size):
            yield Outcome(combo)


@pytest.mark.parametrize("outcome", list(_all_outcomes()), ids=str)
def test_changed_iff_any_change_present(outcome):
    assert outcome.changed == any(r in outcome for r in CHANGES)


def test_skipped_alone_is_not_a_change():
    assert not Outcome({Result.SKIPPED}).changed
    assert not Outcome().changed


def test_add_then_remove_restores_previous_value():
    outcome = Outcome({Result.SKIPPED})
    before = Outcome(outcome)
    outcome.add(Result.CREATED)
    assert outcome != before
    outcome.remove(Result.CREATED)
    assert outcome == before


def test_union_merges_results():
    merged = Outcome({Result.SKIPPED}) | Outcome({Result.DELETED})
    merged |= Result.CREATED
    assert merged == Outcome({Result.SKIPPED, Result.DELETED, Result.CREATED})
    assert merged.has_any(Result.UPDATED, Result.CREATED)
    assert not merged.has_any(Result.UPDATED)


def test_labels_and_str_follow_enum_order():
    outcome = Outcome({Result.CREATED, Result.SKIPPED, Result.UPDATED})
    assert outcome.labels() == ["Updated", "Created"]
    assert str(outcome) == "Skipped|Updated|Created"
    assert str(Outcome()) == "No action"
