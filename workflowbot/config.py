"""
config.py

Responsibility: Build the bot's settings from defaults, an optional YAML file, the
environment and CLI overrides (in that order of precedence, lowest first).

The access token is only ever read from the environment (`GITHUB_TOKEN`).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from workflowbot.driver import DEFAULT_PAGE_SIZE, DEFAULT_QUOTA_FLOOR, QuotaPolicy
from workflowbot.job import BRANCH_PREFIX
from workflowbot.repo_filter import MARKER_FILE


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    """Everything one run needs."""

    github_token: str
    user: str
    templates_dir: Path = Path("templates")
    merge: bool = False
    branch_prefix: str = BRANCH_PREFIX
    marker_file: str = MARKER_FILE
    page_size: int = DEFAULT_PAGE_SIZE
    quota_floor: int = DEFAULT_QUOTA_FLOOR
    quota_policy: QuotaPolicy = QuotaPolicy.STOP
    api_base: str = "https://api.github.com"


_FILE_KEYS = {f.name for f in fields(Settings)} - {"github_token"}


def _read_config_file(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file does not exist: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {p}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must be a mapping/object at the top level.")
    unknown = sorted(set(data) - _FILE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    return data


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"`{name}` must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"`{name}` must be an integer, got {value!r}") from e


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "false", "no", "0"):
        return value.strip().lower() in ("true", "yes", "1")
    raise ConfigError(f"`{name}` must be a boolean, got {value!r}")


def load_settings(
    config_path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    env = os.environ if env is None else env

    token = (env.get("GITHUB_TOKEN") or "").strip()
    if not token:
        raise ConfigError("GitHub token is required (set GITHUB_TOKEN)")

    raw: dict[str, Any] = {}
    if config_path is not None:
        raw.update(_read_config_file(config_path))
    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value

    user = str(raw.get("user") or env.get("GITHUB_USER") or "").strip()
    if not user:
        raise ConfigError("A user is required (use --user, `user:` in the config file, or set GITHUB_USER)")

    settings = Settings(github_token=token, user=user)

    if "templates_dir" in raw:
        settings = replace(settings, templates_dir=Path(str(raw["templates_dir"])))
    if "merge" in raw:
        settings = replace(settings, merge=_as_bool("merge", raw["merge"]))
    if "branch_prefix" in raw:
        prefix = str(raw["branch_prefix"]).strip()
        if not prefix or any(c in prefix for c in " :~^?*[\\"):
            raise ConfigError(f"`branch_prefix` is not usable in a ref name: {prefix!r}")
        settings = replace(settings, branch_prefix=prefix)
    if "marker_file" in raw:
        settings = replace(settings, marker_file=str(raw["marker_file"]).strip())
    if "page_size" in raw:
        page_size = _as_int("page_size", raw["page_size"])
        if not 1 <= page_size <= 100:
            raise ConfigError(f"`page_size` must be between 1 and 100, got {page_size}")
        settings = replace(settings, page_size=page_size)
    if "quota_floor" in raw:
        quota_floor = _as_int("quota_floor", raw["quota_floor"])
        if quota_floor < 0:
            raise ConfigError(f"`quota_floor` must not be negative, got {quota_floor}")
        settings = replace(settings, quota_floor=quota_floor)
    if "quota_policy" in raw:
        try:
            settings = replace(settings, quota_policy=QuotaPolicy(str(raw["quota_policy"]).strip().lower()))
        except ValueError as e:
            raise ConfigError(f"`quota_policy` must be 'stop' or 'fail', got {raw['quota_policy']!r}") from e
    if "api_base" in raw:
        settings = replace(settings, api_base=str(raw["api_base"]).strip())

    return settings
