from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "lockorder.toml"
CONFIG_SECTION = "lockorder"

DEFAULT_LOCK_FUNCTIONS: tuple[str, ...] = ("locks.by_name", "locks.multiple_by_name")
DEFAULT_RESOURCE_ARG = 1
DEFAULT_RESOURCE_KEYWORD = "resource_type"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass
class AnalysisConfig:
    project_root: Path | None = None
    lock_functions: tuple[str, ...] = DEFAULT_LOCK_FUNCTIONS
    resource_arg: int = DEFAULT_RESOURCE_ARG
    resource_keyword: str = DEFAULT_RESOURCE_KEYWORD
    exclude_dirs: set[str] = field(default_factory=set)
    report_reentrant: bool = False
    fail_on_conflicts: bool = False
    jobs: int = 1

    def is_ignored_path(self, path: Path) -> bool:
        parts = set(path.parts)
        return bool(self.exclude_dirs & parts)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def lockorder_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get(CONFIG_SECTION, {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_int(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def build_config(payload: TomlTable, *, project_root: Path | None = None) -> AnalysisConfig:
    """Normalize a merged payload into an ``AnalysisConfig``."""
    lock_functions = _normalize_name_list(payload.get("lock_functions"))
    resource_keyword = payload.get("resource_keyword")
    jobs = _as_int(payload.get("jobs"), 1)
    return AnalysisConfig(
        project_root=project_root,
        lock_functions=tuple(lock_functions) or DEFAULT_LOCK_FUNCTIONS,
        resource_arg=max(0, _as_int(payload.get("resource_arg"), DEFAULT_RESOURCE_ARG)),
        resource_keyword=(
            resource_keyword.strip()
            if isinstance(resource_keyword, str) and resource_keyword.strip()
            else DEFAULT_RESOURCE_KEYWORD
        ),
        exclude_dirs=set(_normalize_name_list(payload.get("exclude"))),
        report_reentrant=_as_bool(payload.get("report_reentrant")),
        fail_on_conflicts=_as_bool(payload.get("fail_on_conflicts")),
        jobs=max(1, jobs),
    )
