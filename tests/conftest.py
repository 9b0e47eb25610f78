from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for _path in (ROOT, ROOT / "src"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


import pytest

from lockorder.analysis.model import LockEvent
from lockorder.config import AnalysisConfig
from tests.env_helpers import env_scope as _env_scope


@pytest.fixture
def write_module(tmp_path: Path):
    def _write(relpath: str, source: str) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def analysis_config(tmp_path: Path) -> AnalysisConfig:
    return AnalysisConfig(project_root=tmp_path)


@pytest.fixture
def make_events():
    def _make(scope_key: str, resource_types: list[str]) -> list[LockEvent]:
        return [
            LockEvent(
                resource_type=resource_type,
                scope_key=scope_key,
                position=f"{scope_key}+{index}",
            )
            for index, resource_type in enumerate(resource_types)
        ]

    return _make


@pytest.fixture
def env_scope():
    return _env_scope
