from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from lockorder.config import AnalysisConfig
    from lockorder.ingest.python_ingest import LockSiteDiscovery, ParsedModule


@runtime_checkable
class SourceAdapter(Protocol):
    """Source-side collaborator that turns program roots into lock events."""

    language_id: str
    file_extensions: tuple[str, ...]

    def discover_files(
        self,
        paths: list[Path],
        *,
        config: AnalysisConfig,
    ) -> list[Path]: ...

    def parse_files(
        self,
        paths: list[Path],
        *,
        config: AnalysisConfig,
    ) -> list[ParsedModule]: ...

    def discover_lock_events(
        self,
        paths: list[Path],
        *,
        config: AnalysisConfig,
    ) -> LockSiteDiscovery: ...
