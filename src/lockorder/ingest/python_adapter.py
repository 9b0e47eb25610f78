from __future__ import annotations

from pathlib import Path

from lockorder.config import AnalysisConfig
from lockorder.ingest.adapter_contract import SourceAdapter
from lockorder.ingest.python_ingest import (
    LockSiteDiscovery,
    ParsedModule,
    collect_lock_sites,
    iter_python_paths,
    parse_modules,
)


class PythonAdapter(SourceAdapter):
    language_id = "python"
    file_extensions = (".py",)

    def discover_files(self, paths: list[Path], *, config: AnalysisConfig) -> list[Path]:
        return iter_python_paths(paths, config=config)

    def parse_files(self, paths: list[Path], *, config: AnalysisConfig) -> list[ParsedModule]:
        return parse_modules(paths, root=config.project_root, jobs=config.jobs)

    def discover_lock_events(
        self, paths: list[Path], *, config: AnalysisConfig
    ) -> LockSiteDiscovery:
        return collect_lock_sites(paths, config=config)
