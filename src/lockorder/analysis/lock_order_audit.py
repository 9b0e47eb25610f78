"""Run the lock-order pipeline: discover, group, pair, detect, render."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from lockorder.analysis.conflicts import detect, detect_reentrant
from lockorder.analysis.model import Conflict, LockEvent, PairSite, ReentrantLock
from lockorder.analysis.pairs import extract_all
from lockorder.analysis.registry import LockSiteRegistry
from lockorder.analysis.report_rendering import render_report
from lockorder.config import AnalysisConfig
from lockorder.ingest import PythonAdapter, SourceAdapter
from lockorder.ingest.python_ingest import DroppedLockSite
from lockorder.json_types import JSONObject
from lockorder.order_contract import sort_once
from lockorder.schema import (
    ConflictDTO,
    LockOrderReportDTO,
    LockSiteDTO,
    OrientationDTO,
    ReentrantDTO,
)


@dataclass
class AnalysisResult:
    registry: LockSiteRegistry
    pair_sites: list[PairSite]
    conflicts: list[Conflict]
    reentrant: list[ReentrantLock] = field(default_factory=list)
    files: tuple[Path, ...] = ()
    dropped: list[DroppedLockSite] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "files": len(self.files),
            "events": self.registry.event_count,
            "scopes": len(self.registry),
            "pairs": len(self.pair_sites),
            "conflicts": len(self.conflicts),
            "dropped": len(self.dropped),
        }


def analyze_events(
    events: Iterable[LockEvent],
    *,
    report_reentrant: bool = False,
) -> AnalysisResult:
    registry = LockSiteRegistry()
    registry.ingest_all(events)
    pair_sites = extract_all(registry)
    return AnalysisResult(
        registry=registry,
        pair_sites=pair_sites,
        conflicts=detect(pair_sites),
        reentrant=detect_reentrant(pair_sites) if report_reentrant else [],
    )


def analyze_paths(
    paths: Sequence[str | Path],
    *,
    config: AnalysisConfig,
    adapter: SourceAdapter | None = None,
) -> AnalysisResult:
    source = adapter or PythonAdapter()
    discovery = source.discover_lock_events([Path(p) for p in paths], config=config)
    result = analyze_events(discovery.events, report_reentrant=config.report_reentrant)
    result.files = discovery.files
    result.dropped = discovery.dropped
    return result


def render_text(result: AnalysisResult) -> str:
    return render_report(result.conflicts, result.reentrant)


def build_report(result: AnalysisResult) -> LockOrderReportDTO:
    return LockOrderReportDTO(
        conflicts=[
            ConflictDTO(
                resources=[conflict.forward.first, conflict.forward.second],
                orientations=[
                    OrientationDTO(
                        pair=conflict.forward.render(),
                        sites=list(conflict.forward_sites),
                    ),
                    OrientationDTO(
                        pair=conflict.reverse.render(),
                        sites=list(conflict.reverse_sites),
                    ),
                ],
            )
            for conflict in result.conflicts
        ],
        reentrant=[
            ReentrantDTO(resource_type=entry.resource_type, sites=list(entry.sites))
            for entry in result.reentrant
        ],
        stats=result.stats,
    )


def report_payload(result: AnalysisResult) -> JSONObject:
    return build_report(result).model_dump()


def render_json(result: AnalysisResult) -> str:
    return json.dumps(report_payload(result), indent=2, sort_keys=True) + "\n"


def lock_site_rows(registry: LockSiteRegistry) -> list[LockSiteDTO]:
    rows: list[LockSiteDTO] = []
    for scope_key, events in sort_once(
        registry.all_groups(),
        source="lock_site_rows.groups",
        key=lambda group: group[0],
    ):
        rows.extend(
            LockSiteDTO(
                resource_type=event.resource_type,
                scope=scope_key,
                position=event.position,
            )
            for event in events
        )
    return rows


def render_sites(registry: LockSiteRegistry) -> str:
    lines: list[str] = []
    current_scope: str | None = None
    for row in lock_site_rows(registry):
        if row.scope != current_scope:
            current_scope = row.scope
            lines.append(f"{row.scope}:")
        lines.append(f"\t- {row.resource_type} @ {row.position}")
    return "\n".join(lines) + "\n" if lines else ""
