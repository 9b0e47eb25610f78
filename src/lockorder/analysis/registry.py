from __future__ import annotations

from collections.abc import Iterable

from lockorder.analysis.model import LockEvent


class LockSiteRegistry:
    """Groups lock events by enclosing scope, preserving discovery order."""

    def __init__(self) -> None:
        self._groups: dict[str, list[LockEvent]] = {}

    def ingest(self, event: LockEvent) -> None:
        self._groups.setdefault(event.scope_key, []).append(event)

    def ingest_all(self, events: Iterable[LockEvent]) -> int:
        count = 0
        for event in events:
            self.ingest(event)
            count += 1
        return count

    def all_groups(self) -> list[tuple[str, tuple[LockEvent, ...]]]:
        return [(scope_key, tuple(events)) for scope_key, events in self._groups.items()]

    def group(self, scope_key: str) -> tuple[LockEvent, ...]:
        return tuple(self._groups.get(scope_key, ()))

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def event_count(self) -> int:
        return sum(len(events) for events in self._groups.values())
