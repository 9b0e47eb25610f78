"""Plain-text rendering of detected conflicts."""

from __future__ import annotations

from collections.abc import Sequence

from lockorder.analysis.model import Conflict, OrderedPair, ReentrantLock

DEADLOCK_HEADER = "Potential deadlock:"
REENTRANT_HEADER = "Re-entrant lock:"


def _orientation_lines(pair: OrderedPair, sites: Sequence[str]) -> list[str]:
    lines = [f"  {pair.render()}:"]
    lines.extend(f"\t- {site}" for site in sites)
    return lines


def render_conflict(conflict: Conflict) -> str:
    lines = [DEADLOCK_HEADER]
    lines.extend(_orientation_lines(conflict.forward, conflict.forward_sites))
    lines.extend(_orientation_lines(conflict.reverse, conflict.reverse_sites))
    return "\n".join(lines) + "\n"


def render_reentrant_lock(entry: ReentrantLock) -> str:
    lines = [REENTRANT_HEADER]
    lines.extend(_orientation_lines(entry.pair, entry.sites))
    return "\n".join(lines) + "\n"


def _join_blocks(blocks: list[str]) -> str:
    return "\n".join(blocks)


def render(conflicts: Sequence[Conflict]) -> str:
    """Render conflicts in the order received; empty input renders as ``""``."""
    return _join_blocks([render_conflict(conflict) for conflict in conflicts])


def render_reentrant(entries: Sequence[ReentrantLock]) -> str:
    return _join_blocks([render_reentrant_lock(entry) for entry in entries])


def render_report(
    conflicts: Sequence[Conflict],
    reentrant: Sequence[ReentrantLock] = (),
) -> str:
    return _join_blocks(
        [render_conflict(conflict) for conflict in conflicts]
        + [render_reentrant_lock(entry) for entry in reentrant]
    )
