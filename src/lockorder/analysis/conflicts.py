"""Detection of lock pairs acquired in both orientations.

A conflict is an unordered pair of distinct resources ``{X, Y}`` for which
``X->Y`` is observed in some scope and ``Y->X`` in another (or the same)
scope. Detection is deterministic: pair keys are sorted by their rendered
``"A->B"`` form before the walk, so emission order never depends on the
arrival order of the input or on mapping iteration order.

Self-pairs (``X->X``) are their own reverse and are never emitted as
conflicts. ``detect_reentrant`` reports them separately.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from lockorder.analysis.model import (
    Conflict,
    OrderedPair,
    PairRecord,
    PairSite,
    ReentrantLock,
)
from lockorder.order_contract import sort_once

logger = logging.getLogger(__name__)


def build_pair_record(pair_sites: Iterable[PairSite]) -> PairRecord:
    positions: dict[OrderedPair, set[str]] = {}
    for site in pair_sites:
        positions.setdefault(site.pair, set()).add(site.position)
    return {
        pair: tuple(
            sort_once(sites, source="build_pair_record.sites")
        )
        for pair, sites in positions.items()
    }


def _sorted_pair_keys(record: PairRecord) -> list[OrderedPair]:
    return sort_once(
        record.keys(),
        source="detect.pair_keys",
        key=lambda pair: pair.render(),
    )


def detect(pair_sites: Iterable[PairSite]) -> list[Conflict]:
    record = build_pair_record(pair_sites)
    processed: set[OrderedPair] = set()
    conflicts: list[Conflict] = []
    for pair in _sorted_pair_keys(record):
        if pair in processed:
            continue
        processed.add(pair)
        if pair.is_self_pair:
            continue
        reverse = pair.reverse()
        reverse_sites = record.get(reverse)
        if not reverse_sites:
            continue
        processed.add(reverse)
        conflicts.append(
            Conflict(
                forward=pair,
                forward_sites=record[pair],
                reverse_sites=reverse_sites,
            )
        )
    logger.debug(
        "detected %d conflict(s) across %d ordered pair(s)", len(conflicts), len(record)
    )
    return conflicts


def detect_reentrant(pair_sites: Iterable[PairSite]) -> list[ReentrantLock]:
    record = build_pair_record(site for site in pair_sites if site.pair.is_self_pair)
    return [
        ReentrantLock(resource_type=pair.first, sites=record[pair])
        for pair in _sorted_pair_keys(record)
    ]
