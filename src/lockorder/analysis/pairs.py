"""Ordered pair extraction over one scope's acquisition sequence."""

from __future__ import annotations

from collections.abc import Sequence

from lockorder.analysis.model import LockEvent, OrderedPair, PairSite
from lockorder.analysis.registry import LockSiteRegistry


def extract_pairs(group: Sequence[LockEvent]) -> list[PairSite]:
    """Emit ``(group[i], group[j])`` for every ``i < j``.

    The site position of every pair is the scope key, i.e. the declaration
    position of the enclosing function. Self-pairs are kept.
    """
    pairs: list[PairSite] = []
    for i in range(len(group) - 1):
        earlier = group[i]
        for j in range(i + 1, len(group)):
            later = group[j]
            pairs.append(
                PairSite(
                    pair=OrderedPair(earlier.resource_type, later.resource_type),
                    scope_key=earlier.scope_key,
                    position=earlier.scope_key,
                )
            )
    return pairs


def extract_all(registry: LockSiteRegistry) -> list[PairSite]:
    pairs: list[PairSite] = []
    for _scope_key, group in registry.all_groups():
        pairs.extend(extract_pairs(group))
    return pairs
