"""Deterministic ordering for unordered collections before emission.

Every set, mapping view or directory listing that reaches output passes
through ``sort_once``. There is no caller-order mode: the result depends
only on the values, never on how they arrived.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from lockorder.invariants import never

T = TypeVar("T")


def sort_once(
    values: Iterable[T],
    *,
    source: str,
    key: Callable[[T], Any] | None = None,
    reverse: bool = False,
) -> list[T]:
    """Return ``values`` sorted by ``key``.

    ``source`` names the call site. Keys that cannot be compared are an
    invariant violation carrying ``source`` in its payload.
    """
    items = list(values)
    try:
        return sorted(items, key=key, reverse=reverse)
    except TypeError as exc:
        never(
            "sort keys are not comparable",
            source=source,
            error=str(exc),
        )
