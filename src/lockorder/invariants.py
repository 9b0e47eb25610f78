"""Invariant markers for lockorder analysis."""

from __future__ import annotations

from typing import NoReturn

from lockorder.exceptions import InvariantViolation


def never(
    reason: str = "",
    *,
    error_type: type[InvariantViolation] = InvariantViolation,
    position: str = "",
    **env: object,
) -> NoReturn:
    """Mark a code path as unreachable for well-formed input.

    The optional env payload is attached to the raised exception as metadata.
    """
    raise error_type(
        reason or "never() marker reached",
        position=position,
        env=env,
    )
