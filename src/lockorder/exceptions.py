"""Structured error types raised by the lock-order analysis."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    LOAD_FAILURE = "load_failure"
    UNSUPPORTED_ARGUMENT = "unsupported_argument"
    UNRESOLVED_CONSTANT = "unresolved_constant"
    MISSING_SCOPE = "missing_scope"
    INVARIANT = "invariant"


class LockOrderError(RuntimeError):
    """Base class for every fatal condition surfaced to callers.

    ``kind`` identifies the failure class, ``position`` the ``path:line:col``
    the failure relates to (empty when it has none) and ``env`` any extra
    metadata collected at the raise site.
    """

    default_kind = ErrorKind.INVARIANT

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        position: str = "",
        env: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.position = position
        self.env = dict(env or {})

    def __str__(self) -> str:
        if self.position:
            return f"{self.position}: {self.message}"
        return self.message

    @property
    def payload(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "position": self.position,
            "env": dict(self.env),
        }


class SourceLoadError(LockOrderError):
    """Source could not be read or parsed."""

    default_kind = ErrorKind.LOAD_FAILURE


class UnsupportedArgumentError(LockOrderError):
    """The resource-type argument of a lock call has a shape we cannot interpret."""

    default_kind = ErrorKind.UNSUPPORTED_ARGUMENT


class InvariantViolation(LockOrderError):
    """An internal traversal assumption did not hold."""

    default_kind = ErrorKind.INVARIANT


class MissingScopeError(InvariantViolation):
    default_kind = ErrorKind.MISSING_SCOPE
