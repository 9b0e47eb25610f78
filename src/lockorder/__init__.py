"""lockorder package root."""

from lockorder.exceptions import (
    InvariantViolation,
    LockOrderError,
    MissingScopeError,
    SourceLoadError,
    UnsupportedArgumentError,
)
from lockorder.invariants import never

__all__ = [
    "__version__",
    "InvariantViolation",
    "LockOrderError",
    "MissingScopeError",
    "SourceLoadError",
    "UnsupportedArgumentError",
    "never",
]

__version__ = "0.1.0"
