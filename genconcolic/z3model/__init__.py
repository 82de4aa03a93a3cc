"""Z3 modeling of concrete values, constants and arrays."""

from .values import (
    UNDEFINED,
    ConcolicValue,
    ConcreteKind,
    SideCondition,
    as_concolic,
    kind_of,
)
from .constants import to_python, wrap_constant
from .arrays import ArraySymbol

__all__ = [
    "UNDEFINED",
    "ArraySymbol",
    "ConcolicValue",
    "ConcreteKind",
    "SideCondition",
    "as_concolic",
    "kind_of",
    "to_python",
    "wrap_constant",
]
