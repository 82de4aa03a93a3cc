"""
Dual concrete/symbolic value representation.

Every value the instrumented program touches has a concrete half (always
present) and an optional symbolic half (a Z3 term, or an ArraySymbol for
modeled arrays). The symbolic half may be missing at any point; concrete
execution carries on regardless.

Concrete values are classified into a closed set of kinds so operator and
field dispatch never depends on open-ended runtime type inspection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Optional, Tuple, Union

import z3


class _Undefined:
    """Singleton for the scripting language's ``undefined``."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class ConcreteKind(IntEnum):
    """Kind tags for concrete runtime values."""
    BOOLEAN = 0
    NUMBER = 1
    STRING = 2
    ARRAY = 3
    NULL = 4
    UNDEFINED = 5
    OTHER = 6


# Kinds that have a scalar solver sort.
SCALAR_KINDS = frozenset({ConcreteKind.BOOLEAN, ConcreteKind.NUMBER, ConcreteKind.STRING})


def kind_of(value: Any) -> ConcreteKind:
    """Classify a concrete value. ``bool`` is checked before numbers."""
    if isinstance(value, bool):
        return ConcreteKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ConcreteKind.NUMBER
    if isinstance(value, str):
        return ConcreteKind.STRING
    if isinstance(value, (list, tuple)):
        return ConcreteKind.ARRAY
    if value is None:
        return ConcreteKind.NULL
    if value is UNDEFINED:
        return ConcreteKind.UNDEFINED
    return ConcreteKind.OTHER


def is_integral(value: Any) -> bool:
    """True for numbers (not booleans) with no fractional part."""
    if kind_of(value) != ConcreteKind.NUMBER:
        return False
    # inf and nan report False here
    return isinstance(value, int) or value.is_integer()


# A side condition is either asserted with a query, or inspects a candidate
# model and returns a refinement clause when the model has to be rejected.
ModelCheck = Callable[[z3.ModelRef], Optional[z3.BoolRef]]
SideCondition = Union[z3.BoolRef, ModelCheck]


@dataclass
class ConcolicValue:
    """
    A concrete value paired with its (optional) symbolic counterpart.

    ``symbolic`` is a Z3 expression for scalars or an ArraySymbol for
    modeled arrays. ``checks`` must hold whenever the symbolic term is
    asserted true, ``false_checks`` whenever it is asserted false.
    """
    concrete: Any
    symbolic: Any = None
    checks: Tuple[SideCondition, ...] = field(default_factory=tuple)
    false_checks: Tuple[SideCondition, ...] = field(default_factory=tuple)

    @property
    def kind(self) -> ConcreteKind:
        return kind_of(self.concrete)

    def is_symbolic(self) -> bool:
        return self.symbolic is not None

    def __repr__(self) -> str:
        return f"ConcolicValue(concrete={self.concrete!r}, symbolic={self.symbolic})"


def as_concolic(value: Any) -> ConcolicValue:
    """Wrap a plain concrete value; ConcolicValues pass through."""
    if isinstance(value, ConcolicValue):
        return value
    return ConcolicValue(value)
