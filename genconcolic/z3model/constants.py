"""
Conversions between concrete scalars and Z3 constants.

- ``wrap_constant`` lifts a concrete literal into a solver term.
- ``to_python`` lowers a model value back into a language-native scalar.

Numbers are modeled as reals: integral values become exact rationals,
non-integral ones are parsed from their shortest decimal form so that
``0.1`` maps to exactly 1/10 and round-trips back to ``0.1``.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from fractions import Fraction
from typing import Any, Optional

import z3

from .values import ConcreteKind, is_integral, kind_of

logger = logging.getLogger(__name__)


def sort_for_kind(kind: ConcreteKind) -> Optional[z3.SortRef]:
    """Solver sort for a scalar kind, or None when the kind is unmodeled."""
    if kind == ConcreteKind.BOOLEAN:
        return z3.BoolSort()
    if kind == ConcreteKind.NUMBER:
        return z3.RealSort()
    if kind == ConcreteKind.STRING:
        return z3.StringSort()
    return None


def _real_literal(value: float) -> Optional[z3.ArithRef]:
    if is_integral(value):
        return z3.RealVal(int(value))
    if value != value or value in (float("inf"), float("-inf")):
        return None
    # repr gives the shortest round-tripping decimal; 'f' drops the exponent
    return z3.RealVal(format(Decimal(repr(float(value))), "f"))


def wrap_constant(value: Any) -> Optional[z3.ExprRef]:
    """
    Lift a concrete literal into a solver term.

    Returns None for kinds with no scalar sort (arrays, null, undefined,
    objects) and for non-finite numbers; the caller concretizes.
    """
    kind = kind_of(value)
    if kind == ConcreteKind.BOOLEAN:
        return z3.BoolVal(value)
    if kind == ConcreteKind.NUMBER:
        term = _real_literal(value)
        if term is None:
            logger.info(f"Non-finite number literal {value!r} not supported, concretizing")
        return term
    if kind == ConcreteKind.STRING:
        return z3.StringVal(value)
    logger.info(f"Symbolic expressions with {kind.name.lower()} literals not yet supported")
    return None


def _number_from_fraction(fraction: Fraction) -> Any:
    if fraction.denominator == 1:
        return int(fraction.numerator)
    return float(fraction)


def to_python(value: z3.ExprRef) -> Any:
    """
    Convert an evaluated model constant to a Python scalar.

    Reals come back as ``int`` when integral and ``float`` otherwise.
    Returns None (and logs) for anything that is not a recognised constant.
    """
    if z3.is_true(value):
        return True
    if z3.is_false(value):
        return False
    if z3.is_int_value(value):
        return value.as_long()
    if z3.is_rational_value(value):
        return _number_from_fraction(value.as_fraction())
    if z3.is_algebraic_value(value):
        return float(value.approx(20).as_fraction())
    if z3.is_string_value(value):
        return value.as_string()
    logger.info(f"Cannot convert model value {value} to a concrete scalar")
    return None


def as_int_term(term: z3.ArithRef) -> z3.ArithRef:
    """Cast a numeric term to integer sort (floor for reals)."""
    if z3.is_int(term):
        return term
    return z3.ToInt(term)
