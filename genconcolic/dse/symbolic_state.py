"""
Symbolic state of one concolic run.

The instrumented interpreter calls into ``SymbolicState`` once for every
primitive operation that touches symbolic data. Each call receives the
operands as ConcolicValues (or plain concrete values) and returns the
symbolic half of the result, or None when the operation is not modeled.
A None result is a modeling boundary, not a fault: the interpreter keeps
the concrete result and drops the symbolic one.

Branches are recorded with ``symbolic_conditional``; when the run is over
the driver calls ``alternatives()`` to get the inputs of the next
generation.

Supported modeling:
    booleans → Bool, numbers → Real, strings → String (sequence),
    homogeneous arrays → (Array(Int, elem), Int length, version)
"""

from __future__ import annotations

import logging
import operator
from collections import Counter
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional

import z3

from ..config import EngineConfig
from ..z3model.arrays import ArraySymbol, element_kind_of
from ..z3model.constants import as_int_term, sort_for_kind, wrap_constant
from ..z3model.values import (
    SCALAR_KINDS,
    ConcolicValue,
    ConcreteKind,
    SideCondition,
    as_concolic,
    is_integral,
    kind_of,
)
from .constraint_solver import Query, extract_solution
from .coverage import CoverageTracker, NullCoverage
from .generational import GenerationalSearch
from .path_condition import Alternative, InputMap, PathCondition, PathConditionEntry

logger = logging.getLogger(__name__)

# Largest valid array index is 2^32 - 2.
MAX_ARRAY_INDEX = 4294967295

_EQUALITY_OPS: Dict[str, Callable[[z3.ExprRef, z3.ExprRef], z3.BoolRef]] = {
    "==": lambda l, r: l == r,
    "===": lambda l, r: l == r,
    "!=": lambda l, r: z3.Not(l == r),
    "!==": lambda l, r: z3.Not(l == r),
}

_LOGICAL_OPS: Dict[str, Callable[[z3.BoolRef, z3.BoolRef], z3.BoolRef]] = {
    "&&": z3.And,
    "||": z3.Or,
}

_ORDERING_OPS: Dict[str, Callable[[z3.ArithRef, z3.ArithRef], z3.BoolRef]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _real_mod(left: z3.ArithRef, right: z3.ArithRef) -> z3.ArithRef:
    return left - right * z3.ToInt(left / right)


_ARITHMETIC_OPS: Dict[str, Callable[[z3.ArithRef, z3.ArithRef], z3.ArithRef]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": _real_mod,
}


class SymbolicState:
    """
    Solver context, path condition, input symbols and error log of one run.

    One instance per concrete execution; nothing here is shared between runs
    except what the driver passes in through ``input``.
    """

    def __init__(
        self,
        input: Optional[InputMap] = None,
        coverage: Optional[CoverageTracker] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.input = input if input is not None else InputMap()
        self.coverage = coverage or NullCoverage()

        self.solver = z3.Solver()
        self._configure_solver()

        self.path_condition = PathCondition()
        self.input_symbols: Dict[str, Any] = {}
        self.errors: List[Any] = []
        self.stats: Counter = Counter()

    def _configure_solver(self) -> None:
        self.solver.set("timeout", self.config.solver_timeout_ms)

    # ------------------------------------------------------------------
    # Errors and reporting
    # ------------------------------------------------------------------

    def add_error(self, error: Any) -> None:
        self.errors.append(error)

    def error_count(self) -> int:
        return len(self.errors)

    def final_pc(self) -> str:
        """The whole path condition as one simplified conjunction ("" if empty)."""
        return str(self.path_condition)

    def final_input(self) -> InputMap:
        return self.input

    # ------------------------------------------------------------------
    # Value helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_concrete(value: Any) -> Any:
        return as_concolic(value).concrete

    @staticmethod
    def get_symbolic(value: Any) -> Any:
        return as_concolic(value).symbolic

    @staticmethod
    def is_symbolic(value: Any) -> bool:
        return as_concolic(value).symbolic is not None

    def as_symbolic(self, value: Any) -> Any:
        """Symbolic half of ``value``, or its concrete half lifted to a constant."""
        value = as_concolic(value)
        if value.symbolic is not None:
            return value.symbolic
        return wrap_constant(value.concrete)

    def wrap_constant(self, value: Any) -> Optional[z3.ExprRef]:
        return wrap_constant(value)

    # ------------------------------------------------------------------
    # Symbolic inputs
    # ------------------------------------------------------------------

    def create_symbolic_value(self, name: str, seed: Any) -> ConcolicValue:
        """
        Declare the symbolic input ``name``.

        A value already recorded for ``name`` (from a prior generation's
        solution) wins over ``seed``; otherwise ``seed`` becomes the
        canonical value for this run.
        """
        symbolic: Any = None
        element_kind = element_kind_of(list(seed)) if kind_of(seed) == ConcreteKind.ARRAY else None

        if self.config.arrays_enabled and element_kind is not None:
            symbolic = ArraySymbol.fresh(name, element_kind)
            self.push_condition(symbolic.length >= 0, binder=True)
        else:
            sort = sort_for_kind(kind_of(seed))
            if sort is not None:
                symbolic = z3.Const(name, sort)
            else:
                logger.info(f"Symbolic input variable of type {kind_of(seed).name.lower()} not yet supported")

        if name in self.input:
            concrete = self.input[name]
        else:
            concrete = seed
            self.input[name] = seed

        self.input_symbols[name] = symbolic
        self.stats["symbols"] += 1

        logger.debug(f'Initializing fresh symbolic variable "{symbolic}" using concrete value "{concrete!r}"')
        return ConcolicValue(concrete, symbolic)

    # ------------------------------------------------------------------
    # Path condition
    # ------------------------------------------------------------------

    def push_condition(
        self,
        term: z3.BoolRef,
        binder: bool = False,
        checks: Iterable[SideCondition] = (),
        false_checks: Iterable[SideCondition] = (),
    ) -> None:
        self.path_condition.push(PathConditionEntry(
            term=term,
            is_binder=binder,
            branch_id=self._branch_id(),
            checks=tuple(checks),
            false_checks=tuple(false_checks),
        ))

    def push_not(
        self,
        term: z3.BoolRef,
        checks: Iterable[SideCondition] = (),
        false_checks: Iterable[SideCondition] = (),
    ) -> None:
        """Push ``Not(term)``; the sides of ``term``'s checks trade places."""
        self.push_condition(z3.Not(term), checks=false_checks, false_checks=checks)

    def _branch_id(self) -> Optional[Hashable]:
        return self.coverage.last_branch_id()

    def symbolic_conditional(self, result: Any) -> Any:
        """
        Record the branch decision made on ``result`` and return its
        concrete value.
        """
        result = as_concolic(result)
        concrete, symbolic = result.concrete, result.symbolic

        if symbolic is None:
            return concrete

        if concrete is True:
            logger.debug(f"Concrete result was true, pushing {symbolic}")
            self.push_condition(symbolic, checks=result.checks, false_checks=result.false_checks)
        elif concrete is False:
            logger.debug(f"Concrete result was false, pushing not of {symbolic}")
            self.push_not(symbolic, checks=result.checks, false_checks=result.false_checks)
        else:
            logger.info(f"Result: {concrete!r} and {symbolic}: non-boolean conditions not yet supported")

        return concrete

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def symbolic_binary(self, op: str, left: Any, right: Any) -> Optional[z3.ExprRef]:
        left, right = as_concolic(left), as_concolic(right)
        left_kind, right_kind = left.kind, right.kind

        if left_kind in (ConcreteKind.NULL, ConcreteKind.UNDEFINED) or \
                right_kind in (ConcreteKind.NULL, ConcreteKind.UNDEFINED):
            return None
        if left_kind != right_kind or left_kind not in SCALAR_KINDS:
            return None

        left_s, right_s = self.as_symbolic(left), self.as_symbolic(right)
        if left_s is None or right_s is None:
            return None

        if op in _EQUALITY_OPS:
            return _EQUALITY_OPS[op](left_s, right_s)

        if op in _LOGICAL_OPS and left_kind == ConcreteKind.BOOLEAN:
            return _LOGICAL_OPS[op](left_s, right_s)

        if op in _ORDERING_OPS and left_kind == ConcreteKind.NUMBER:
            return _ORDERING_OPS[op](left_s, right_s)

        if op == "+" and left_kind == ConcreteKind.STRING:
            return z3.Concat(left_s, right_s)

        if op in _ARITHMETIC_OPS and left_kind == ConcreteKind.NUMBER:
            return _ARITHMETIC_OPS[op](left_s, right_s)

        logger.info(f'Symbolic execution does not support operand "{op}" on {left_kind.name.lower()}, concretizing')
        return None

    def symbolic_coerce_to_bool(self, value: Any) -> Optional[z3.BoolRef]:
        value = as_concolic(value)
        kind = value.kind

        if kind == ConcreteKind.BOOLEAN:
            return self.as_symbolic(value)
        if kind == ConcreteKind.NUMBER:
            return self.symbolic_binary("!=", value, ConcolicValue(0))
        if kind == ConcreteKind.STRING:
            return self.symbolic_binary("!=", value, ConcolicValue(""))

        logger.debug(f"Cannot coerce {value.concrete!r} to boolean")
        return None

    def symbolic_unary(self, op: str, operand: Any) -> Optional[z3.ExprRef]:
        operand = as_concolic(operand)
        kind = operand.kind

        if op == "!":
            bool_s = self.symbolic_coerce_to_bool(operand)
            return z3.Not(bool_s) if bool_s is not None else None

        if op == "typeof":
            return None

        if op not in ("+", "-"):
            logger.debug(f"Unsupported operand: {op}")
            return None

        operand_s = self.as_symbolic(operand)
        if operand_s is None:
            return None

        if kind == ConcreteKind.STRING:
            parsed = z3.ToReal(z3.StrToInt(operand_s))
            if op == "+":
                return parsed
            logger.warning("Casting string to int, if it holds a non-integer number the result is incorrect")
            return -parsed

        if op == "+" and kind in (ConcreteKind.NUMBER, ConcreteKind.BOOLEAN):
            return operand_s

        if op == "-" and kind == ConcreteKind.NUMBER:
            return -operand_s

        logger.debug(f"Unsupported operand {op} on {kind.name.lower()}")
        return None

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def _array_symbol(self, base: ConcolicValue) -> Optional[ArraySymbol]:
        if not self.config.arrays_enabled or base.kind != ConcreteKind.ARRAY:
            return None
        if isinstance(base.symbolic, ArraySymbol):
            return base.symbolic
        return None

    def _is_field_access_within_bounds(
        self, base: ConcolicValue, array: ArraySymbol, field: ConcolicValue, field_s: z3.ArithRef,
    ) -> bool:
        """
        Record the bounds check as a real branch, so that the search can
        later generate the sibling where the access lands out of range.
        """
        field_c = field.concrete
        if not is_integral(field_c):
            return False

        is_valid_concrete = 0 <= field_c < MAX_ARRAY_INDEX and field_c < len(base.concrete)
        is_valid_symbolic = z3.And(field_s >= 0, field_s < array.length)
        return self.symbolic_conditional(ConcolicValue(is_valid_concrete, is_valid_symbolic))

    def symbolic_field(self, base: Any, field: Any) -> Optional[z3.ExprRef]:
        """Symbolic result of reading ``base[field]``."""
        base, field = as_concolic(base), as_concolic(field)
        base_kind, field_kind = base.kind, field.kind

        if base_kind == ConcreteKind.STRING and field_kind == ConcreteKind.NUMBER:
            base_s, field_s = self.as_symbolic(base), self.as_symbolic(field)
            if base_s is None or field_s is None:
                return None
            return base_s.at(as_int_term(field_s))

        array = self._array_symbol(base)
        if array is not None and field_kind == ConcreteKind.NUMBER:
            field_s = self.as_symbolic(field)
            if field_s is None:
                return None
            if self._is_field_access_within_bounds(base, array, field, field_s):
                logger.debug(f"Get from array index {field.concrete}: within bounds")
                return array.select(field_s)
            logger.debug(f"Get from array index {field.concrete}: not within bounds")
            return None

        if field.concrete == "length":
            if base_kind == ConcreteKind.STRING:
                base_s = self.as_symbolic(base)
                return z3.Length(base_s) if base_s is not None else None
            if array is not None:
                return array.length

        logger.info(f"Unsupported symbolic field {field.concrete!r} on {base_kind.name.lower()}, concretizing")
        return None

    def symbolic_set_field(self, base: Any, field: Any, value: Any) -> None:
        """Update the array model for ``base[field] = value``."""
        base, field, value = as_concolic(base), as_concolic(field), as_concolic(value)
        array = self._array_symbol(base)
        if array is None:
            return

        field_c, value_c = field.concrete, value.concrete
        logger.debug(f"Set field with {field_c!r} and {value_c!r}")

        if is_integral(field_c) and 0 <= field_c < MAX_ARRAY_INDEX and value.kind == array.element_kind:
            field_s, value_s = self.as_symbolic(field), self.as_symbolic(value)
            if field_s is None or value_s is None:
                return
            old_length = array.length
            array.array = array.store(field_s, value_s)
            array.length = array.next_length()
            self.push_condition(array.length >= as_int_term(field_s) + 1, binder=True)
            self.push_condition(array.length >= old_length, binder=True)

            if field_c > len(base.concrete):
                logger.warning(
                    f"Setting index {field_c} beyond known length {len(base.concrete)}, "
                    "unmodeled holes may have been created within the array"
                )

        elif field_c == "length" and is_integral(value_c):
            logger.debug(f"Setting array length to {value_c}")
            value_s = self.as_symbolic(value)
            new_length = array.next_length()
            self.push_condition(new_length >= value_s, binder=True)
            self.push_condition(new_length >= 0, binder=True)
            array.length = new_length

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _check_sat(self, clause: z3.BoolRef, checks: List[SideCondition]) -> Optional[Dict[str, Any]]:
        query = Query([clause], checks, max_refinements=self.config.max_refinements)
        with query.model(self.solver) as model:
            self.stats["queries"] += 1
            self.stats["refinements"] += query.refinements
            self.stats[query.outcome.value] += 1
            if model is None:
                return None
            return extract_solution(model, self.input_symbols, self.input.values)

    def alternatives(self) -> List[Alternative]:
        """
        Negate each unexplored branch past the input's bound, one at a time.

        Raises PathDivergenceError when the run produced fewer entries than
        the bound its input was generated with.
        """
        self._configure_solver()
        search = GenerationalSearch(self.solver, self.path_condition, self._check_sat)
        return search.alternatives(self.input)
