"""
Satisfiability queries and solution extraction.

This module provides:
1. ``Query``: a target clause plus side conditions, checked inside its own
   solver scope, with optional model refinement rounds
2. ``extract_solution``: mapping a Z3 model back to concrete input values

A query never raises for a failed check: unsat, unknown (timeout) and
refinement exhaustion all yield no model, and the branch is simply dropped.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

import z3

from ..config import DEFAULT_MAX_REFINEMENTS
from ..z3model.arrays import ArraySymbol
from ..z3model.constants import to_python
from ..z3model.values import ModelCheck, SideCondition

logger = logging.getLogger(__name__)


class QueryOutcome(Enum):
    SAT = "sat"
    UNSAT = "unsat"
    UNKNOWN = "unknown"
    EXHAUSTED = "exhausted"


@dataclass
class Query:
    """
    A satisfiability question: do ``clauses`` and ``checks`` hold together
    with whatever is already asserted on the solver?
    """
    clauses: List[z3.BoolRef]
    checks: List[SideCondition] = field(default_factory=list)
    max_refinements: int = DEFAULT_MAX_REFINEMENTS
    outcome: Optional[QueryOutcome] = None
    refinements: int = 0

    @contextmanager
    def model(self, solver: z3.Solver) -> Iterator[Optional[z3.ModelRef]]:
        """
        Yield a satisfying model, or None.

        All assertions made by the query live in a pushed scope that is
        popped on exit, whatever happens inside the ``with`` block.
        """
        solver.push()
        model: Optional[z3.ModelRef] = None
        try:
            model = self._solve(solver)
            yield model
        finally:
            del model
            solver.pop()

    def _solve(self, solver: z3.Solver) -> Optional[z3.ModelRef]:
        model_checks: List[ModelCheck] = []
        for clause in self.clauses:
            solver.add(clause)
        for check in self.checks:
            if z3.is_expr(check):
                solver.add(check)
            else:
                model_checks.append(check)

        for _ in range(self.max_refinements + 1):
            result = solver.check()
            if result == z3.unsat:
                self.outcome = QueryOutcome.UNSAT
                return None
            if result != z3.sat:
                logger.debug(f"Query abandoned: {solver.reason_unknown()}")
                self.outcome = QueryOutcome.UNKNOWN
                return None

            model = solver.model()
            pending = [r for r in (check(model) for check in model_checks) if r is not None]
            if not pending:
                self.outcome = QueryOutcome.SAT
                return model

            self.refinements += 1
            for refinement in pending:
                solver.add(refinement)

        logger.warning(f"Query gave up after {self.max_refinements} refinements")
        self.outcome = QueryOutcome.EXHAUSTED
        return None


def extract_solution(
    model: z3.ModelRef,
    input_symbols: Mapping[str, Any],
    current: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Evaluate every tracked input symbol in ``model``.

    Inputs that never received a symbolic half keep their current concrete
    value, so the solution always covers every known input name.
    """
    solution: Dict[str, Any] = {}
    for name, symbol in input_symbols.items():
        if symbol is None:
            solution[name] = current.get(name)
        elif isinstance(symbol, ArraySymbol):
            solution[name] = symbol.extract(model)
        else:
            solution[name] = to_python(model.evaluate(symbol, model_completion=True))
    return solution
