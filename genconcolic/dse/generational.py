"""
Generational search over a completed run's path condition.

Given the path condition of one run and the bound inherited from the input
that produced it, every branch past the bound is negated in turn:

    for i in [bound, n):
        SAT(c_0 ∧ ... ∧ c_{i-1} ∧ ¬c_i) → new input with bound i + 1

The prefix ``[0, i)`` is kept exactly as observed, so each child input
differs from its parent in one decision only. Children start exploring
after the branch they flipped, which keeps a lineage from revisiting
branches its ancestors already negated.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import z3

from ..z3model.values import SideCondition
from .path_condition import Alternative, InputMap, PathCondition

logger = logging.getLogger(__name__)

Solve = Callable[[z3.BoolRef, List[SideCondition]], Optional[Dict[str, Any]]]


class PathDivergenceError(RuntimeError):
    """The replayed run was shorter than the prefix its input was built for."""

    def __init__(self, bound: int, path_length: int):
        super().__init__(
            f"This path has diverged: bound {bound} > path condition length {path_length}"
        )
        self.bound = bound
        self.path_length = path_length


class GenerationalSearch:
    """
    One-branch-per-step negation of a path condition.

    ``solve`` is asked about one negated entry at a time, against whatever
    the search has asserted on ``solver``; it returns the concrete solution
    or None.
    """

    def __init__(self, solver: z3.Solver, path_condition: PathCondition, solve: Solve):
        self.solver = solver
        self.path_condition = path_condition
        self.solve = solve

    def alternatives(self, prior: InputMap) -> List[Alternative]:
        pc = self.path_condition
        bound = prior.bound

        if bound > len(pc):
            logger.info(f"Bound {bound} > path condition length {len(pc)}")
            raise PathDivergenceError(bound, len(pc))

        children: List[Alternative] = []
        try:
            for i in range(bound):
                self.solver.add(pc[i].term)
            self.solver.push()

            for i in range(bound, len(pc)):
                if not pc[i].is_binder:
                    child = self._negate(i)
                    if child is not None:
                        children.append(child)

                # Keep the branch as it was actually taken for later entries.
                self.solver.add(pc[i].term)
                self.solver.push()
        finally:
            self.solver.reset()

        logger.debug(f"Generated {len(children)} alternatives from bound {bound}")
        return children

    def _negate(self, i: int) -> Optional[Alternative]:
        entry = self.path_condition[i]
        negated = z3.Not(entry.term)
        checks = self.path_condition.true_checks(i) + list(entry.false_checks)

        logger.debug(f"Checking if {negated} is satisfiable with {len(checks)} checks")
        solution = self.solve(negated, checks)
        if solution is None:
            logger.debug("Unsatisfiable.")
            return None

        child = InputMap(values=solution, bound=i + 1)
        logger.debug(f"Satisfiable. Remembering new input: {solution}")
        return Alternative(input=child, pc=str(z3.simplify(negated)), branch_id=entry.branch_id)
