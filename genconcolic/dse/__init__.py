"""
DSE (Dynamic Symbolic Execution) state engine for concolic test generation.

1. **Symbolic State** (symbolic_state.py): dual values and operator modeling
2. **Path Condition Tracking** (path_condition.py): append-only branch log
3. **Generational Search** (generational.py): one-branch-per-step negation
4. **Constraint Solving** (constraint_solver.py): queries and model extraction
"""

from .coverage import CoverageTracker, NullCoverage
from .path_condition import (
    Alternative,
    InputMap,
    PathCondition,
    PathConditionEntry,
)
from .constraint_solver import Query, QueryOutcome, extract_solution
from .generational import GenerationalSearch, PathDivergenceError
from .symbolic_state import SymbolicState

__all__ = [
    "Alternative",
    "CoverageTracker",
    "GenerationalSearch",
    "InputMap",
    "NullCoverage",
    "PathCondition",
    "PathConditionEntry",
    "PathDivergenceError",
    "Query",
    "QueryOutcome",
    "SymbolicState",
    "extract_solution",
]
