"""
Path condition log for a single concolic run.

The path condition is the ordered sequence of branch decisions (and
structural assumptions) observed while the program ran concretely:

    PC = c_0 ∧ c_1 ∧ ... ∧ c_{n-1}

Entries are appended in execution order and never removed during a run.
Binder entries hold structural invariants such as ``length >= 0``; they
must stay asserted but are never negated to produce a new input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

import z3

from ..z3model.values import SideCondition


@dataclass(frozen=True)
class PathConditionEntry:
    """
    One branch decision or structural assumption.

    ``checks`` hold when ``term`` is asserted, ``false_checks`` when its
    negation is.
    """
    term: z3.BoolRef
    is_binder: bool = False
    branch_id: Optional[Hashable] = None
    checks: Tuple[SideCondition, ...] = ()
    false_checks: Tuple[SideCondition, ...] = ()


class PathCondition:
    """Append-only, insertion-ordered log of PathConditionEntry."""

    def __init__(self) -> None:
        self._entries: List[PathConditionEntry] = []

    def push(self, entry: PathConditionEntry) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> PathConditionEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[PathConditionEntry]:
        return iter(self._entries)

    def true_checks(self, end: int) -> List[SideCondition]:
        """True-side checks of the non-binder entries in ``[0, end)``."""
        checks: List[SideCondition] = []
        for entry in self._entries[:end]:
            if not entry.is_binder:
                checks.extend(entry.checks)
        return checks

    def conjoin(self) -> Optional[z3.BoolRef]:
        """All entries rolled into one simplified conjunction (None if empty)."""
        if not self._entries:
            return None
        return z3.simplify(z3.And(*[e.term for e in self._entries]))

    def __str__(self) -> str:
        conjunction = self.conjoin()
        return "" if conjunction is None else str(conjunction)


@dataclass
class InputMap:
    """
    Concrete assignment to the named symbolic inputs of one run.

    ``bound`` counts how many path-condition entries earlier generations
    have already explored for this input's lineage.
    """
    values: Dict[str, Any] = field(default_factory=dict)
    bound: int = 0

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.values[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def names(self) -> List[str]:
        return list(self.values)


@dataclass
class Alternative:
    """A next-generation input produced by negating one branch."""
    input: InputMap
    pc: str
    branch_id: Optional[Hashable] = None

    @property
    def bound(self) -> int:
        return self.input.bound
