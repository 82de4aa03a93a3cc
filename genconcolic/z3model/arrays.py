"""
Symbolic model of homogeneous arrays.

An array is a Z3 array term from integer indices to the element sort plus
a separate integer length term. Each mutating write produces a new array
term and a freshly named length term; the per-array version counter keeps
those names distinct so a later constraint can never refer to a length
that an earlier write has already superseded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import z3

from .constants import as_int_term, sort_for_kind, to_python
from .values import ConcreteKind, kind_of


def element_kind_of(values: List[Any]) -> Optional[ConcreteKind]:
    """
    Shared scalar kind of all elements, or None for mixed/unmodeled arrays.

    Empty arrays default to numbers.
    """
    if not values:
        return ConcreteKind.NUMBER
    first = kind_of(values[0])
    if sort_for_kind(first) is None:
        return None
    if all(kind_of(v) == first for v in values[1:]):
        return first
    return None


@dataclass
class ArraySymbol:
    """Ownership record for one symbolic array: terms plus version counter."""
    name: str
    element_kind: ConcreteKind
    array: z3.ArrayRef
    length: z3.ArithRef
    version: int = 0
    initial: Tuple[z3.ArrayRef, z3.ArithRef] = field(init=False)

    def __post_init__(self) -> None:
        self.initial = (self.array, self.length)

    @staticmethod
    def fresh(name: str, element_kind: ConcreteKind) -> "ArraySymbol":
        """Declare a new array input named ``name``."""
        sort = sort_for_kind(element_kind)
        array = z3.Array(name, z3.IntSort(), sort)
        length = z3.Int(f"{name}_Length")
        return ArraySymbol(name=name, element_kind=element_kind, array=array, length=length)

    def next_length(self) -> z3.ArithRef:
        """Mint a fresh length term tagged with the next version."""
        self.version += 1
        return z3.Int(f"{self.name}_Length_{self.version}")

    def select(self, index: z3.ArithRef) -> z3.ExprRef:
        return z3.Select(self.array, as_int_term(index))

    def store(self, index: z3.ArithRef, value: z3.ExprRef) -> z3.ArrayRef:
        return z3.Store(self.array, as_int_term(index), value)

    def extract(self, model: z3.ModelRef) -> List[Any]:
        """Concrete list for the array as it was declared, read off a model."""
        array, length = self.initial
        size = model.evaluate(length, model_completion=True).as_long()
        return [
            to_python(model.evaluate(z3.Select(array, z3.IntVal(i)), model_completion=True))
            for i in range(max(size, 0))
        ]

    def __repr__(self) -> str:
        return f"ArraySymbol({self.name}, v{self.version}, length={self.length})"
