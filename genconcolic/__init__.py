"""
genconcolic: symbolic-state engine for generational concolic testing of
dynamically-typed scripts.
"""

__version__ = "0.1.0"

from .config import EngineConfig
from .dse import (
    Alternative,
    InputMap,
    PathDivergenceError,
    SymbolicState,
)
from .z3model import UNDEFINED, ConcolicValue

__all__ = [
    "Alternative",
    "ConcolicValue",
    "EngineConfig",
    "InputMap",
    "PathDivergenceError",
    "SymbolicState",
    "UNDEFINED",
]
