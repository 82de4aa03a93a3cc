"""
Configuration file loader for ``.genconcolic.yml``.

Provides defaults so the engine works out of the box without a config
file, while letting a driver tune array modeling and solver limits per
project.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

# Five minutes, in milliseconds.
DEFAULT_SOLVER_TIMEOUT_MS = 5 * 60 * 1000
DEFAULT_MAX_REFINEMENTS = 20


@dataclass
class EngineConfig:
    """Top-level configuration for the symbolic-state engine."""
    arrays_enabled: bool = True
    solver_timeout_ms: int = DEFAULT_SOLVER_TIMEOUT_MS
    max_refinements: int = DEFAULT_MAX_REFINEMENTS

    @classmethod
    def load(cls, repo_root: Path) -> "EngineConfig":
        """Load config from .genconcolic.yml, falling back to defaults."""
        config_path = repo_root / ".genconcolic.yml"
        if not config_path.exists():
            config_path = repo_root / ".genconcolic.yaml"
        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, raw: dict[str, Any]) -> "EngineConfig":
        engine_raw = raw.get("engine", raw)
        return cls(
            arrays_enabled=bool(engine_raw.get("arrays-enabled", engine_raw.get("arrays_enabled", True))),
            solver_timeout_ms=int(engine_raw.get(
                "solver-timeout-ms", engine_raw.get("solver_timeout_ms", DEFAULT_SOLVER_TIMEOUT_MS))),
            max_refinements=int(engine_raw.get(
                "max-refinements", engine_raw.get("max_refinements", DEFAULT_MAX_REFINEMENTS))),
        )

    def to_yaml(self) -> str:
        """Serialise to YAML string."""
        lines = [
            "# .genconcolic.yml",
            "",
            "engine:",
            f"  arrays-enabled: {str(self.arrays_enabled).lower()}",
            f"  solver-timeout-ms: {self.solver_timeout_ms}",
            f"  max-refinements: {self.max_refinements}",
            "",
        ]
        return "\n".join(lines)
