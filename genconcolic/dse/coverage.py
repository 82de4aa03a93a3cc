"""
Coverage tracker interface.

Branch bookkeeping lives outside the engine; the engine only asks for an
opaque identifier of the most recently executed branch and attaches it to
each path-condition entry, so the driver can tell which branch a new input
was generated to flip.
"""

from __future__ import annotations

from typing import Any, Hashable, Optional, Protocol


class CoverageTracker(Protocol):
    """Source of opaque branch identifiers."""

    def last_branch_id(self) -> Optional[Hashable]:
        """
        Identifier of the branch most recently reached by the concrete run.

        Returns None if no branch has been recorded yet.
        """


class NullCoverage:
    """Tracker used when the driver supplies none; every id is None."""

    def last_branch_id(self) -> Optional[Any]:
        return None
