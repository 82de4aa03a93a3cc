import pytest
import z3


class UnknownSolver:
    """A real solver whose every check gives up, as on a timeout."""

    def __init__(self):
        self._solver = z3.Solver()
        self.checks = 0

    def check(self, *assumptions):
        self.checks += 1
        return z3.unknown

    def reason_unknown(self):
        return "timeout"

    def __getattr__(self, name):
        return getattr(self._solver, name)


@pytest.fixture
def unknown_solver():
    return UnknownSolver()
