"""
Tests for the generational search over a run's path condition.

Validates that:
1. Each non-binder entry past the bound yields at most one alternative
2. Alternatives keep the prefix and flip exactly one decision
3. Binders are never flipped
4. A replay shorter than its bound is reported as divergence
"""

import re

import pytest
import z3

from genconcolic import ConcolicValue, InputMap, PathDivergenceError, SymbolicState


class CountingCoverage:
    """Coverage stub handing out a new branch id per call."""

    def __init__(self):
        self.calls = 0

    def last_branch_id(self):
        self.calls += 1
        return f"branch-{self.calls}"


def run_booleans(state, count):
    """Declare ``count`` independent booleans and branch on each as true."""
    values = []
    for i in range(count):
        b = state.create_symbolic_value(f"b{i}", True)
        state.symbolic_conditional(b)
        values.append(b)
    return values


class TestAlternatives:

    def test_one_candidate_per_branch(self):
        state = SymbolicState()
        run_booleans(state, 4)

        children = state.alternatives()
        assert len(children) == 4
        for i, child in enumerate(children):
            assert child.bound == i + 1
            for j in range(i):
                assert child.input[f"b{j}"] is True
            assert child.input[f"b{i}"] is False

    def test_bounds_grow_and_stay_within_path(self):
        state = SymbolicState(input=InputMap(bound=1))
        run_booleans(state, 3)

        children = state.alternatives()
        assert len(children) == 2
        for child in children:
            assert 1 < child.bound <= len(state.path_condition)

    def test_bound_at_end_yields_nothing(self):
        state = SymbolicState(input=InputMap(bound=3))
        run_booleans(state, 3)
        assert state.alternatives() == []

    def test_binders_are_never_negated(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 1)
        state.push_condition(x.symbolic > 0, binder=True)
        state.push_condition(x.symbolic < 10, binder=True)
        assert state.alternatives() == []

    def test_binders_stay_asserted(self):
        """A binder earlier in the log constrains later negations."""
        state = SymbolicState()
        x = state.create_symbolic_value("x", 1)
        state.push_condition(x.symbolic > 0, binder=True)
        state.symbolic_conditional(ConcolicValue(True, x.symbolic < 5))

        children = state.alternatives()
        assert len(children) == 1
        assert children[0].input["x"] >= 5

    def test_infeasible_negation_is_dropped(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 5)
        state.symbolic_conditional(ConcolicValue(True, x.symbolic > 0))
        state.symbolic_conditional(ConcolicValue(True, x.symbolic > -1))

        children = state.alternatives()
        assert len(children) == 1
        assert children[0].bound == 1
        assert children[0].input["x"] <= 0
        assert state.stats["unsat"] == 1
        assert state.stats["sat"] == 1

    def test_false_branch_is_pushed_negated(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 5)
        state.symbolic_conditional(ConcolicValue(False, x.symbolic > 10))

        children = state.alternatives()
        assert children[0].input["x"] > 10

    def test_solver_is_reset(self):
        state = SymbolicState()
        run_booleans(state, 2)
        state.alternatives()
        assert len(state.solver.assertions()) == 0
        assert state.solver.num_scopes() == 0

    def test_unknown_checks_drop_candidates(self, unknown_solver):
        """Queries the solver gives up on are counted and produce no input."""
        state = SymbolicState()
        state.solver = unknown_solver
        run_booleans(state, 3)

        assert state.alternatives() == []
        assert state.stats["unknown"] == 3
        assert state.stats["queries"] == 3
        assert state.stats["sat"] == 0
        assert state.stats["unsat"] == 0
        assert unknown_solver.num_scopes() == 0

    def test_branch_ids_tag_candidates(self):
        state = SymbolicState(coverage=CountingCoverage())
        run_booleans(state, 2)

        children = state.alternatives()
        assert [c.branch_id for c in children] == ["branch-1", "branch-2"]

    def test_unmodeled_inputs_keep_concrete_values(self):
        state = SymbolicState()
        state.create_symbolic_value("obj", None)
        run_booleans(state, 1)

        children = state.alternatives()
        assert children[0].input["obj"] is None
        assert set(children[0].input.names()) == {"obj", "b0"}

    def test_pc_string_describes_negation(self):
        state = SymbolicState()
        run_booleans(state, 1)
        assert state.alternatives()[0].pc == "Not(b0)"


class TestSideConditions:

    def test_prior_true_checks_accumulate(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 1)
        state.push_condition(x.symbolic > 0, checks=[x.symbolic < 3])
        state.symbolic_conditional(ConcolicValue(True, x.symbolic < 2))

        children = state.alternatives()
        assert len(children) == 2
        assert children[0].input["x"] <= 0
        assert 2 <= children[1].input["x"] < 3

    def test_binder_checks_are_not_accumulated(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 1)
        state.push_condition(x.symbolic > -100, binder=True, checks=[x.symbolic == 1])
        state.symbolic_conditional(ConcolicValue(True, x.symbolic < 2))

        children = state.alternatives()
        assert len(children) == 1
        assert children[0].input["x"] >= 2

    def test_true_side_checks_stay_off_the_negation(self):
        """Flipping a true entry must not assert the checks of its true side."""
        state = SymbolicState()
        x = state.create_symbolic_value("x", 5)
        state.symbolic_conditional(ConcolicValue(True, x.symbolic > 0, checks=(x.symbolic > 0,)))

        children = state.alternatives()
        assert len(children) == 1
        assert children[0].input["x"] <= 0

    def test_false_side_checks_reach_the_negation(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 5)
        state.symbolic_conditional(
            ConcolicValue(True, x.symbolic > 0, false_checks=(x.symbolic == -4,)))

        children = state.alternatives()
        assert children[0].input["x"] == -4

    def test_false_entry_prefix_uses_false_side_checks(self):
        """A prefix entry taken false contributes the checks of its false side."""
        state = SymbolicState()
        x = state.create_symbolic_value("x", 0)
        y = state.create_symbolic_value("y", 5)
        state.symbolic_conditional(ConcolicValue(False, x.symbolic > 0, checks=(x.symbolic > 0,)))
        state.symbolic_conditional(ConcolicValue(True, y.symbolic < 10))

        children = state.alternatives()
        assert len(children) == 2
        second = children[1]
        assert second.bound == 2
        assert second.input["x"] <= 0
        assert second.input["y"] >= 10

    def test_push_not_swaps_sides(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 0)
        state.push_not(x.symbolic > 0, checks=[x.symbolic < 5], false_checks=[x.symbolic > -5])

        entry = state.path_condition[-1]
        assert [str(c) for c in entry.checks] == ["x > -5"]
        assert [str(c) for c in entry.false_checks] == ["x < 5"]

    def test_value_checks_reach_the_entry(self):
        """The true-side checks of a value taken false return when it is flipped."""
        state = SymbolicState()
        x = state.create_symbolic_value("x", 0)
        state.symbolic_conditional(ConcolicValue(False, x.symbolic > 0, checks=(x.symbolic == 7,)))

        children = state.alternatives()
        assert children[0].input["x"] == 7

    def test_model_check_refines(self):
        state = SymbolicState()
        x = state.create_symbolic_value("x", 0)

        def reject_small(model):
            value = model.evaluate(x.symbolic, model_completion=True)
            if value.as_fraction() < 3:
                return x.symbolic >= 3
            return None

        state.push_not(x.symbolic > 0, checks=[reject_small])
        children = state.alternatives()
        assert children[0].input["x"] >= 3


class TestDivergence:

    def test_bound_beyond_path_is_fatal(self):
        state = SymbolicState(input=InputMap(bound=5))
        run_booleans(state, 2)

        with pytest.raises(PathDivergenceError) as excinfo:
            state.alternatives()
        assert excinfo.value.bound == 5
        assert excinfo.value.path_length == 2
        assert len(state.solver.assertions()) == 0


class TestInputs:

    def test_recorded_value_wins_over_seed(self):
        state = SymbolicState(input=InputMap({"x": 7}))
        x = state.create_symbolic_value("x", 1)
        assert x.concrete == 7

    def test_seed_is_recorded(self):
        state = SymbolicState()
        state.create_symbolic_value("x", 1)
        assert state.final_input()["x"] == 1
        assert state.stats["symbols"] == 1

    def test_final_pc(self):
        state = SymbolicState()
        assert state.final_pc() == ""
        run_booleans(state, 2)
        assert state.final_pc() == "And(b0, b1)"

    def test_errors(self):
        state = SymbolicState()
        state.add_error("Unreachable")
        assert state.error_count() == 1


class TestStringScenario:
    """``x.length < 10`` followed by an all-'z' pattern test."""

    @staticmethod
    def run(state, seed):
        x = state.create_symbolic_value("x", seed)
        length = state.symbolic_field(x, "length")
        short = state.symbolic_binary("<", ConcolicValue(len(x.concrete), length), 10)
        state.symbolic_conditional(ConcolicValue(len(x.concrete) < 10, short))

        all_z = z3.InRe(x.symbolic, z3.Plus(z3.Re("z")))
        state.symbolic_conditional(ConcolicValue(bool(re.fullmatch("z+", x.concrete)), all_z))
        return x

    def test_true_branch_candidate(self):
        state = SymbolicState()
        self.run(state, "")

        children = state.alternatives()
        assert len(children) == 2
        assert children[0].bound == 1
        assert children[1].bound == 2
        assert re.fullmatch("z{1,9}", children[1].input["x"])

    def test_replayed_candidate_has_nothing_left(self):
        first = SymbolicState()
        self.run(first, "")
        child = first.alternatives()[1]

        second = SymbolicState(input=child.input)
        x = self.run(second, "")
        assert re.fullmatch("z{1,9}", x.concrete)
        assert second.alternatives() == []

    def test_false_branch_candidate(self):
        state = SymbolicState(input=InputMap({"x": "zz"}))
        self.run(state, "")

        children = state.alternatives()
        flipped = children[-1].input["x"]
        assert children[-1].bound == 2
        assert not re.fullmatch("z+", flipped)
