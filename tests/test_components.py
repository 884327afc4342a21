"""Tests for the generic iterative rounding policies."""

import dataclasses

import pytest

from iround.ir.components import (
    ComposedRoundCondition,
    DefaultRoundCondition,
    DefaultStopCondition,
    IRComponents,
    Init,
    NeverRelax,
    NoRelaxationsLimit,
    RelaxationsLimitCondition,
    RoundConditionEquals,
    RoundConditionGreaterThanHalf,
    SkipSetSolution,
)


class NoopInit(Init):
    def __call__(self, problem, lp):
        return None


class TestRoundConditions:
    """Rounding boundaries with epsilon = 0.01."""

    @pytest.mark.parametrize(
        "value, fires",
        [(0.0, True), (0.005, True), (0.01, False), (0.5, False), (0.995, False)],
    )
    def test_round_to_zero(self, loose_problem, values_lp, value, fires):
        lp = values_lp({0: value})
        result = RoundConditionEquals(0)(loose_problem, lp, 0)
        assert (result == 0.0) if fires else (result is None)

    @pytest.mark.parametrize(
        "value, fires",
        [(1.0, True), (0.995, True), (0.99, False), (0.5, False), (0.0, False)],
    )
    def test_round_to_one(self, loose_problem, values_lp, value, fires):
        lp = values_lp({0: value})
        result = RoundConditionEquals(1)(loose_problem, lp, 0)
        assert (result == 1.0) if fires else (result is None)

    @pytest.mark.parametrize(
        "value, fires",
        [(0.5, True), (0.495, True), (0.48, False), (0.9, True), (0.0, False)],
    )
    def test_greater_than_half(self, loose_problem, values_lp, value, fires):
        lp = values_lp({0: value})
        result = RoundConditionGreaterThanHalf()(loose_problem, lp, 0)
        assert (result == 1.0) if fires else (result is None)

    def test_default_fires_only_near_integral(self, loose_problem, values_lp):
        lp = values_lp({0: 0.001, 1: 0.3, 2: 0.999, 3: 0.5})
        cond = DefaultRoundCondition()
        assert [cond(loose_problem, lp, c) for c in range(4)] == [0.0, None, 1.0, None]

    def test_zero_wins_on_overlap(self, compare_problem_factory, values_lp):
        """With a huge epsilon both 0 and 1 match; zero is checked first."""
        problem = compare_problem_factory(0.6)
        lp = values_lp({0: 0.5})
        assert DefaultRoundCondition()(problem, lp, 0) == 0.0

    def test_composed_queries_in_order(self, loose_problem, values_lp):
        lp = values_lp({0: 0.7})
        cond = ComposedRoundCondition(RoundConditionEquals(0), RoundConditionGreaterThanHalf())
        assert cond(loose_problem, lp, 0) == 1.0

    def test_composed_requires_conditions(self):
        with pytest.raises(ValueError, match="At least one"):
            ComposedRoundCondition()


class TestOtherPolicies:
    def test_never_relax(self, loose_problem):
        assert NeverRelax()(loose_problem, None, 0) is False

    def test_skip_set_solution(self, loose_problem):
        assert SkipSetSolution()(loose_problem, None) is None

    def test_default_stop_condition(self, loose_problem, values_lp):
        lp = values_lp({0: 0.5, 1: 1.0})
        stop = DefaultStopCondition()
        assert not stop(loose_problem, lp)
        lp.fixed = {0: 0.0, 1: 1.0}
        assert stop(loose_problem, lp)

    def test_relaxations_limit(self):
        limit = RelaxationsLimitCondition(2)
        assert not limit(0)
        assert not limit(1)
        assert limit(2)
        assert not NoRelaxationsLimit()(10_000)

    def test_relaxations_limit_must_be_positive(self):
        with pytest.raises(ValueError, match="positive"):
            RelaxationsLimitCondition(0)


class TestIRComponents:
    def test_defaults(self):
        components = IRComponents(init=NoopInit())
        assert isinstance(components.round_condition, DefaultRoundCondition)
        assert isinstance(components.relax_condition, NeverRelax)
        assert isinstance(components.stop_condition, DefaultStopCondition)
        assert isinstance(components.relaxations_limit, NoRelaxationsLimit)

    def test_replace_returns_new_bundle(self):
        components = IRComponents(init=NoopInit())
        limited = components.replace(relaxations_limit=RelaxationsLimitCondition(1))
        assert isinstance(limited.relaxations_limit, RelaxationsLimitCondition)
        assert isinstance(components.relaxations_limit, NoRelaxationsLimit)
        assert limited.init is components.init

    def test_bundle_is_immutable(self):
        components = IRComponents(init=NoopInit())
        with pytest.raises(dataclasses.FrozenInstanceError):
            components.init = NoopInit()  # type: ignore[misc]
