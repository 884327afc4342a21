"""Tests for the iterative rounding engine loop."""

import pytest

from iround.ir.components import (
    DefaultRoundCondition,
    DependentRoundCondition,
    IRComponents,
    Init,
    RelaxationsLimitCondition,
    RelaxCondition,
    RoundCondition,
    StopCondition,
)
from iround.ir.engine import (
    EngineInvariantError,
    InvalidInputError,
    IRResult,
    IterativeRounding,
    solve_dependent_iterative_rounding,
    solve_iterative_rounding,
)
from iround.ir.problem import IRProblem
from iround.ir.visitor import TrivialVisitor
from iround.lp.base import BoundType, ProblemType
from iround.lp.compare import Compare


class LPProblem(IRProblem):
    def __init__(self, message=None):
        self.message = message
        self._compare = Compare()

    def check_input_validity(self):
        return self.message

    def get_compare(self):
        return self._compare


class FunctionInit(Init):
    """Init delegating the model construction to a plain function."""

    def __init__(self, build):
        self.build = build
        self.calls = 0

    def __call__(self, problem, lp):
        self.calls += 1
        self.build(lp)
        lp.load_matrix()


class AlwaysRelax(RelaxCondition):
    def __call__(self, problem, lp, row):
        return True


class AlwaysZero(RoundCondition):
    def __call__(self, problem, lp, col):
        return 0.0


class MustNotRound(RoundCondition):
    def __call__(self, problem, lp, col):
        raise AssertionError("round condition must not be queried")


class MustNotRelax(RelaxCondition):
    def __call__(self, problem, lp, row):
        raise AssertionError("relax condition must not be queried")


class ActiveOnlyRoundCondition(RoundCondition):
    """Default rounding that records every queried column and checks it is still active."""

    def __init__(self):
        self.inner = DefaultRoundCondition()
        self.queried = []

    def __call__(self, problem, lp, col):
        assert not lp.is_fixed(col), f"column {col} queried after being fixed"
        self.queried.append(col)
        return self.inner(problem, lp, col)


class RecordingVisitor(TrivialVisitor):
    def __init__(self):
        self.events = []

    def solve_lp(self, problem, lp, status):
        self.events.append(("solve", status))

    def round_col(self, problem, lp, col, value):
        self.events.append(("round", col, value))

    def relax_row(self, problem, lp, row):
        self.events.append(("relax", row))


def half_rows(n):
    """Build n columns x_i in [0, 1] with cost -1, each pinned by a row 2 x_i == 1."""

    def build(lp):
        for _ in range(n):
            col = lp.add_column(-1.0, BoundType.DB, 0.0, 1.0)
            row = lp.add_row(BoundType.FX, 1.0, 1.0)
            lp.add_constraint_coef(row, col, 2.0)

    return build


def empty(lp):
    return None


class TestEngineLoop:
    def test_zero_columns_returns_optimal_zero(self):
        """Stop condition holds immediately; round / relax are never queried."""
        components = IRComponents(
            init=FunctionInit(empty),
            round_condition=MustNotRound(),
            relax_condition=MustNotRelax(),
        )
        result = solve_iterative_rounding(LPProblem(), components)
        assert result == IRResult(ProblemType.OPTIMAL, 0.0)

    def test_integral_lp_rounds_in_one_pass(self):
        def build(lp):
            x = lp.add_column(1.0, BoundType.DB, 0.0, 1.0)
            y = lp.add_column(2.0, BoundType.DB, 0.0, 1.0)
            row = lp.add_row(BoundType.LO, lo=1.0)
            lp.add_constraint_coef(row, x)
            lp.add_constraint_coef(row, y)

        visitor = RecordingVisitor()
        run = IterativeRounding(LPProblem(), IRComponents(init=FunctionInit(build)), visitor)
        result = run.run()
        assert result.status == ProblemType.OPTIMAL
        assert result.objective == pytest.approx(1.0)
        assert run.iterations == 1
        assert [e for e in visitor.events if e[0] == "round"] == [
            ("round", 0, 1.0),
            ("round", 1, 0.0),
        ]

    def test_relax_then_round(self):
        components = IRComponents(
            init=FunctionInit(half_rows(1)), relax_condition=AlwaysRelax()
        )
        visitor = RecordingVisitor()
        result = solve_iterative_rounding(LPProblem(), components, visitor)
        assert result.status == ProblemType.OPTIMAL
        assert result.objective == pytest.approx(-1.0)
        assert [e for e in visitor.events if e[0] != "solve"] == [
            ("relax", 0),
            ("round", 0, 1.0),
        ]

    def test_relaxations_limit_caps_each_pass(self):
        components = IRComponents(
            init=FunctionInit(half_rows(2)),
            relax_condition=AlwaysRelax(),
            relaxations_limit=RelaxationsLimitCondition(1),
        )
        visitor = RecordingVisitor()
        result = solve_iterative_rounding(LPProblem(), components, visitor)
        assert result.objective == pytest.approx(-2.0)
        assert [e for e in visitor.events if e[0] != "solve"] == [
            ("relax", 0),
            ("round", 0, 1.0),
            ("relax", 1),
            ("round", 1, 1.0),
        ]

    def test_visitor_sees_every_solve(self):
        components = IRComponents(
            init=FunctionInit(half_rows(1)), relax_condition=AlwaysRelax()
        )
        visitor = RecordingVisitor()
        solve_iterative_rounding(LPProblem(), components, visitor)
        solves = [e for e in visitor.events if e[0] == "solve"]
        # initial solve, resolve after relax, resolve after round
        assert solves == [("solve", ProblemType.OPTIMAL)] * 3

    def test_monotonic_progress(self):
        """Across several passes only active columns are queried and each is fixed once."""
        round_condition = ActiveOnlyRoundCondition()
        components = IRComponents(
            init=FunctionInit(half_rows(3)),
            round_condition=round_condition,
            relax_condition=AlwaysRelax(),
            relaxations_limit=RelaxationsLimitCondition(1),
        )
        visitor = RecordingVisitor()
        run = IterativeRounding(LPProblem(), components, visitor)
        run.run()
        rounded = [e[1] for e in visitor.events if e[0] == "round"]
        relaxed = [e[1] for e in visitor.events if e[0] == "relax"]
        assert run.iterations == 6
        assert sorted(rounded) == [0, 1, 2]
        assert len(set(relaxed)) == len(relaxed)
        # Column 2 is seen in every pass before it is finally fixed
        assert round_condition.queried.count(2) == 6
        assert run.lp.active_columns() == []


class TestEngineFailures:
    def test_infeasible_relaxation(self):
        def build(lp):
            x = lp.add_column(1.0, BoundType.DB, 0.0, 1.0)
            row = lp.add_row(BoundType.LO, lo=2.0)
            lp.add_constraint_coef(row, x)

        components = IRComponents(init=FunctionInit(build), round_condition=MustNotRound())
        result = solve_iterative_rounding(LPProblem(), components)
        assert result == IRResult(ProblemType.INFEASIBLE)
        assert result.objective is None

    def test_infeasible_after_rounding(self):
        def build(lp):
            x = lp.add_column(1.0, BoundType.DB, 0.0, 1.0)
            y = lp.add_column(1.0, BoundType.DB, 0.0, 1.0)
            row = lp.add_row(BoundType.LO, lo=1.5)
            lp.add_constraint_coef(row, x)
            lp.add_constraint_coef(row, y)

        components = IRComponents(init=FunctionInit(build), round_condition=AlwaysZero())
        result = solve_iterative_rounding(LPProblem(), components)
        assert result.status == ProblemType.INFEASIBLE

    def test_no_progress_is_fatal(self):
        components = IRComponents(init=FunctionInit(half_rows(1)))
        with pytest.raises(EngineInvariantError, match="neither rounded nor relaxed"):
            solve_iterative_rounding(LPProblem(), components)

    def test_invalid_input_skips_init(self):
        init = FunctionInit(half_rows(1))
        with pytest.raises(InvalidInputError, match="bad input"):
            solve_iterative_rounding(LPProblem("bad input"), IRComponents(init=init))
        assert init.calls == 0

    def test_invalid_input_is_value_error(self):
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(EngineInvariantError, RuntimeError)


class CountdownProblem(LPProblem):
    """Problem that shrinks by one element per dependent round."""

    def __init__(self, size, infeasible_at=None, message=None):
        super().__init__(message)
        self.size = size
        self.infeasible_at = infeasible_at
        self.committed = []
        self.discarded = False

    def discard_solution(self):
        self.discarded = True
        self.committed.clear()


class CountdownInit(Init):
    """One column of cost -1 per remaining element."""

    def __init__(self):
        self.calls = 0

    def __call__(self, problem, lp):
        self.calls += 1
        for _ in range(problem.size):
            lp.add_column(-1.0, BoundType.DB, 0.0, 1.0)
        if problem.size == problem.infeasible_at:
            row = lp.add_row(BoundType.LO, lo=2.0 * problem.size + 1.0)
            for col in range(problem.size):
                lp.add_constraint_coef(row, col)
        lp.load_matrix()


class CommitOne(DependentRoundCondition):
    def __init__(self):
        self.columns_seen = []

    def __call__(self, problem, lp):
        self.columns_seen.append(lp.columns_count)
        problem.committed.append(problem.size)
        problem.size -= 1


class NothingLeft(StopCondition):
    def __call__(self, problem, lp):
        return problem.size == 0


class TestDependentRounding:
    def test_lp_rebuilt_after_every_round(self):
        init = CountdownInit()
        round_condition = CommitOne()
        components = IRComponents(
            init=init, round_condition=round_condition, stop_condition=NothingLeft()
        )
        visitor = RecordingVisitor()
        problem = CountdownProblem(3)
        run = IterativeRounding(problem, components, visitor)
        result = run.run_dependent()

        assert result == IRResult(ProblemType.OPTIMAL, 0.0)
        assert run.iterations == 3
        assert init.calls == 4
        assert round_condition.columns_seen == [3, 2, 1]
        assert problem.committed == [3, 2, 1]
        assert run.lp.columns_count == 0
        # initial solve plus one resolve per round
        assert visitor.events == [("solve", ProblemType.OPTIMAL)] * 4

    def test_stop_before_first_round(self):
        components = IRComponents(
            init=CountdownInit(), round_condition=CommitOne(), stop_condition=NothingLeft()
        )
        result = solve_dependent_iterative_rounding(CountdownProblem(0), components)
        assert result == IRResult(ProblemType.OPTIMAL, 0.0)

    def test_infeasible_rebuild_discards_commitments(self):
        components = IRComponents(
            init=CountdownInit(), round_condition=CommitOne(), stop_condition=NothingLeft()
        )
        problem = CountdownProblem(3, infeasible_at=1)
        result = solve_dependent_iterative_rounding(problem, components)
        assert result == IRResult(ProblemType.INFEASIBLE)
        assert problem.discarded
        assert problem.committed == []

    def test_invalid_input_checked_first(self):
        init = CountdownInit()
        components = IRComponents(
            init=init, round_condition=CommitOne(), stop_condition=NothingLeft()
        )
        with pytest.raises(InvalidInputError, match="bad input"):
            solve_dependent_iterative_rounding(
                CountdownProblem(2, message="bad input"), components
            )
        assert init.calls == 0
