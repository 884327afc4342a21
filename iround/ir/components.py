"""Policies plugged into the iterative rounding engine.

Each policy kind is a small callable strategy interface; an ``IRComponents``
bundle selects one implementation per kind. Problem-specific policies live
next to their problems, the generic ones are defined here.
"""

from __future__ import annotations

import abc
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from iround.lp.base import ColId, ProblemType, RowId
from iround.lp.model import LinearProgram


class Init(abc.ABC):
    """Build the initial columns and rows of the LP and load the matrix."""

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram) -> None: ...


class RoundCondition(abc.ABC):
    """Decide whether an active column is integral enough to be fixed."""

    @abc.abstractmethod
    def __call__(
        self, problem: Any, lp: LinearProgram, col: ColId
    ) -> Optional[float]:
        """Return the value to fix the column to, or None to leave it active."""
        ...


class DependentRoundCondition(abc.ABC):
    """Rounding step that changes the problem itself.

    Used by dependent iterative rounding: the step reads the whole LP point,
    commits part of the solution and updates the problem, after which the
    engine rebuilds the LP from scratch with ``Init``.
    """

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram) -> None: ...


class RelaxCondition(abc.ABC):
    """Decide whether an active row may be dropped."""

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram, row: RowId) -> bool: ...


class SetSolution(abc.ABC):
    """Write the combinatorial answer from the final LP state."""

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram) -> None: ...


class SolveLP(abc.ABC):
    """Bring the LP to an extreme point and report its status."""

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram) -> ProblemType: ...


class StopCondition(abc.ABC):
    """Decide whether the rounding loop is finished."""

    @abc.abstractmethod
    def __call__(self, problem: Any, lp: LinearProgram) -> bool: ...


class RelaxationsLimit(abc.ABC):
    """Bound the number of rows relaxed in a single relaxation pass."""

    @abc.abstractmethod
    def __call__(self, relaxed: int) -> bool:
        """Return True once no further row may be relaxed in the current pass."""
        ...


class DefaultSolveLP(SolveLP):
    def __call__(self, problem, lp):
        return lp.solve_to_extreme_point()


class DefaultResolveLP(SolveLP):
    def __call__(self, problem, lp):
        return lp.resolve_to_extreme_point()


class RoundConditionEquals(RoundCondition):
    """Fix a column whose value is within epsilon of ``value``.

    With ``value=0`` this fires iff ``x < eps``; with ``value=1`` iff ``x > 1 - eps``.
    """

    def __init__(self, value: float) -> None:
        self.value = float(value)

    def __call__(self, problem, lp, col):
        if problem.get_compare().e(lp.get_col_value(col), self.value):
            return self.value
        return None


class RoundConditionGreaterThanHalf(RoundCondition):
    """Round a column up to 1 when its value is at least one half."""

    def __call__(self, problem, lp, col):
        if problem.get_compare().ge(lp.get_col_value(col), 0.5):
            return 1.0
        return None


class ComposedRoundCondition(RoundCondition):
    """Query conditions in order; the first one that fires wins."""

    def __init__(self, *conditions: RoundCondition) -> None:
        if not conditions:
            raise ValueError("At least one round condition is required.")
        self.conditions = conditions

    def __call__(self, problem, lp, col):
        for condition in self.conditions:
            value = condition(problem, lp, col)
            if value is not None:
                return value
        return None


class DefaultRoundCondition(ComposedRoundCondition):
    """Round to 0, then to 1. Zero is checked first so it wins on overlap."""

    def __init__(self) -> None:
        super().__init__(RoundConditionEquals(0.0), RoundConditionEquals(1.0))


class NeverRelax(RelaxCondition):
    def __call__(self, problem, lp, row):
        return False


class SkipSetSolution(SetSolution):
    """Used by problems that commit elements to their output while rounding."""

    def __call__(self, problem, lp):
        return None


class DefaultStopCondition(StopCondition):
    """Stop once every column has been fixed."""

    def __call__(self, problem, lp):
        return not lp.active_columns()


class NoRelaxationsLimit(RelaxationsLimit):
    def __call__(self, relaxed):
        return False


class RelaxationsLimitCondition(RelaxationsLimit):
    """Allow at most ``limit`` relaxations per pass."""

    def __init__(self, limit: int = 1) -> None:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self.limit = limit

    def __call__(self, relaxed):
        return relaxed >= self.limit


@dataclass(frozen=True)
class IRComponents:
    """Immutable selection of the policies driving one iterative rounding run.

    Attributes:
        init: Builds and loads the initial LP.
        round_condition: Fixes near-integral columns, or a
            ``DependentRoundCondition`` for dependent rounding runs.
        relax_condition: Drops rows that became redundant.
        set_solution: Extracts the answer after the loop.
        solve_lp: First solve to an extreme point.
        resolve_lp: Solve after every round or relax pass.
        stop_condition: Ends the loop.
        relaxations_limit: Caps relaxations per pass.
    """

    init: Init
    round_condition: Union[RoundCondition, DependentRoundCondition] = field(
        default_factory=DefaultRoundCondition
    )
    relax_condition: RelaxCondition = field(default_factory=NeverRelax)
    set_solution: SetSolution = field(default_factory=SkipSetSolution)
    solve_lp: SolveLP = field(default_factory=DefaultSolveLP)
    resolve_lp: SolveLP = field(default_factory=DefaultResolveLP)
    stop_condition: StopCondition = field(default_factory=DefaultStopCondition)
    relaxations_limit: RelaxationsLimit = field(default_factory=NoRelaxationsLimit)

    def replace(self, **changes: Any) -> "IRComponents":
        """Return a copy with some policies swapped."""
        return dataclasses.replace(self, **changes)
