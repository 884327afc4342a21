"""Iterative rounding engine.

The engine interleaves LP solves with column rounding and row relaxation:

  1. ``Init`` builds and loads the LP.
  2. ``SolveLP`` brings it to an extreme point; an infeasible or unbounded
     relaxation ends the run with ``INFEASIBLE``.
  3. Until ``StopCondition`` holds: fix every active column accepted by
     ``RoundCondition``; if none was fixed, drop every active row accepted by
     ``RelaxCondition``; after either, resolve. A pass that does neither is a
     broken policy pair and raises ``EngineInvariantError``.
  4. ``SetSolution`` extracts the answer.

Dependent rounding (``run_dependent``) replaces steps 3a-3b with a single
``DependentRoundCondition`` call that updates the problem; the LP is then
cleared and rebuilt by ``Init`` before the next resolve.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from iround.ir.components import IRComponents
from iround.ir.visitor import TrivialVisitor
from iround.logging import get_logger
from iround.lp.base import ProblemType
from iround.lp.model import LinearProgram

logger = get_logger(__name__)


class InvalidInputError(ValueError):
    """The problem rejected its input before any LP was built."""


class EngineInvariantError(RuntimeError):
    """An iteration neither rounded nor relaxed while the stop condition failed."""


@dataclass(frozen=True)
class IRResult:
    """Outcome of an iterative rounding run.

    Attributes:
        status: ``OPTIMAL`` or ``INFEASIBLE``.
        objective: Objective value of the final LP when ``OPTIMAL``, else None.
    """

    status: ProblemType
    objective: Optional[float] = None


class IterativeRounding:
    """State of one iterative rounding run over a problem and its LP.

    Args:
        problem: The problem instance; owned by this run.
        components: Policy bundle.
        visitor: Instrumentation hooks (defaults to ``TrivialVisitor``).
        lp: LP model to fill; a fresh ``LinearProgram`` by default.
    """

    def __init__(
        self,
        problem: Any,
        components: IRComponents,
        visitor: Optional[TrivialVisitor] = None,
        lp: Optional[LinearProgram] = None,
    ) -> None:
        self.problem = problem
        self.components = components
        self.visitor = visitor if visitor is not None else TrivialVisitor()
        self.lp = lp if lp is not None else LinearProgram()
        self.iterations = 0
        self.components.init(self.problem, self.lp)

    def solve_lp(self) -> ProblemType:
        status = self.components.solve_lp(self.problem, self.lp)
        self.visitor.solve_lp(self.problem, self.lp, status)
        return status

    def resolve_lp(self) -> ProblemType:
        status = self.components.resolve_lp(self.problem, self.lp)
        self.visitor.solve_lp(self.problem, self.lp, status)
        return status

    def round(self) -> int:
        """Fix every active column accepted by the round condition.

        Columns are visited in ascending id order. Returns the number fixed.
        """
        rounded = 0
        for col in self.lp.active_columns():
            value = self.components.round_condition(self.problem, self.lp, col)
            if value is None:
                continue
            self.lp.fix_column(col, value)
            self.visitor.round_col(self.problem, self.lp, col, value)
            rounded += 1
        return rounded

    def relax(self) -> int:
        """Relax active rows accepted by the relax condition, up to the relaxations limit.

        Rows are visited in ascending id order. Returns the number relaxed.
        """
        relaxed = 0
        for row in self.lp.active_rows():
            if self.components.relaxations_limit(relaxed):
                break
            if self.components.relax_condition(self.problem, self.lp, row):
                self.lp.relax_row(row)
                self.visitor.relax_row(self.problem, self.lp, row)
                relaxed += 1
        return relaxed

    def dependent_round(self) -> None:
        """Apply a whole-LP rounding step, then rebuild the LP from the updated problem."""
        self.components.round_condition(self.problem, self.lp)
        self.lp.clear()
        self.components.init(self.problem, self.lp)

    def stop_condition(self) -> bool:
        return self.components.stop_condition(self.problem, self.lp)

    def set_solution(self) -> None:
        self.components.set_solution(self.problem, self.lp)

    def run(self) -> IRResult:
        """Drive the solve / round / relax loop to completion.

        Returns:
            IRResult: ``OPTIMAL`` with the final objective, or ``INFEASIBLE``.

        Raises:
            EngineInvariantError: If an iteration makes no progress.
        """
        status = self.solve_lp()
        if status != ProblemType.OPTIMAL:
            logger.info("LP relaxation '%s' is %s", self.lp.name, status.name)
            return self._infeasible()

        while not self.stop_condition():
            self.iterations += 1
            rounded = self.round()
            relaxed = 0 if rounded else self.relax()
            logger.debug(
                "Iteration %d: rounded %d columns, relaxed %d rows",
                self.iterations,
                rounded,
                relaxed,
            )
            if not (rounded or relaxed):
                raise EngineInvariantError(
                    f"Iteration {self.iterations} of '{self.lp.name}' neither rounded "
                    f"nor relaxed anything ({len(self.lp.active_columns())} active "
                    f"columns, {len(self.lp.active_rows())} active rows)."
                )
            status = self.resolve_lp()
            if status != ProblemType.OPTIMAL:
                logger.info(
                    "LP '%s' became %s after iteration %d",
                    self.lp.name,
                    status.name,
                    self.iterations,
                )
                return self._infeasible()

        return self._finish()

    def run_dependent(self) -> IRResult:
        """Drive the dependent rounding loop: round, rebuild, resolve.

        Every iteration calls ``dependent_round`` once; the stop condition is
        owned by the problem's policies, since columns are never fixed here.

        Returns:
            IRResult: ``OPTIMAL`` with the objective of the last LP, or ``INFEASIBLE``.
        """
        status = self.solve_lp()
        if status != ProblemType.OPTIMAL:
            logger.info("LP relaxation '%s' is %s", self.lp.name, status.name)
            return self._infeasible()

        while not self.stop_condition():
            self.iterations += 1
            self.dependent_round()
            logger.debug(
                "Iteration %d: LP '%s' rebuilt with %d columns",
                self.iterations,
                self.lp.name,
                self.lp.columns_count,
            )
            status = self.resolve_lp()
            if status != ProblemType.OPTIMAL:
                logger.info(
                    "LP '%s' became %s after iteration %d",
                    self.lp.name,
                    status.name,
                    self.iterations,
                )
                return self._infeasible()

        return self._finish()

    def _infeasible(self) -> IRResult:
        # Elements committed while rounding are withdrawn from the caller's sink
        discard = getattr(self.problem, "discard_solution", None)
        if discard is not None:
            discard()
        return IRResult(ProblemType.INFEASIBLE)

    def _finish(self) -> IRResult:
        self.set_solution()
        objective = self.lp.get_obj_value()
        logger.info(
            "Iterative rounding of '%s' finished after %d iterations, objective %s",
            self.lp.name,
            self.iterations,
            objective,
        )
        return IRResult(ProblemType.OPTIMAL, objective)


def solve_iterative_rounding(
    problem: Any,
    components: IRComponents,
    visitor: Optional[TrivialVisitor] = None,
) -> IRResult:
    """Check the problem's input and run iterative rounding on it.

    Args:
        problem: Problem implementing ``check_input_validity`` and ``get_compare``.
        components: Policy bundle.
        visitor: Optional instrumentation hooks.

    Returns:
        IRResult: Status and objective of the run.

    Raises:
        InvalidInputError: If ``check_input_validity`` returns a message.
        EngineInvariantError: If an iteration makes no progress.
    """
    _check_input(problem)
    return IterativeRounding(problem, components, visitor).run()


def solve_dependent_iterative_rounding(
    problem: Any,
    components: IRComponents,
    visitor: Optional[TrivialVisitor] = None,
) -> IRResult:
    """Check the problem's input and run dependent iterative rounding on it.

    ``components.round_condition`` must be a ``DependentRoundCondition`` and
    ``components.init`` must rebuild the LP from the current problem state.

    Raises:
        InvalidInputError: If ``check_input_validity`` returns a message.
    """
    _check_input(problem)
    return IterativeRounding(problem, components, visitor).run_dependent()


def _check_input(problem: Any) -> None:
    error = problem.check_input_validity()
    if error is not None:
        raise InvalidInputError(error)
