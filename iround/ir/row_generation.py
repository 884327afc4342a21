"""Solve policies that interleave LP solves with separation oracle calls."""

from __future__ import annotations

from iround.ir.components import SolveLP
from iround.logging import get_logger
from iround.lp.base import ProblemType

logger = get_logger(__name__)


def _generate_rows(problem, lp, status: ProblemType) -> ProblemType:
    """Add violated rows and resolve until the problem's oracle accepts the point."""
    oracle = problem.get_oracle()
    while status == ProblemType.OPTIMAL and not oracle.feasible(problem, lp):
        oracle.add_violated_row(problem, lp)
        status = lp.resolve_to_extreme_point()
    if status != ProblemType.OPTIMAL:
        logger.debug("Row generation stopped with LP status %s", status.name)
    return status


class RowGenerationSolveLP(SolveLP):
    """Solve from scratch, then generate rows until the oracle reports feasibility."""

    def __call__(self, problem, lp):
        return _generate_rows(problem, lp, lp.solve_to_extreme_point())


class RowGenerationResolveLP(SolveLP):
    """Resolve, then generate rows until the oracle reports feasibility."""

    def __call__(self, problem, lp):
        return _generate_rows(problem, lp, lp.resolve_to_extreme_point())
