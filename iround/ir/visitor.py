"""Instrumentation hooks called by the iterative rounding engine.

Visitors observe a run; they must not change the LP or the problem.
"""

from __future__ import annotations

import logging
from typing import Any

from iround.logging import LevelLike, get_logger, resolve_level
from iround.lp.base import ColId, ProblemType, RowId
from iround.lp.model import LinearProgram


class TrivialVisitor:
    """Visitor that ignores every event."""

    def solve_lp(self, problem: Any, lp: LinearProgram, status: ProblemType) -> None:
        """Called after the initial solve and after every resolve."""

    def round_col(self, problem: Any, lp: LinearProgram, col: ColId, value: float) -> None:
        """Called after a column has been fixed to ``value``."""

    def relax_row(self, problem: Any, lp: LinearProgram, row: RowId) -> None:
        """Called after a row has been relaxed."""


class LoggingVisitor(TrivialVisitor):
    """Visitor that reports every event to the ``iround`` logger.

    Args:
        name: Logger name.
        level: Level of the emitted records, as a constant or a name such as ``"info"``.
    """

    def __init__(self, name: str = __name__, level: LevelLike = logging.DEBUG) -> None:
        self.logger = get_logger(name)
        self.level = resolve_level(level)

    def solve_lp(self, problem, lp, status):
        if status == ProblemType.OPTIMAL:
            self.logger.log(
                self.level,
                "LP '%s' %s, objective %s",
                lp.name,
                status.name,
                lp.get_obj_value(),
            )
        else:
            self.logger.log(self.level, "LP '%s' %s", lp.name, status.name)

    def round_col(self, problem, lp, col, value):
        self.logger.log(self.level, "Column %d fixed to %s", col, value)

    def relax_row(self, problem, lp, row):
        self.logger.log(self.level, "Row %d relaxed", row)
