"""Cut-constraint separation for the Steiner network LP.

For every pruned restriction pair (u, v) the LP must satisfy
``x(delta(S)) >= r(u, v)`` for every vertex set S separating u from v. The
checker measures the minimum u-v cut in an auxiliary network whose arc
capacities are the current column values and reports the source side of the
cut as the witness.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import networkx as nx

from iround.graph.min_cut import add_undirected_arc, calc_min_cut
from iround.logging import get_logger
from iround.lp.base import BoundType, RowId
from iround.lp.model import LinearProgram
from iround.lp.separation import Violation, ViolationChecker

logger = get_logger(__name__)


class SteinerNetworkViolationChecker(ViolationChecker):
    """Min-cut violation checker for the Steiner network cut constraints."""

    def __init__(self) -> None:
        self._aux: Optional[nx.DiGraph] = None

    def prepare(self, problem: Any, lp: LinearProgram) -> List[Tuple[Any, Any]]:
        compare = problem.get_compare()
        aux = self._empty_network(problem)
        for col, (u, v) in problem.edge_endpoints.items():
            value = lp.get_col_value(col)
            if compare.g(value, 0.0):
                add_undirected_arc(aux, u, v, value)
        self._aux = aux
        return problem.restrictions_vec

    def check_violation(self, problem: Any, candidate: Tuple[Any, Any]) -> Violation:
        if self._aux is None:
            raise RuntimeError("prepare() must be called before check_violation().")
        src, trg = candidate
        requirement = problem.get_max_restriction(src, trg)
        cut = calc_min_cut(
            self._aux, src, trg, tolerance=problem.get_compare().epsilon
        )
        return Violation(
            magnitude=requirement - cut.cut_value,
            candidate=candidate,
            witness=cut.reachable,
            bound=requirement,
        )

    def add_violated_row(
        self, problem: Any, lp: LinearProgram, violation: Violation
    ) -> RowId:
        row = lp.add_row(BoundType.LO, lo=violation.bound)
        for col, (u, v) in problem.edge_endpoints.items():
            if (u in violation.witness) != (v in violation.witness):
                lp.add_constraint_coef(row, col)
        return row

    def check_if_solution_exists(self, problem: Any) -> bool:
        """Return True if taking every edge of the graph meets all restrictions."""
        # Runs before Init, so edges come from the graph rather than the columns
        aux = self._empty_network(problem)
        for edge in problem.edges():
            add_undirected_arc(aux, edge[0], edge[1], 1.0)
        self._aux = aux

        compare = problem.get_compare()
        for candidate in problem.restrictions_vec:
            violation = self.check_violation(problem, candidate)
            if compare.g(violation.magnitude, 0.0):
                logger.debug(
                    "Restriction %s cannot be met: requirement %s, cut %s",
                    candidate,
                    violation.bound,
                    violation.bound - violation.magnitude,
                )
                return False
        return True

    @staticmethod
    def _empty_network(problem: Any) -> nx.DiGraph:
        aux = nx.DiGraph()
        aux.add_nodes_from(problem.graph.nodes())
        return aux
