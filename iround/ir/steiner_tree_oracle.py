"""Directed cut separation for the Steiner tree component LP.

The first current terminal is the root. Every set U of terminals without the
root must be left by components of total value at least one, where a
component leaves U if one of its sources lies in U and its sink does not.
For a terminal t the checker routes flow from t to the root through one
auxiliary node per component: uncapacitated arcs from the sources to that
node and an arc of capacity x(C) from the node to the sink. The terminals on
the source side of a minimum cut form a most violated U for t.
"""

from __future__ import annotations

from typing import Any, List, Optional

import networkx as nx

from iround.graph.min_cut import calc_min_cut
from iround.lp.base import BoundType, RowId
from iround.lp.model import LinearProgram
from iround.lp.separation import Violation, ViolationChecker


class SteinerTreeViolationChecker(ViolationChecker):
    """Min-cut violation checker for the directed component cut constraints."""

    def __init__(self) -> None:
        self._aux: Optional[nx.DiGraph] = None

    def prepare(self, problem: Any, lp: LinearProgram) -> List[Any]:
        compare = problem.get_compare()
        aux = nx.DiGraph()
        aux.add_nodes_from(problem.terminals)
        for col, component in problem.column_components.items():
            value = lp.get_col_value(col)
            if not compare.g(value, 0.0):
                continue
            # Tuple nodes keep component nodes apart from graph vertices
            node = ("component", col)
            for source in component.sources:
                # No capacity attribute means unbounded for networkx flows
                aux.add_edge(source, node)
            aux.add_edge(node, component.sink, capacity=value)
        self._aux = aux
        return problem.terminals[1:]

    def check_violation(self, problem: Any, candidate: Any) -> Violation:
        if self._aux is None:
            raise RuntimeError("prepare() must be called before check_violation().")
        cut = calc_min_cut(
            self._aux,
            candidate,
            problem.terminals[0],
            tolerance=problem.get_compare().epsilon,
        )
        return Violation(
            magnitude=1.0 - cut.cut_value,
            candidate=candidate,
            witness=cut.reachable.intersection(problem.terminals),
            bound=1.0,
        )

    def add_violated_row(
        self, problem: Any, lp: LinearProgram, violation: Violation
    ) -> RowId:
        row = lp.add_row(BoundType.LO, lo=violation.bound)
        for col, component in problem.column_components.items():
            leaves = component.sink not in violation.witness and any(
                source in violation.witness for source in component.sources
            )
            if leaves:
                lp.add_constraint_coef(row, col)
        return row
