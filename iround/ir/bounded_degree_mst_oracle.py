"""Subtour elimination separation for the spanning tree LP.

The constraints are ``x(E(S)) <= |S| - 1`` for every non-empty vertex set S.
A most violated set containing a given vertex k is the source side of a
minimum cut in an auxiliary network (Padberg-Wolsey):

- ``u <-> v`` with capacity ``x_e`` for every edge e = (u, v),
- ``src -> v`` with capacity M,
- ``v -> trg`` with capacity ``M + 2 - x(delta(v))``,

where M is the largest fractional degree. A cut with source side
``{src} + S`` has capacity ``n * M + 2 * (|S| - x(E(S)))``; forcing
``src -> k`` to infinity keeps k in S.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Hashable, List, Optional

import networkx as nx

from iround.graph.min_cut import add_undirected_arc, calc_min_cut
from iround.lp.base import BoundType, ColId, RowId
from iround.lp.model import LinearProgram
from iround.lp.separation import Violation, ViolationChecker


class _Terminal:
    """Auxiliary source/sink vertex that never collides with graph vertices."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name}>"


SOURCE = _Terminal("source")
SINK = _Terminal("sink")


class BoundedDegreeMSTViolationChecker(ViolationChecker):
    """Min-cut violation checker for the subtour elimination constraints."""

    def __init__(self) -> None:
        self._aux: Optional[nx.DiGraph] = None
        self._values: Dict[ColId, float] = {}
        self._src_capacity = 0.0

    def prepare(self, problem: Any, lp: LinearProgram) -> List[Hashable]:
        compare = problem.get_compare()
        aux = nx.DiGraph()
        aux.add_nodes_from(problem.graph.nodes())
        degree: Dict[Hashable, float] = defaultdict(float)
        self._values = {}

        for col, (u, v) in problem.edge_map.items():
            value = lp.get_col_value(col)
            self._values[col] = value
            if compare.g(value, 0.0):
                add_undirected_arc(aux, u, v, value)
                degree[u] += value
                degree[v] += value

        self._src_capacity = max(degree.values(), default=0.0)
        for v in problem.graph.nodes():
            aux.add_edge(SOURCE, v, capacity=self._src_capacity)
            aux.add_edge(v, SINK, capacity=self._src_capacity + 2.0 - degree[v])
        self._aux = aux
        return list(problem.graph.nodes())

    def check_violation(self, problem: Any, candidate: Hashable) -> Violation:
        if self._aux is None:
            raise RuntimeError("prepare() must be called before check_violation().")
        forced = self._aux[SOURCE][candidate]
        forced["capacity"] = float("inf")
        try:
            cut = calc_min_cut(
                self._aux, SOURCE, SINK, tolerance=problem.get_compare().epsilon
            )
        finally:
            forced["capacity"] = self._src_capacity

        subset = cut.reachable - {SOURCE}
        inside = sum(
            value
            for col, value in self._values.items()
            if problem.edge_map[col][0] in subset and problem.edge_map[col][1] in subset
        )
        bound = len(subset) - 1
        return Violation(
            magnitude=inside - bound,
            candidate=candidate,
            witness=frozenset(subset),
            bound=float(bound),
        )

    def add_violated_row(
        self, problem: Any, lp: LinearProgram, violation: Violation
    ) -> RowId:
        row = lp.add_row(BoundType.UP, hi=violation.bound)
        for col, (u, v) in problem.edge_map.items():
            if u in violation.witness and v in violation.witness:
                lp.add_constraint_coef(row, col)
        return row
