"""Minimum bounded-degree spanning tree by iterative relaxation (Singh-Lau).

Returns a spanning tree of cost at most the LP optimum in which every vertex
v with a degree bound ``B_v`` has degree at most ``B_v + 1``.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Hashable, List, Mapping, Optional, Tuple

import networkx as nx

from iround.ir.components import (
    IRComponents,
    Init,
    RelaxCondition,
    RoundCondition,
    RoundConditionEquals,
)
from iround.ir.bounded_degree_mst_oracle import BoundedDegreeMSTViolationChecker
from iround.ir.engine import IRResult, solve_iterative_rounding
from iround.ir.problem import IRProblem
from iround.ir.row_generation import RowGenerationResolveLP, RowGenerationSolveLP
from iround.ir.visitor import TrivialVisitor
from iround.lp.base import BoundType, ColId, RowId
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram
from iround.lp.separation import OracleStrategy, SeparationOracle, make_separation_oracle

NodeID = Hashable
Edge = Tuple[NodeID, NodeID]


class BoundedDegreeMST(IRProblem):
    """Problem state of a bounded-degree spanning tree instance.

    Args:
        graph: Undirected simple graph.
        degree_bounds: Mapping ``vertex -> B_v``; unlisted vertices are unbounded.
        result: List receiving the tree edges; a new list by default.
        cost_attr: Edge attribute holding the cost (missing means 1).
        oracle: Separation oracle; a random-start oracle by default.
        compare: Tolerance for all decisions.
    """

    def __init__(
        self,
        graph: nx.Graph,
        degree_bounds: Mapping[NodeID, int],
        result: Optional[List[Edge]] = None,
        cost_attr: str = "cost",
        oracle: Optional[SeparationOracle] = None,
        compare: Optional[Compare] = None,
    ) -> None:
        if graph.is_directed() or graph.is_multigraph():
            raise ValueError("Bounded-degree MST requires an undirected simple graph.")
        self.graph = graph
        self.degree_bounds = degree_bounds
        self.result: List[Edge] = result if result is not None else []
        self._result_start = len(self.result)
        self.cost_attr = cost_attr
        self._oracle = oracle or make_separation_oracle(BoundedDegreeMSTViolationChecker())
        self._compare = compare or Compare()
        self.edge_map: Dict[ColId, Edge] = {}
        self.degree_rows: Dict[RowId, NodeID] = {}
        self.committed_degree: Counter = Counter()

    def check_input_validity(self) -> Optional[str]:
        if self.graph.number_of_nodes() == 0:
            return "The graph is empty."
        if not nx.is_connected(self.graph):
            return "The graph is not connected."
        return None

    def get_compare(self) -> Compare:
        return self._compare

    def get_oracle(self) -> SeparationOracle:
        return self._oracle

    def get_cost(self, edge: Edge) -> float:
        return float(self.graph.edges[edge].get(self.cost_attr, 1.0))

    def bind_edge_to_col(self, edge: Edge, col: ColId) -> None:
        self.edge_map[col] = edge

    def bind_vertex_to_row(self, v: NodeID, row: RowId) -> None:
        self.degree_rows[row] = v

    def add_to_solution(self, col: ColId) -> None:
        u, v = self.edge_map[col]
        self.result.append((u, v))
        self.committed_degree[u] += 1
        self.committed_degree[v] += 1

    def discard_solution(self) -> None:
        del self.result[self._result_start :]
        self.committed_degree.clear()


class BDMSTInit(Init):
    """Spanning tree LP with one degree row per bounded vertex."""

    def __call__(self, problem: BoundedDegreeMST, lp: LinearProgram) -> None:
        lp.set_lp_name("bounded degree minimum spanning tree")
        lp.set_min_obj_fun()

        for edge in problem.graph.edges():
            col = lp.add_column(problem.get_cost(edge), BoundType.DB, 0.0, 1.0)
            problem.bind_edge_to_col(edge, col)

        n = problem.graph.number_of_nodes()
        row = lp.add_row(BoundType.FX, lo=n - 1)
        for col in problem.edge_map:
            lp.add_constraint_coef(row, col)

        for v in problem.graph.nodes():
            if v not in problem.degree_bounds:
                continue
            row = lp.add_row(BoundType.UP, hi=problem.degree_bounds[v])
            problem.bind_vertex_to_row(v, row)
            for col, (a, b) in problem.edge_map.items():
                if v in (a, b):
                    lp.add_constraint_coef(row, col)
        lp.load_matrix()


class BDMSTRoundCondition(RoundCondition):
    """Remove edges at 0; commit edges at 1."""

    def __init__(self) -> None:
        self._round_zero = RoundConditionEquals(0.0)
        self._round_one = RoundConditionEquals(1.0)

    def __call__(self, problem: BoundedDegreeMST, lp: LinearProgram, col: ColId):
        ret = self._round_zero(problem, lp, col)
        if ret is not None:
            return ret
        ret = self._round_one(problem, lp, col)
        if ret is not None:
            problem.add_to_solution(col)
        return ret


class BDMSTRelaxCondition(RelaxCondition):
    """Drop the degree row of v once its remaining support is at most ``B_v + 1``."""

    def __call__(self, problem: BoundedDegreeMST, lp: LinearProgram, row: RowId) -> bool:
        v = problem.degree_rows.get(row)
        if v is None:
            return False
        support = lp.get_row_degree(row) + problem.committed_degree[v]
        return support <= problem.degree_bounds[v] + 1


def bounded_degree_mst_ir_components(**changes) -> IRComponents:
    return IRComponents(
        init=BDMSTInit(),
        round_condition=BDMSTRoundCondition(),
        relax_condition=BDMSTRelaxCondition(),
        solve_lp=RowGenerationSolveLP(),
        resolve_lp=RowGenerationResolveLP(),
    ).replace(**changes)


def bounded_degree_mst_iterative_rounding(
    graph: nx.Graph,
    degree_bounds: Mapping[NodeID, int],
    result: Optional[List[Edge]] = None,
    cost_attr: str = "cost",
    components: Optional[IRComponents] = None,
    oracle_strategy: OracleStrategy | str | None = None,
    seed: Optional[int] = None,
    visitor: Optional[TrivialVisitor] = None,
    compare: Optional[Compare] = None,
) -> IRResult:
    """Find a cheap spanning tree violating each degree bound by at most one.

    Args:
        graph: Connected undirected graph with costs in ``cost_attr``.
        degree_bounds: Mapping ``vertex -> B_v``.
        result: List receiving the tree edges. Entries appended during a
            run that ends INFEASIBLE are removed again.
        cost_attr: Edge attribute holding the cost.
        components: Policy bundle; ``bounded_degree_mst_ir_components()`` by
            default. Pass ``relaxations_limit=RelaxationsLimitCondition(1)``
            to relax at most one degree row per pass.
        oracle_strategy: Candidate search strategy of the separation oracle.
        seed: Master seed for the random-start strategy.
        visitor: Optional instrumentation hooks.
        compare: Tolerance for all decisions.

    Returns:
        IRResult: ``INFEASIBLE`` when the degree bounds admit no fractional
        spanning tree, otherwise ``OPTIMAL`` with the final LP cost.

    Raises:
        InvalidInputError: If the graph is empty or disconnected.
    """
    oracle = make_separation_oracle(
        BoundedDegreeMSTViolationChecker(), oracle_strategy, seed=seed
    )
    problem = BoundedDegreeMST(graph, degree_bounds, result, cost_attr, oracle, compare)
    return solve_iterative_rounding(
        problem, components or bounded_degree_mst_ir_components(), visitor
    )
