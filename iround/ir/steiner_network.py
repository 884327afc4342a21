"""Steiner network by iterative rounding (Jain's 2-approximation).

Given an undirected graph with edge costs and a connectivity requirement
``r(u, v)`` for vertex pairs, select a cheapest multiset of edges such that
every pair is joined by at least ``r(u, v)`` edge-disjoint paths. The LP has
one column per edge and an exponential family of cut rows discovered on
demand by ``SteinerNetworkViolationChecker``.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Mapping, Optional, Tuple

import networkx as nx

from iround.ir.components import (
    IRComponents,
    Init,
    RoundCondition,
    RoundConditionEquals,
    RoundConditionGreaterThanHalf,
)
from iround.ir.engine import IRResult, solve_iterative_rounding
from iround.ir.problem import IRProblem
from iround.ir.row_generation import RowGenerationResolveLP, RowGenerationSolveLP
from iround.ir.steiner_network_oracle import SteinerNetworkViolationChecker
from iround.ir.visitor import TrivialVisitor
from iround.lp.base import BoundType, ColId
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram
from iround.lp.separation import OracleStrategy, SeparationOracle, make_separation_oracle

NodeID = Hashable
Restrictions = Mapping[Tuple[NodeID, NodeID], float]


def prune_restrictions_to_tree(
    restrictions: Restrictions, nodes: Optional[List[NodeID]] = None
) -> List[Tuple[NodeID, NodeID]]:
    """Reduce restriction pairs to a maximum spanning forest of the requirement function.

    Meeting the requirement of every forest pair meets all of them: for any
    pair the forest path has all requirements at least ``r(u, v)`` and cut
    capacities compose along the path.

    Args:
        restrictions: Mapping ``(u, v) -> r``; the larger of ``r(u, v)`` and
            ``r(v, u)`` is used.
        nodes: Optional vertex order; affects only the order of the result.

    Returns:
        List of ``(u, v)`` pairs with positive requirement.
    """
    req = nx.Graph()
    if nodes is not None:
        req.add_nodes_from(nodes)
    for (u, v), r in restrictions.items():
        if u == v or r <= 0:
            continue
        if req.has_edge(u, v):
            req[u][v]["weight"] = max(req[u][v]["weight"], r)
        else:
            req.add_edge(u, v, weight=r)
    forest = nx.maximum_spanning_tree(req, weight="weight")
    return [(u, v) for u, v in forest.edges()]


class SteinerNetwork(IRProblem):
    """Problem state of a Steiner network instance.

    Args:
        graph: Undirected ``nx.Graph`` or ``nx.MultiGraph``.
        restrictions: Requirement mapping ``(u, v) -> r``.
        result: List receiving the selected edges; a new list by default.
        cost_attr: Edge attribute holding the cost (missing means 1).
        oracle: Separation oracle; a random-start oracle by default.
        compare: Tolerance for all decisions.

    Attributes:
        edge_map: Column id to graph edge (``(u, v)`` or ``(u, v, key)``).
        edge_endpoints: Column id to ``(u, v)``.
        restrictions_vec: Pruned restriction pairs scanned by the oracle.
    """

    def __init__(
        self,
        graph: nx.Graph,
        restrictions: Restrictions,
        result: Optional[List[Any]] = None,
        cost_attr: str = "cost",
        oracle: Optional[SeparationOracle] = None,
        compare: Optional[Compare] = None,
    ) -> None:
        if graph.is_directed():
            raise ValueError("Steiner network requires an undirected graph.")
        self.graph = graph
        self.restrictions = restrictions
        self.result: List[Any] = result if result is not None else []
        self._result_start = len(self.result)
        self.cost_attr = cost_attr
        self.restrictions_vec = prune_restrictions_to_tree(restrictions, list(graph.nodes()))
        self._oracle = oracle or make_separation_oracle(SteinerNetworkViolationChecker())
        self._compare = compare or Compare()
        self.edge_map: Dict[ColId, Any] = {}
        self.edge_endpoints: Dict[ColId, Tuple[NodeID, NodeID]] = {}
        self.edge_cost: Dict[Any, float] = {}
        for edge in self._edges():
            self.edge_cost[edge] = float(self._edge_data(edge).get(cost_attr, 1.0))

    def _edges(self) -> List[Any]:
        if self.graph.is_multigraph():
            return list(self.graph.edges(keys=True))
        return list(self.graph.edges())

    def _edge_data(self, edge: Any) -> Dict[str, Any]:
        return self.graph.get_edge_data(*edge)

    def check_input_validity(self) -> Optional[str]:
        for u, v in self.restrictions_vec:
            if u not in self.graph or v not in self.graph:
                return f"Restriction ({u}, {v}) refers to a vertex outside the graph."
        checker = SteinerNetworkViolationChecker()
        if not checker.check_if_solution_exists(self):
            return "A Steiner network satisfying the restrictions does not exist."
        return None

    def get_compare(self) -> Compare:
        return self._compare

    def get_oracle(self) -> SeparationOracle:
        return self._oracle

    def get_max_restriction(self, u: NodeID, v: NodeID) -> float:
        return max(self.restrictions.get((u, v), 0), self.restrictions.get((v, u), 0))

    def edges(self) -> List[Any]:
        return list(self.edge_cost)

    def bind_edge_to_col(self, edge: Any, col: ColId) -> None:
        self.edge_map[col] = edge
        self.edge_endpoints[col] = (edge[0], edge[1])

    def add_column_to_solution(self, col: ColId) -> None:
        self.result.append(self.edge_map[col])

    def discard_solution(self) -> None:
        del self.result[self._result_start :]


class SteinerNetworkInit(Init):
    """One [0, 1] column per edge; cut rows come from the oracle."""

    def __call__(self, problem: SteinerNetwork, lp: LinearProgram) -> None:
        lp.set_lp_name("steiner network")
        lp.set_min_obj_fun()
        for edge in problem.edges():
            col = lp.add_column(problem.edge_cost[edge], BoundType.DB, 0.0, 1.0)
            problem.bind_edge_to_col(edge, col)
        lp.load_matrix()


class SteinerNetworkRoundCondition(RoundCondition):
    """Exclude edges at 0; commit edges at one half or more."""

    def __init__(self) -> None:
        self._round_zero = RoundConditionEquals(0.0)
        self._round_half = RoundConditionGreaterThanHalf()

    def __call__(self, problem: SteinerNetwork, lp: LinearProgram, col: ColId):
        ret = self._round_zero(problem, lp, col)
        if ret is not None:
            return ret
        ret = self._round_half(problem, lp, col)
        if ret is not None:
            problem.add_column_to_solution(col)
        return ret


def steiner_network_ir_components(**changes) -> IRComponents:
    return IRComponents(
        init=SteinerNetworkInit(),
        round_condition=SteinerNetworkRoundCondition(),
        solve_lp=RowGenerationSolveLP(),
        resolve_lp=RowGenerationResolveLP(),
    ).replace(**changes)


def steiner_network_iterative_rounding(
    graph: nx.Graph,
    restrictions: Restrictions,
    result: Optional[List[Any]] = None,
    cost_attr: str = "cost",
    components: Optional[IRComponents] = None,
    oracle_strategy: OracleStrategy | str | None = None,
    seed: Optional[int] = None,
    visitor: Optional[TrivialVisitor] = None,
    compare: Optional[Compare] = None,
) -> IRResult:
    """Solve a Steiner network instance.

    Args:
        graph: Undirected graph with costs in ``cost_attr``.
        restrictions: Requirement mapping ``(u, v) -> r``.
        result: List receiving the selected edges. Entries appended during a
            run that ends INFEASIBLE are removed again.
        cost_attr: Edge attribute holding the cost.
        components: Policy bundle; ``steiner_network_ir_components()`` by default.
        oracle_strategy: Candidate search strategy of the separation oracle.
        seed: Master seed for the random-start strategy.
        visitor: Optional instrumentation hooks.
        compare: Tolerance for all decisions.

    Returns:
        IRResult: Status and LP cost of the selected network.

    Raises:
        InvalidInputError: If even the whole graph misses a requirement.
    """
    oracle = make_separation_oracle(
        SteinerNetworkViolationChecker(), oracle_strategy, seed=seed
    )
    problem = SteinerNetwork(graph, restrictions, result, cost_attr, oracle, compare)
    return solve_iterative_rounding(
        problem, components or steiner_network_ir_components(), visitor
    )
