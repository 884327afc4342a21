"""Tree augmentation by iterative rounding.

The input is a 2-edge-connected graph whose edges flagged by a boolean
attribute form a spanning tree; the remaining edges are links. The goal is a
cheapest set of links whose addition makes the tree 2-edge-connected, that
is, every tree edge lies on the tree path of some selected link.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Hashable, List, Optional, Set, Tuple

import networkx as nx

from iround.ir.components import (
    IRComponents,
    Init,
    RelaxCondition,
    RoundCondition,
    RoundConditionEquals,
    RoundConditionGreaterThanHalf,
)
from iround.ir.engine import IRResult, solve_iterative_rounding
from iround.ir.problem import IRProblem
from iround.ir.visitor import TrivialVisitor
from iround.lp.base import BoundType, ColId, RowId
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram

NodeID = Hashable
Edge = Tuple[NodeID, NodeID]


def _key(u: NodeID, v: NodeID) -> FrozenSet[NodeID]:
    return frozenset((u, v))


class TreeAugmentation(IRProblem):
    """Problem state of a tree augmentation instance.

    Args:
        graph: Undirected simple graph.
        result: List receiving the selected links; a new list by default.
        tree_attr: Boolean edge attribute marking tree edges.
        cost_attr: Edge attribute with the link cost (missing means 1).
        compare: Tolerance for all decisions.
    """

    def __init__(
        self,
        graph: nx.Graph,
        result: Optional[List[Edge]] = None,
        tree_attr: str = "tree",
        cost_attr: str = "cost",
        compare: Optional[Compare] = None,
    ) -> None:
        if graph.is_directed() or graph.is_multigraph():
            raise ValueError("Tree augmentation requires an undirected simple graph.")
        self.graph = graph
        self.result: List[Edge] = result if result is not None else []
        self._result_start = len(self.result)
        self.cost_attr = cost_attr
        self._compare = compare or Compare()
        self.solution_cost = 0.0

        self.tree = nx.Graph()
        self.tree.add_nodes_from(graph.nodes())
        self.links: List[Edge] = []
        for u, v, data in graph.edges(data=True):
            if data.get(tree_attr, False):
                self.tree.add_edge(u, v)
            else:
                self.links.append((u, v))

        self.covered_by: Dict[FrozenSet[NodeID], List[Edge]] = {}
        self.link_to_col: Dict[Edge, ColId] = {}
        self.col_to_link: Dict[ColId, Edge] = {}
        self.row_to_tree_edge: Dict[RowId, FrozenSet[NodeID]] = {}
        self._in_solution: Set[Edge] = set()

    def check_input_validity(self) -> Optional[str]:
        n_vertices = self.graph.number_of_nodes()
        n_edges = self.tree.number_of_edges()
        if n_edges != n_vertices - 1:
            return (
                "Incorrect number of edges in the spanning tree. "
                f"Should be {n_vertices - 1}, but it is {n_edges}."
            )
        if not nx.is_connected(self.tree):
            return "The spanning tree is not connected."
        if not nx.is_k_edge_connected(self.graph, 2):
            return "The graph is not 2-edge-connected."
        return None

    def get_compare(self) -> Compare:
        return self._compare

    def init(self) -> None:
        """Compute, for every tree edge, the links whose tree path covers it."""
        self.covered_by = {_key(u, v): [] for u, v in self.tree.edges()}
        for link in self.links:
            path = nx.shortest_path(self.tree, link[0], link[1])
            for a, b in zip(path, path[1:]):
                self.covered_by[_key(a, b)].append(link)

    def get_cost(self, link: Edge) -> float:
        return float(self.graph.edges[link].get(self.cost_attr, 1.0))

    def bind_edge_with_col(self, link: Edge, col: ColId) -> None:
        self.link_to_col[link] = col
        self.col_to_link[col] = link

    def bind_edge_with_row(self, tree_edge: FrozenSet[NodeID], row: RowId) -> None:
        self.row_to_tree_edge[row] = tree_edge

    def add_to_solution(self, col: ColId) -> None:
        link = self.col_to_link[col]
        self.result.append(link)
        self._in_solution.add(link)
        self.solution_cost += self.get_cost(link)

    def is_in_solution(self, link: Edge) -> bool:
        return link in self._in_solution

    def discard_solution(self) -> None:
        del self.result[self._result_start :]
        self._in_solution.clear()
        self.solution_cost = 0.0


class TAInit(Init):
    """Cut LP: a column per link and a covering row per tree edge."""

    def __call__(self, problem: TreeAugmentation, lp: LinearProgram) -> None:
        problem.init()
        lp.set_lp_name("tree augmentation")
        lp.set_min_obj_fun()
        for link in problem.links:
            problem.bind_edge_with_col(link, lp.add_column(problem.get_cost(link)))
        for tree_edge, links in problem.covered_by.items():
            row = lp.add_row(BoundType.LO, lo=1.0)
            problem.bind_edge_with_row(tree_edge, row)
            for link in links:
                lp.add_constraint_coef(row, problem.link_to_col[link])
        lp.load_matrix()


class TARoundCondition(RoundCondition):
    """Drop links at 0; take links at one half or more into the solution."""

    def __init__(self) -> None:
        self._round_zero = RoundConditionEquals(0.0)
        self._round_half = RoundConditionGreaterThanHalf()

    def __call__(self, problem: TreeAugmentation, lp: LinearProgram, col: ColId):
        ret = self._round_zero(problem, lp, col)
        if ret is not None:
            return ret
        ret = self._round_half(problem, lp, col)
        if ret is not None:
            problem.add_to_solution(col)
        return ret


class TARelaxCondition(RelaxCondition):
    """A tree edge's row is redundant once a selected link covers the edge."""

    def __call__(self, problem: TreeAugmentation, lp: LinearProgram, row: RowId) -> bool:
        tree_edge = problem.row_to_tree_edge.get(row)
        if tree_edge is None:
            return False
        return any(problem.is_in_solution(link) for link in problem.covered_by[tree_edge])


def tree_augmentation_ir_components(**changes) -> IRComponents:
    return IRComponents(
        init=TAInit(),
        round_condition=TARoundCondition(),
        relax_condition=TARelaxCondition(),
    ).replace(**changes)


def tree_augmentation_iterative_rounding(
    graph: nx.Graph,
    result: Optional[List[Edge]] = None,
    tree_attr: str = "tree",
    cost_attr: str = "cost",
    components: Optional[IRComponents] = None,
    visitor: Optional[TrivialVisitor] = None,
    compare: Optional[Compare] = None,
) -> IRResult:
    """Solve a tree augmentation instance.

    Args:
        graph: Undirected graph; edges with a truthy ``tree_attr`` form the tree.
        result: List receiving the selected links. Entries appended during a
            run that ends INFEASIBLE are removed again.
        tree_attr: Boolean edge attribute marking tree edges.
        cost_attr: Edge attribute with link costs.
        components: Policy bundle; ``tree_augmentation_ir_components()`` by default.
        visitor: Optional instrumentation hooks.
        compare: Tolerance for all decisions.

    Returns:
        IRResult: Status and final LP cost.

    Raises:
        InvalidInputError: If the tree is malformed or the graph is not
            2-edge-connected.
    """
    problem = TreeAugmentation(graph, result, tree_attr, cost_attr, compare)
    return solve_iterative_rounding(
        problem, components or tree_augmentation_ir_components(), visitor
    )
