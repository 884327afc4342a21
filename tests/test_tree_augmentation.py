"""Tests for tree augmentation by iterative rounding."""

import networkx as nx
import pytest

from iround.ir.components import SolveLP
from iround.ir.engine import InvalidInputError, solve_iterative_rounding
from iround.ir.tree_augmentation import (
    TAInit,
    TreeAugmentation,
    tree_augmentation_ir_components,
    tree_augmentation_iterative_rounding,
)
from iround.lp.base import ProblemType
from iround.lp.model import LinearProgram


class FailingResolve(SolveLP):
    """Reports INFEASIBLE on every resolve, noting how many links were committed."""

    def __init__(self):
        self.committed = []

    def __call__(self, problem, lp):
        self.committed.append(len(problem.result))
        return ProblemType.INFEASIBLE


@pytest.fixture
def path_with_links() -> nx.Graph:
    """Tree path 0-1-2-3 with links (0, 2), (1, 3) of cost 1 and (0, 3) of cost 3."""
    g = nx.Graph()
    nx.add_path(g, [0, 1, 2, 3], tree=True)
    g.add_edge(0, 2, tree=False, cost=1.0)
    g.add_edge(1, 3, tree=False, cost=1.0)
    g.add_edge(0, 3, tree=False, cost=3.0)
    return g


class TestModel:
    def test_links_cover_tree_paths(self, path_with_links):
        problem = TreeAugmentation(path_with_links)
        problem.init()
        covered = {tuple(sorted(k)): sorted(v) for k, v in problem.covered_by.items()}
        assert covered == {
            (0, 1): [(0, 2), (0, 3)],
            (1, 2): [(0, 2), (0, 3), (1, 3)],
            (2, 3): [(0, 3), (1, 3)],
        }

    def test_one_row_per_tree_edge(self, path_with_links):
        problem = TreeAugmentation(path_with_links)
        lp = LinearProgram()
        TAInit()(problem, lp)
        assert lp.columns_count == 3
        assert lp.rows_count == 3
        assert set(problem.row_to_tree_edge) == {0, 1, 2}

    def test_tree_attribute_defaults_to_link(self):
        g = nx.cycle_graph(3)
        g.edges[0, 1]["tree"] = True
        g.edges[1, 2]["tree"] = True
        problem = TreeAugmentation(g)
        assert problem.links == [(0, 2)]


class TestTreeAugmentation:
    def test_cheapest_cover(self, path_with_links):
        result = []
        out = tree_augmentation_iterative_rounding(path_with_links, result)
        assert out.status == ProblemType.OPTIMAL
        assert sorted(result) == [(0, 2), (1, 3)]
        assert out.objective == pytest.approx(2.0)

    def test_solution_cost_tracked(self, path_with_links):
        problem = TreeAugmentation(path_with_links)
        solve_iterative_rounding(problem, tree_augmentation_ir_components())
        assert problem.solution_cost == pytest.approx(2.0)

    def test_augmented_graph_is_two_edge_connected(self):
        g = nx.Graph()
        nx.add_star(g, [0, 1, 2, 3, 4], tree=True)
        for u, v in [(1, 2), (2, 3), (3, 4), (4, 1), (1, 3)]:
            g.add_edge(u, v, tree=False, cost=1.0)
        result = []
        out = tree_augmentation_iterative_rounding(g, result)
        assert out.status == ProblemType.OPTIMAL

        augmented = nx.Graph()
        augmented.add_edges_from((u, v) for u, v, t in g.edges(data="tree") if t)
        augmented.add_edges_from(result)
        assert nx.is_k_edge_connected(augmented, 2)

    def test_infeasible_resolve_leaves_result_untouched(self, path_with_links):
        """Links committed before an INFEASIBLE resolve are withdrawn from result."""
        result = [("x", "y")]
        resolve = FailingResolve()
        components = tree_augmentation_ir_components(resolve_lp=resolve)
        problem = TreeAugmentation(path_with_links, result)
        out = solve_iterative_rounding(problem, components)

        assert out.status == ProblemType.INFEASIBLE
        assert resolve.committed[0] > 1
        assert result == [("x", "y")]
        assert problem.solution_cost == 0.0
        assert not any(problem.is_in_solution(link) for link in problem.links)


class TestInputValidity:
    def test_wrong_number_of_tree_edges(self, path_with_links):
        path_with_links.edges[2, 3]["tree"] = False
        with pytest.raises(InvalidInputError, match="Should be 3, but it is 2"):
            tree_augmentation_iterative_rounding(path_with_links)

    def test_disconnected_tree(self):
        g = nx.Graph()
        nx.add_cycle(g, [0, 1, 2], tree=True)
        for u in (0, 1, 2):
            g.add_edge(u, 3, tree=False)
        with pytest.raises(InvalidInputError, match="not connected"):
            tree_augmentation_iterative_rounding(g)

    def test_bridge_in_graph(self):
        g = nx.Graph()
        nx.add_path(g, [0, 1, 2, 3], tree=True)
        g.add_edge(0, 2, tree=False)
        with pytest.raises(InvalidInputError, match="not 2-edge-connected"):
            tree_augmentation_iterative_rounding(g)

    def test_multigraph_rejected(self):
        with pytest.raises(ValueError, match="simple graph"):
            TreeAugmentation(nx.MultiGraph())
