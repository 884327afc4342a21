"""Tests for min-cut computation on auxiliary networks."""

import networkx as nx
import pytest

from iround.config import IR_CONFIG
from iround.graph.min_cut import add_undirected_arc, calc_min_cut


@pytest.fixture
def triangle_network() -> nx.DiGraph:
    """a-b (3), b-c (1), a-c (1) as pairs of opposite arcs."""
    aux = nx.DiGraph()
    add_undirected_arc(aux, "a", "b", 3.0)
    add_undirected_arc(aux, "b", "c", 1.0)
    add_undirected_arc(aux, "a", "c", 1.0)
    return aux


class TestAddUndirectedArc:
    def test_both_directions(self):
        aux = nx.DiGraph()
        add_undirected_arc(aux, 1, 2, 0.5)
        assert aux[1][2]["capacity"] == 0.5
        assert aux[2][1]["capacity"] == 0.5

    def test_parallel_edges_accumulate(self):
        aux = nx.DiGraph()
        add_undirected_arc(aux, 1, 2, 0.5)
        add_undirected_arc(aux, 2, 1, 0.25)
        assert aux[1][2]["capacity"] == pytest.approx(0.75)
        assert aux[2][1]["capacity"] == pytest.approx(0.75)
        assert aux.number_of_edges() == 2

    def test_custom_capacity_attribute(self):
        aux = nx.DiGraph()
        add_undirected_arc(aux, 1, 2, 2.0, capacity_attr="cap")
        assert aux[1][2] == {"cap": 2.0}


class TestCalcMinCut:
    def test_cut_value_and_source_side(self, triangle_network):
        summary = calc_min_cut(triangle_network, "a", "c")
        assert summary.cut_value == pytest.approx(2.0)
        assert summary.reachable == frozenset({"a", "b"})

    def test_matches_networkx(self, triangle_network):
        for src, dst in [("a", "b"), ("b", "c"), ("c", "a")]:
            expected = nx.minimum_cut_value(triangle_network, src, dst)
            assert calc_min_cut(triangle_network, src, dst).cut_value == pytest.approx(
                expected
            )

    def test_network_not_modified(self, triangle_network):
        before = {(u, v): dict(d) for u, v, d in triangle_network.edges(data=True)}
        calc_min_cut(triangle_network, "a", "c")
        after = {(u, v): dict(d) for u, v, d in triangle_network.edges(data=True)}
        assert before == after

    def test_disconnected_sink(self):
        aux = nx.DiGraph()
        add_undirected_arc(aux, 1, 2, 1.0)
        aux.add_node(3)
        summary = calc_min_cut(aux, 1, 3)
        assert summary.cut_value == 0.0
        assert summary.reachable == frozenset({1, 2})

    def test_same_source_and_sink_rejected(self, triangle_network):
        with pytest.raises(ValueError, match="must differ"):
            calc_min_cut(triangle_network, "a", "a")

    def test_tolerance_defaults_to_config_epsilon(self, monkeypatch):
        """Residual arcs at or below IR_CONFIG.epsilon count as saturated."""
        aux = nx.DiGraph()
        aux.add_edge("a", "b", capacity=1.3)
        aux.add_edge("b", "c", capacity=1.0)
        # Flow 1.0 leaves 0.3 of residual capacity on a->b
        assert calc_min_cut(aux, "a", "c").reachable == frozenset({"a", "b"})

        monkeypatch.setattr(IR_CONFIG, "epsilon", 0.5)
        summary = calc_min_cut(aux, "a", "c")
        assert summary.cut_value == pytest.approx(1.0)
        assert summary.reachable == frozenset({"a"})

    def test_explicit_tolerance_overrides_config(self, monkeypatch):
        aux = nx.DiGraph()
        aux.add_edge("a", "b", capacity=1.3)
        aux.add_edge("b", "c", capacity=1.0)
        monkeypatch.setattr(IR_CONFIG, "epsilon", 0.5)
        summary = calc_min_cut(aux, "a", "c", tolerance=1e-10)
        assert summary.reachable == frozenset({"a", "b"})
