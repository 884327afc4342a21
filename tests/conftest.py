"""Shared fixtures for IterRound tests."""

from __future__ import annotations

from typing import Any, Dict, List

import networkx as nx
import pytest

from iround.lp.compare import Compare


class ValuesLP:
    """Minimal stand-in for ``LinearProgram`` exposing fixed column values."""

    def __init__(self, values: Dict[int, float]) -> None:
        self.values = dict(values)
        self.fixed: Dict[int, float] = {}

    def get_col_value(self, col: int) -> float:
        return self.values[col]

    def active_columns(self) -> List[int]:
        return [c for c in sorted(self.values) if c not in self.fixed]


class CompareProblem:
    """Problem stub that only provides a comparator."""

    def __init__(self, epsilon: float = 1e-10) -> None:
        self._compare = Compare(epsilon)

    def get_compare(self) -> Compare:
        return self._compare


@pytest.fixture
def compare_problem() -> CompareProblem:
    return CompareProblem()


@pytest.fixture
def values_lp():
    """Factory building a ``ValuesLP`` from a column -> value mapping."""
    return ValuesLP


@pytest.fixture
def ga_scenario() -> Dict[str, Any]:
    """Two machines and two jobs with budget 2 on both machines."""
    costs = [[2, 3], [1, 3]]
    times = [[2, 2], [1, 1]]
    budgets = [2, 2]
    return {
        "machines": [0, 1],
        "jobs": [0, 1],
        "cost": lambda j, m: costs[j][m],
        "proceeding_time": lambda j, m: times[j][m],
        "machine_available_time": lambda m: budgets[m],
        "times": times,
        "budgets": budgets,
    }


@pytest.fixture
def cycle4() -> nx.Graph:
    """Four-cycle 0-1-2-3-0 with unit costs."""
    g = nx.cycle_graph(4)
    nx.set_edge_attributes(g, 1.0, "cost")
    return g


@pytest.fixture
def all_pairs_requirements():
    """Factory for a requirement mapping with the same value for every vertex pair."""

    def _make(nodes, value):
        nodes = list(nodes)
        return {
            (u, v): value for i, u in enumerate(nodes) for v in nodes[i + 1 :]
        }

    return _make


@pytest.fixture
def loose_problem() -> CompareProblem:
    """Comparator with a wide tolerance so boundaries are easy to hit exactly."""
    return CompareProblem(0.01)


@pytest.fixture
def compare_problem_factory():
    """Factory building a comparator-only problem with a given epsilon."""
    return CompareProblem
