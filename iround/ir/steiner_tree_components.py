"""Full components of a Steiner tree over the current terminal metric.

A component is a small Steiner tree spanning a subset of the current
terminals. It is directed towards one of its terminals, the sink; rounding a
component merges its other terminals, the sources, into the sink.
"""

from __future__ import annotations

import abc
import itertools
from dataclasses import dataclass
from typing import Any, Hashable, List, Sequence, Tuple

import networkx as nx
import numpy as np

NodeID = Hashable


@dataclass(frozen=True)
class SteinerComponent:
    """Directed full component.

    Attributes:
        sink: Terminal the sources are merged into.
        sources: Remaining terminals of the component.
        steiner_elements: Steiner vertices used by the component.
        cost: Cost of the component in the current metric.
    """

    sink: NodeID
    sources: Tuple[NodeID, ...]
    steiner_elements: Tuple[NodeID, ...]
    cost: float

    @property
    def terminals(self) -> Tuple[NodeID, ...]:
        return (self.sink,) + self.sources


class ComponentGenerator(abc.ABC):
    """Strategy producing the components offered to the LP."""

    @abc.abstractmethod
    def generate(self, problem: Any) -> List[SteinerComponent]:
        """Return components over ``problem.terminals`` priced with ``problem.metric``."""
        ...


def _tree_cost(metric: np.ndarray, idx: Sequence[int]) -> float:
    """Minimum spanning tree cost of ``idx`` in the metric."""
    if len(idx) == 2:
        return float(metric[idx[0], idx[1]])
    complete = nx.Graph()
    for a, b in itertools.combinations(range(len(idx)), 2):
        complete.add_edge(a, b, weight=float(metric[idx[a], idx[b]]))
    tree = nx.minimum_spanning_tree(complete, weight="weight")
    return float(tree.size(weight="weight"))


class AllComponentsGenerator(ComponentGenerator):
    """Every subset of 2..``max_terminals`` current terminals, once per sink.

    A subset is priced as the cheaper of its minimum spanning tree in the
    metric and the best star around a single Steiner vertex. For subsets of
    at most three terminals this is the exact Steiner tree cost.

    Args:
        max_terminals: Largest number of terminals in one component.

    Raises:
        ValueError: If ``max_terminals`` is below 2.
    """

    def __init__(self, max_terminals: int = 3) -> None:
        if max_terminals < 2:
            raise ValueError(f"max_terminals must be at least 2, got {max_terminals}")
        self.max_terminals = max_terminals

    def generate(self, problem: Any) -> List[SteinerComponent]:
        metric = problem.metric
        index = problem.index
        steiner = [v for v in problem.steiner_vertices if v not in problem.terminal_set]
        steiner_idx = np.array([index[v] for v in steiner], dtype=int)

        components: List[SteinerComponent] = []
        size_limit = min(self.max_terminals, len(problem.terminals))
        for size in range(2, size_limit + 1):
            for subset in itertools.combinations(problem.terminals, size):
                idx = [index[t] for t in subset]
                cost = _tree_cost(metric, idx)
                elements: Tuple[NodeID, ...] = ()
                if size > 2 and len(steiner_idx):
                    star = metric[np.ix_(idx, steiner_idx)].sum(axis=0)
                    best = int(np.argmin(star))
                    if problem.get_compare().l(float(star[best]), cost):
                        cost = float(star[best])
                        elements = (steiner[best],)
                for sink in subset:
                    sources = tuple(t for t in subset if t != sink)
                    components.append(SteinerComponent(sink, sources, elements, cost))
        return components
