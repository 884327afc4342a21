"""Minimum s-t cut on auxiliary flow networks built by separation oracles.

Auxiliary networks are plain ``networkx.DiGraph`` instances whose arcs carry
a ``capacity`` attribute. Max flow is computed with networkx's Edmonds-Karp
implementation; the source side of the cut is recovered from the residual
network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Hashable, Optional

import networkx as nx
from networkx.algorithms.flow import edmonds_karp

from iround.config import IR_CONFIG

NodeID = Hashable


@dataclass(frozen=True)
class MinCutSummary:
    """Summary of a min-cut computation.

    Attributes:
        cut_value: Maximum flow value, equal to the minimum cut capacity.
        reachable: Nodes reachable from the source in the residual network.
    """

    cut_value: float
    reachable: FrozenSet[NodeID]


def add_undirected_arc(
    aux: nx.DiGraph,
    u: NodeID,
    v: NodeID,
    capacity: float,
    *,
    capacity_attr: str = "capacity",
) -> None:
    """Add an undirected edge as two opposite arcs of equal capacity.

    Parallel edges between the same pair accumulate on the same arcs.

    Args:
        aux: Auxiliary network, mutated in place.
        u: One endpoint.
        v: Other endpoint.
        capacity: Capacity of each of the two arcs.
        capacity_attr: Name of the capacity attribute.
    """
    for a, b in ((u, v), (v, u)):
        if aux.has_edge(a, b):
            aux[a][b][capacity_attr] += capacity
        else:
            aux.add_edge(a, b, **{capacity_attr: capacity})


def calc_min_cut(
    aux: nx.DiGraph,
    src_node: NodeID,
    dst_node: NodeID,
    *,
    capacity_attr: str = "capacity",
    tolerance: Optional[float] = None,
) -> MinCutSummary:
    """Compute a minimum cut between two nodes of an auxiliary network.

    The network itself is not modified.

    Args:
        aux: Directed network with capacities on its arcs.
        src_node: Source node.
        dst_node: Sink node.
        capacity_attr: Name of the capacity attribute on arcs.
        tolerance: Residual capacities at or below this value count as saturated.
            Defaults to ``IR_CONFIG.epsilon``.

    Returns:
        MinCutSummary: Cut value and source side of the cut.

    Raises:
        ValueError: If source and sink coincide.
    """
    if src_node == dst_node:
        raise ValueError(f"Source and sink must differ, got '{src_node}' twice.")

    if tolerance is None:
        tolerance = IR_CONFIG.epsilon

    residual = edmonds_karp(aux, src_node, dst_node, capacity=capacity_attr)
    cut_value = float(residual.graph["flow_value"])

    # Residual arcs carry both orientations: reverse arcs have capacity 0 and
    # negative flow, so capacity - flow is the residual capacity in both cases.
    reachable = set()
    stack = [src_node]
    while stack:
        n = stack.pop()
        if n in reachable:
            continue
        reachable.add(n)
        for _, nbr, d in residual.out_edges(n, data=True):
            if nbr not in reachable and d["capacity"] - d["flow"] > tolerance:
                stack.append(nbr)

    return MinCutSummary(cut_value=cut_value, reachable=frozenset(reachable))
