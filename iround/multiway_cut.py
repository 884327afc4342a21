"""Multiway cut by randomized rounding of the CKR relaxation.

Vertices carry a color: 0 for ordinary vertices and 1..k for the terminals
that must end up in k different parts. The LP embeds every vertex in the
k-simplex (one column y[v, i] per dimension) and charges every edge its
weight times the L1 distance of its endpoints. The rounding draws one radius
per dimension and puts each vertex into the first dimension whose ball
around the corresponding terminal contains it; the last dimension takes
whatever is left. The cheapest of several independent roundings wins.
"""

from __future__ import annotations

from typing import Dict, Hashable, List, MutableMapping, Optional, Tuple

import networkx as nx
import numpy as np

from iround.ir.engine import InvalidInputError
from iround.logging import get_logger
from iround.lp.base import BoundType, ColId, ProblemType
from iround.lp.model import LinearProgram, LPSolverError
from iround.seed_manager import SeedManager

logger = get_logger(__name__)

NodeID = Hashable

_MIN_NUMBER_OF_REPEATS = 100


class MultiwayCutLP:
    """Simplex embedding LP of a multiway cut instance.

    Args:
        graph: Undirected graph.
        k: Number of terminals, the largest color.
        weight_attr: Edge attribute holding the weight (missing means 1).
        color_attr: Vertex attribute holding the color (missing means 0).

    Attributes:
        vertices: Vertex order of the rows of ``embedding``.
        edge_cols: ``(edge index, dimension) -> column`` of the edge lengths.
        vertex_cols: ``(vertex index, dimension) -> column`` of the coordinates.
    """

    def __init__(
        self,
        graph: nx.Graph,
        k: int,
        weight_attr: str = "weight",
        color_attr: str = "color",
    ) -> None:
        self.graph = graph
        self.k = k
        self.weight_attr = weight_attr
        self.color_attr = color_attr
        self.vertices: List[NodeID] = list(graph.nodes())
        self.index: Dict[NodeID, int] = {v: i for i, v in enumerate(self.vertices)}
        self.edges: List[Tuple[NodeID, NodeID, float]] = [
            (u, v, float(w)) for u, v, w in graph.edges(data=weight_attr, default=1.0)
        ]
        self.edge_cols: Dict[Tuple[int, int], ColId] = {}
        self.vertex_cols: Dict[Tuple[int, int], ColId] = {}

    def init(self, lp: LinearProgram) -> None:
        lp.set_lp_name("multiway cut")
        lp.set_min_obj_fun()
        self._add_columns(lp)
        self._add_rows(lp)
        lp.load_matrix()

    def _add_columns(self, lp: LinearProgram) -> None:
        for e, (_, _, weight) in enumerate(self.edges):
            for i in range(self.k):
                self.edge_cols[e, i] = lp.add_column(weight)
        for v in range(len(self.vertices)):
            for i in range(self.k):
                self.vertex_cols[v, i] = lp.add_column(0.0)

    def _add_rows(self, lp: LinearProgram) -> None:
        # x[e, i] >= |y[u, i] - y[v, i]| as two linear rows
        for e, (u, v, _) in enumerate(self.edges):
            ui, vi = self.index[u], self.index[v]
            for i in range(self.k):
                for sign in (-1.0, 1.0):
                    row = lp.add_row(BoundType.LO, lo=0.0)
                    lp.add_constraint_coef(row, self.edge_cols[e, i])
                    lp.add_constraint_coef(row, self.vertex_cols[ui, i], sign)
                    lp.add_constraint_coef(row, self.vertex_cols[vi, i], -sign)

        for v, vertex in enumerate(self.vertices):
            color = self.color(vertex)
            if color:
                row = lp.add_row(BoundType.FX, lo=1.0)
                lp.add_constraint_coef(row, self.vertex_cols[v, color - 1])
            row = lp.add_row(BoundType.FX, lo=1.0)
            for i in range(self.k):
                lp.add_constraint_coef(row, self.vertex_cols[v, i])

    def color(self, vertex: NodeID) -> int:
        return int(self.graph.nodes[vertex].get(self.color_attr, 0))

    def embedding(self, lp: LinearProgram) -> np.ndarray:
        """Return the ``len(vertices) x k`` matrix of LP coordinates."""
        coords = np.zeros((len(self.vertices), self.k), dtype=float)
        for (v, i), col in self.vertex_cols.items():
            coords[v, i] = lp.get_col_value(col)
        return coords


def make_cut(
    coords: np.ndarray,
    endpoints: np.ndarray,
    weights: np.ndarray,
    radii: np.ndarray,
) -> Tuple[float, np.ndarray]:
    """Round the embedding once with the given radii.

    Args:
        coords: Vertex coordinates, one row per vertex.
        endpoints: ``(m, 2)`` array of edge endpoint indices.
        weights: Edge weights.
        radii: One radius in [0, 1) per dimension.

    Returns:
        Cut cost and the 0-based dimension of every vertex.
    """
    inside = (1.0 - coords) < radii[None, :]
    inside[:, -1] = True
    parts = np.argmax(inside, axis=1)
    if len(weights) == 0:
        return 0.0, parts
    crossing = parts[endpoints[:, 0]] != parts[endpoints[:, 1]]
    return float(weights[crossing].sum()), parts


def multiway_cut(
    graph: nx.Graph,
    result: Optional[MutableMapping[NodeID, int]] = None,
    iterations: Optional[int] = None,
    weight_attr: str = "weight",
    color_attr: str = "color",
    seed: Optional[int] = None,
) -> float:
    """Split the graph so that no two terminals share a part, cutting little weight.

    Args:
        graph: Undirected graph. Terminals have ``color_attr`` 1..k, every
            other vertex 0 or nothing.
        result: Mapping receiving ``vertex -> part`` with parts numbered 1..k;
            a terminal of color c lands in part c.
        iterations: Number of independent roundings; ``n * n + 100`` by default.
        weight_attr: Edge attribute holding the non-negative weight.
        color_attr: Vertex attribute holding the color.
        seed: Master seed for the rounding radii.

    Returns:
        Total weight of the edges between different parts of the best rounding.

    Raises:
        InvalidInputError: For directed graphs, negative weights or colors, or
            a non-positive number of iterations.
        LPSolverError: If the relaxation cannot be solved.
    """
    if graph.is_directed():
        raise InvalidInputError("Multiway cut requires an undirected graph.")
    if iterations is None:
        n = graph.number_of_nodes()
        iterations = n * n + _MIN_NUMBER_OF_REPEATS
    if iterations < 1:
        raise InvalidInputError(f"iterations must be positive, got {iterations}")

    colors = [int(c) for _, c in graph.nodes(data=color_attr, default=0)]
    if any(c < 0 for c in colors):
        raise InvalidInputError("Vertex colors must be non-negative.")
    for u, v, w in graph.edges(data=weight_attr, default=1.0):
        if w < 0:
            raise InvalidInputError(f"Edge ({u}, {v}) has negative weight {w}.")

    result = result if result is not None else {}
    k = max(colors, default=0)
    if k == 0:
        # Nothing to separate: one part holds every vertex
        for v in graph.nodes():
            result[v] = 1
        return 0.0

    model = MultiwayCutLP(graph, k, weight_attr, color_attr)
    lp = LinearProgram()
    model.init(lp)
    status = lp.solve_to_extreme_point()
    if status != ProblemType.OPTIMAL:
        raise LPSolverError(f"Multiway cut relaxation is {status.name}.")
    logger.debug("Multiway cut LP with %d terminals: objective %s", k, lp.get_obj_value())

    coords = model.embedding(lp)
    endpoints = np.array(
        [(model.index[u], model.index[v]) for u, v, _ in model.edges], dtype=int
    ).reshape(-1, 2)
    weights = np.array([w for _, _, w in model.edges], dtype=float)
    rng = SeedManager(seed).create_random_state("multiway_cut")

    best_cost = np.inf
    best_parts: Optional[np.ndarray] = None
    for _ in range(iterations):
        radii = np.array([rng.random() for _ in range(k)])
        cost, parts = make_cut(coords, endpoints, weights, radii)
        if cost < best_cost:
            best_cost, best_parts = cost, parts

    for v, vertex in enumerate(model.vertices):
        result[vertex] = int(best_parts[v]) + 1
    logger.info(
        "Multiway cut of %d vertices into %d parts: weight %s after %d roundings",
        len(model.vertices),
        k,
        best_cost,
        iterations,
    )
    return float(best_cost)
