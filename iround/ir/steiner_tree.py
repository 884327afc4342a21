"""Steiner tree by dependent iterative randomized rounding.

Byrka, Grandoni, Rothvoss and Sanita: solve the directed component cut LP
over the full components of the current terminals, pick one component with
probability proportional to its LP value, contract it into its sink and
start again on the smaller instance. The run ends when a single terminal is
left. The answer is the set of Steiner vertices used by the picked
components; a minimum spanning tree over the terminals and those vertices
connects everything.
"""

from __future__ import annotations

import random
from typing import Dict, Hashable, Iterable, List, Optional

import networkx as nx
import numpy as np

from iround.ir.components import (
    DependentRoundCondition,
    IRComponents,
    Init,
    StopCondition,
)
from iround.ir.engine import IRResult, solve_dependent_iterative_rounding
from iround.ir.problem import IRProblem
from iround.ir.row_generation import RowGenerationResolveLP, RowGenerationSolveLP
from iround.ir.steiner_tree_components import (
    AllComponentsGenerator,
    ComponentGenerator,
    SteinerComponent,
)
from iround.ir.steiner_tree_oracle import SteinerTreeViolationChecker
from iround.ir.visitor import TrivialVisitor
from iround.logging import get_logger
from iround.lp.base import BoundType, ColId, ProblemType
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram
from iround.lp.separation import OracleStrategy, SeparationOracle, make_separation_oracle
from iround.seed_manager import SeedManager

logger = get_logger(__name__)

NodeID = Hashable


class SteinerTree(IRProblem):
    """Steiner tree instance together with its contraction state.

    Args:
        graph: Undirected graph with edge costs.
        terminals: Vertices to connect; duplicates are ignored.
        steiner_vertices: Candidate Steiner vertices; every other vertex by default.
        result: List receiving the chosen Steiner vertices; a new list by default.
        cost_attr: Edge attribute holding the cost (missing means 1).
        generator: Component strategy; ``AllComponentsGenerator()`` by default.
        oracle: Separation oracle for the directed cut rows.
        compare: Tolerance for all decisions.
        rng: Random source for picking components.

    Attributes:
        metric: Shortest path distances between all vertices, updated by contractions.
        terminals: Terminals not yet merged into another terminal.
        solution_cost: Total cost of the components picked so far.
    """

    def __init__(
        self,
        graph: nx.Graph,
        terminals: Iterable[NodeID],
        steiner_vertices: Optional[Iterable[NodeID]] = None,
        result: Optional[List[NodeID]] = None,
        cost_attr: str = "cost",
        generator: Optional[ComponentGenerator] = None,
        oracle: Optional[SeparationOracle] = None,
        compare: Optional[Compare] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if graph.is_directed():
            raise ValueError("Steiner tree requires an undirected graph.")
        self.graph = graph
        self.cost_attr = cost_attr
        self.terminals: List[NodeID] = list(dict.fromkeys(terminals))
        self.terminal_set = set(self.terminals)
        if steiner_vertices is None:
            self.steiner_vertices = [v for v in graph.nodes() if v not in self.terminal_set]
        else:
            self.steiner_vertices = [
                v for v in dict.fromkeys(steiner_vertices) if v not in self.terminal_set
            ]
        self.result: List[NodeID] = result if result is not None else []
        self._result_start = len(self.result)
        self.generator = generator or AllComponentsGenerator()
        self._oracle = oracle or make_separation_oracle(SteinerTreeViolationChecker())
        self._compare = compare or Compare()
        self._rng = rng or random.Random()
        self.solution_cost = 0.0

        self.vertices: List[NodeID] = self.terminals + self.steiner_vertices
        self.index: Dict[NodeID, int] = {v: i for i, v in enumerate(self.vertices)}
        self.metric: Optional[np.ndarray] = None
        self.components: List[SteinerComponent] = []
        self.column_components: Dict[ColId, SteinerComponent] = {}

    def check_input_validity(self) -> Optional[str]:
        for t in self.terminals:
            if t not in self.graph:
                return f"Terminal {t} is not a vertex of the graph."
        for v in self.steiner_vertices:
            if v not in self.graph:
                return f"Steiner vertex {v} is not a vertex of the graph."
        if len(self.terminals) > 1:
            component = nx.node_connected_component(self.graph, self.terminals[0])
            for t in self.terminals[1:]:
                if t not in component:
                    return f"Terminals {self.terminals[0]} and {t} are not connected."
        return None

    def get_compare(self) -> Compare:
        return self._compare

    def get_oracle(self) -> SeparationOracle:
        return self._oracle

    def build_metric(self) -> None:
        """Compute shortest path costs between terminals and Steiner vertices."""
        # Paths may pass through vertices that are neither terminals nor Steiner vertices
        others = [v for v in self.graph.nodes() if v not in self.index]
        distances = nx.floyd_warshall_numpy(
            self.graph, nodelist=self.vertices + others, weight=self.cost_attr
        )
        n = len(self.vertices)
        self.metric = np.array(distances[:n, :n], dtype=float)

    def gen_components(self) -> None:
        self.column_components = {}
        if len(self.terminals) < 2:
            self.components = []
            return
        if self.metric is None:
            self.build_metric()
        self.components = self.generator.generate(self)

    def bind_component_to_col(self, component: SteinerComponent, col: ColId) -> None:
        self.column_components[col] = component

    def add_to_solution(self, component: SteinerComponent) -> None:
        for v in component.steiner_elements:
            if v not in self.result[self._result_start :]:
                self.result.append(v)
        self.solution_cost += component.cost

    def merge_vertices(self, sink: NodeID, source: NodeID) -> None:
        """Contract ``source`` into ``sink``: their distance drops to zero."""
        s = self.index[sink]
        e = self.index[source]
        m = self.metric
        via = np.minimum(
            m[:, s][:, None] + m[e, :][None, :],
            m[:, e][:, None] + m[s, :][None, :],
        )
        np.minimum(m, via, out=m)

    def update_graph(self, component: SteinerComponent) -> None:
        """Merge the sources of ``component`` into its sink and drop them as terminals."""
        for source in component.sources:
            self.merge_vertices(component.sink, source)
            self.terminals.remove(source)
            self.terminal_set.discard(source)
        self.components = []
        self.column_components = {}

    def select_component(self, weights: List[float]) -> int:
        return self._rng.choices(range(len(weights)), weights=weights)[0]

    def discard_solution(self) -> None:
        del self.result[self._result_start :]
        self.solution_cost = 0.0


class SteinerTreeInit(Init):
    """One [0, 1] column per component of the current terminals; rows come from the oracle."""

    def __call__(self, problem: SteinerTree, lp: LinearProgram) -> None:
        lp.set_lp_name("steiner tree")
        lp.set_min_obj_fun()
        problem.gen_components()
        for component in problem.components:
            col = lp.add_column(component.cost, BoundType.DB, 0.0, 1.0)
            problem.bind_component_to_col(component, col)
        lp.load_matrix()


class SteinerTreeRoundCondition(DependentRoundCondition):
    """Pick one component with probability proportional to its LP value and contract it."""

    def __call__(self, problem: SteinerTree, lp: LinearProgram) -> None:
        cols = sorted(problem.column_components)
        weights = [max(lp.get_col_value(col), 0.0) for col in cols]
        selected = problem.column_components[cols[problem.select_component(weights)]]
        logger.debug(
            "Picked component %s <- %s (cost %s, Steiner vertices %s)",
            selected.sink,
            selected.sources,
            selected.cost,
            selected.steiner_elements,
        )
        problem.add_to_solution(selected)
        problem.update_graph(selected)


class SteinerTreeStopCondition(StopCondition):
    """Stop once fewer than two terminals are left."""

    def __call__(self, problem: SteinerTree, lp: LinearProgram) -> bool:
        return len(problem.terminals) < 2


def steiner_tree_ir_components(**changes) -> IRComponents:
    return IRComponents(
        init=SteinerTreeInit(),
        round_condition=SteinerTreeRoundCondition(),
        solve_lp=RowGenerationSolveLP(),
        resolve_lp=RowGenerationResolveLP(),
        stop_condition=SteinerTreeStopCondition(),
    ).replace(**changes)


def steiner_tree_iterative_rounding(
    graph: nx.Graph,
    terminals: Iterable[NodeID],
    steiner_vertices: Optional[Iterable[NodeID]] = None,
    result: Optional[List[NodeID]] = None,
    cost_attr: str = "cost",
    generator: Optional[ComponentGenerator] = None,
    components: Optional[IRComponents] = None,
    oracle_strategy: OracleStrategy | str | None = None,
    seed: Optional[int] = None,
    visitor: Optional[TrivialVisitor] = None,
    compare: Optional[Compare] = None,
) -> IRResult:
    """Solve a Steiner tree instance.

    Args:
        graph: Undirected graph with costs in ``cost_attr``.
        terminals: Vertices that must be connected.
        steiner_vertices: Vertices allowed as Steiner points; every non-terminal by default.
        result: List receiving the chosen Steiner vertices. Entries appended
            during a run that ends INFEASIBLE are removed again.
        cost_attr: Edge attribute holding the cost.
        generator: Component strategy; ``AllComponentsGenerator()`` by default.
        components: Policy bundle; ``steiner_tree_ir_components()`` by default.
        oracle_strategy: Candidate search strategy of the separation oracle.
        seed: Master seed for component picks and the random-start strategy.
        visitor: Optional instrumentation hooks.
        compare: Tolerance for all decisions.

    Returns:
        IRResult: Status and total cost of the picked components.

    Raises:
        InvalidInputError: If a terminal is missing or the terminals are not connected.
    """
    seeds = SeedManager(seed)
    oracle = make_separation_oracle(
        SteinerTreeViolationChecker(), oracle_strategy, seed=seed
    )
    problem = SteinerTree(
        graph,
        terminals,
        steiner_vertices,
        result,
        cost_attr,
        generator,
        oracle,
        compare,
        seeds.create_random_state("steiner_tree", "round_condition"),
    )
    out = solve_dependent_iterative_rounding(
        problem, components or steiner_tree_ir_components(), visitor
    )
    if out.status != ProblemType.OPTIMAL:
        return out
    return IRResult(ProblemType.OPTIMAL, problem.solution_cost)
