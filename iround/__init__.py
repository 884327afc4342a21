"""IterRound: iterative rounding for LP-based approximation algorithms.

IterRound drives the solve / round / relax loop of iterative rounding over a
HiGHS-backed LP model, with separation oracles that add violated cut rows on
demand for LPs whose constraint family is too large to enumerate.

Primary API:
    solve_iterative_rounding() - Run a problem with a bundle of policies
    solve_dependent_iterative_rounding() - Same, rebuilding the LP after every round
    IRComponents - Selection of init / round / relax / solve policies
    LinearProgram - LP model solved to extreme points
    make_separation_oracle() - Wrap a violation checker in a search strategy

Example:
    from iround import generalised_assignment_iterative_rounding

    assignment = {}
    result = generalised_assignment_iterative_rounding(
        machines, jobs, cost, proceeding_time, machine_available_time, assignment
    )
"""

from __future__ import annotations

from iround import logging
from iround._version import __version__
from iround.config import IR_CONFIG, IRConfig
from iround.ir.bounded_degree_mst import bounded_degree_mst_iterative_rounding
from iround.ir.components import IRComponents
from iround.ir.engine import (
    EngineInvariantError,
    InvalidInputError,
    IRResult,
    solve_dependent_iterative_rounding,
    solve_iterative_rounding,
)
from iround.ir.generalised_assignment import generalised_assignment_iterative_rounding
from iround.ir.steiner_network import steiner_network_iterative_rounding
from iround.ir.steiner_tree import steiner_tree_iterative_rounding
from iround.ir.tree_augmentation import tree_augmentation_iterative_rounding
from iround.ir.visitor import LoggingVisitor, TrivialVisitor
from iround.lp.base import BoundType, ProblemType
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram, LPSolverError
from iround.lp.separation import OracleStrategy, make_separation_oracle
from iround.multiway_cut import multiway_cut

__all__ = [
    # Version
    "__version__",
    # Configuration
    "IRConfig",
    "IR_CONFIG",
    # LP model
    "LinearProgram",
    "BoundType",
    "ProblemType",
    "Compare",
    "LPSolverError",
    # Engine
    "IRComponents",
    "IRResult",
    "solve_iterative_rounding",
    "solve_dependent_iterative_rounding",
    "InvalidInputError",
    "EngineInvariantError",
    "TrivialVisitor",
    "LoggingVisitor",
    # Separation
    "OracleStrategy",
    "make_separation_oracle",
    # Problems
    "generalised_assignment_iterative_rounding",
    "steiner_network_iterative_rounding",
    "tree_augmentation_iterative_rounding",
    "bounded_degree_mst_iterative_rounding",
    "steiner_tree_iterative_rounding",
    "multiway_cut",
    # Utilities
    "logging",
]
