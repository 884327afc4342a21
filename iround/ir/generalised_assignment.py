"""Generalised assignment by iterative rounding (Shmoys-Tardos).

Every job is assigned to exactly one machine; each machine's load exceeds its
available time by at most the processing time of one job, and the cost is at
most the LP optimum.
"""

from __future__ import annotations

from typing import Callable, Hashable, List, MutableMapping, Optional, Sequence, Set

from iround.ir.components import IRComponents, Init, RelaxCondition, SetSolution
from iround.ir.engine import IRResult, solve_iterative_rounding
from iround.ir.problem import IRProblem
from iround.ir.visitor import TrivialVisitor
from iround.lp.base import BoundType, ColId, RowId
from iround.lp.compare import Compare
from iround.lp.model import LinearProgram

Job = Hashable
Machine = Hashable


class GeneralisedAssignment(IRProblem):
    """Problem state of a generalised assignment instance.

    Args:
        machines: Machines, in the order used for column ids.
        jobs: Jobs, in the order used for column ids.
        cost: ``cost(job, machine)`` of running a job on a machine.
        proceeding_time: ``proceeding_time(job, machine)``.
        machine_available_time: ``machine_available_time(machine)``.
        result: Mapping receiving ``job -> machine``; a new dict by default.
        compare: Tolerance for all decisions.
    """

    def __init__(
        self,
        machines: Sequence[Machine],
        jobs: Sequence[Job],
        cost: Callable[[Job, Machine], float],
        proceeding_time: Callable[[Job, Machine], float],
        machine_available_time: Callable[[Machine], float],
        result: Optional[MutableMapping[Job, Machine]] = None,
        compare: Optional[Compare] = None,
    ) -> None:
        self.machines = list(machines)
        self.jobs = list(jobs)
        self.cost = cost
        self.proceeding_time = proceeding_time
        self.machine_available_time = machine_available_time
        self.result: MutableMapping[Job, Machine] = result if result is not None else {}
        self._compare = compare or Compare()
        self.col_idx: List[ColId] = []
        self.machine_rows: Set[RowId] = set()

    def get_compare(self) -> Compare:
        return self._compare

    def idx(self, j_idx: int, m_idx: int) -> int:
        """Index into ``col_idx`` of the (job, machine) pair."""
        return j_idx * len(self.machines) + m_idx

    def get_j_idx(self, idx: int) -> int:
        return idx // len(self.machines)

    def get_m_idx(self, idx: int) -> int:
        return idx % len(self.machines)


class GAInit(Init):
    """One column per (job, machine), one equality row per job, one budget row per machine."""

    def __call__(self, problem: GeneralisedAssignment, lp: LinearProgram) -> None:
        lp.set_lp_name("generalised assignment")
        lp.set_min_obj_fun()
        self._add_variables(problem, lp)
        self._add_job_rows(problem, lp)
        self._add_machine_rows(problem, lp)
        lp.load_matrix()

    @staticmethod
    def _add_variables(problem: GeneralisedAssignment, lp: LinearProgram) -> None:
        # Pairs whose processing time exceeds the machine budget are pinned to 0
        for j in problem.jobs:
            for m in problem.machines:
                c = problem.cost(j, m)
                if problem.proceeding_time(j, m) <= problem.machine_available_time(m):
                    problem.col_idx.append(lp.add_column(c))
                else:
                    problem.col_idx.append(lp.add_column(c, BoundType.FX, 0.0, 0.0))

    @staticmethod
    def _add_job_rows(problem: GeneralisedAssignment, lp: LinearProgram) -> None:
        for j_idx in range(len(problem.jobs)):
            row = lp.add_row(BoundType.FX, 1.0, 1.0)
            for m_idx in range(len(problem.machines)):
                lp.add_constraint_coef(row, problem.col_idx[problem.idx(j_idx, m_idx)])

    @staticmethod
    def _add_machine_rows(problem: GeneralisedAssignment, lp: LinearProgram) -> None:
        for m_idx, m in enumerate(problem.machines):
            row = lp.add_row(BoundType.UP, hi=problem.machine_available_time(m))
            problem.machine_rows.add(row)
            for j_idx, j in enumerate(problem.jobs):
                lp.add_constraint_coef(
                    row,
                    problem.col_idx[problem.idx(j_idx, m_idx)],
                    problem.proceeding_time(j, m),
                )


class GARelaxCondition(RelaxCondition):
    """Drop a machine row with at most one fractional job, or two summing to at least 1."""

    def __call__(self, problem: GeneralisedAssignment, lp: LinearProgram, row: RowId) -> bool:
        if row not in problem.machine_rows:
            return False
        degree = lp.get_row_degree(row)
        return degree <= 1 or (
            degree == 2 and problem.get_compare().ge(lp.get_row_sum(row), 1.0)
        )


class GASetSolution(SetSolution):
    """Assign every job to the machine whose column ended at 1."""

    def __call__(self, problem: GeneralisedAssignment, lp: LinearProgram) -> None:
        compare = problem.get_compare()
        for idx, col in enumerate(problem.col_idx):
            if compare.e(lp.get_col_value(col), 1.0):
                job = problem.jobs[problem.get_j_idx(idx)]
                problem.result[job] = problem.machines[problem.get_m_idx(idx)]


def ga_ir_components(**changes) -> IRComponents:
    """Default policies: rounding to 0/1, machine-row relaxation, no oracle."""
    return IRComponents(
        init=GAInit(),
        relax_condition=GARelaxCondition(),
        set_solution=GASetSolution(),
    ).replace(**changes)


def generalised_assignment_iterative_rounding(
    machines: Sequence[Machine],
    jobs: Sequence[Job],
    cost: Callable[[Job, Machine], float],
    proceeding_time: Callable[[Job, Machine], float],
    machine_available_time: Callable[[Machine], float],
    result: Optional[MutableMapping[Job, Machine]] = None,
    components: Optional[IRComponents] = None,
    visitor: Optional[TrivialVisitor] = None,
    compare: Optional[Compare] = None,
) -> IRResult:
    """Solve a generalised assignment instance.

    Args:
        machines: Machines.
        jobs: Jobs.
        cost: ``cost(job, machine)``.
        proceeding_time: ``proceeding_time(job, machine)``.
        machine_available_time: ``machine_available_time(machine)``.
        result: Mapping receiving ``job -> machine``.
        components: Policy bundle; ``ga_ir_components()`` by default.
        visitor: Optional instrumentation hooks.
        compare: Tolerance for all decisions.

    Returns:
        IRResult: Status and LP cost of the assignment.

    Example:
        >>> assignment = {}
        >>> generalised_assignment_iterative_rounding(
        ...     [0, 1], [0, 1],
        ...     lambda j, m: [[2, 3], [1, 3]][j][m],
        ...     lambda j, m: [[2, 2], [1, 1]][j][m],
        ...     lambda m: 2,
        ...     assignment,
        ... ).status
        <ProblemType.OPTIMAL: 1>
    """
    problem = GeneralisedAssignment(
        machines, jobs, cost, proceeding_time, machine_available_time, result, compare
    )
    return solve_iterative_rounding(problem, components or ga_ir_components(), visitor)
