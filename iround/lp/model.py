"""Mutable LP matrix solved to extreme points with the HiGHS dual simplex.

``LinearProgram`` keeps columns and rows in insertion order and hands the
active part of the matrix to ``scipy.optimize.linprog`` on every (re)solve.
Fixed columns stay in the matrix as constants so that rows added later
(for example by a separation oracle) still account for them; relaxed rows
leave the matrix for good.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.optimize import linprog
from scipy.sparse import coo_matrix

from iround.config import IR_CONFIG
from iround.logging import get_logger
from iround.lp.base import BoundType, ColId, OptimizationType, ProblemType, RowId

logger = get_logger(__name__)

# scipy.optimize.linprog status codes
_LINPROG_SUCCESS = 0
_LINPROG_INFEASIBLE = 2
_LINPROG_UNBOUNDED = 3


class LPSolverError(RuntimeError):
    """The LP engine stopped without an optimal, infeasible or unbounded verdict."""


@dataclass
class LPColumn:
    """Column of the LP matrix.

    Attributes:
        cost: Objective coefficient.
        bound_type: Kind of bounds on the column value.
        lo: Lower bound (used by LO, DB and FX).
        hi: Upper bound (used by UP and DB).
        fixed: Constant the column was collapsed to, or None while active.
    """

    cost: float
    bound_type: BoundType
    lo: float
    hi: float
    fixed: Optional[float] = None


@dataclass
class LPRow:
    """Row of the LP matrix.

    Attributes:
        bound_type: Kind of bounds on the row activity.
        lo: Lower bound (used by LO, DB and FX).
        hi: Upper bound (used by UP and DB).
        coefs: Non-zero coefficients indexed by column id.
        relaxed: True once the row was dropped from the matrix.
    """

    bound_type: BoundType
    lo: float
    hi: float
    coefs: Dict[ColId, float] = field(default_factory=dict)
    relaxed: bool = False


def _bounds(bound_type: BoundType, lo: float, hi: float) -> Tuple[Optional[float], Optional[float]]:
    """Translate a GLPK-style bound into a ``(lower, upper)`` pair with None for infinity."""
    if bound_type == BoundType.FR:
        return None, None
    if bound_type == BoundType.LO:
        return lo, None
    if bound_type == BoundType.UP:
        return None, hi
    if bound_type == BoundType.DB:
        return lo, hi
    return lo, lo


class LinearProgram:
    """LP model consumed by the iterative rounding engine.

    Example:
        >>> lp = LinearProgram("toy")
        >>> x = lp.add_column(1.0, BoundType.DB, 0.0, 1.0)
        >>> y = lp.add_column(2.0, BoundType.DB, 0.0, 1.0)
        >>> row = lp.add_row(BoundType.LO, lo=1.0)
        >>> lp.add_constraint_coef(row, x)
        >>> lp.add_constraint_coef(row, y)
        >>> lp.load_matrix()
        >>> lp.solve_to_extreme_point()
        <ProblemType.OPTIMAL: 1>
        >>> lp.get_col_value(x)
        1.0
    """

    def __init__(self, name: str = "", method: Optional[str] = None) -> None:
        self.name = name
        self.method = method or IR_CONFIG.lp_method
        self._optimization = OptimizationType.MINIMIZE
        self._columns: List[LPColumn] = []
        self._rows: List[LPRow] = []
        self._values: Optional[np.ndarray] = None
        self._objective: Optional[float] = None
        self._loaded = False

    #
    # Model construction
    #
    def set_lp_name(self, name: str) -> None:
        self.name = name

    def set_min_obj_fun(self) -> None:
        self._optimization = OptimizationType.MINIMIZE

    def set_max_obj_fun(self) -> None:
        self._optimization = OptimizationType.MAXIMIZE

    def add_column(
        self,
        cost: float = 0.0,
        bound_type: BoundType = BoundType.LO,
        lo: float = 0.0,
        hi: Optional[float] = None,
    ) -> ColId:
        """Append a column and return its id.

        Args:
            cost: Objective coefficient.
            bound_type: Bound kind; the default is ``x >= lo``.
            lo: Lower bound (LO, DB, FX).
            hi: Upper bound (UP, DB). Required for those bound types.

        Returns:
            The new column id.

        Raises:
            ValueError: If an upper bound is required but missing, or if
                ``lo > hi`` for a double-bounded column.
        """
        if bound_type in (BoundType.UP, BoundType.DB) and hi is None:
            raise ValueError(f"Bound type {bound_type.name} requires an upper bound.")
        if bound_type == BoundType.DB and lo > hi:  # type: ignore[operator]
            raise ValueError(f"Invalid column bounds: lo={lo} > hi={hi}.")
        self._columns.append(
            LPColumn(float(cost), bound_type, float(lo), float(hi or 0.0))
        )
        return len(self._columns) - 1

    def add_row(
        self,
        bound_type: BoundType = BoundType.UP,
        lo: float = 0.0,
        hi: float = 0.0,
    ) -> RowId:
        """Append an empty row and return its id.

        Only the bounds relevant to ``bound_type`` are used: LO reads ``lo``,
        UP reads ``hi``, DB reads both and FX fixes the activity to ``lo``.
        Rows may be added after ``load_matrix``; they join the next solve.
        """
        if bound_type == BoundType.DB and lo > hi:
            raise ValueError(f"Invalid row bounds: lo={lo} > hi={hi}.")
        self._rows.append(LPRow(bound_type, float(lo), float(hi)))
        return len(self._rows) - 1

    def add_constraint_coef(self, row: RowId, col: ColId, coef: float = 1.0) -> None:
        """Add ``coef`` to the coefficient of column ``col`` in row ``row``."""
        self._check_col(col)
        coefs = self._row(row).coefs
        coefs[col] = coefs.get(col, 0.0) + float(coef)

    def load_matrix(self) -> None:
        """Finalize the initial matrix. Must be called before the first solve."""
        self._loaded = True

    def clear(self) -> None:
        """Drop every column and row; the model must be loaded again."""
        self._columns.clear()
        self._rows.clear()
        self._values = None
        self._objective = None
        self._loaded = False

    #
    # Rounding and relaxation
    #
    def fix_column(self, col: ColId, value: float) -> None:
        """Collapse an active column to the constant ``value``.

        Raises:
            ValueError: If the column is already fixed.
        """
        column = self._column(col)
        if column.fixed is not None:
            raise ValueError(f"Column {col} is already fixed to {column.fixed}.")
        column.fixed = float(value)

    def relax_row(self, row: RowId) -> None:
        """Drop an active row from the matrix.

        Raises:
            ValueError: If the row is already relaxed.
        """
        lp_row = self._row(row)
        if lp_row.relaxed:
            raise ValueError(f"Row {row} is already relaxed.")
        lp_row.relaxed = True

    def is_fixed(self, col: ColId) -> bool:
        return self._column(col).fixed is not None

    def is_relaxed(self, row: RowId) -> bool:
        return self._row(row).relaxed

    def active_columns(self) -> List[ColId]:
        """Return ids of columns that are not fixed, in ascending order."""
        return [col for col, c in enumerate(self._columns) if c.fixed is None]

    def active_rows(self) -> List[RowId]:
        """Return ids of rows that are not relaxed, in ascending order."""
        return [row for row, r in enumerate(self._rows) if not r.relaxed]

    @property
    def columns_count(self) -> int:
        return len(self._columns)

    @property
    def rows_count(self) -> int:
        return len(self._rows)

    #
    # Solving
    #
    def solve_to_extreme_point(self) -> ProblemType:
        """Solve the LP from scratch and return its status."""
        return self._solve()

    def resolve_to_extreme_point(self) -> ProblemType:
        """Solve the LP again after fixing columns, relaxing or adding rows.

        HiGHS is called on the whole current matrix; the result is the same
        kind of extreme point a warm-started re-solve would return.
        """
        return self._solve()

    def _solve(self) -> ProblemType:
        if not self._loaded:
            raise RuntimeError("load_matrix() must be called before solving the LP.")

        self._values = None
        self._objective = None
        rows = [r for r in self._rows if not r.relaxed]

        if not self._columns:
            return self._solve_empty(rows)

        sign = -1.0 if self._optimization == OptimizationType.MAXIMIZE else 1.0
        cost = sign * np.array([c.cost for c in self._columns], dtype=float)
        bounds = [self._column_bounds(c) for c in self._columns]
        a_ub, b_ub, a_eq, b_eq = self._constraint_matrices(rows)

        res = linprog(
            cost,
            A_ub=a_ub,
            b_ub=b_ub,
            A_eq=a_eq,
            b_eq=b_eq,
            bounds=bounds,
            method=self.method,
        )

        if res.status == _LINPROG_SUCCESS:
            self._values = np.asarray(res.x, dtype=float)
            self._objective = float(sign * res.fun)
            logger.debug(
                "LP '%s' solved: %d columns, %d rows, objective %s",
                self.name,
                len(self._columns),
                len(rows),
                self._objective,
            )
            return ProblemType.OPTIMAL
        if res.status == _LINPROG_INFEASIBLE:
            logger.debug("LP '%s' is infeasible", self.name)
            return ProblemType.INFEASIBLE
        if res.status == _LINPROG_UNBOUNDED:
            logger.debug("LP '%s' is unbounded", self.name)
            return ProblemType.UNBOUNDED
        raise LPSolverError(
            f"LP '{self.name}' failed with status {res.status}: {res.message}"
        )

    def _solve_empty(self, rows: List[LPRow]) -> ProblemType:
        """Zero-column LP: every active row has activity 0."""
        for row in rows:
            lower, upper = _bounds(row.bound_type, row.lo, row.hi)
            if (lower is not None and lower > 0.0) or (upper is not None and upper < 0.0):
                return ProblemType.INFEASIBLE
        self._values = np.zeros(0)
        self._objective = 0.0
        return ProblemType.OPTIMAL

    @staticmethod
    def _column_bounds(column: LPColumn) -> Tuple[Optional[float], Optional[float]]:
        if column.fixed is not None:
            return column.fixed, column.fixed
        return _bounds(column.bound_type, column.lo, column.hi)

    def _constraint_matrices(self, rows: List[LPRow]):
        """Split active rows into ``A_ub x <= b_ub`` and ``A_eq x == b_eq`` parts."""
        ub_data: List[float] = []
        ub_rows: List[int] = []
        ub_cols: List[int] = []
        b_ub: List[float] = []
        eq_data: List[float] = []
        eq_rows: List[int] = []
        eq_cols: List[int] = []
        b_eq: List[float] = []

        def append(data, idx, cols, rhs, row: LPRow, sign: float, bound: float) -> None:
            i = len(rhs)
            for col, coef in row.coefs.items():
                data.append(sign * coef)
                idx.append(i)
                cols.append(col)
            rhs.append(sign * bound)

        for row in rows:
            if row.bound_type == BoundType.FX:
                append(eq_data, eq_rows, eq_cols, b_eq, row, 1.0, row.lo)
                continue
            lower, upper = _bounds(row.bound_type, row.lo, row.hi)
            if upper is not None:
                append(ub_data, ub_rows, ub_cols, b_ub, row, 1.0, upper)
            if lower is not None:
                append(ub_data, ub_rows, ub_cols, b_ub, row, -1.0, lower)

        n = len(self._columns)
        a_ub = (
            coo_matrix((ub_data, (ub_rows, ub_cols)), shape=(len(b_ub), n)).tocsr()
            if b_ub
            else None
        )
        a_eq = (
            coo_matrix((eq_data, (eq_rows, eq_cols)), shape=(len(b_eq), n)).tocsr()
            if b_eq
            else None
        )
        return (
            a_ub,
            np.array(b_ub) if b_ub else None,
            a_eq,
            np.array(b_eq) if b_eq else None,
        )

    #
    # Solution access
    #
    def get_col_value(self, col: ColId) -> float:
        """Return the primal value of a column in the last extreme point."""
        self._check_col(col)
        return float(self._solution()[col])

    def get_row_value(self, row: RowId) -> float:
        """Return the activity (coefficient-weighted sum over all columns) of a row."""
        values = self._solution()
        return float(sum(coef * values[col] for col, coef in self._row(row).coefs.items()))

    def get_row_degree(self, row: RowId) -> int:
        """Return the number of active columns with a non-zero coefficient in a row."""
        return sum(
            1
            for col, coef in self._row(row).coefs.items()
            if coef != 0.0 and self._columns[col].fixed is None
        )

    def get_row_sum(self, row: RowId) -> float:
        """Return the unweighted sum of active column values in a row."""
        values = self._solution()
        return float(
            sum(
                values[col]
                for col, coef in self._row(row).coefs.items()
                if coef != 0.0 and self._columns[col].fixed is None
            )
        )

    def get_row_coefs(self, row: RowId) -> Dict[ColId, float]:
        return dict(self._row(row).coefs)

    def get_obj_value(self) -> float:
        """Return the objective value of the last extreme point."""
        if self._objective is None:
            raise RuntimeError(f"LP '{self.name}' has no optimal solution.")
        return self._objective

    def _solution(self) -> np.ndarray:
        if self._values is None:
            raise RuntimeError(f"LP '{self.name}' has no optimal solution.")
        return self._values

    def _column(self, col: ColId) -> LPColumn:
        self._check_col(col)
        return self._columns[col]

    def _check_col(self, col: ColId) -> None:
        if not 0 <= col < len(self._columns):
            raise KeyError(f"Unknown column id {col}.")

    def _row(self, row: RowId) -> LPRow:
        if not 0 <= row < len(self._rows):
            raise KeyError(f"Unknown row id {row}.")
        return self._rows[row]
