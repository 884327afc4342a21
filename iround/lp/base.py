"""Base aliases and enums shared by the LP model and its consumers."""

from __future__ import annotations

from enum import IntEnum

#: Opaque handle of an LP column. Consecutive integers starting at 0, never reused.
ColId = int

#: Opaque handle of an LP row. Consecutive integers starting at 0, never reused.
RowId = int


class _ParsableEnum(IntEnum):
    @classmethod
    def from_string(cls, value: str):
        """Parse a case-insensitive member name.

        Raises:
            ValueError: If the string doesn't match any enum member.
        """
        try:
            return cls[value.upper()]
        except KeyError:
            valid = ", ".join(e.name for e in cls)
            raise ValueError(
                f"Invalid {cls.__name__} '{value}'. Valid values are: {valid}"
            ) from None


class BoundType(_ParsableEnum):
    """Bound kinds for columns and rows (GLPK conventions)."""

    FR = 1  # free: -inf < x < +inf
    LO = 2  # lower bound only: lo <= x
    UP = 3  # upper bound only: x <= hi
    DB = 4  # double bounded: lo <= x <= hi
    FX = 5  # fixed: x == lo


class ProblemType(_ParsableEnum):
    """Outcome of an LP solve."""

    OPTIMAL = 1
    INFEASIBLE = 2
    UNBOUNDED = 3


class OptimizationType(_ParsableEnum):
    """Direction of the objective function."""

    MINIMIZE = 1
    MAXIMIZE = 2
