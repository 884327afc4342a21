"""Contract every LP-based problem implements for the rounding engine."""

from __future__ import annotations

import abc
from typing import Optional

from iround.lp.compare import Compare


class IRProblem(abc.ABC):
    """Combinatorial problem solved by iterative rounding.

    A problem owns the mapping between its combinatorial elements and LP
    column/row ids, plus the single ``Compare`` used for every tolerance
    decision of a run. Problems solved with row generation also provide
    ``get_oracle()``.
    """

    def check_input_validity(self) -> Optional[str]:
        """Return an error message if the input cannot be solved, else None."""
        return None

    @abc.abstractmethod
    def get_compare(self) -> Compare: ...

    def discard_solution(self) -> None:
        """Withdraw elements committed during a run that ended INFEASIBLE.

        The engine calls this before returning an ``INFEASIBLE`` result.
        Problems that append to a caller-supplied ``result`` remove exactly
        what they appended.
        """
