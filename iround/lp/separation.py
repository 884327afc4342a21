"""Separation oracles for LPs whose constraint family is too large to enumerate.

A ``ViolationChecker`` knows one implicit constraint family: it enumerates
candidate members for the current LP point, measures how much a candidate is
violated and materializes a violated member as a new LP row. A
``SeparationOracle`` wraps a checker with a search strategy deciding which
candidate is reported:

- first violated: cyclic scan from index 0,
- random violated: the same cyclic scan starting at a random index (default),
- most violated: full scan keeping the largest violation.
"""

from __future__ import annotations

import abc
import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, FrozenSet, Hashable, Optional, Sequence

from iround.config import IR_CONFIG
from iround.logging import get_logger
from iround.lp.base import RowId
from iround.lp.model import LinearProgram
from iround.seed_manager import SeedManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class Violation:
    """Result of checking a single separation candidate.

    Attributes:
        magnitude: How much the candidate's constraint is violated; values
            not greater than epsilon mean it is satisfied.
        candidate: The checked candidate (for example a vertex pair).
        witness: Vertex set defining the violated constraint.
        bound: Right-hand side of the row that would be added.
    """

    magnitude: float
    candidate: Any
    witness: FrozenSet[Hashable]
    bound: float


class ViolationChecker(abc.ABC):
    """Problem-specific half of a separation oracle."""

    @abc.abstractmethod
    def prepare(self, problem: Any, lp: LinearProgram) -> Sequence[Any]:
        """Build checking state from the current LP point and return the candidates."""
        ...

    @abc.abstractmethod
    def check_violation(self, problem: Any, candidate: Any) -> Violation:
        """Measure the violation of one candidate against the prepared state."""
        ...

    @abc.abstractmethod
    def add_violated_row(
        self, problem: Any, lp: LinearProgram, violation: Violation
    ) -> RowId:
        """Add the constraint described by ``violation`` to the LP."""
        ...


class SeparationOracle(abc.ABC):
    """Search strategy over the candidates of a ``ViolationChecker``.

    ``feasible`` records at most one violation; ``add_violated_row`` consumes it.

    Attributes:
        checker: The wrapped violation checker.
        rows_added: Number of rows this oracle has added so far.
    """

    def __init__(self, checker: ViolationChecker) -> None:
        self.checker = checker
        self.rows_added = 0
        self._violation: Optional[Violation] = None

    def feasible(self, problem: Any, lp: LinearProgram) -> bool:
        """Return True if no candidate of the family is violated at the current LP point."""
        candidates = self.checker.prepare(problem, lp)
        self._violation = self._find_violated(problem, candidates) if candidates else None
        return self._violation is None

    def add_violated_row(self, problem: Any, lp: LinearProgram) -> RowId:
        """Add the row for the violation found by the last ``feasible`` call.

        Raises:
            RuntimeError: If the last ``feasible`` call found no violation.
        """
        if self._violation is None:
            raise RuntimeError("No violated constraint recorded; call feasible() first.")
        violation, self._violation = self._violation, None
        row = self.checker.add_violated_row(problem, lp, violation)
        self.rows_added += 1
        logger.debug(
            "Added violated row %d for %s (violation %.6g, |witness|=%d)",
            row,
            violation.candidate,
            violation.magnitude,
            len(violation.witness),
        )
        return row

    def _scan_from(
        self, problem: Any, candidates: Sequence[Any], start: int
    ) -> Optional[Violation]:
        compare = problem.get_compare()
        n = len(candidates)
        for i in range(n):
            violation = self.checker.check_violation(problem, candidates[(start + i) % n])
            if compare.g(violation.magnitude, 0.0):
                return violation
        return None

    @abc.abstractmethod
    def _find_violated(
        self, problem: Any, candidates: Sequence[Any]
    ) -> Optional[Violation]: ...


class FirstViolatedSeparationOracle(SeparationOracle):
    """Report the first violated candidate in a fixed scan from index 0."""

    def _find_violated(self, problem, candidates):
        return self._scan_from(problem, candidates, 0)


class RandomViolatedSeparationOracle(SeparationOracle):
    """Report the first violated candidate of a scan that starts at a random index.

    Args:
        checker: The wrapped violation checker.
        seed: Master seed for reproducible start indices (None: unseeded).
        rng: Explicit random source; overrides ``seed``.
    """

    def __init__(
        self,
        checker: ViolationChecker,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(checker)
        self._rng = rng or SeedManager(seed).create_random_state(
            "separation_oracle", type(checker).__name__
        )

    def _find_violated(self, problem, candidates):
        return self._scan_from(problem, candidates, self._rng.randrange(len(candidates)))


class MostViolatedSeparationOracle(SeparationOracle):
    """Scan every candidate and report the one with the largest violation."""

    def _find_violated(self, problem, candidates):
        best: Optional[Violation] = None
        for candidate in candidates:
            violation = self.checker.check_violation(problem, candidate)
            if best is None or violation.magnitude > best.magnitude:
                best = violation
        if best is not None and problem.get_compare().g(best.magnitude, 0.0):
            return best
        return None


class OracleStrategy(IntEnum):
    """Available candidate search strategies."""

    FIRST = 1
    RANDOM = 2
    MOST = 3

    @classmethod
    def from_string(cls, value: str) -> "OracleStrategy":
        """Parse a case-insensitive strategy name.

        Raises:
            ValueError: If the string doesn't match any enum member.
        """
        try:
            return cls[value.upper()]
        except KeyError:
            valid = ", ".join(e.name for e in cls)
            raise ValueError(
                f"Invalid oracle strategy '{value}'. Valid values are: {valid}"
            ) from None


def make_separation_oracle(
    checker: ViolationChecker,
    strategy: OracleStrategy | str | None = None,
    *,
    seed: Optional[int] = None,
) -> SeparationOracle:
    """Wrap ``checker`` in the oracle implementing ``strategy``.

    Args:
        checker: Problem-specific violation checker.
        strategy: Strategy enum or name; defaults to ``IR_CONFIG.oracle_strategy``.
        seed: Master seed, used by the random strategy only.

    Returns:
        SeparationOracle: A fresh oracle instance.
    """
    if strategy is None:
        strategy = IR_CONFIG.oracle_strategy
    if isinstance(strategy, str):
        strategy = OracleStrategy.from_string(strategy)

    if strategy == OracleStrategy.FIRST:
        return FirstViolatedSeparationOracle(checker)
    if strategy == OracleStrategy.MOST:
        return MostViolatedSeparationOracle(checker)
    return RandomViolatedSeparationOracle(checker, seed=seed)
