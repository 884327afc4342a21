"""Epsilon-tolerant comparison of floating point LP values."""

from __future__ import annotations

from dataclasses import dataclass, field

from iround.config import IR_CONFIG


def _default_epsilon() -> float:
    return IR_CONFIG.epsilon


@dataclass(frozen=True)
class Compare:
    """Comparator with a fixed absolute tolerance.

    A problem instance owns exactly one ``Compare`` and every rounding,
    relaxation and violation decision of a run goes through it.

    Attributes:
        epsilon: Absolute tolerance. Defaults to ``IR_CONFIG.epsilon``.
    """

    epsilon: float = field(default_factory=_default_epsilon)

    def __post_init__(self) -> None:
        if self.epsilon < 0:
            raise ValueError(f"epsilon must be non-negative, got {self.epsilon}")

    def e(self, a: float, b: float) -> bool:
        """Return True if ``a`` equals ``b`` within tolerance."""
        return abs(a - b) < self.epsilon

    def g(self, a: float, b: float) -> bool:
        """Return True if ``a`` is strictly greater than ``b`` beyond tolerance."""
        return a > b + self.epsilon

    def ge(self, a: float, b: float) -> bool:
        return a >= b - self.epsilon

    def l(self, a: float, b: float) -> bool:  # noqa: E743
        """Return True if ``a`` is strictly less than ``b`` beyond tolerance."""
        return a < b - self.epsilon

    def le(self, a: float, b: float) -> bool:
        return a <= b + self.epsilon
