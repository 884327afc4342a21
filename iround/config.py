"""Configuration classes for IterRound components."""

from dataclasses import dataclass


@dataclass
class IRConfig:
    """Defaults shared by LP models, comparators and separation oracles."""

    # Tolerance for every "integral enough" / "violated enough" decision
    epsilon: float = 1e-10

    # scipy.optimize.linprog method; dual simplex returns basic (extreme point) solutions
    lp_method: str = "highs-ds"

    # Search strategy used when a problem builds its own separation oracle
    oracle_strategy: str = "random"

    def __post_init__(self) -> None:
        if self.epsilon < 0:
            raise ValueError(f"epsilon must be non-negative, got {self.epsilon}")


# Global configuration instance
IR_CONFIG = IRConfig()
