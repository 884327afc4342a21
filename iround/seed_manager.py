"""Deterministic seed derivation to avoid global random.seed() order dependencies."""

from __future__ import annotations

import hashlib
import random
from typing import Any, Optional


class SeedManager:
    """Manages deterministic seed derivation for reproducible randomized policies.

    Seeds are derived per component from a master seed using SHA-256, so a
    randomized separation oracle gets the same start indices regardless of
    how many other randomized components ran before it.

    Usage:
        seed_mgr = SeedManager(42)
        oracle_rng = seed_mgr.create_random_state("separation_oracle", "steiner_network")
    """

    def __init__(self, master_seed: Optional[int] = None) -> None:
        """Initialize the seed manager.

        Args:
            master_seed: Master seed for deterministic operations. If None,
                        seed derivation will return None (non-deterministic).
        """
        self.master_seed = master_seed

    def derive_seed(self, *components: Any) -> Optional[int]:
        """Derive a deterministic seed from master seed and component identifiers.

        Args:
            *components: Component identifiers (strings, integers, etc.) that
                        uniquely identify the component needing a seed.

        Returns:
            Derived seed as positive integer, or None if no master seed set.
        """
        if self.master_seed is None:
            return None

        seed_input = f"{self.master_seed}:" + ":".join(str(c) for c in components)
        hash_digest = hashlib.sha256(seed_input.encode()).digest()

        seed_value = int.from_bytes(hash_digest[:4], byteorder="big")
        return seed_value & 0x7FFFFFFF  # Ensure positive 32-bit integer

    def create_random_state(self, *components: Any) -> random.Random:
        """Create a new Random instance with derived seed.

        Args:
            *components: Component identifiers for seed derivation.

        Returns:
            New Random instance seeded with derived seed, or unseeded if no master seed.
        """
        derived_seed = self.derive_seed(*components)
        rng = random.Random()
        if derived_seed is not None:
            rng.seed(derived_seed)
        return rng
