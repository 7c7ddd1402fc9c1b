"""
Hashing utilities for reproducible scores.
"""
import hashlib
from typing import Any


def stable_unit(seed: Any, salt: str) -> float:
    """
    Map (seed, salt) to a reproducible float in [0, 1).

    The same input always yields the same value, so simulated analysis is
    deterministic per file.
    """
    data = f"{seed}:{salt}".encode("utf-8")
    digest = hashlib.md5(data).hexdigest()[:8]
    return int(digest, 16) / 0x100000000


def stable_score(seed: Any, salt: str, low: float = 0.0, high: float = 1.0) -> float:
    """Reproducible score in [low, high] derived from `seed`."""
    return low + (high - low) * stable_unit(seed, salt)
