from __future__ import annotations

import hashlib
import random

_SAMPLE_BITS = 53


def stable_sample(key: str, salt: str = "") -> float:
    """Map an item key to a repeatable uniform value in [0, 1).

    The same key (and salt) always yields the same value, so slider-driven
    recomputation does not flip an item between sick and healthy.
    """
    digest = hashlib.sha256(f"{salt}:{key}".encode("utf-8")).digest()
    value = int.from_bytes(digest[:8], "big") >> (64 - _SAMPLE_BITS)
    return value / (1 << _SAMPLE_BITS)


def sample_from_rng(rng: random.Random) -> float:
    return rng.random()
