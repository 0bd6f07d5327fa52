"""Deterministic shuffling."""
import random
import time
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def session_seed() -> int:
    """Seed for a new session: the current time in milliseconds."""
    return int(time.time() * 1000)


def seeded_shuffle(items: Sequence[T], seed: Optional[int]) -> List[T]:
    """Return a shuffled copy of ``items``; the same seed gives the same order."""
    shuffled = list(items)
    random.Random(seed).shuffle(shuffled)
    return shuffled
