"""Seeded shuffling of recommendation lists."""

import random
import time
from typing import List, Sequence, TypeVar

T = TypeVar("T")


def new_session_seed() -> int:
    """Seed fixed for the lifetime of a process; varies across runs."""
    return int(time.time() * 1000)


def shuffle(items: Sequence[T], seed: int) -> List[T]:
    """Return a Fisher-Yates permutation of ``items`` driven by ``seed``.

    The input is left untouched. Equal seeds and equal inputs always give the
    same order, so repeated calls within one session present a stable list.
    """
    shuffled = list(items)
    rand = random.Random(seed)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rand.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
