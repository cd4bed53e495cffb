"""Deterministic pseudo-random sequences for room generation.

Every random decision made while building a room (path direction, corridor
width, room type, entity jitter, ...) draws from a ``SeededSequence``. The
sequence is an explicit object passed to whoever needs it; nothing replaces a
process-wide random source, so rooms can be built concurrently without their
streams interleaving.

The recurrence constants are part of the save-game format: changing any of
them changes every generated room for every existing story seed.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

# Seeds for consecutive rooms of one story are spaced this far apart.
ROOM_SEED_STRIDE = 1000

T = TypeVar("T")


def room_seed(story_seed: int, room_number: int) -> int:
    """Seed for a single room of a story."""
    return story_seed + room_number * ROOM_SEED_STRIDE


class SeededSequence:
    """Linear-congruential stream: ``s = (s * A + C) mod M``, yielding ``s / M``.

    Python integers never overflow, so the stream is bit-identical across
    platforms for any integer seed. Negative seeds are normalised by Python's
    floored modulo on the first step.
    """

    __slots__ = ("seed", "_state", "draws")

    def __init__(self, seed: int):
        self.seed = int(seed)
        self._state = self.seed
        self.draws = 0

    def random(self) -> float:
        """Next value in ``[0, 1)``."""
        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        self.draws += 1
        return self._state / LCG_MODULUS

    def __call__(self) -> float:
        return self.random()

    def randint(self, low: int, high: int) -> int:
        """Integer in ``[low, high]`` inclusive."""
        if high < low:
            raise ValueError(f"randint range is empty: [{low}, {high}]")
        return low + int(self.random() * (high - low + 1))

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[int(self.random() * len(items))]

    def uniform_jitter(self, bound: float) -> float:
        """Offset in ``[-bound, +bound)``."""
        return (self.random() - 0.5) * 2 * bound

    def fork(self) -> "SeededSequence":
        """Fresh sequence starting from this one's seed (independent stream)."""
        return SeededSequence(self.seed)


__all__ = [
    "SeededSequence",
    "room_seed",
    "LCG_MULTIPLIER",
    "LCG_INCREMENT",
    "LCG_MODULUS",
    "ROOM_SEED_STRIDE",
]
