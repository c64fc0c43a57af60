"""
Seeded Alea PRNG used for structural randomness in settlement generation.

Based on Johannes Baagøe's Alea algorithm. Every generator owns its own
instance so that regenerating an entity with the same seed reproduces the
same split choices, footprint sizes and placements.
"""

from typing import Sequence, TypeVar

T = TypeVar("T")


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Alea PRNG with the small helper surface the generators need.

    Seeds may be strings, numbers or an iterable of either; each element
    is mashed into the state in order.
    """

    def __init__(self, seed):
        """Initialize with seed string, number or iterable of seeds."""
        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            for char in str(data):
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def uniform(self, low: float, high: float) -> float:
        """Random float in [low, high)."""
        return low + (high - low) * self.random()

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def weighted_choice(self, options: Sequence[T], weights: Sequence[float]) -> T:
        """
        Choose an option with probability proportional to its weight.

        Options with zero weight are never picked. Raises ValueError when
        no option has a positive weight.
        """
        total = sum(w for w in weights if w > 0)
        if total <= 0:
            raise ValueError("At least one weight must be positive")

        threshold = self.random() * total
        cumulative = 0.0
        for option, weight in zip(options, weights):
            if weight <= 0:
                continue
            cumulative += weight
            if threshold < cumulative:
                return option
        # Floating point slack: fall back to the last positive option
        return [o for o, w in zip(options, weights) if w > 0][-1]
