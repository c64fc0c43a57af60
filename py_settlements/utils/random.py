"""
Random number generation utilities.

Two sources of randomness are used by settlement generation:

- ``make_prng`` builds a seeded Alea PRNG for structural choices (split
  styles, footprint sizes). Python's random and NumPy's global random
  state are never used, so generation is reproducible from the seed.
- ``spatial_hash`` derives stable pseudo-random values from integer grid
  coordinates. It is the single hash shared by every call site that needs
  values tied to a location rather than to call order: tree jitter, tree
  radius, distance variation and LOD selection. The same ``(ix, iy, seed,
  channel)`` always maps to the same float in ``[0, 1)``.
"""

import zlib

from typing import Union

import numpy as np

from ..core.alea_prng import AleaPRNG

_MASK = np.uint64(0xFFFFFFFF)
_PRIME_X = np.uint64(0x9E3779B1)
_PRIME_Y = np.uint64(0x85EBCA77)
_PRIME_SEED = np.uint64(0xC2B2AE3D)
_PRIME_CHANNEL = np.uint64(0x27D4EB2F)
_FMIX_1 = np.uint64(0x85EBCA6B)
_FMIX_2 = np.uint64(0xC2B2AE35)

ArrayLikeInt = Union[int, np.ndarray]


def make_prng(*seed_parts) -> AleaPRNG:
    """
    Create an Alea PRNG seeded from one or more seed parts.

    Args:
        *seed_parts: Strings or numbers mashed into the seed in order

    Returns:
        AleaPRNG instance
    """
    if not seed_parts:
        seed_parts = ("default",)
    return AleaPRNG([str(part) for part in seed_parts])


def seed_to_int(*seed_parts) -> int:
    """Fold seed parts into a 32-bit integer for ``spatial_hash``."""
    return zlib.crc32(":".join(str(part) for part in seed_parts).encode("utf-8"))


def _to_uint32(values) -> np.ndarray:
    """Wrap arbitrary integers (including negatives) into uint32 range."""
    return np.atleast_1d(np.asarray(values, dtype=np.int64)).astype(np.uint64) & _MASK


def _fmix32(h: np.ndarray) -> np.ndarray:
    """MurmurHash3 32-bit finalizer on uint64 storage."""
    h = h ^ (h >> np.uint64(16))
    h = (h * _FMIX_1) & _MASK
    h = h ^ (h >> np.uint64(13))
    h = (h * _FMIX_2) & _MASK
    h = h ^ (h >> np.uint64(16))
    return h


def spatial_hash(
    ix: ArrayLikeInt, iy: ArrayLikeInt, seed: int = 0, channel: int = 0
) -> Union[float, np.ndarray]:
    """
    Deterministic hash of integer grid coordinates to a float in [0, 1).

    Args:
        ix: Grid column index (scalar or array)
        iy: Grid row index (scalar or array, broadcast against ix)
        seed: Generation seed
        channel: Independent stream selector, so one cell can yield
            several uncorrelated values (jitter x, jitter y, radius...)

    Returns:
        Float for scalar inputs, float64 array otherwise
    """
    scalar = np.ndim(ix) == 0 and np.ndim(iy) == 0

    x = _to_uint32(ix)
    y = _to_uint32(iy)
    salt = (_to_uint32(seed) * _PRIME_SEED) & _MASK
    salt = salt ^ ((_to_uint32(channel) * _PRIME_CHANNEL) & _MASK)

    h = (x * _PRIME_X) & _MASK
    h = _fmix32(h ^ salt)
    h = h ^ ((y * _PRIME_Y) & _MASK)
    h = _fmix32(h)

    values = h.astype(np.float64) / 4294967296.0
    if scalar:
        return float(values[0])
    return values
