"""Tests for the seeded PRNG and spatial hash."""

import numpy as np
import pytest

from py_settlements.core.alea_prng import AleaPRNG
from py_settlements.utils.random import make_prng, seed_to_int, spatial_hash


class TestAleaPRNG:
    """Test Alea PRNG behaviour."""

    def test_same_seed_same_sequence(self):
        a = AleaPRNG("settlements")
        b = AleaPRNG("settlements")
        assert [a.random() for _ in range(20)] == [b.random() for _ in range(20)]

    def test_different_seed_different_sequence(self):
        a = AleaPRNG("one")
        b = AleaPRNG("two")
        assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]

    def test_range(self):
        prng = AleaPRNG(42)
        values = [prng.random() for _ in range(1000)]
        assert all(0 <= v < 1 for v in values)

    def test_uniform(self):
        prng = AleaPRNG("uniform")
        values = [prng.uniform(4, 10) for _ in range(200)]
        assert all(4 <= v < 10 for v in values)

    def test_choice(self):
        prng = AleaPRNG("choice")
        options = ("warm", "cool", "earth")
        picks = {prng.choice(options) for _ in range(100)}
        assert picks == set(options)

    def test_choice_empty(self):
        with pytest.raises(IndexError):
            AleaPRNG("x").choice([])

    def test_weighted_choice_skips_zero_weights(self):
        prng = AleaPRNG("weights")
        picks = {prng.weighted_choice(["a", "b", "c"], [1.0, 0.0, 2.0]) for _ in range(200)}
        assert picks == {"a", "c"}

    def test_weighted_choice_requires_positive_weight(self):
        with pytest.raises(ValueError):
            AleaPRNG("x").weighted_choice(["a", "b"], [0.0, 0.0])


class TestSeeding:
    """Test seed helpers."""

    def test_make_prng_joins_parts(self):
        a = make_prng("seed", "city_1", "partition")
        b = make_prng("seed", "city_1", "partition")
        c = make_prng("seed", "city_2", "partition")
        assert a.random() == b.random()
        assert make_prng("seed", "city_1", "partition").random() != c.random()

    def test_seed_to_int(self):
        assert seed_to_int("seed", "forest_3") == seed_to_int("seed", "forest_3")
        assert seed_to_int("seed", "forest_3") != seed_to_int("seed", "forest_4")
        assert 0 <= seed_to_int("anything") < 2 ** 32


class TestSpatialHash:
    """Test the shared grid hash."""

    def test_scalar_returns_float(self):
        value = spatial_hash(3, 7, seed=11, channel=1)
        assert isinstance(value, float)
        assert 0 <= value < 1

    def test_deterministic(self):
        assert spatial_hash(3, 7, 11, 1) == spatial_hash(3, 7, 11, 1)

    def test_inputs_change_output(self):
        base = spatial_hash(3, 7, 11, 1)
        assert spatial_hash(4, 7, 11, 1) != base
        assert spatial_hash(3, 8, 11, 1) != base
        assert spatial_hash(3, 7, 12, 1) != base
        assert spatial_hash(3, 7, 11, 2) != base

    def test_vectorised_matches_scalar(self):
        gx, gy = np.meshgrid(np.arange(10), np.arange(8))
        values = spatial_hash(gx.ravel(), gy.ravel(), seed=5, channel=3)

        assert values.shape == (80,)
        for x, y, v in zip(gx.ravel(), gy.ravel(), values):
            assert spatial_hash(int(x), int(y), 5, 3) == v

    def test_negative_coordinates(self):
        value = spatial_hash(-4, -9, seed=1)
        assert 0 <= value < 1

    def test_roughly_uniform(self):
        gx, gy = np.meshgrid(np.arange(100), np.arange(100))
        values = spatial_hash(gx.ravel(), gy.ravel(), seed=99)
        assert values.mean() == pytest.approx(0.5, abs=0.02)
        assert (values < 0.25).mean() == pytest.approx(0.25, abs=0.02)
