"""Tests for render hooks, detail levels and render geometry."""

from unittest.mock import Mock, call

import numpy as np
import pytest

from py_settlements.config import DisplayConfig, GenerationConfig
from py_settlements.core.entities import SettlementRecord
from py_settlements.core.hierarchy import SettlementGenerator
from py_settlements.core.render import (
    DetailLevel,
    RenderHooks,
    detail_level,
    icon_opacity,
    resolve_render_geometry,
    settlement_opacity,
)


class TestDetailLevel:
    """Test zoom-derived detail level and fades."""

    def test_detail_levels(self):
        assert detail_level(1.0) == DetailLevel.WORLD
        assert detail_level(2.5) == DetailLevel.REGIONAL
        assert detail_level(5.9) == DetailLevel.REGIONAL
        assert detail_level(6.0) == DetailLevel.SETTLEMENT

    def test_custom_thresholds(self):
        display = DisplayConfig(regional_start=1.0, settlement_start=2.0)
        assert detail_level(1.5, display) == DetailLevel.REGIONAL

    def test_icon_fade(self):
        assert icon_opacity(2.0) == 1.0
        assert icon_opacity(4.25) == pytest.approx(0.5)
        assert icon_opacity(6.0) == 0.0

    def test_settlement_fade(self):
        assert settlement_opacity(3.0) == 0.0
        assert settlement_opacity(5.0) == pytest.approx(0.5)
        assert settlement_opacity(7.0) == 1.0


class TestRenderHooks:
    """Test explicit hook registration."""

    def setup_method(self):
        self.hooks = RenderHooks()

    def test_post_render_order(self):
        first, second = Mock(), Mock()
        manager = Mock()
        manager.attach_mock(first, "first")
        manager.attach_mock(second, "second")
        self.hooks.add_post_render(first)
        self.hooks.add_post_render(second)

        self.hooks.run_post_render("ctx", 7.0)

        assert manager.mock_calls == [call.first("ctx", 7.0), call.second("ctx", 7.0)]

    def test_duplicate_registration_ignored(self):
        hook = Mock()
        self.hooks.add_post_render(hook)
        self.hooks.add_post_render(hook)
        self.hooks.run_post_render("ctx", 1.0)
        hook.assert_called_once_with("ctx", 1.0)

    def test_remove_post_render(self):
        hook = Mock()
        self.hooks.add_post_render(hook)
        self.hooks.remove_post_render(hook)
        self.hooks.remove_post_render(hook)
        self.hooks.run_post_render("ctx", 1.0)
        hook.assert_not_called()

    def test_tile_decorators(self):
        decorator = Mock()
        self.hooks.add_tile_decorator(decorator)
        self.hooks.decorate_tile("ctx", "cell", 3.0)
        decorator.assert_called_once_with("ctx", "cell", 3.0)

        self.hooks.remove_tile_decorator(decorator)
        self.hooks.decorate_tile("ctx", "cell", 3.0)
        assert decorator.call_count == 1


class TestRenderGeometry:
    """Test world-space resolution with LOD filtering."""

    def setup_method(self):
        self.record = SettlementRecord()
        generator = SettlementGenerator(self.record, GenerationConfig(seed="render-test"))
        self.forest = generator.create_forest((0, 0))
        self.block = generator.create_block((200, 0))

    def test_all_entities_resolved(self):
        payload = resolve_render_geometry(self.record, 4)
        ids = {e.id for e in payload.entities}
        expected = {e.id for entities in self.record.collections().values() for e in entities}
        assert ids == expected

    def test_lod_zero_draws_bulk(self):
        payload = resolve_render_geometry(self.record, 0)
        assert payload.bulk == [self.forest.id]
        assert payload.trees == {}

    def test_lod_four_draws_all_trees(self):
        payload = resolve_render_geometry(self.record, 4)
        trees = payload.trees[self.forest.id]
        assert trees.shape == (len(self.forest.trees), 3)

    def test_lod_filters_trees(self):
        low = resolve_render_geometry(self.record, 1).trees[self.forest.id]
        high = resolve_render_geometry(self.record, 3).trees[self.forest.id]
        assert len(low) < len(high) < len(self.forest.trees)

    def test_world_transform_applied(self):
        offset = np.array([1000.0, 500.0])
        payload = resolve_render_geometry(
            self.record, 4, to_world=lambda pts: pts * 2 + offset, scale=2.0, opacity=0.4
        )

        forest_geometry = next(e for e in payload.entities if e.id == self.forest.id)
        assert forest_geometry.polygon == pytest.approx(self.forest.world_points() * 2 + offset)
        assert payload.opacity == 0.4

        tree = self.forest.trees[0]
        resolved = payload.trees[self.forest.id][0]
        assert resolved[:2] == pytest.approx(np.array([tree.x, tree.y]) * 2 + offset)
        assert resolved[2] == pytest.approx(tree.radius * 2)
