"""Tests for the host-facing integration layer."""

from unittest.mock import Mock

import pytest

from py_settlements.config import EntityType, GenerationConfig
from py_settlements.core.integration import (
    CellTransform,
    MapCell,
    SettlementIntegration,
    ensure_record,
)
from py_settlements.core.render import DetailLevel


class TestCellTransform:
    """Test world/local conversion."""

    def test_round_trip(self):
        transform = CellTransform(center_x=100, center_y=50, scale=2.0)
        local = transform.to_local((120, 40))
        assert local == pytest.approx((10, -5))
        assert transform.to_world([local])[0] == pytest.approx([120, 40])


class TestSettlementIntegration:
    """Test generation, deletion, regeneration and reads through the host API."""

    def setup_method(self):
        self.integration = SettlementIntegration(GenerationConfig(seed="integration-test"))
        self.cell = MapCell(q=0, r=0, transform=CellTransform(center_x=100, center_y=50))

    def test_record_created_lazily(self):
        assert self.integration.collections(self.cell) == {
            "cities": [], "districts": [], "blocks": [], "buildings": [], "forests": []
        }
        assert self.cell.settlement is None

        record = ensure_record(self.cell)
        assert self.cell.settlement is record
        assert ensure_record(self.cell) is record

    def test_generate_without_cell_is_noop(self):
        assert self.integration.generate((0, 0), EntityType.CITY) is None

    def test_generate_city_at_world_point(self):
        city = self.integration.generate((100, 50), EntityType.CITY, self.cell)

        assert city is not None
        assert (city.x, city.y) == pytest.approx((0, 0))
        assert self.cell.settlement is not None
        collections = self.integration.collections(self.cell)
        assert len(collections["cities"]) == 1
        assert collections["districts"]
        assert collections["buildings"]
        assert self.integration.editor.selected is city

    def test_generate_accepts_type_strings(self):
        forest = self.integration.generate((150, 50), "forest", self.cell)
        assert forest.kind == EntityType.FOREST
        assert forest.trees

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            self.integration.generate((0, 0), "castle", self.cell)

    def test_generate_uses_active_cell(self):
        self.integration.activate(self.cell)
        block = self.integration.generate((100, 50), EntityType.BLOCK)
        assert block is not None
        assert block.id in self.cell.settlement.blocks

    def test_building_outside_block_is_noop(self):
        assert self.integration.generate((0, 0), EntityType.BUILDING, self.cell) is None

    def test_delete_selected(self):
        city = self.integration.generate((100, 50), EntityType.CITY, self.cell)
        removed = self.integration.delete_selected()

        assert city.id in removed
        assert len(self.cell.settlement) == 0

    def test_delete_without_active_cell(self):
        assert self.integration.delete_selected() == []

    def test_regenerate_with_new_config(self):
        city = self.integration.generate((100, 50), EntityType.CITY, self.cell)
        old_districts = set(city.districts)

        self.integration.regenerate(GenerationConfig(seed="another-seed"))

        assert self.integration.config.seed == "another-seed"
        assert city.id in self.cell.settlement.cities
        assert city.districts
        assert old_districts.isdisjoint(city.districts)

    def test_clear(self):
        self.integration.generate((100, 50), EntityType.CITY, self.cell)
        self.integration.clear(self.cell)

        assert self.cell.settlement is None
        assert self.integration.editor.selected is None

    def test_cells_are_independent(self):
        other = MapCell(q=1, r=0, transform=CellTransform(center_x=450, center_y=50))
        self.integration.generate((100, 50), EntityType.FOREST, self.cell)
        self.integration.generate((450, 50), EntityType.FOREST, other)

        assert len(self.cell.settlement.forests) == 1
        assert len(other.settlement.forests) == 1
        # Ids are unique per cell, not globally
        assert list(self.cell.settlement.forests) == list(other.settlement.forests)


class TestRenderIntegration:
    """Test render payload and post-render wiring."""

    def setup_method(self):
        self.zoom = Mock(return_value=10.0)
        self.integration = SettlementIntegration(
            GenerationConfig(seed="render-integration"), zoom_provider=self.zoom
        )
        self.cell = MapCell(q=0, r=0, transform=CellTransform(center_x=0, center_y=0))

    def test_empty_cell_payload(self):
        payload = self.integration.render_payload(self.cell)
        assert payload.entities == []
        assert payload.lod_level == 4
        assert self.cell.settlement is None

    def test_payload_uses_zoom_provider(self):
        forest = self.integration.generate((0, 0), EntityType.FOREST, self.cell)
        payload = self.integration.render_payload(self.cell)

        self.zoom.assert_called()
        assert payload.opacity == 1.0
        assert len(payload.trees[forest.id]) == len(forest.trees)

    def test_explicit_zoom_overrides_provider(self):
        self.integration.generate((0, 0), EntityType.FOREST, self.cell)
        payload = self.integration.render_payload(self.cell, zoom=1.0)
        assert payload.lod_level == 0
        assert payload.opacity == 0.0
        assert payload.bulk

    def test_post_render_runs_hooks_and_tracks_detail(self):
        hook = Mock()
        self.integration.hooks.add_post_render(hook)

        self.integration.post_render("ctx", 7.0)

        hook.assert_called_once_with("ctx", 7.0)
        assert self.integration.detail == DetailLevel.SETTLEMENT
