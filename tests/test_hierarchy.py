"""Tests for settlement hierarchy generation and the settlement record."""

import itertools

import pytest
from shapely.geometry import Point, Polygon

from py_settlements.config import BuildingConfig, GenerationConfig, PlacementStrategy
from py_settlements.core.entities import (
    Block,
    Building,
    City,
    District,
    EntityState,
    Forest,
    SettlementRecord,
)
from py_settlements.core.hierarchy import PALETTES, SettlementGenerator


def assert_inside_with_margin(child_points, parent_points, margin):
    parent = Polygon(parent_points)
    for vertex in child_points:
        point = Point(vertex)
        assert parent.buffer(1e-6).contains(point)
        assert parent.exterior.distance(point) >= margin - 1e-6


class TestCityGeneration:
    """Test the full city -> district -> block -> building cascade."""

    def setup_method(self):
        self.config = GenerationConfig(seed="hierarchy-test")
        self.record = SettlementRecord()
        self.generator = SettlementGenerator(self.record, self.config)
        self.city = self.generator.create_city((0, 0))

    def test_city_is_octagon(self):
        assert len(self.city.points) == 8
        assert self.city.state == EntityState.POPULATED
        assert list(self.record.cities) == [self.city.id]

    def test_district_count(self):
        assert 1 <= len(self.city.districts) <= self.config.districts.target_count
        assert len(self.record.districts) == len(self.city.districts)

    @pytest.mark.parametrize("seed", [f"city-{n}" for n in range(8)])
    def test_city_across_seeds(self, seed):
        config = GenerationConfig(seed=seed)
        record = SettlementRecord()
        city = SettlementGenerator(record, config).create_city((0, 0), 250)

        assert 1 <= len(city.districts) <= config.districts.target_count
        assert record.blocks

    def test_districts_inside_shrunk_city(self):
        margin = self.config.districts.gap / 2
        for district in self.city.districts.values():
            assert_inside_with_margin(district.world_points(), self.city.world_points(), margin)

    def test_districts_separated_by_gap(self):
        gap = self.config.districts.gap
        shapes = [Polygon(d.world_points()) for d in self.city.districts.values()]
        for a, b in itertools.combinations(shapes, 2):
            assert a.distance(b) >= gap - 1e-6

    def test_blocks_inside_districts(self):
        margin = self.config.blocks.gap / 2
        assert self.record.blocks
        for district in self.city.districts.values():
            assert len(district.blocks) <= self.config.blocks.target_count
            for block in district.blocks.values():
                assert block.district_id == district.id
                assert_inside_with_margin(block.world_points(), district.world_points(), margin)

    def test_buildings_inside_blocks(self):
        assert self.record.buildings
        for building in self.record.buildings.values():
            block = self.record.get(building.block_id)
            assert isinstance(block, Block)
            assert building.id in block.buildings
            assert Polygon(block.world_points()).buffer(1e-6).contains(
                Polygon(building.world_points())
            )
            assert building.palette in PALETTES

    def test_buildings_do_not_overlap(self):
        for block in self.record.blocks.values():
            shapes = [Polygon(b.world_points()) for b in block.buildings.values()]
            for a, b in itertools.combinations(shapes, 2):
                assert a.intersection(b).area < 1e-6

    def test_record_consistency(self):
        collections = self.record.collections()
        assert sum(len(v) for v in collections.values()) == len(self.record)

        for entities in collections.values():
            for entity in entities:
                if entity.parent_id is None:
                    continue
                parent = self.record.get(entity.parent_id)
                assert parent is not None
                assert parent.children[entity.id] is entity

    def test_ids_are_unique_and_prefixed(self):
        ids = [e.id for entities in self.record.collections().values() for e in entities]
        assert len(ids) == len(set(ids))
        assert all(e.startswith("district_") for e in self.record.districts)

    def test_regenerate_is_deterministic(self):
        before = [d.points for d in self.city.districts.values()]
        old_ids = set(self.city.districts)

        self.generator.regenerate(self.city)

        after = [d.points for d in self.city.districts.values()]
        assert after == before
        assert old_ids.isdisjoint(self.city.districts)
        assert not old_ids & set(self.record.districts)

    def test_regenerate_block_keeps_siblings(self):
        district = next(d for d in self.city.districts.values() if d.blocks)
        block = next(iter(district.blocks.values()))
        sibling_ids = set(district.blocks) - {block.id}
        other_buildings = {
            bid for bid, b in self.record.buildings.items() if b.block_id != block.id
        }

        self.generator.regenerate(block)

        assert sibling_ids <= set(district.blocks)
        assert other_buildings <= set(self.record.buildings)

    def test_translate_moves_descendants(self):
        district = next(iter(self.city.districts.values()))
        offset = (district.x - self.city.x, district.y - self.city.y)

        self.generator.translate(self.city, 25, -10)

        assert self.city.x == 25 and self.city.y == -10
        assert (district.x - self.city.x, district.y - self.city.y) == pytest.approx(offset)


class TestCascadeDelete:
    """Test cascading deletion with no orphans."""

    def setup_method(self):
        self.record = SettlementRecord()
        self.generator = SettlementGenerator(self.record, GenerationConfig(seed="delete-test"))
        self.city = self.generator.create_city((0, 0))
        self.forest = self.generator.create_forest((600, 0))

    def test_delete_city_removes_everything_below(self):
        removed = self.generator.delete(self.city.id)

        assert self.city.id in removed
        assert not self.record.cities
        assert not self.record.districts
        assert not self.record.blocks
        assert not self.record.buildings
        assert list(self.record.forests) == [self.forest.id]
        assert self.city.state == EntityState.DELETED

    def test_delete_district_leaves_siblings(self):
        district = next(iter(self.city.districts.values()))
        block_ids = set(district.blocks)
        building_ids = {b for block in district.blocks.values() for b in block.buildings}

        removed = set(self.generator.delete(district.id))

        assert {district.id} | block_ids | building_ids == removed
        assert district.id not in self.city.districts
        for block in self.record.blocks.values():
            assert block.district_id in self.record.districts
        for building in self.record.buildings.values():
            assert building.block_id in self.record.blocks

    def test_delete_unknown_id(self):
        assert self.generator.delete("city_999") == []

    def test_clear(self):
        self.record.clear()
        assert len(self.record) == 0
        assert self.forest.state == EntityState.DELETED


class TestStandaloneEntities:
    """Test creating entities below the city level."""

    def setup_method(self):
        self.record = SettlementRecord()
        self.config = GenerationConfig(
            seed="standalone",
            buildings=BuildingConfig(strategy=PlacementStrategy.PERIMETER),
        )
        self.generator = SettlementGenerator(self.record, self.config)

    def test_standalone_district(self):
        district = self.generator.create_district((10, 10))
        assert isinstance(district, District)
        assert len(district.points) == 6
        assert district.parent_id is None
        assert district.blocks

    def test_standalone_block(self):
        block = self.generator.create_block((0, 0), size=40)
        assert block.district_id is None
        assert block.buildings
        assert block.state == EntityState.POPULATED

    def test_explicit_zero_size_rejected(self):
        with pytest.raises(ValueError):
            self.generator.create_block((0, 0), size=0)
        with pytest.raises(ValueError):
            self.generator.create_forest((0, 0), size=0.0)
        assert len(self.record) == 0

    def test_forest(self):
        forest = self.generator.create_forest((50, 50))
        assert isinstance(forest, Forest)
        assert forest.trees
        shape = Polygon(forest.local_polygon())
        assert all(shape.contains(Point(t.x, t.y)) for t in forest.trees)

    def test_building_needs_a_block(self):
        assert self.generator.create_building((500, 500)) is None
        assert not self.record.buildings

    def test_building_inside_block(self):
        block = self.generator.create_block((100, 100), size=60)
        count = len(block.buildings)

        building = self.generator.create_building((100, 100), 5, 5)

        assert isinstance(building, Building)
        assert building.block_id == block.id
        assert len(block.buildings) == count + 1

    def test_overlapping_building_rejected(self):
        block = self.generator.create_block((100, 100), size=60)
        first = self.generator.create_building((100, 100), 5, 5)
        assert first is not None
        assert self.generator.create_building((101, 101), 5, 5) is None
        assert first.id in block.buildings

    def test_block_trees_toggle(self):
        config = GenerationConfig(seed="trees", trees_in_blocks=True)
        generator = SettlementGenerator(SettlementRecord(), config)
        block = generator.create_block((0, 0), size=80)
        assert block.trees

    def test_regenerate_all(self):
        city = self.generator.create_city((0, 0))
        forest = self.generator.create_forest((700, 0))
        trees_before = list(forest.trees)

        self.generator.regenerate_all()

        assert city.districts
        assert forest.trees == trees_before


class TestEntityModel:
    """Test entity placement and validation."""

    def test_world_points_rotate_then_translate(self):
        block = Block(id="block_1", points=[(-1, -1), (1, -1), (1, 1), (-1, 1)], x=10, y=5,
                      rotation=3.141592653589793 / 2)
        world = block.world_points()
        assert world[0] == pytest.approx([11, 4])

    def test_contains_and_bounds(self):
        city = City(id="city_1", points=[(-10, -10), (10, -10), (10, 10), (-10, 10)], x=100, y=0)
        assert city.contains((105, 5))
        assert not city.contains((5, 5))
        assert city.bounds() == pytest.approx((90, -10, 110, 10))

    def test_too_few_points_rejected(self):
        with pytest.raises(ValueError):
            Forest(id="forest_1", points=[(0, 0), (1, 1)])

    def test_duplicate_id_rejected(self):
        record = SettlementRecord()
        record.add(Forest(id="forest_1", points=[(0, 0), (1, 0), (0, 1)]))
        with pytest.raises(ValueError):
            record.add(Forest(id="forest_1", points=[(0, 0), (1, 0), (0, 1)]))
