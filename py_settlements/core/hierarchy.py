"""
Settlement hierarchy generation.

This module builds and rebuilds the City -> District -> Block -> Building
tree inside one cell's SettlementRecord, plus standalone forests.

Process:
1. create_*() - Build a root polygon at a point and register it
2. subdivide_into_districts() - Partition a city, shrink each region by
   half the gap, create districts and recurse
3. subdivide_into_blocks() - Same one level down
4. generate_buildings() - Populate a block with footprints (and trees)
5. generate_forest_trees() - Scatter trees over a forest

Regenerating any entity discards and rebuilds its descendants only.
"""

from typing import List, Optional, Sequence, Tuple, Type

import numpy as np
import structlog

from ..config.generation_settings import EntityType, GenerationConfig, PartitionLevelConfig
from ..utils.random import make_prng, seed_to_int
from .alea_prng import AleaPRNG
from .buildings import BuildingPlacer, Footprint, is_valid_placement
from .entities import (
    Block,
    Building,
    City,
    District,
    EntityState,
    Forest,
    PolygonEntity,
    SettlementRecord,
)
from .geometry import (
    polygon_centroid,
    rectangle,
    regular_polygon,
    shrink_polygon,
)
from .partition import partition
from .vegetation import generate_block_trees, generate_forest_trees

logger = structlog.get_logger()

PALETTES = ("warm", "cool", "earth")

Point = Tuple[float, float]


class SettlementGenerator:
    """Creates, subdivides, populates and deletes settlement entities."""

    def __init__(self, record: SettlementRecord, config: Optional[GenerationConfig] = None) -> None:
        """
        Initialize the generator for one cell.

        Args:
            record: The cell's settlement record, mutated in place
            config: GenerationConfig; defaults are used when omitted
        """
        self.record = record
        self.config = config or GenerationConfig()

    def _prng(self, entity: PolygonEntity, purpose: str) -> AleaPRNG:
        return make_prng(self.config.seed, entity.id, purpose)

    def _spatial_seed(self, entity: PolygonEntity) -> int:
        return seed_to_int(self.config.seed, entity.id)

    # ------------------------------------------------------------------
    # Root creation
    # ------------------------------------------------------------------

    def create_city(self, center: Point, size: Optional[float] = None) -> City:
        """Create a regular octagon city at ``center`` and subdivide it."""
        if size is None:
            size = self.config.city_size
        elif size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        city = City(
            id=self.record.new_id(EntityType.CITY),
            points=_as_tuples(regular_polygon(8, size, rotation=np.pi / 8)),
            x=float(center[0]),
            y=float(center[1]),
        )
        self.record.add(city)
        logger.info("Created city", city_id=city.id, size=size)
        self.subdivide_into_districts(city)
        return city

    def create_district(self, center: Point, size: Optional[float] = None) -> District:
        """Create a standalone hexagonal district and subdivide it."""
        if size is None:
            size = self.config.district_size
        elif size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        district = District(
            id=self.record.new_id(EntityType.DISTRICT),
            points=_as_tuples(regular_polygon(6, size)),
            x=float(center[0]),
            y=float(center[1]),
        )
        self.record.add(district)
        logger.info("Created district", district_id=district.id, size=size)
        self.subdivide_into_blocks(district)
        return district

    def create_block(self, center: Point, size: Optional[float] = None) -> Block:
        """Create a standalone square block and populate it."""
        if size is None:
            size = self.config.block_size
        elif size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        block = Block(
            id=self.record.new_id(EntityType.BLOCK),
            points=_as_tuples(rectangle(size, size)),
            x=float(center[0]),
            y=float(center[1]),
        )
        self.record.add(block)
        logger.info("Created block", block_id=block.id, size=size)
        self.generate_buildings(block)
        return block

    def create_forest(self, center: Point, size: Optional[float] = None) -> Forest:
        """Create a vertically compressed octagon forest and scatter its trees."""
        if size is None:
            size = self.config.forest_size
        elif size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        forest = Forest(
            id=self.record.new_id(EntityType.FOREST),
            points=_as_tuples(
                regular_polygon(
                    8, size, rotation=np.pi / 8, y_scale=self.config.forest_compression
                )
            ),
            x=float(center[0]),
            y=float(center[1]),
        )
        self.record.add(forest)
        logger.info("Created forest", forest_id=forest.id, size=size)
        self.generate_forest_trees(forest)
        return forest

    def create_building(
        self,
        center: Point,
        width: Optional[float] = None,
        depth: Optional[float] = None,
        rotation: float = 0.0,
    ) -> Optional[Building]:
        """
        Place a single building at a point inside an existing block.

        Returns:
            The building, or None when no block contains the point or the
            footprint does not fit
        """
        block = self._block_at(center)
        if block is None:
            logger.debug("No block under building position", x=center[0], y=center[1])
            return None

        cfg = self.config.buildings
        if width is None:
            width = (cfg.min_width + cfg.max_width) / 2
        if depth is None:
            depth = (cfg.min_depth + cfg.max_depth) / 2
        local = block.to_local(center)
        footprint = Footprint(float(local[0]), float(local[1]), width, depth, rotation - block.rotation)

        existing = [self._footprint_of(block, b) for b in block.buildings.values()]
        if not is_valid_placement(footprint, block.local_polygon(), existing):
            logger.debug("Building footprint rejected", block_id=block.id)
            return None

        prng = make_prng(self.config.seed, block.id, "building", self.record.next_entity_id)
        return self._add_building(block, footprint, prng.choice(PALETTES))

    def _block_at(self, point: Point) -> Optional[Block]:
        for block in self.record.blocks.values():
            if block.contains(point):
                return block
        return None

    # ------------------------------------------------------------------
    # Subdivision
    # ------------------------------------------------------------------

    def _subdivide(
        self,
        parent: PolygonEntity,
        level: PartitionLevelConfig,
        child_cls: Type[PolygonEntity],
        parent_field: str,
    ) -> List[PolygonEntity]:
        self.record.clear_children(parent)

        regions = partition(
            parent.world_points(), level.target_count, level, self._prng(parent, "partition")
        )

        children = []
        for region in regions:
            shrunk = shrink_polygon(region, level.gap / 2)
            if shrunk is None or len(shrunk) < 3:
                logger.debug("Dropped collapsed region", parent_id=parent.id)
                continue

            cx, cy = polygon_centroid(shrunk)
            child = child_cls(
                id=self.record.new_id(child_cls.kind),
                points=_as_tuples(shrunk - np.array([cx, cy])),
                x=cx,
                y=cy,
                **{parent_field: parent.id},
            )
            self.record.add(child, parent=parent)
            children.append(child)

        parent.state = EntityState.POPULATED
        return children

    def subdivide_into_districts(self, city: City) -> List[District]:
        """Rebuild a city's districts (and everything below them)."""
        districts = self._subdivide(city, self.config.districts, District, "city_id")
        for district in districts:
            self.subdivide_into_blocks(district)
        logger.info("Subdivided city", city_id=city.id, districts=len(districts))
        return districts

    def subdivide_into_blocks(self, district: District) -> List[Block]:
        """Rebuild a district's blocks and their buildings."""
        blocks = self._subdivide(district, self.config.blocks, Block, "district_id")
        for block in blocks:
            self.generate_buildings(block)
        logger.debug("Subdivided district", district_id=district.id, blocks=len(blocks))
        return blocks

    # ------------------------------------------------------------------
    # Leaf content
    # ------------------------------------------------------------------

    def generate_buildings(self, block: Block) -> List[Building]:
        """Rebuild a block's buildings, then its trees if enabled."""
        self.record.clear_children(block)

        prng = self._prng(block, "buildings")
        placer = BuildingPlacer(self.config.buildings, prng)
        footprints = placer.populate(block.local_polygon())
        buildings = [self._add_building(block, fp, prng.choice(PALETTES)) for fp in footprints]

        if self.config.trees_in_blocks:
            self.generate_block_trees(block)
        else:
            block.trees = []

        block.state = EntityState.POPULATED
        return buildings

    def _add_building(self, block: Block, footprint: Footprint, palette: str) -> Building:
        world = block.to_world([[footprint.x, footprint.y]])[0]
        building = Building(
            id=self.record.new_id(EntityType.BUILDING),
            points=_as_tuples(rectangle(footprint.width, footprint.depth)),
            x=float(world[0]),
            y=float(world[1]),
            rotation=block.rotation + footprint.rotation,
            block_id=block.id,
            width=footprint.width,
            depth=footprint.depth,
            palette=palette,
            state=EntityState.POPULATED,
        )
        self.record.add(building, parent=block)
        return building

    @staticmethod
    def _footprint_of(block: Block, building: Building) -> Footprint:
        local = block.to_local((building.x, building.y))
        return Footprint(
            float(local[0]),
            float(local[1]),
            building.width,
            building.depth,
            building.rotation - block.rotation,
        )

    def generate_block_trees(self, block: Block) -> None:
        """Scatter secondary trees in a block around its buildings."""
        obstacles: Sequence[np.ndarray] = [
            np.array([block.to_local(p) for p in building.world_points()])
            for building in block.buildings.values()
        ]
        block.trees = generate_block_trees(
            block.local_polygon(),
            obstacles,
            self.config.vegetation,
            self._spatial_seed(block),
        )

    def generate_forest_trees(self, forest: Forest) -> None:
        """Scatter trees over a forest polygon."""
        forest.trees = generate_forest_trees(
            forest.local_polygon(), self.config.vegetation, self._spatial_seed(forest)
        )
        forest.state = EntityState.POPULATED
        logger.debug("Generated forest trees", forest_id=forest.id, trees=len(forest.trees))

    # ------------------------------------------------------------------
    # Regeneration, deletion, movement
    # ------------------------------------------------------------------

    def regenerate(self, entity: PolygonEntity) -> None:
        """Discard and rebuild an entity's descendants."""
        if isinstance(entity, City):
            self.subdivide_into_districts(entity)
        elif isinstance(entity, District):
            self.subdivide_into_blocks(entity)
        elif isinstance(entity, Block):
            self.generate_buildings(entity)
        elif isinstance(entity, Forest):
            self.generate_forest_trees(entity)

    def regenerate_all(self) -> None:
        """Rebuild every root entity; used after a configuration change."""
        roots = self.record.roots()
        for entity in roots:
            self.regenerate(entity)
        logger.info("Regenerated settlement record", roots=len(roots))

    def delete(self, entity_id: str) -> List[str]:
        """Delete an entity and all its descendants."""
        removed = self.record.remove(entity_id)
        if removed:
            logger.info("Deleted entity", entity_id=entity_id, removed=len(removed))
        return removed

    def translate(self, entity: PolygonEntity, dx: float, dy: float) -> None:
        """Move an entity and its descendants without regenerating."""
        entity.translate(dx, dy)
        for child in self.record.descendants(entity):
            child.translate(dx, dy)


def _as_tuples(points: np.ndarray) -> List[Tuple[float, float]]:
    return [(float(x), float(y)) for x, y in points]
