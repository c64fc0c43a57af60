"""
Settlement hierarchy entities and the per-cell settlement record.

City -> District -> Block -> Building, plus standalone Forests. Every
entity owns a local-space polygon placed in the cell by rotating then
translating it to ``(x, y)``. Parents own their children in id-keyed
dicts; children keep a non-owning id back-reference to their parent.
"""

import math

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

import numpy as np
import structlog

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.generation_settings import EntityType
from .geometry import Bounds, as_polygon, point_in_polygon, polygon_bounds, rotate_points

logger = structlog.get_logger()


class EntityState(str, Enum):
    """Generation lifecycle of an entity."""

    UNPOPULATED = "unpopulated"
    POPULATED = "populated"
    DELETED = "deleted"


@dataclass(frozen=True)
class Tree:
    """
    A scattered tree, stored relative to its owning Block or Forest.

    ``gx``/``gy`` are the originating grid cell and ``hash`` is derived
    from them; both exist only to make LOD filtering reproducible.
    """

    x: float
    y: float
    radius: float
    gx: int
    gy: int
    hash: float


class PolygonEntity(BaseModel):
    """Shared polygon capability: placement, containment and bounds."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: ClassVar[EntityType]
    child_field: ClassVar[Optional[str]] = None

    id: str = Field(description="Identifier, unique within a map cell")
    points: List[Tuple[float, float]] = Field(description="Local-space polygon vertices")
    x: float = Field(default=0.0, description="Centre X in cell space")
    y: float = Field(default=0.0, description="Centre Y in cell space")
    rotation: float = Field(default=0.0, description="Rotation in radians")
    state: EntityState = Field(default=EntityState.UNPOPULATED, description="Lifecycle state")

    @field_validator("points")
    @classmethod
    def _at_least_three_points(cls, value: List[Tuple[float, float]]):
        if len(value) < 3:
            raise ValueError("A polygon entity needs at least 3 vertices")
        return value

    @property
    def parent_id(self) -> Optional[str]:
        return None

    @property
    def children(self) -> Dict[str, "PolygonEntity"]:
        """Owned child entities (empty for leaf kinds)."""
        if self.child_field is None:
            return {}
        return getattr(self, self.child_field)

    def local_polygon(self) -> np.ndarray:
        return as_polygon(self.points)

    def world_points(self) -> np.ndarray:
        """Polygon in cell space: rotate local vertices, then translate."""
        return rotate_points(self.local_polygon(), self.rotation) + np.array([self.x, self.y])

    def to_world(self, local_points) -> np.ndarray:
        """Map owner-local points into cell space."""
        pts = np.asarray(local_points, dtype=np.float64).reshape(-1, 2)
        return rotate_points(pts, self.rotation) + np.array([self.x, self.y])

    def to_local(self, point) -> np.ndarray:
        """Map a cell-space point into this entity's local frame."""
        rel = np.asarray(point, dtype=np.float64).reshape(-1, 2) - np.array([self.x, self.y])
        return rotate_points(rel, -self.rotation)[0]

    def contains(self, point) -> bool:
        """Whether a cell-space point lies inside the entity polygon."""
        return point_in_polygon(self.to_local(point), self.local_polygon())

    def bounds(self) -> Bounds:
        """Cell-space axis-aligned bounds."""
        return polygon_bounds(self.world_points())

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy


class Building(PolygonEntity):
    """Rectangular building footprint."""

    kind: ClassVar[EntityType] = EntityType.BUILDING

    block_id: Optional[str] = Field(default=None, description="Owning block")
    width: float = Field(gt=0, description="Footprint width")
    depth: float = Field(gt=0, description="Footprint depth")
    palette: str = Field(default="warm", description="Cosmetic palette hint")

    @property
    def parent_id(self) -> Optional[str]:
        return self.block_id

    @property
    def bounding_radius(self) -> float:
        return math.hypot(self.width, self.depth) / 2


class Block(PolygonEntity):
    """Leaf region that holds buildings and optional trees."""

    kind: ClassVar[EntityType] = EntityType.BLOCK
    child_field: ClassVar[Optional[str]] = "buildings"

    district_id: Optional[str] = Field(default=None, description="Owning district")
    buildings: Dict[str, Building] = Field(default_factory=dict, exclude=True)
    trees: List[Tree] = Field(default_factory=list, description="Block-local trees")

    @property
    def parent_id(self) -> Optional[str]:
        return self.district_id


class District(PolygonEntity):
    """Region of a city, subdivided into blocks."""

    kind: ClassVar[EntityType] = EntityType.DISTRICT
    child_field: ClassVar[Optional[str]] = "blocks"

    city_id: Optional[str] = Field(default=None, description="Owning city")
    blocks: Dict[str, Block] = Field(default_factory=dict, exclude=True)

    @property
    def parent_id(self) -> Optional[str]:
        return self.city_id


class City(PolygonEntity):
    """Root settlement polygon, subdivided into districts."""

    kind: ClassVar[EntityType] = EntityType.CITY
    child_field: ClassVar[Optional[str]] = "districts"

    districts: Dict[str, District] = Field(default_factory=dict, exclude=True)


class Forest(PolygonEntity):
    """Standalone vegetation region."""

    kind: ClassVar[EntityType] = EntityType.FOREST

    trees: List[Tree] = Field(default_factory=list, description="Forest-local trees")


ENTITY_CLASSES = {
    EntityType.CITY: City,
    EntityType.DISTRICT: District,
    EntityType.BLOCK: Block,
    EntityType.BUILDING: Building,
    EntityType.FOREST: Forest,
}

COLLECTION_NAMES = {
    EntityType.CITY: "cities",
    EntityType.DISTRICT: "districts",
    EntityType.BLOCK: "blocks",
    EntityType.BUILDING: "buildings",
    EntityType.FOREST: "forests",
}


class SettlementRecord:
    """
    Generated settlement data for one map cell.

    Holds the five flat collections plus an id index. Entities appear in
    exactly one flat collection and, unless they are roots, in their
    parent's child dict.
    """

    def __init__(self) -> None:
        self.cities: Dict[str, City] = {}
        self.districts: Dict[str, District] = {}
        self.blocks: Dict[str, Block] = {}
        self.buildings: Dict[str, Building] = {}
        self.forests: Dict[str, Forest] = {}
        self._index: Dict[str, PolygonEntity] = {}
        self.next_entity_id = 1

    def new_id(self, entity_type: EntityType) -> str:
        """Allocate an identifier unique within this record."""
        entity_id = f"{entity_type.value}_{self.next_entity_id}"
        self.next_entity_id += 1
        return entity_id

    def _collection(self, entity_type: EntityType) -> Dict[str, PolygonEntity]:
        return getattr(self, COLLECTION_NAMES[entity_type])

    def add(self, entity: PolygonEntity, parent: Optional[PolygonEntity] = None) -> PolygonEntity:
        """Register an entity in its flat collection and its parent's children."""
        if entity.id in self._index:
            raise ValueError(f"Duplicate entity id {entity.id}")
        self._collection(entity.kind)[entity.id] = entity
        self._index[entity.id] = entity
        if parent is not None:
            parent.children[entity.id] = entity
        return entity

    def get(self, entity_id: str) -> Optional[PolygonEntity]:
        return self._index.get(entity_id)

    def parent_of(self, entity: PolygonEntity) -> Optional[PolygonEntity]:
        if entity.parent_id is None:
            return None
        return self._index.get(entity.parent_id)

    def _drop_subtree(self, entity: PolygonEntity, removed: List[str]) -> None:
        for child in list(entity.children.values()):
            self._drop_subtree(child, removed)
        entity.children.clear()
        self._collection(entity.kind).pop(entity.id, None)
        self._index.pop(entity.id, None)
        entity.state = EntityState.DELETED
        removed.append(entity.id)

    def remove(self, entity_id: str) -> List[str]:
        """
        Remove an entity and every descendant.

        Returns:
            Ids of all removed entities (empty if the id is unknown)
        """
        entity = self._index.get(entity_id)
        if entity is None:
            return []

        parent = self.parent_of(entity)
        if parent is not None:
            parent.children.pop(entity.id, None)

        removed: List[str] = []
        self._drop_subtree(entity, removed)
        logger.debug("Removed entity subtree", entity_id=entity_id, removed=len(removed))
        return removed

    def clear_children(self, entity: PolygonEntity) -> List[str]:
        """Remove all descendants of an entity, keeping the entity itself."""
        removed: List[str] = []
        for child in list(entity.children.values()):
            self._drop_subtree(child, removed)
        entity.children.clear()
        return removed

    def clear(self) -> None:
        """Drop every entity."""
        for entity in self._index.values():
            entity.state = EntityState.DELETED
        for name in COLLECTION_NAMES.values():
            getattr(self, name).clear()
        self._index.clear()

    def descendants(self, entity: PolygonEntity) -> List[PolygonEntity]:
        """All entities reachable through owned children, depth first."""
        found: List[PolygonEntity] = []
        stack = list(entity.children.values())
        while stack:
            child = stack.pop()
            found.append(child)
            stack.extend(child.children.values())
        return found

    def roots(self) -> List[PolygonEntity]:
        """Entities without a parent, in insertion order."""
        return [e for e in self._index.values() if e.parent_id is None]

    def collections(self) -> Dict[str, List[PolygonEntity]]:
        """The five flat collections as lists, for rendering."""
        return {name: list(getattr(self, name).values()) for name in COLLECTION_NAMES.values()}

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._index
