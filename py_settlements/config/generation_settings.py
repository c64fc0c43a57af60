"""
Configuration models for settlement and vegetation generation.

Every generation call receives one of these models explicitly; nothing in
the core reads slider or checkbox state directly. Field constraints are
enforced by pydantic, so an invalid configuration fails at construction
time rather than half-way through a generation pass.
"""

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, Field, model_validator


class EntityType(str, Enum):
    """Settlement entity kinds that can be created by the host."""

    CITY = "city"
    DISTRICT = "district"
    BLOCK = "block"
    BUILDING = "building"
    FOREST = "forest"


class PlacementStrategy(str, Enum):
    """Building placement strategies."""

    PERIMETER = "perimeter"
    RANDOM = "random"
    MIXED = "mixed"


class PartitionLevelConfig(BaseModel):
    """Thresholds for subdividing a parent polygon into one level of children."""

    target_count: int = Field(default=6, ge=1, description="Desired number of child regions")
    gap: float = Field(default=10.0, ge=0.0, description="Visible gap between siblings")

    min_area: float = Field(default=3000.0, gt=0.0, description="Minimum child area")
    min_width: float = Field(default=45.0, gt=0.0, description="Minimum child bounding width")
    min_height: float = Field(default=45.0, gt=0.0, description="Minimum child bounding height")
    min_aspect_ratio: float = Field(
        default=0.3, gt=0.0, le=1.0, description="Minimum min(w/h, h/w) of a child"
    )

    # Split style weights
    rectangle_weight: float = Field(default=0.55, ge=0.0, description="Axis-aligned split weight")
    rhombus_weight: float = Field(default=0.3, ge=0.0, description="Balanced diagonal split weight")
    triangle_weight: float = Field(default=0.15, ge=0.0, description="Unbalanced diagonal split weight")

    # Termination controls
    splittable_area_factor: float = Field(
        default=2.2, ge=1.0, description="Region must exceed min_area by this factor to split"
    )
    attempt_multiplier: int = Field(default=4, ge=1, description="Attempts per target child")
    max_region_failures: int = Field(
        default=3, ge=1, description="Failed splits before a region is retired"
    )
    max_depth: int = Field(default=8, ge=1, description="Maximum split depth")

    @model_validator(mode="after")
    def _check_weights(self) -> "PartitionLevelConfig":
        if self.rectangle_weight + self.rhombus_weight + self.triangle_weight <= 0:
            raise ValueError("At least one split style weight must be positive")
        return self


def _district_level() -> PartitionLevelConfig:
    return PartitionLevelConfig()


def _block_level() -> PartitionLevelConfig:
    return PartitionLevelConfig(
        target_count=8,
        gap=5.0,
        min_area=500.0,
        min_width=18.0,
        min_height=18.0,
        min_aspect_ratio=0.3,
        rectangle_weight=0.65,
        rhombus_weight=0.25,
        triangle_weight=0.1,
    )


class BuildingConfig(BaseModel):
    """Building footprint sizes and placement controls."""

    strategy: PlacementStrategy = Field(
        default=PlacementStrategy.MIXED, description="Placement strategy"
    )
    density: float = Field(default=1.0, gt=0.0, le=3.0, description="Building density")

    min_width: float = Field(default=4.0, gt=0.0, description="Minimum footprint width")
    max_width: float = Field(default=10.0, gt=0.0, description="Maximum footprint width")
    min_depth: float = Field(default=4.0, gt=0.0, description="Minimum footprint depth")
    max_depth: float = Field(default=8.0, gt=0.0, description="Maximum footprint depth")

    base_gap: float = Field(default=2.0, ge=0.0, description="Mean gap between perimeter buildings")
    edge_margin: float = Field(default=1.0, ge=0.0, description="Inset from the block edge")
    interior_coverage: float = Field(
        default=0.25, gt=0.0, le=1.0, description="Target footprint coverage for random placement"
    )
    mixed_coverage: float = Field(
        default=0.45, gt=0.0, le=1.0, description="Target footprint coverage for mixed placement"
    )
    attempt_multiplier: int = Field(default=4, ge=1, description="Attempts per target building")

    @model_validator(mode="after")
    def _check_ranges(self) -> "BuildingConfig":
        if self.min_width > self.max_width:
            raise ValueError("min_width must not exceed max_width")
        if self.min_depth > self.max_depth:
            raise ValueError("min_depth must not exceed max_depth")
        return self

    @property
    def mean_footprint_area(self) -> float:
        """Expected area of a random footprint."""
        return ((self.min_width + self.max_width) / 2) * ((self.min_depth + self.max_depth) / 2)


class VegetationConfig(BaseModel):
    """Tree scattering parameters for forests and blocks."""

    tree_size: float = Field(default=2.0, gt=0.0, description="Base tree radius")
    forest_density: float = Field(default=1.0, gt=0.0, le=3.0, description="Forest tree density")
    block_tree_density: float = Field(default=0.5, gt=0.0, le=3.0, description="Block tree density")
    spacing_factor: float = Field(
        default=2.0, gt=0.0, description="Minimum distance in tree radii at density 1"
    )
    jitter: float = Field(default=0.8, ge=0.0, le=1.0, description="Jitter as a fraction of a grid cell")
    distance_variation: float = Field(
        default=0.25, ge=0.0, lt=1.0, description="Per-tree randomisation of the spacing threshold"
    )
    radius_variation: float = Field(
        default=0.3, ge=0.0, lt=1.0, description="Per-tree randomisation of the tree radius"
    )
    edge_margin: float = Field(default=1.0, ge=0.0, description="Keep trees this far off the boundary")
    building_margin: float = Field(default=1.5, ge=0.0, description="Keep block trees off buildings")

    def min_distance(self, density: float) -> float:
        """Minimum inter-tree distance for a density."""
        return self.tree_size * self.spacing_factor / max(density, 0.05) ** 0.5


class LODConfig(BaseModel):
    """Zoom thresholds for tree level of detail (levels 0..4)."""

    zoom_thresholds: Tuple[float, float, float, float] = Field(
        default=(4.0, 5.5, 7.0, 9.0),
        description="Zoom at which levels 1, 2, 3 and 4 begin",
    )

    @model_validator(mode="after")
    def _check_order(self) -> "LODConfig":
        if list(self.zoom_thresholds) != sorted(self.zoom_thresholds):
            raise ValueError("zoom_thresholds must be ascending")
        return self


class EditConfig(BaseModel):
    """Interactive edit parameters."""

    drag_smoothing: float = Field(
        default=0.35, gt=0.0, le=1.0, description="Fraction of remaining distance covered per frame"
    )
    drag_epsilon: float = Field(default=0.05, gt=0.0, description="Snap distance ending interpolation")


class DisplayConfig(BaseModel):
    """Zoom thresholds for detail levels and opacity fades."""

    regional_start: float = Field(default=2.5, description="Scale where REGIONAL detail begins")
    settlement_start: float = Field(default=6.0, description="Scale where SETTLEMENT detail begins")
    icon_fade: Tuple[float, float] = Field(default=(3.0, 5.5), description="Icon fade-out range")
    settlement_fade: Tuple[float, float] = Field(
        default=(4.0, 6.0), description="Settlement fade-in range"
    )


class GenerationConfig(BaseModel):
    """Complete configuration passed into every generation call."""

    seed: str = Field(default="settlements", description="Seed for reproducible generation")

    city_size: float = Field(default=250.0, gt=0.0, description="City octagon radius")
    district_size: float = Field(default=120.0, gt=0.0, description="Standalone district hexagon radius")
    block_size: float = Field(default=40.0, gt=0.0, description="Standalone block side length")
    forest_size: float = Field(default=60.0, gt=0.0, description="Forest octagon radius")
    forest_compression: float = Field(
        default=0.7, gt=0.0, le=1.0, description="Vertical compression of forest octagons"
    )

    districts: PartitionLevelConfig = Field(default_factory=_district_level)
    blocks: PartitionLevelConfig = Field(default_factory=_block_level)
    buildings: BuildingConfig = Field(default_factory=BuildingConfig)
    vegetation: VegetationConfig = Field(default_factory=VegetationConfig)
    lod: LODConfig = Field(default_factory=LODConfig)
    edit: EditConfig = Field(default_factory=EditConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)

    trees_in_blocks: bool = Field(default=False, description="Scatter secondary trees inside blocks")

    def default_size(self, entity_type: EntityType) -> float:
        """Default target size for a root-level entity of the given type."""
        return {
            EntityType.CITY: self.city_size,
            EntityType.DISTRICT: self.district_size,
            EntityType.BLOCK: self.block_size,
            EntityType.BUILDING: self.buildings.max_width,
            EntityType.FOREST: self.forest_size,
        }[entity_type]
