"""
Building placement inside a block polygon.

Strategies:
- perimeter: footprints walked end-to-end along every block edge,
  parallel to the edge and inset from it
- random: footprints at random interior points with random rotation
- mixed: perimeter first, then random interior fill up to a
  density-scaled target

All candidates go through ``is_valid_placement``. Rejections are
discarded; attempts are capped, so a block may end up under-filled.
"""

import math

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import structlog

from ..config.generation_settings import BuildingConfig, PlacementStrategy
from .alea_prng import AleaPRNG
from .geometry import (
    Polygon,
    as_polygon,
    points_in_polygon,
    point_in_polygon,
    polygon_area,
    polygon_bounds,
    polygons_overlap,
    rectangle,
    signed_area,
)

logger = structlog.get_logger()


@dataclass
class Footprint:
    """Candidate building rectangle in block-local coordinates."""

    x: float
    y: float
    width: float
    depth: float
    rotation: float = 0.0

    def corners(self) -> Polygon:
        return rectangle(self.width, self.depth, (self.x, self.y), self.rotation)

    @property
    def bounding_radius(self) -> float:
        return math.hypot(self.width, self.depth) / 2


def is_valid_placement(
    footprint: Footprint, block_polygon, accepted: Sequence[Footprint]
) -> bool:
    """
    Check that a footprint fits inside the block without overlapping others.

    All four rotated corners must be inside the block polygon. The SAT
    overlap test only runs against footprints whose bounding circles
    come close enough to touch.
    """
    corners = footprint.corners()
    if not points_in_polygon(corners, block_polygon).all():
        return False

    for other in accepted:
        reach = footprint.bounding_radius + other.bounding_radius
        if math.hypot(footprint.x - other.x, footprint.y - other.y) >= reach:
            continue
        if polygons_overlap(corners, other.corners()):
            return False
    return True


class BuildingPlacer:
    """Populates block polygons with non-overlapping footprints."""

    def __init__(self, config: Optional[BuildingConfig] = None, prng: Optional[AleaPRNG] = None):
        """
        Initialize the placer.

        Args:
            config: BuildingConfig with sizes, density and strategy
            prng: Seeded random source
        """
        self.config = config or BuildingConfig()
        self.prng = prng or AleaPRNG("buildings")
        self._attempts = 0

    def populate(
        self, block_polygon, strategy: Optional[PlacementStrategy] = None
    ) -> List[Footprint]:
        """
        Place footprints inside a block polygon.

        Args:
            block_polygon: Block polygon in its local frame
            strategy: Override for the configured strategy

        Returns:
            Accepted footprints, pairwise non-overlapping
        """
        polygon = as_polygon(block_polygon)
        if len(polygon) < 3 or polygon_area(polygon) <= 0:
            return []

        strategy = strategy or self.config.strategy
        accepted: List[Footprint] = []
        self._attempts = 0

        if strategy in (PlacementStrategy.PERIMETER, PlacementStrategy.MIXED):
            self._place_perimeter(polygon, accepted)

        if strategy == PlacementStrategy.RANDOM:
            target = self._coverage_target(polygon, self.config.interior_coverage)
            self._place_interior(polygon, accepted, target)
        elif strategy == PlacementStrategy.MIXED:
            target = self._coverage_target(polygon, self.config.mixed_coverage)
            self._place_interior(polygon, accepted, target)

        logger.debug(
            "Populated block",
            strategy=strategy.value,
            buildings=len(accepted),
            attempts=self._attempts,
        )
        return accepted

    def _coverage_target(self, polygon: Polygon, coverage: float) -> int:
        area = polygon_area(polygon)
        count = area * coverage * self.config.density / self.config.mean_footprint_area
        return max(1, int(round(count)))

    def _random_size(self):
        cfg = self.config
        width = self.prng.uniform(cfg.min_width, cfg.max_width)
        depth = self.prng.uniform(cfg.min_depth, cfg.max_depth)
        return width, depth

    def _gap(self) -> float:
        """Gap between neighbouring perimeter buildings; denser means tighter."""
        return self.config.base_gap * self.prng.uniform(0.5, 1.5) / self.config.density

    def _place_perimeter(self, polygon: Polygon, accepted: List[Footprint]) -> None:
        cfg = self.config
        margin = cfg.edge_margin
        orientation = 1.0 if signed_area(polygon) > 0 else -1.0

        edges = np.roll(polygon, -1, axis=0) - polygon
        lengths = np.linalg.norm(edges, axis=1)
        mean_step = (cfg.min_width + cfg.max_width) / 2 + cfg.base_gap / cfg.density
        target = max(1, int(lengths.sum() / mean_step))
        budget = cfg.attempt_multiplier * target

        for start, edge, length in zip(polygon, edges, lengths):
            if length < cfg.min_width + 2 * margin:
                continue
            along = edge / length
            inward = orientation * np.array([-along[1], along[0]])
            angle = math.atan2(along[1], along[0])

            t = margin
            while self._attempts < budget:
                width, depth = self._random_size()
                width = min(width, length - margin - t)
                if width < cfg.min_width:
                    break

                self._attempts += 1
                center = start + along * (t + width / 2) + inward * (depth / 2 + margin)
                candidate = Footprint(float(center[0]), float(center[1]), width, depth, angle)
                if is_valid_placement(candidate, polygon, accepted):
                    accepted.append(candidate)
                    t += width + self._gap()
                else:
                    # Slide forward and try again further along the edge
                    t += width / 2

        if self._attempts >= budget:
            logger.debug("Perimeter placement budget exhausted", budget=budget)

    def _place_interior(self, polygon: Polygon, accepted: List[Footprint], target: int) -> None:
        missing = target - len(accepted)
        if missing <= 0:
            return

        min_x, min_y, max_x, max_y = polygon_bounds(polygon)
        budget = self.config.attempt_multiplier * missing
        attempts = 0

        while len(accepted) < target and attempts < budget:
            attempts += 1
            point = (self.prng.uniform(min_x, max_x), self.prng.uniform(min_y, max_y))
            if not point_in_polygon(point, polygon):
                continue

            width, depth = self._random_size()
            candidate = Footprint(
                point[0], point[1], width, depth, self.prng.uniform(0.0, math.pi)
            )
            if is_valid_placement(candidate, polygon, accepted):
                accepted.append(candidate)

        self._attempts += attempts
