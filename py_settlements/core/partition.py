"""
Recursive region partitioning.

Splits a polygon into up to N sub-regions that respect a level's minimum
area, width, height and aspect ratio. Used at every hierarchy level (city
into districts, district into blocks) with different thresholds.

Process:
1. Keep a working list of regions, initially just the root
2. Pick the largest region that is still splittable
3. Choose a split style by weighted random choice
4. Validate both parts; accept them or discard the split
5. Stop at the target count, when nothing is splittable, or when the
   attempt budget runs out
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
import structlog

from ..config.generation_settings import PartitionLevelConfig
from .alea_prng import AleaPRNG
from .geometry import (
    Polygon,
    as_polygon,
    polygon_area,
    polygon_bounds,
    split_by_arbitrary_line,
    split_by_horizontal_line,
    split_by_vertical_line,
)

logger = structlog.get_logger()


class SplitStyle(str, Enum):
    """Shape family produced by a split."""

    RECTANGLE = "rectangle"  # straight axis-aligned cut
    RHOMBUS = "rhombus"  # balanced diagonal cut
    TRIANGLE = "triangle"  # unbalanced diagonal cut


# Edge pairings of the bounding box that a diagonal cut runs between
DIAGONAL_PAIRINGS = ("top_bottom", "left_right", "top_right", "top_left")

BALANCED_RATIO_RANGE = (0.3, 0.7)
UNBALANCED_RATIO_RANGES = ((0.1, 0.35), (0.65, 0.9))


@dataclass(eq=False)
class Region:
    """A polygon under consideration by the partitioner."""

    points: Polygon
    depth: int = 0
    failures: int = 0

    @property
    def area(self) -> float:
        return polygon_area(self.points)


def is_valid_region(polygon, level: PartitionLevelConfig) -> bool:
    """
    Check a candidate region against the level's minimums.

    Width and height carry headroom of one ``gap`` so that the region
    still meets the minimums after the sibling-gap shrink.
    """
    pts = as_polygon(polygon)
    if len(pts) < 3:
        return False

    min_x, min_y, max_x, max_y = polygon_bounds(pts)
    width, height = max_x - min_x, max_y - min_y
    if width <= 0 or height <= 0:
        return False

    if polygon_area(pts) < level.min_area:
        return False
    if width < level.min_width + level.gap or height < level.min_height + level.gap:
        return False
    return min(width / height, height / width) >= level.min_aspect_ratio


def is_splittable(region: Region, level: PartitionLevelConfig) -> bool:
    """Whether a region is large enough to yield two valid parts."""
    if region.depth >= level.max_depth or region.failures >= level.max_region_failures:
        return False
    if region.area < level.min_area * level.splittable_area_factor:
        return False

    min_x, min_y, max_x, max_y = polygon_bounds(region.points)
    fits_across = (max_x - min_x) >= 2 * (level.min_width + level.gap)
    fits_down = (max_y - min_y) >= 2 * (level.min_height + level.gap)
    return fits_across or fits_down


def _safe_ratio_range(extent: float, minimum: float) -> Optional[Tuple[float, float]]:
    """Ratio range along a dimension that leaves both parts above ``minimum``."""
    if extent <= 0:
        return None
    low = minimum / extent
    high = 1.0 - low
    if low > high:
        return None
    return low, high


def _straight_split(
    points: Polygon, level: PartitionLevelConfig, prng: AleaPRNG
) -> Optional[Tuple[Polygon, Polygon]]:
    min_x, min_y, max_x, max_y = polygon_bounds(points)
    width, height = max_x - min_x, max_y - min_y

    if width > height * 1.2:
        vertical = True
    elif height > width * 1.2:
        vertical = False
    else:
        vertical = prng.random() < 0.5

    for use_vertical in (vertical, not vertical):
        if use_vertical:
            ratios = _safe_ratio_range(width, level.min_width + level.gap)
            if ratios is None:
                continue
            x = min_x + width * prng.uniform(*ratios)
            return split_by_vertical_line(points, x)

        ratios = _safe_ratio_range(height, level.min_height + level.gap)
        if ratios is None:
            continue
        y = min_y + height * prng.uniform(*ratios)
        return split_by_horizontal_line(points, y)

    return None


def _diagonal_cut(
    bounds: Tuple[float, float, float, float], balanced: bool, prng: AleaPRNG
) -> Tuple[np.ndarray, np.ndarray]:
    """Pick a cut line between two bounding-box edges."""
    min_x, min_y, max_x, max_y = bounds
    width, height = max_x - min_x, max_y - min_y

    if balanced:
        r1 = prng.uniform(*BALANCED_RATIO_RANGE)
        r2 = prng.uniform(*BALANCED_RATIO_RANGE)
    else:
        low, high = UNBALANCED_RATIO_RANGES
        if prng.random() < 0.5:
            low, high = high, low
        r1 = prng.uniform(*low)
        r2 = prng.uniform(*high)

    pairing = prng.choice(DIAGONAL_PAIRINGS)
    if pairing == "top_bottom":
        p1 = (min_x + r1 * width, max_y)
        p2 = (min_x + r2 * width, min_y)
    elif pairing == "left_right":
        p1 = (min_x, min_y + r1 * height)
        p2 = (max_x, min_y + r2 * height)
    elif pairing == "top_right":
        p1 = (min_x + r1 * width, max_y)
        p2 = (max_x, min_y + r2 * height)
    else:
        p1 = (min_x + r1 * width, max_y)
        p2 = (min_x, min_y + r2 * height)
    return np.array(p1), np.array(p2)


def split_region(
    points: Polygon, style: SplitStyle, level: PartitionLevelConfig, prng: AleaPRNG
) -> Optional[Tuple[Polygon, Polygon]]:
    """
    Split a polygon once in the given style.

    Returns:
        Both parts, or None if the cut was degenerate or missed the polygon.
        Parts are not validated here.
    """
    if style == SplitStyle.RECTANGLE:
        return _straight_split(points, level, prng)

    p1, p2 = _diagonal_cut(polygon_bounds(points), style == SplitStyle.RHOMBUS, prng)
    return split_by_arbitrary_line(points, p1, p2)


def partition(
    root,
    target_count: int,
    level: PartitionLevelConfig,
    prng: AleaPRNG,
) -> List[Polygon]:
    """
    Greedily split ``root`` into at most ``target_count`` valid regions.

    Args:
        root: Root polygon
        target_count: Desired number of regions
        level: Thresholds and split weights for this hierarchy level
        prng: Seeded random source

    Returns:
        List of region polygons, each passing ``is_valid_region``. Never
        longer than ``target_count``; may be shorter when regions run out of
        room or the attempt budget is spent, and empty when the root itself
        is below the level minimums.
    """
    root_points = as_polygon(root)
    if len(root_points) < 3 or target_count < 1:
        return []

    if not is_valid_region(root_points, level):
        logger.debug("Root region below level minimums")
        return []

    regions = [Region(points=root_points)]
    max_attempts = max(1, level.attempt_multiplier * target_count)
    styles = (SplitStyle.RECTANGLE, SplitStyle.RHOMBUS, SplitStyle.TRIANGLE)
    weights = (level.rectangle_weight, level.rhombus_weight, level.triangle_weight)

    attempts = 0
    rejected = 0
    while len(regions) < target_count and attempts < max_attempts:
        attempts += 1

        candidates = [r for r in regions if is_splittable(r, level)]
        if not candidates:
            logger.debug("No splittable regions left", regions=len(regions))
            break

        region = max(candidates, key=lambda r: r.area)
        style = prng.weighted_choice(styles, weights)
        parts = split_region(region.points, style, level, prng)

        if parts is None or not all(is_valid_region(p, level) for p in parts):
            region.failures += 1
            rejected += 1
            continue

        regions.remove(region)
        regions.extend(Region(points=p, depth=region.depth + 1) for p in parts)

    if len(regions) < target_count:
        logger.debug(
            "Partition under target",
            target=target_count,
            produced=len(regions),
            attempts=attempts,
            rejected=rejected,
        )

    return [r.points for r in regions]
