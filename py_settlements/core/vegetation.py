"""
Tree scattering and level-of-detail selection.

Trees are sampled on a jittered grid whose cell size is the minimum
inter-tree distance. Jitter, radius and spacing variation all come from
``spatial_hash`` of the grid cell, so the same polygon and seed always
produce the same trees. A greedy minimum-distance pass then thins
candidates that landed too close together.

Two call sites share the algorithm:
- forests: whole polygon, kept off the boundary
- blocks: additionally kept off building footprints

LOD levels 1-3 keep the trees whose stored hash falls under 25%, 50% or
75%. The hash never changes, so each level is a superset of the one
below and re-rendering at the same zoom shows the same trees.
"""

from typing import List, Optional, Sequence

import numpy as np
import structlog

from sklearn.neighbors import KDTree

from ..config.generation_settings import LODConfig, VegetationConfig
from ..utils.random import spatial_hash
from .entities import Tree
from .geometry import as_polygon, distance_to_boundary, points_in_polygon, polygon_bounds

logger = structlog.get_logger()

# Hash channels, one independent stream per derived value
CHANNEL_JITTER_X = 1
CHANNEL_JITTER_Y = 2
CHANNEL_RADIUS = 3
CHANNEL_SPACING = 4
CHANNEL_LOD = 5

MAX_LOD_LEVEL = 4
LOD_FRACTIONS = {1: 0.25, 2: 0.5, 3: 0.75}

# Upper bound on grid cells per scatter call; larger areas get coarser grids
MAX_GRID_CELLS = 200_000


def scatter_trees(
    polygon,
    config: VegetationConfig,
    density: float,
    seed: int = 0,
    obstacles: Optional[Sequence[np.ndarray]] = None,
) -> List[Tree]:
    """
    Scatter trees inside a polygon.

    Args:
        polygon: Region polygon in its owner's local frame
        config: VegetationConfig with size, spacing and margins
        density: Tree density for this call site
        seed: Integer seed mixed into every spatial hash
        obstacles: Polygons (same frame) trees must stay clear of

    Returns:
        Accepted trees in grid order
    """
    poly = as_polygon(polygon)
    min_x, min_y, max_x, max_y = polygon_bounds(poly)
    cell = config.min_distance(density)

    cols = int(np.ceil((max_x - min_x) / cell))
    rows = int(np.ceil((max_y - min_y) / cell))
    if cols * rows > MAX_GRID_CELLS:
        cell *= np.sqrt(cols * rows / MAX_GRID_CELLS)
        cols = int(np.ceil((max_x - min_x) / cell))
        rows = int(np.ceil((max_y - min_y) / cell))
    if cols <= 0 or rows <= 0:
        return []

    gx, gy = np.meshgrid(np.arange(cols), np.arange(rows))
    gx, gy = gx.ravel(), gy.ravel()

    jitter_x = spatial_hash(gx, gy, seed, CHANNEL_JITTER_X) - 0.5
    jitter_y = spatial_hash(gx, gy, seed, CHANNEL_JITTER_Y) - 0.5
    xs = min_x + (gx + 0.5 + jitter_x * config.jitter) * cell
    ys = min_y + (gy + 0.5 + jitter_y * config.jitter) * cell
    candidates = np.column_stack([xs, ys])

    keep = points_in_polygon(candidates, poly)
    keep &= distance_to_boundary(candidates, poly) >= config.edge_margin

    for obstacle in obstacles or ():
        keep &= ~points_in_polygon(candidates, obstacle)
        keep &= distance_to_boundary(candidates, obstacle) >= config.building_margin

    if not keep.any():
        return []

    candidates, gx, gy = candidates[keep], gx[keep], gy[keep]

    spacing_jitter = spatial_hash(gx, gy, seed, CHANNEL_SPACING)
    thresholds = cell * (1.0 - config.distance_variation * spacing_jitter)
    accepted = _greedy_min_distance(candidates, thresholds)

    radius_jitter = spatial_hash(gx, gy, seed, CHANNEL_RADIUS) * 2 - 1
    radii = config.tree_size * (1.0 + config.radius_variation * radius_jitter)
    lod_hash = spatial_hash(gx, gy, seed, CHANNEL_LOD)

    trees = [
        Tree(
            x=float(candidates[i, 0]),
            y=float(candidates[i, 1]),
            radius=float(radii[i]),
            gx=int(gx[i]),
            gy=int(gy[i]),
            hash=float(lod_hash[i]),
        )
        for i in np.flatnonzero(accepted)
    ]
    logger.debug(
        "Scattered trees",
        grid=(cols, rows),
        candidates=len(candidates),
        accepted=len(trees),
    )
    return trees


def _greedy_min_distance(points: np.ndarray, thresholds: np.ndarray) -> np.ndarray:
    """
    Accept points in order, skipping any within its threshold of an accepted one.

    Returns:
        Boolean mask of accepted points
    """
    tree = KDTree(points)
    neighbours = tree.query_radius(points, r=thresholds)
    accepted = np.zeros(len(points), dtype=bool)
    for i, near in enumerate(neighbours):
        if not accepted[near].any():
            accepted[i] = True
    return accepted


def generate_forest_trees(
    forest_polygon, config: VegetationConfig, seed: int = 0
) -> List[Tree]:
    """Trees covering a whole forest polygon."""
    return scatter_trees(forest_polygon, config, config.forest_density, seed)


def generate_block_trees(
    block_polygon,
    building_polygons: Sequence[np.ndarray],
    config: VegetationConfig,
    seed: int = 0,
) -> List[Tree]:
    """Secondary trees in a block, kept off the boundary and all buildings."""
    return scatter_trees(
        block_polygon, config, config.block_tree_density, seed, obstacles=building_polygons
    )


def lod_level_for_zoom(zoom: float, lod_config: Optional[LODConfig] = None) -> int:
    """Map a zoom value to an LOD level 0..4 via fixed thresholds."""
    lod_config = lod_config or LODConfig()
    return sum(1 for threshold in lod_config.zoom_thresholds if zoom >= threshold)


def select_for_lod(trees: Sequence[Tree], level: int) -> List[Tree]:
    """
    Pick the visible subset of trees for an LOD level.

    Level 0 returns nothing (the caller draws the bulk shape instead),
    level 4 returns everything, levels 1-3 keep a fixed fraction chosen
    by each tree's stored grid hash.
    """
    if level <= 0:
        return []
    if level >= MAX_LOD_LEVEL:
        return list(trees)
    fraction = LOD_FRACTIONS[level]
    return [tree for tree in trees if tree.hash < fraction]
