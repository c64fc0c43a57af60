"""
Render-facing helpers for the host map application.

The host draws; this module only tells it what to draw and when:
- explicit post-render hook and tile-decorator registration
- zoom-derived detail level and opacity fades
- world-space geometry for every entity, with trees filtered by LOD
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import structlog

from ..config.generation_settings import DisplayConfig
from .entities import COLLECTION_NAMES, PolygonEntity, SettlementRecord
from .vegetation import select_for_lod

logger = structlog.get_logger()

PostRenderHook = Callable[[Any, float], None]
TileDecorator = Callable[[Any, Any, float], None]


class DetailLevel(str, Enum):
    """Coarse zoom bands of the host map."""

    WORLD = "WORLD"
    REGIONAL = "REGIONAL"
    SETTLEMENT = "SETTLEMENT"


def detail_level(scale: float, display: Optional[DisplayConfig] = None) -> DetailLevel:
    display = display or DisplayConfig()
    if scale < display.regional_start:
        return DetailLevel.WORLD
    if scale < display.settlement_start:
        return DetailLevel.REGIONAL
    return DetailLevel.SETTLEMENT


def icon_opacity(scale: float, display: Optional[DisplayConfig] = None) -> float:
    """Terrain icons fade out as settlements fade in."""
    start, end = (display or DisplayConfig()).icon_fade
    if scale <= start:
        return 1.0
    if scale >= end:
        return 0.0
    return 1.0 - (scale - start) / (end - start)


def settlement_opacity(scale: float, display: Optional[DisplayConfig] = None) -> float:
    start, end = (display or DisplayConfig()).settlement_fade
    if scale <= start:
        return 0.0
    if scale >= end:
        return 1.0
    return (scale - start) / (end - start)


class RenderHooks:
    """
    Callback registry invoked by the host around its own draw pass.

    Post-render hooks receive ``(context, scale)`` after the host has
    drawn the map; tile decorators receive ``(context, cell, scale)`` for
    each tile the host draws.
    """

    def __init__(self) -> None:
        self._post_render: List[PostRenderHook] = []
        self._tile_decorators: List[TileDecorator] = []

    def add_post_render(self, hook: PostRenderHook) -> None:
        if hook not in self._post_render:
            self._post_render.append(hook)

    def remove_post_render(self, hook: PostRenderHook) -> None:
        if hook in self._post_render:
            self._post_render.remove(hook)

    def add_tile_decorator(self, decorator: TileDecorator) -> None:
        if decorator not in self._tile_decorators:
            self._tile_decorators.append(decorator)

    def remove_tile_decorator(self, decorator: TileDecorator) -> None:
        if decorator in self._tile_decorators:
            self._tile_decorators.remove(decorator)

    def run_post_render(self, context: Any, scale: float) -> None:
        for hook in list(self._post_render):
            hook(context, scale)

    def decorate_tile(self, context: Any, cell: Any, scale: float) -> None:
        for decorator in list(self._tile_decorators):
            decorator(context, cell, scale)


@dataclass
class EntityGeometry:
    """Resolved world-space polygon of one entity."""

    id: str
    kind: str
    parent_id: Optional[str]
    polygon: np.ndarray


@dataclass
class RenderPayload:
    """Everything a rendering backend needs for one cell at one zoom."""

    lod_level: int
    opacity: float = 1.0
    entities: List[EntityGeometry] = field(default_factory=list)
    # owner id -> (k, 3) array of world x, y, radius
    trees: Dict[str, np.ndarray] = field(default_factory=dict)
    # owners whose trees are suppressed at this LOD; draw their polygon as a mass
    bulk: List[str] = field(default_factory=list)


def _resolve_trees(
    owner: PolygonEntity, lod_level: int, to_world: Callable, scale: float
) -> np.ndarray:
    visible = select_for_lod(owner.trees, lod_level)
    if not visible:
        return np.zeros((0, 3))
    local = np.array([[t.x, t.y] for t in visible])
    world = to_world(owner.to_world(local))
    radii = np.array([t.radius for t in visible]) * scale
    return np.column_stack([world, radii])


def resolve_render_geometry(
    record: SettlementRecord,
    lod_level: int,
    to_world: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    scale: float = 1.0,
    opacity: float = 1.0,
) -> RenderPayload:
    """
    Resolve world-space geometry for a cell's settlement record.

    Args:
        record: Settlement record to resolve
        lod_level: Tree LOD level (0..4)
        to_world: Cell-to-world transform; identity when omitted
        scale: Factor applied to tree radii alongside ``to_world``
        opacity: Settlement layer opacity passed through to the renderer

    Returns:
        RenderPayload with entity polygons and visible trees
    """
    to_world = to_world or (lambda pts: pts)
    payload = RenderPayload(lod_level=lod_level, opacity=opacity)

    for name in COLLECTION_NAMES.values():
        for entity in getattr(record, name).values():
            payload.entities.append(
                EntityGeometry(
                    id=entity.id,
                    kind=entity.kind.value,
                    parent_id=entity.parent_id,
                    polygon=to_world(entity.world_points()),
                )
            )

    owners = list(record.blocks.values()) + list(record.forests.values())
    for owner in owners:
        if not owner.trees:
            continue
        if lod_level <= 0:
            payload.bulk.append(owner.id)
            continue
        payload.trees[owner.id] = _resolve_trees(owner, lod_level, to_world, scale)

    return payload
