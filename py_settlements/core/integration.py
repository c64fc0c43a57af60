"""
Host-facing entry points for settlement generation.

The host map owns the cells. Each cell provides a world-to-local
transform and an opaque ``settlement`` slot where the record lives
between redraws. This module exposes creation, deletion, regeneration,
read access and render resolution on top of that slot.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import structlog

from ..config.generation_settings import EntityType, GenerationConfig
from .editing import EditController
from .entities import PolygonEntity, SettlementRecord
from .hierarchy import SettlementGenerator
from .render import (
    DetailLevel,
    RenderHooks,
    RenderPayload,
    detail_level,
    resolve_render_geometry,
    settlement_opacity,
)
from .vegetation import lod_level_for_zoom

logger = structlog.get_logger()

Point = Tuple[float, float]


@dataclass
class CellTransform:
    """Maps host world coordinates to cell-local coordinates and back."""

    center_x: float = 0.0
    center_y: float = 0.0
    scale: float = 1.0

    def to_local(self, point: Point) -> Point:
        return (
            (point[0] - self.center_x) / self.scale,
            (point[1] - self.center_y) / self.scale,
        )

    def to_world(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return pts * self.scale + np.array([self.center_x, self.center_y])


@dataclass
class MapCell:
    """A host grid cell with its settlement storage slot."""

    q: int
    r: int
    transform: CellTransform
    settlement: Optional[SettlementRecord] = None


def ensure_record(cell: MapCell) -> SettlementRecord:
    """Return the cell's record, creating it on first write."""
    if cell.settlement is None:
        cell.settlement = SettlementRecord()
    return cell.settlement


class SettlementIntegration:
    """Creation, deletion, regeneration and render entry points for the host."""

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        zoom_provider: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the integration.

        Args:
            config: GenerationConfig shared by all cells
            zoom_provider: Host accessor returning the current zoom/scale
        """
        self.config = config or GenerationConfig()
        self.zoom_provider = zoom_provider
        self.hooks = RenderHooks()
        self.editor = EditController(config=self.config.edit)
        self.active_cell: Optional[MapCell] = None
        self.detail = DetailLevel.WORLD
        self._cells: Dict[Tuple[int, int], MapCell] = {}

    def generator_for(self, cell: MapCell) -> SettlementGenerator:
        return SettlementGenerator(ensure_record(cell), self.config)

    def activate(self, cell: Optional[MapCell]) -> None:
        """Make a cell the target of edits and deletion."""
        self.active_cell = cell
        if cell is None:
            self.editor.bind(None)
            return
        self._cells[(cell.q, cell.r)] = cell
        self.editor.bind(self.generator_for(cell))

    def generate(
        self,
        at_point: Point,
        entity_type: Union[EntityType, str],
        cell: Optional[MapCell] = None,
        size: Optional[float] = None,
    ) -> Optional[PolygonEntity]:
        """
        Create an entity at a world point in a cell.

        Args:
            at_point: Host world coordinates of the click
            entity_type: Kind of entity to create
            cell: Target cell; the active cell when omitted
            size: Target size; the configured default when omitted

        Returns:
            The created entity, or None when there is no cell or the
            entity could not be placed
        """
        cell = cell or self.active_cell
        if cell is None:
            logger.debug("Generate ignored: no active cell")
            return None

        entity_type = EntityType(entity_type)
        self.activate(cell)
        generator = self.editor.generator
        local = cell.transform.to_local(at_point)

        if entity_type == EntityType.CITY:
            entity = generator.create_city(local, size)
        elif entity_type == EntityType.DISTRICT:
            entity = generator.create_district(local, size)
        elif entity_type == EntityType.BLOCK:
            entity = generator.create_block(local, size)
        elif entity_type == EntityType.FOREST:
            entity = generator.create_forest(local, size)
        else:
            entity = generator.create_building(local, size, size)

        if entity is not None:
            self.editor.select(entity.id)
        return entity

    def delete_selected(self) -> List[str]:
        """Delete the selected entity in the active cell (cascading)."""
        if self.active_cell is None:
            return []
        return self.editor.delete_selected()

    def regenerate(self, config: Optional[GenerationConfig] = None) -> None:
        """Apply a configuration change and rebuild every known cell."""
        if config is not None:
            self.config = config
            self.editor.config = config.edit

        for cell in self._cells.values():
            if cell.settlement is None:
                continue
            self.generator_for(cell).regenerate_all()

        self.editor.bind(self.generator_for(self.active_cell) if self.active_cell else None)

    def collections(self, cell: MapCell) -> Dict[str, List[PolygonEntity]]:
        """Five flat collections for rendering (empty when nothing was generated)."""
        if cell.settlement is None:
            return SettlementRecord().collections()
        return cell.settlement.collections()

    def clear(self, cell: MapCell) -> None:
        """Drop a cell's whole settlement record."""
        if cell.settlement is not None:
            cell.settlement.clear()
        cell.settlement = None
        if cell is self.active_cell:
            self.editor.bind(None)

    def current_zoom(self) -> float:
        return self.zoom_provider() if self.zoom_provider is not None else 1.0

    def render_payload(self, cell: MapCell, zoom: Optional[float] = None) -> RenderPayload:
        """World-space geometry for a cell with trees filtered by the zoom's LOD."""
        zoom = self.current_zoom() if zoom is None else zoom
        level = lod_level_for_zoom(zoom, self.config.lod)
        if cell.settlement is None:
            return RenderPayload(lod_level=level)
        return resolve_render_geometry(
            cell.settlement,
            level,
            to_world=cell.transform.to_world,
            scale=cell.transform.scale,
            opacity=settlement_opacity(zoom, self.config.display),
        )

    def post_render(self, context, scale: float) -> None:
        """Called by the host after its own draw pass."""
        level = detail_level(scale, self.config.display)
        if level != self.detail:
            logger.info("Detail level changed", previous=self.detail.value, current=level.value)
            self.detail = level
        self.hooks.run_post_render(context, scale)
