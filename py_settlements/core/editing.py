"""
Interactive editing of settlement entities.

Vertex edits mutate an entity's local polygon while the user drags; the
subtree below the entity is rebuilt once, when the edit ends. Dragging a
whole entity interpolates its position frame by frame with the cheap
translate, never with regeneration.
"""

import math

from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from ..config.generation_settings import EditConfig
from .entities import Building, PolygonEntity
from .hierarchy import SettlementGenerator

logger = structlog.get_logger()

MIN_VERTICES = 3


@dataclass
class DragState:
    """An in-progress drag of one entity towards a target centre."""

    entity_id: str
    target_x: float
    target_y: float
    dragging: bool = True


class EditController:
    """Selection, vertex edits and drag interpolation for one cell."""

    def __init__(
        self,
        generator: Optional[SettlementGenerator] = None,
        config: Optional[EditConfig] = None,
    ) -> None:
        self.generator = generator
        self.config = config or EditConfig()
        self.selected_id: Optional[str] = None
        self.drag: Optional[DragState] = None

    def bind(self, generator: Optional[SettlementGenerator]) -> None:
        """Attach to a (possibly different) cell's generator."""
        if generator is None or self.generator is None or generator.record is not self.generator.record:
            self.selected_id = None
            self.drag = None
        self.generator = generator

    def _entity(self, entity_id: Optional[str]) -> Optional[PolygonEntity]:
        if self.generator is None or entity_id is None:
            return None
        return self.generator.record.get(entity_id)

    def select(self, entity_id: str) -> bool:
        if self._entity(entity_id) is None:
            return False
        self.selected_id = entity_id
        return True

    def select_at(self, point: Tuple[float, float]) -> Optional[PolygonEntity]:
        """Select the innermost entity containing a cell-space point."""
        if self.generator is None:
            return None
        record = self.generator.record
        for collection in (record.buildings, record.blocks, record.districts, record.forests, record.cities):
            for entity in collection.values():
                if entity.contains(point):
                    self.selected_id = entity.id
                    return entity
        return None

    @property
    def selected(self) -> Optional[PolygonEntity]:
        return self._entity(self.selected_id)

    def _editable(self, entity_id: str) -> Optional[PolygonEntity]:
        entity = self._entity(entity_id)
        if entity is None or isinstance(entity, Building):
            # Building footprints are fixed rectangles
            return None
        return entity

    def move_vertex(self, entity_id: str, index: int, point: Tuple[float, float]) -> bool:
        """Move one vertex to a cell-space point (no regeneration)."""
        entity = self._editable(entity_id)
        if entity is None or not 0 <= index < len(entity.points):
            return False
        local = entity.to_local(point)
        entity.points[index] = (float(local[0]), float(local[1]))
        return True

    def insert_vertex(
        self, entity_id: str, edge_index: int, point: Optional[Tuple[float, float]] = None
    ) -> bool:
        """Insert a vertex on edge ``edge_index``; defaults to the edge midpoint."""
        entity = self._editable(entity_id)
        if entity is None or not 0 <= edge_index < len(entity.points):
            return False

        if point is None:
            (x1, y1) = entity.points[edge_index]
            (x2, y2) = entity.points[(edge_index + 1) % len(entity.points)]
            local = ((x1 + x2) / 2, (y1 + y2) / 2)
        else:
            lx, ly = entity.to_local(point)
            local = (float(lx), float(ly))

        entity.points.insert(edge_index + 1, local)
        return True

    def remove_vertex(self, entity_id: str, index: int) -> bool:
        """Remove a vertex, refusing to go below three."""
        entity = self._editable(entity_id)
        if entity is None or not 0 <= index < len(entity.points):
            return False
        if len(entity.points) <= MIN_VERTICES:
            logger.debug("Refused vertex removal", entity_id=entity_id, vertices=len(entity.points))
            return False
        del entity.points[index]
        return True

    def end_vertex_edit(self, entity_id: str) -> bool:
        """Finish a vertex edit: rebuild the entity's descendants only."""
        entity = self._entity(entity_id)
        if entity is None:
            return False
        self.generator.regenerate(entity)
        logger.info("Regenerated after edit", entity_id=entity_id)
        return True

    def begin_drag(self, entity_id: str, target: Tuple[float, float]) -> bool:
        if self._entity(entity_id) is None:
            return False
        self.drag = DragState(entity_id, float(target[0]), float(target[1]))
        return True

    def update_drag_target(self, target: Tuple[float, float]) -> None:
        if self.drag is not None and self.drag.dragging:
            self.drag.target_x, self.drag.target_y = float(target[0]), float(target[1])

    def step_drag(self) -> bool:
        """
        Advance drag interpolation by one animation frame.

        Returns:
            True if the host should schedule another frame
        """
        drag = self.drag
        if drag is None or not drag.dragging:
            return False
        entity = self._entity(drag.entity_id)
        if entity is None:
            self.drag = None
            return False

        dx = drag.target_x - entity.x
        dy = drag.target_y - entity.y
        if math.hypot(dx, dy) <= self.config.drag_epsilon:
            self.generator.translate(entity, dx, dy)
            return False

        smoothing = self.config.drag_smoothing
        self.generator.translate(entity, dx * smoothing, dy * smoothing)
        return True

    def end_drag(self) -> Optional[PolygonEntity]:
        """Stop interpolation and snap the entity onto its final target."""
        drag = self.drag
        self.drag = None
        if drag is None:
            return None
        drag.dragging = False
        entity = self._entity(drag.entity_id)
        if entity is not None:
            self.generator.translate(entity, drag.target_x - entity.x, drag.target_y - entity.y)
        return entity

    def delete_selected(self) -> List[str]:
        """Delete the selected entity and its descendants."""
        entity = self.selected
        if entity is None:
            return []
        removed = self.generator.delete(entity.id)
        self.selected_id = None
        if self.drag is not None and self.drag.entity_id in removed:
            self.drag = None
        return removed
