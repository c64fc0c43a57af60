"""FastAPI main application."""

import logging
import math

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple
import structlog

from ..config import EntityType, GenerationConfig, settings
from ..core.integration import CellTransform, MapCell, SettlementIntegration

# Configure logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Settlement Generator API",
    description="Procedural city, district, block, building and forest layouts for hex map cells",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CellStore:
    """In-memory hex cells keyed by axial coordinates."""

    def __init__(self, hex_size: float) -> None:
        self.hex_size = hex_size
        self.cells: Dict[Tuple[int, int], MapCell] = {}

    def hex_center(self, q: int, r: int) -> Tuple[float, float]:
        """Pixel centre of a flat-top axial hex."""
        x = self.hex_size * 1.5 * q
        y = self.hex_size * math.sqrt(3) * (r + q / 2)
        return x, y

    def get(self, q: int, r: int) -> Optional[MapCell]:
        return self.cells.get((q, r))

    def get_or_create(self, q: int, r: int) -> MapCell:
        cell = self.cells.get((q, r))
        if cell is None:
            cx, cy = self.hex_center(q, r)
            cell = MapCell(q=q, r=r, transform=CellTransform(center_x=cx, center_y=cy))
            self.cells[(q, r)] = cell
        return cell


store = CellStore(settings.hex_size)
integration = SettlementIntegration(GenerationConfig(seed=settings.default_seed))


# Request/Response models
class EntityCreateRequest(BaseModel):
    """Request to create an entity at a world point."""

    type: EntityType = Field(description="Entity type to create")
    x: float = Field(description="World X coordinate")
    y: float = Field(description="World Y coordinate")
    size: Optional[float] = Field(default=None, gt=0, description="Target size (default per type)")


class VertexMoveRequest(BaseModel):
    """Request to move one vertex of an entity."""

    x: float = Field(description="World X coordinate")
    y: float = Field(description="World Y coordinate")
    regenerate: bool = Field(default=True, description="Rebuild descendants after the move")


class RegenerateRequest(BaseModel):
    """Configuration change triggering regeneration."""

    config: GenerationConfig = Field(description="New generation configuration")


class EntitySummary(BaseModel):
    """Serialised entity."""

    id: str
    type: str
    parent_id: Optional[str]
    x: float
    y: float
    rotation: float
    points: List[Tuple[float, float]]
    children: int
    trees: int


class EntityResponse(BaseModel):
    """Result of an entity operation."""

    entity: Optional[EntitySummary] = None
    removed: List[str] = Field(default_factory=list)


class SettlementResponse(BaseModel):
    """The five flat collections of a cell."""

    q: int
    r: int
    cities: List[EntitySummary]
    districts: List[EntitySummary]
    blocks: List[EntitySummary]
    buildings: List[EntitySummary]
    forests: List[EntitySummary]


class RenderEntity(BaseModel):
    id: str
    kind: str
    parent_id: Optional[str]
    polygon: List[Tuple[float, float]]


class RenderResponse(BaseModel):
    """World-space geometry for a cell at a zoom level."""

    lod_level: int
    opacity: float
    entities: List[RenderEntity]
    trees: Dict[str, List[Tuple[float, float, float]]]
    bulk: List[str]


def summarize(entity) -> EntitySummary:
    return EntitySummary(
        id=entity.id,
        type=entity.kind.value,
        parent_id=entity.parent_id,
        x=entity.x,
        y=entity.y,
        rotation=entity.rotation,
        points=entity.points,
        children=len(entity.children),
        trees=len(getattr(entity, "trees", [])),
    )


def get_cell_or_404(q: int, r: int) -> MapCell:
    cell = store.get(q, r)
    if cell is None or cell.settlement is None:
        raise HTTPException(status_code=404, detail="Cell has no settlement")
    return cell


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Settlement Generator API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "cells": len(store.cells)}


@app.post("/cells/{q}/{r}/entities", response_model=EntityResponse)
async def create_entity(q: int, r: int, request: EntityCreateRequest):
    """Create an entity and generate its descendants."""
    logger.info("Entity creation requested", q=q, r=r, type=request.type.value)
    cell = store.get_or_create(q, r)
    entity = integration.generate((request.x, request.y), request.type, cell, request.size)
    if entity is None:
        raise HTTPException(status_code=400, detail="Entity could not be placed")
    return EntityResponse(entity=summarize(entity))


@app.delete("/cells/{q}/{r}/entities/{entity_id}", response_model=EntityResponse)
async def delete_entity(q: int, r: int, entity_id: str):
    """Delete an entity and its descendants."""
    cell = get_cell_or_404(q, r)
    integration.activate(cell)
    if not integration.editor.select(entity_id):
        raise HTTPException(status_code=404, detail="Entity not found")
    return EntityResponse(removed=integration.delete_selected())


@app.put("/cells/{q}/{r}/entities/{entity_id}/vertices/{index}", response_model=EntityResponse)
async def move_vertex(q: int, r: int, entity_id: str, index: int, request: VertexMoveRequest):
    """Move a vertex and optionally regenerate the entity's descendants."""
    cell = get_cell_or_404(q, r)
    integration.activate(cell)
    local = cell.transform.to_local((request.x, request.y))
    if not integration.editor.move_vertex(entity_id, index, local):
        raise HTTPException(status_code=400, detail="Vertex could not be moved")
    if request.regenerate:
        integration.editor.end_vertex_edit(entity_id)
    return EntityResponse(entity=summarize(cell.settlement.get(entity_id)))


@app.post("/cells/{q}/{r}/regenerate", response_model=SettlementResponse)
async def regenerate(q: int, r: int, request: RegenerateRequest):
    """Apply a new configuration and rebuild all generated cells."""
    cell = get_cell_or_404(q, r)
    integration.regenerate(request.config)
    return await get_settlement(cell.q, cell.r)


@app.get("/cells/{q}/{r}/settlement", response_model=SettlementResponse)
async def get_settlement(q: int, r: int):
    """Read the five flat collections of a cell."""
    cell = get_cell_or_404(q, r)
    collections = integration.collections(cell)
    return SettlementResponse(
        q=q,
        r=r,
        **{name: [summarize(e) for e in entities] for name, entities in collections.items()},
    )


@app.get("/cells/{q}/{r}/render", response_model=RenderResponse)
async def render_cell(q: int, r: int, zoom: float = 10.0):
    """Resolved world-space geometry with LOD-filtered trees."""
    cell = get_cell_or_404(q, r)
    payload = integration.render_payload(cell, zoom)
    return RenderResponse(
        lod_level=payload.lod_level,
        opacity=payload.opacity,
        entities=[
            RenderEntity(
                id=e.id,
                kind=e.kind,
                parent_id=e.parent_id,
                polygon=[tuple(p) for p in e.polygon.tolist()],
            )
            for e in payload.entities
        ],
        trees={owner: [tuple(t) for t in arr.tolist()] for owner, arr in payload.trees.items()},
        bulk=payload.bulk,
    )


@app.delete("/cells/{q}/{r}/settlement")
async def clear_settlement(q: int, r: int):
    """Drop a cell's settlement record."""
    cell = get_cell_or_404(q, r)
    integration.clear(cell)
    return {"cleared": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
