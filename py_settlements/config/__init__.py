"""
Configuration modules for settlement generation.
"""

from .config import Settings, settings
from .generation_settings import (
    BuildingConfig,
    DisplayConfig,
    EditConfig,
    EntityType,
    GenerationConfig,
    LODConfig,
    PartitionLevelConfig,
    PlacementStrategy,
    VegetationConfig,
)

__all__ = [
    'Settings', 'settings', 'BuildingConfig', 'DisplayConfig', 'EditConfig',
    'EntityType', 'GenerationConfig', 'LODConfig', 'PartitionLevelConfig',
    'PlacementStrategy', 'VegetationConfig',
]
