"""
Core settlement generation functionality.

Generators live in their own modules (``hierarchy``, ``vegetation``,
``integration``) and are imported from there; this package only exposes
the entity model and the partitioner.
"""

from .entities import Block, Building, City, District, EntityState, Forest, SettlementRecord, Tree
from .partition import partition

__all__ = ['Block', 'Building', 'City', 'District', 'EntityState', 'Forest',
           'SettlementRecord', 'Tree', 'partition']
