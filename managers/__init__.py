"""
Manager classes package for ZorkScaffold orchestration.

Concrete managers are imported from their modules (managers.world_memory,
managers.exploration_policy, managers.context_manager); the heuristic
extractor they depend on imports managers.memory, so only the base class
is re-exported here.
"""

from .base_manager import BaseManager

__all__ = [
    "BaseManager",
]
