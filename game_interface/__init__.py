"""
ZorkScaffold Game Interface Layer

This module provides the Jericho-based game engine interface: blocking calls
for scripts and tests, and async calls with a settle timeout for the
turn orchestrator.
"""

from .core.jericho_interface import EngineState, JerichoInterface

__all__ = ["EngineState", "JerichoInterface"]
