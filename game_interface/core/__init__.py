"""
Core Game Interface Package

Contains the core game interface class:
- JerichoInterface: Direct interface to Jericho/Frotz for Z-machine stories
- EngineState: Run-state snapshot returned by JerichoInterface.get_state()
"""

from .jericho_interface import EngineState, JerichoInterface

__all__ = ["EngineState", "JerichoInterface"]
