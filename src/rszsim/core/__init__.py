"""
Core - simulation and the query surface.

Modules:
- frame_simulator: per-move frame stepping, cancel resolution, root motion
- query_api: load_character / list_moves / new_simulator and the inspector
"""

from .frame_simulator import (
    FrameSimulator, SimulationCursor, SimulationTrace, Transition,
    FrameSnapshot, BufferedInput, WindowIndex, apply_steer,
)
from .query_api import (
    load_character, list_moves, new_simulator, summarize_move,
    LoadResult, LoadReport, MoveSummary, CharacterInspector,
)

__all__ = [
    # Simulator
    'FrameSimulator', 'SimulationCursor', 'SimulationTrace', 'Transition',
    'FrameSnapshot', 'BufferedInput', 'WindowIndex', 'apply_steer',
    # Query API
    'load_character', 'list_moves', 'new_simulator', 'summarize_move',
    'LoadResult', 'LoadReport', 'MoveSummary', 'CharacterInspector',
]
