"""
rszsim - RSZ character data decoder and frame simulator.

    from rszsim import SchemaRegistry, load_character, new_simulator

    result = load_character(data, registry)
    sim = new_simulator(result.character, 0)
    sim.advance(5)
    sim.active_windows_at()

Logging goes through the ``rszsim`` logger, silent unless the host
application configures handlers.
"""

import logging

from .errors import (
    RSZError, LoadError, DecodeError, OutOfBounds, InvalidHeader,
    UnsupportedVersion, DanglingReference, InvalidSimulationArgument, UnknownMove,
)
from .formats.rsz import (
    SchemaRegistry, RSZFile, RSZWriter, ObjectGraph, RawInstance, RSZValue,
    ValueKind, FieldKind, type_hash,
)
from .entities import (
    Character, Move, FrameWindow, Hitbox, WindowKind, CancelRule, CancelCondition,
    CharacterBuilder, FieldConventions, get_conventions, register_conventions,
)
from .core import (
    FrameSimulator, load_character, list_moves, new_simulator,
    LoadResult, LoadReport, MoveSummary, CharacterInspector,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Errors
    'RSZError', 'LoadError', 'DecodeError', 'OutOfBounds', 'InvalidHeader',
    'UnsupportedVersion', 'DanglingReference', 'InvalidSimulationArgument', 'UnknownMove',
    # Format
    'SchemaRegistry', 'RSZFile', 'RSZWriter', 'ObjectGraph', 'RawInstance', 'RSZValue',
    'ValueKind', 'FieldKind', 'type_hash',
    # Entities
    'Character', 'Move', 'FrameWindow', 'Hitbox', 'WindowKind', 'CancelRule',
    'CancelCondition', 'CharacterBuilder', 'FieldConventions', 'get_conventions',
    'register_conventions',
    # Simulation / queries
    'FrameSimulator', 'load_character', 'list_moves', 'new_simulator',
    'LoadResult', 'LoadReport', 'MoveSummary', 'CharacterInspector',
]
