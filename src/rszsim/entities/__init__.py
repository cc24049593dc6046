"""
Entity Abstractions - combat data instead of raw instances

The decoder knows instances and fields; users think in characters and
moves. The builder projects one onto the other.

Core Entities:
- Character: every move of one character
- Move: a timeline of FrameWindows plus frame-data summary
- FrameWindow: closed frame interval tagged with a WindowKind
- Hitbox: box or sphere geometry with an opaque attribute bag

Supporting Types:
- CancelRule, CancelCondition: cancel routes and their conditions
- SteerKey, SteerOperation, SteerValueType: root motion keys
- FieldConventions, DomainType: which type/field names mean what
- CharacterBuilder, BuildResult: graph -> Character projection
"""

# Core Entities
from .character_entity import (
    Character, Move, FrameWindow, Hitbox, HitboxShape, WindowKind,
    ActionInfo, CancelRule, CancelCondition, CONTACT_CONDITIONS,
    SteerKey, SteerOperation, SteerValueType, freeze_attributes,
)
from .conventions import (
    DomainType, FieldConventions, DEFAULT_CONVENTIONS,
    get_conventions, register_conventions, registered_versions, unregister_conventions,
)
from .builder import (
    CharacterBuilder, BuildResult, SchemaMismatch, DanglingMoveReference,
)

__all__ = [
    # Core Entities
    "Character",
    "Move",
    "FrameWindow",
    "Hitbox",

    # Window types
    "WindowKind",
    "HitboxShape",
    "ActionInfo",

    # Cancel types
    "CancelRule",
    "CancelCondition",
    "CONTACT_CONDITIONS",

    # Motion types
    "SteerKey",
    "SteerOperation",
    "SteerValueType",

    # Conventions
    "DomainType",
    "FieldConventions",
    "DEFAULT_CONVENTIONS",
    "get_conventions",
    "register_conventions",
    "registered_versions",
    "unregister_conventions",

    # Building
    "CharacterBuilder",
    "BuildResult",
    "SchemaMismatch",
    "DanglingMoveReference",
    "freeze_attributes",
]
