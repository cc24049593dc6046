"""
Field-name conventions per schema version.

The builder never hard-codes field names: it asks the conventions of the
registry's schema version which type name plays which domain role and what
the interesting fields are called. New game-data revisions register a new
FieldConventions instance under their version string.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class DomainType(Enum):
    """Domain roles the builder knows how to project."""
    CHARACTER = "character"
    ACTION = "action"
    HITBOX = "hitbox"
    HURTBOX = "hurtbox"
    PUSHBOX = "pushbox"
    CANCEL = "cancel"
    STEER = "steer"
    BOX = "box"


@dataclass(frozen=True)
class FieldConventions:
    version: str
    type_names: dict = field(default_factory=dict)     # DomainType -> type name

    # CharacterAsset
    character_name: str = "name"
    character_moves: str = "moves"

    # ActionData
    action_id: str = "actionId"
    action_name: str = "name"
    action_frames: str = "frames"
    action_loop_count: str = "loopCount"
    action_keys: str = "keys"
    action_damage: str = "damage"
    action_next: str = "nextMove"
    action_active_frames: str = "activeFrames"

    # Keys shared by every timeline key type
    start_frame: str = "startFrame"
    end_frame: str = "endFrame"
    boxes: str = "boxes"

    # HitboxData / HurtboxData
    collision_type: str = "collisionType"
    proximity_collision_type: int = 3
    immune: str = "immune"

    # CancelData
    cancel_target: str = "targetAction"
    cancel_targets: str = "targets"
    cancel_input: str = "input"
    cancel_condition: str = "conditionFlag"

    # SteerKey
    steer_operation: str = "operation"
    steer_value_type: str = "valueType"
    steer_value: str = "value"

    # BoxData
    box_x: str = "x"
    box_y: str = "y"
    box_width: str = "width"
    box_height: str = "height"
    box_shape: str = "shape"
    box_radius: str = "radius"

    def type_name(self, domain: DomainType) -> Optional[str]:
        return self.type_names.get(domain)

    def domain_of(self, type_name: str) -> Optional[DomainType]:
        for domain, name in self.type_names.items():
            if name == type_name:
                return domain
        return None


_CONVENTIONS: dict[str, FieldConventions] = {}


def register_conventions(conventions: FieldConventions) -> FieldConventions:
    """Register (or replace) the conventions of one schema version."""
    _CONVENTIONS[conventions.version] = conventions
    return conventions


DEFAULT_CONVENTIONS = register_conventions(FieldConventions(
    version="sf6",
    type_names={
        DomainType.CHARACTER: "CharacterAsset",
        DomainType.ACTION: "ActionData",
        DomainType.HITBOX: "HitboxData",
        DomainType.HURTBOX: "HurtboxData",
        DomainType.PUSHBOX: "PushboxData",
        DomainType.CANCEL: "CancelData",
        DomainType.STEER: "SteerKey",
        DomainType.BOX: "BoxData",
    },
))


def get_conventions(version: str) -> FieldConventions:
    """Conventions for ``version``; falls back to the default set."""
    conventions = _CONVENTIONS.get(version)
    if conventions is None:
        logger.debug(f"No field conventions for schema {version!r}, using {DEFAULT_CONVENTIONS.version!r}")
        return DEFAULT_CONVENTIONS
    return conventions


def registered_versions() -> list[str]:
    return sorted(_CONVENTIONS)


def unregister_conventions(version: str) -> Optional[FieldConventions]:
    """Drop the conventions of ``version``; the default set cannot be removed."""
    if version == DEFAULT_CONVENTIONS.version:
        raise ValueError(f"cannot unregister the default conventions {version!r}")
    return _CONVENTIONS.pop(version, None)
