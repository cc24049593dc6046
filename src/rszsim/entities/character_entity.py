"""
Character Entity - combat data at the move level.

A Character aggregates Moves; a Move is a timeline of FrameWindows. All of
these are frozen: a character is built once per load and replaced
wholesale on reload. Entities point back at the graph only through
``source_index`` (the RawInstance they were projected from).
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Any, Iterator, Optional, Union

from ..errors import UnknownMove


class WindowKind(Enum):
    """Gameplay condition holding during a FrameWindow."""
    HIT_ACTIVE = "hit"
    HURT_ACTIVE = "hurt"
    CANCEL_AVAILABLE = "cancel"
    INVULNERABLE = "invulnerable"
    PUSH = "push"
    PROXIMITY = "proximity"
    MOTION = "motion"


class HitboxShape(IntEnum):
    BOX = 0
    SPHERE = 1


class CancelCondition(IntFlag):
    """Cancel condition word carried by trigger keys."""
    NONE = 0
    HIT = 1
    GUARD = 1 << 1
    WHIFF = 1 << 2
    ARMOR = 1 << 3
    JUMP = 1 << 4
    SUPER_JUMP = 1 << 5
    DEFER = 1 << 6
    FLY = 1 << 7
    WALL_BOUNCE = 1 << 8
    COUNTER = 1 << 10
    STRIKE = 1 << 11
    PARRY = 1 << 12
    JUST = 1 << 13
    NORMAL = 1 << 14
    EASY = 1 << 15
    EXTRA = 1 << 16
    INHIBIT = 1 << 17
    V_JUMP = 1 << 18
    F_JUMP = 1 << 19
    B_JUMP = 1 << 20
    THROW = 1 << 21
    TERMINATOR = 1 << 22


# Bits describing what the move has touched; the rest are route/option bits.
CONTACT_CONDITIONS = (
    CancelCondition.HIT | CancelCondition.GUARD | CancelCondition.WHIFF
    | CancelCondition.ARMOR | CancelCondition.COUNTER | CancelCondition.PARRY
    | CancelCondition.JUST
)


class SteerOperation(IntEnum):
    NOP = 0
    SET = 1
    ADD = 2
    MULTIPLY = 3
    SET_SIGN = 4
    ADD_SIGN = 5
    SET_NEGATIVE_X = 6
    SET_NEGATIVE_Y = 7
    SET_NEGATIVE_Z = 8
    SET_MINIMUM = 9
    SET_MAXIMUM = 10
    SET_IGNORE = 11
    SET_INHERIT = 12
    SET_TARGET = 13
    SET_HOMING_VALUE = 14
    SET_HOMING_TIME = 15
    SET_INHERIT_XYZ = 16


class SteerValueType(IntEnum):
    VELOCITY_X = 0
    VELOCITY_Y = 1
    VELOCITY_Z = 2
    ACCELERATION_X = 3
    ACCELERATION_Y = 4
    ACCELERATION_Z = 5


def freeze_attributes(values: Optional[dict]) -> tuple:
    """Attribute dict -> sorted, hashable tuple of pairs."""
    if not values:
        return ()

    def _freeze(value):
        if isinstance(value, list):
            return tuple(_freeze(item) for item in value)
        return value

    return tuple(sorted((key, _freeze(value)) for key, value in values.items()))


class _AttributeBag:
    """Read access to the frozen ``attributes`` pairs."""

    attributes: tuple

    def attribute(self, name: str, default: Any = None) -> Any:
        for key, value in self.attributes:
            if key == name:
                return value
        return default

    @property
    def attrs(self) -> dict:
        return dict(self.attributes)


@dataclass(frozen=True)
class Hitbox(_AttributeBag):
    """
    Collision primitive. ``x``/``y`` is the box centre (or sphere centre);
    ``width``/``height`` are half extents, matching the game's box data.
    Everything beyond geometry (damage, stun, guard bits) is an opaque bag.
    """
    shape: HitboxShape = HitboxShape.BOX
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    radius: float = 0.0
    attributes: tuple = ()
    source_index: int = -1

    @property
    def bounds(self) -> tuple:
        """(left, bottom, right, top)."""
        if self.shape is HitboxShape.SPHERE:
            return (self.x - self.radius, self.y - self.radius,
                    self.x + self.radius, self.y + self.radius)
        return (self.x - self.width, self.y - self.height,
                self.x + self.width, self.y + self.height)

    def contains(self, px: float, py: float) -> bool:
        if self.shape is HitboxShape.SPHERE:
            return (px - self.x) ** 2 + (py - self.y) ** 2 <= self.radius ** 2
        left, bottom, right, top = self.bounds
        return left <= px <= right and bottom <= py <= top

    def offset(self, dx: float, dy: float) -> 'Hitbox':
        return Hitbox(self.shape, self.x + dx, self.y + dy, self.width, self.height,
                      self.radius, self.attributes, self.source_index)

    def overlaps(self, other: 'Hitbox') -> bool:
        if self.shape is HitboxShape.SPHERE and other.shape is HitboxShape.SPHERE:
            reach = self.radius + other.radius
            return (self.x - other.x) ** 2 + (self.y - other.y) ** 2 <= reach ** 2
        if self.shape is HitboxShape.SPHERE or other.shape is HitboxShape.SPHERE:
            sphere, box = (self, other) if self.shape is HitboxShape.SPHERE else (other, self)
            left, bottom, right, top = box.bounds
            nearest_x = min(max(sphere.x, left), right)
            nearest_y = min(max(sphere.y, bottom), top)
            return (sphere.x - nearest_x) ** 2 + (sphere.y - nearest_y) ** 2 <= sphere.radius ** 2
        a_left, a_bottom, a_right, a_top = self.bounds
        b_left, b_bottom, b_right, b_top = other.bounds
        return a_left <= b_right and b_left <= a_right and a_bottom <= b_top and b_bottom <= a_top


@dataclass(frozen=True)
class CancelRule:
    """Early transition to ``target_move_id`` while a cancel window is open."""
    target_move_id: int
    input: Optional[str] = None
    conditions: CancelCondition = CancelCondition.NONE

    def allows(self, contact: CancelCondition) -> bool:
        """True when the rule's contact bits (if any) intersect ``contact``."""
        required = self.conditions & CONTACT_CONDITIONS
        return not required or bool(required & contact)


@dataclass(frozen=True)
class SteerKey:
    """Velocity/acceleration modifier applied every frame of its window."""
    operation: SteerOperation = SteerOperation.NOP
    value_type: SteerValueType = SteerValueType.VELOCITY_X
    value: float = 0.0


@dataclass(frozen=True)
class FrameWindow(_AttributeBag):
    """Closed frame interval [start, end] during which ``kind`` holds."""
    start: int
    end: int
    kind: WindowKind
    hitboxes: tuple = ()
    cancel: Optional[CancelRule] = None
    motion: Optional[SteerKey] = None
    attributes: tuple = ()
    source_index: int = -1

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"window [{self.start}, {self.end}] has negative duration")

    def contains(self, frame: int) -> bool:
        return self.start <= frame <= self.end

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"{self.kind.value}[{self.start}-{self.end}]"


@dataclass(frozen=True)
class ActionInfo:
    """Frame-data summary; frames are 0-based, None when not applicable."""
    first_active_frame: Optional[int]
    recovery_frame: Optional[int]
    first_actionable_frame: int
    loop_count: int

    @property
    def active_frames(self) -> int:
        if self.first_active_frame is None or self.recovery_frame is None:
            return 0
        return self.recovery_frame - self.first_active_frame


@dataclass(frozen=True)
class Move(_AttributeBag):
    move_id: int
    name: str
    duration: int
    windows: tuple = ()
    loop_count: int = 0
    next_move_id: Optional[int] = None
    attributes: tuple = ()
    source_index: int = -1

    @property
    def cancel_rules(self) -> tuple:
        return tuple(w.cancel for w in self.windows if w.cancel is not None)

    def windows_of(self, kind: WindowKind) -> tuple:
        return tuple(w for w in self.windows if w.kind is kind)

    @property
    def info(self) -> ActionInfo:
        hits = self.windows_of(WindowKind.HIT_ACTIVE)
        first_active = min((w.start for w in hits), default=None)
        recovery = max((w.end for w in hits), default=None)
        return ActionInfo(
            first_active_frame=first_active,
            recovery_frame=None if recovery is None else recovery + 1,
            first_actionable_frame=self.duration,
            loop_count=self.loop_count,
        )

    def __str__(self) -> str:
        return f"Move #{self.move_id} {self.name} ({self.duration}f, {len(self.windows)} windows)"


@dataclass(frozen=True)
class Character:
    """Every move of one loaded character, in file order."""
    name: str
    moves: tuple = ()
    schema_version: str = ""
    source_index: int = -1
    _by_id: dict = field(default_factory=dict, init=False, compare=False, repr=False, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "_by_id", {move.move_id: move for move in self.moves})

    def __iter__(self) -> Iterator[Move]:
        return iter(self.moves)

    def __len__(self) -> int:
        return len(self.moves)

    def __contains__(self, move_id: int) -> bool:
        return move_id in self._by_id

    def get(self, move_id: int) -> Optional[Move]:
        return self._by_id.get(move_id)

    def find(self, name: str) -> Optional[Move]:
        for move in self.moves:
            if move.name == name:
                return move
        return None

    def move(self, key: Union[int, str, Move]) -> Move:
        """Move by id, name or Move; raises UnknownMove."""
        if isinstance(key, Move):
            if self._by_id.get(key.move_id) != key:
                raise UnknownMove(key.move_id)
            return key
        found = self.get(key) if isinstance(key, int) else self.find(key)
        if found is None:
            raise UnknownMove(key)
        return found
