"""
Character Builder - projects a decoded RSZ graph onto domain entities.

Dispatch is by type hash: the graph's type table is matched against the
conventions of its schema version, giving every known hash a DomainType,
and each DomainType has one registered handler.

Problems local to one move never abort the build. Every projection runs
inside a _MoveContext that collects SchemaMismatch records instead of
raising; a move whose context collected anything is skipped and its issues
are returned next to the partial Character.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from ..formats.rsz.rsz_file import ObjectGraph
from ..formats.rsz.values import RawInstance, RSZValue, ValueKind
from .character_entity import (
    CancelCondition, CancelRule, Character, FrameWindow, Hitbox, HitboxShape,
    Move, SteerKey, SteerOperation, SteerValueType, WindowKind, freeze_attributes,
)
from .conventions import DomainType, FieldConventions, get_conventions

logger = logging.getLogger(__name__)


NUMBER_KINDS = (ValueKind.INT, ValueKind.UINT, ValueKind.FLOAT)
INTEGER_KINDS = (ValueKind.INT, ValueKind.UINT)


@dataclass(frozen=True)
class SchemaMismatch:
    """A recognised instance whose layout is not what the conventions expect."""
    instance: int
    type_name: str
    detail: str

    def describe(self) -> str:
        return f"instance {self.instance} ({self.type_name}): {self.detail}"


@dataclass(frozen=True)
class DanglingMoveReference:
    """A move points at a move id the built character does not contain."""
    instance: int
    move_id: int
    target_move_id: int

    def describe(self) -> str:
        return (f"instance {self.instance}: move {self.move_id} refers to missing move "
                f"{self.target_move_id}, reference dropped")


@dataclass
class BuildResult:
    character: Character
    issues: list = field(default_factory=list)
    skipped_moves: list = field(default_factory=list)    # source instance indices


class _MoveContext:
    """Typed field access that records mismatches instead of raising."""

    def __init__(self, builder: 'CharacterBuilder'):
        self.builder = builder
        self.issues: list[SchemaMismatch] = []

    @property
    def ok(self) -> bool:
        return not self.issues

    def mismatch(self, inst: RawInstance, detail: str):
        self.issues.append(SchemaMismatch(inst.index, inst.type_name, detail))

    def value(self, inst: RawInstance, name: str, kinds: tuple, required: bool = False,
              array: bool = False) -> Optional[RSZValue]:
        found = inst.get(name)
        if found is None:
            if required:
                self.mismatch(inst, f"missing field '{name}'")
            return None
        if array:
            if found.kind is not ValueKind.ARRAY or found.element_kind not in kinds:
                self.mismatch(inst, f"field '{name}' should be an array of {_kinds(kinds)}, "
                                    f"got {_describe(found)}")
                return None
        elif found.kind not in kinds:
            self.mismatch(inst, f"field '{name}' should be {_kinds(kinds)}, got {_describe(found)}")
            return None
        return found

    def scalar(self, inst: RawInstance, name: str, kinds: tuple, required: bool = False, default=None):
        found = self.value(inst, name, kinds, required)
        return default if found is None else found.value

    def array(self, inst: RawInstance, name: str, kinds: tuple, required: bool = False) -> tuple:
        found = self.value(inst, name, kinds, required, array=True)
        return () if found is None else found.value

    def referenced(self, inst: RawInstance, name: str, expected: DomainType,
                   required: bool = False) -> list[RawInstance]:
        """Instances behind a reference or reference-array field, checked against ``expected``."""
        found = inst.get(name)
        if found is None:
            if required:
                self.mismatch(inst, f"missing field '{name}'")
            return []
        if found.kind is ValueKind.ARRAY and found.element_kind is ValueKind.REFERENCE:
            refs = [item for item in found.value if not item.is_null]
        elif found.kind is ValueKind.REFERENCE:
            refs = [] if found.is_null else [found]
        else:
            self.mismatch(inst, f"field '{name}' should be a reference, got {_describe(found)}")
            return []
        targets = []
        for ref in refs:
            target = self.builder.graph.deref(ref)
            domain = self.builder.domain_of(target)
            if domain is not expected:
                self.mismatch(inst, f"field '{name}' references {target.type_name} #{target.index}, "
                                    f"expected {expected.value}")
                continue
            targets.append(target)
        return targets


def _kinds(kinds: tuple) -> str:
    return "/".join(kind.value for kind in kinds)


def _describe(value: RSZValue) -> str:
    if value.kind is ValueKind.ARRAY:
        return f"array of {value.element_kind.value}"
    return value.kind.value


# DomainType -> handler(builder, ctx, inst) returning a list of FrameWindows
KEY_HANDLERS: dict[DomainType, Callable] = {}


def key_handler(domain: DomainType):
    """Decorator to register the projection of one timeline key type."""
    def decorator(func):
        KEY_HANDLERS[domain] = func
        return func
    return decorator


class CharacterBuilder:
    """Builds one immutable Character from one ObjectGraph."""

    def __init__(self, graph: ObjectGraph, conventions: Optional[FieldConventions] = None):
        self.graph = graph
        self.conventions = conventions or get_conventions(graph.schema_version)
        self._dispatch: dict[int, DomainType] = {}
        for entry in graph.types:
            if entry.is_placeholder:
                continue
            domain = self.conventions.domain_of(entry.descriptor.name)
            if domain is not None:
                self._dispatch[entry.type_hash] = domain

    @classmethod
    def build_graph(cls, graph: ObjectGraph, conventions: Optional[FieldConventions] = None) -> BuildResult:
        return cls(graph, conventions).build()

    def domain_of(self, inst: RawInstance) -> Optional[DomainType]:
        if inst.placeholder:
            return None
        return self._dispatch.get(inst.type_hash)

    def build(self) -> BuildResult:
        result_issues: list = []
        skipped: list[int] = []
        conv = self.conventions

        name, move_instances, source_index = self._collect_moves(result_issues)

        moves: list[Move] = []
        seen_ids: set[int] = set()
        for inst in move_instances:
            ctx = _MoveContext(self)
            move = self._build_move(ctx, inst)
            if move is not None and move.move_id in seen_ids:
                ctx.mismatch(inst, f"duplicate move id {move.move_id}")
            if not ctx.ok:
                logger.warning(f"Skipping move at instance {inst.index}: {ctx.issues[0].describe()}")
                result_issues.extend(ctx.issues)
                skipped.append(inst.index)
                continue
            seen_ids.add(move.move_id)
            moves.append(move)

        moves = [self._drop_dangling(move, seen_ids, result_issues) for move in moves]

        character = Character(
            name=name,
            moves=tuple(moves),
            schema_version=conv.version,
            source_index=source_index,
        )
        logger.debug(f"Built character {name!r}: {len(moves)} moves, {len(skipped)} skipped")
        return BuildResult(character, result_issues, skipped)

    def _collect_moves(self, issues: list) -> tuple:
        conv = self.conventions
        characters = [inst for inst in self.graph if self.domain_of(inst) is DomainType.CHARACTER]
        if not characters:
            actions = [inst for inst in self.graph if self.domain_of(inst) is DomainType.ACTION]
            return "", actions, -1

        root = characters[0]
        ctx = _MoveContext(self)
        name = ctx.scalar(root, conv.character_name, (ValueKind.STRING,), default="")
        actions = ctx.referenced(root, conv.character_moves, DomainType.ACTION)
        issues.extend(ctx.issues)
        return name, actions, root.index

    def _build_move(self, ctx: _MoveContext, inst: RawInstance) -> Optional[Move]:
        conv = self.conventions
        move_id = ctx.scalar(inst, conv.action_id, INTEGER_KINDS, default=inst.index)
        name = ctx.scalar(inst, conv.action_name, (ValueKind.STRING,)) or f"action_{move_id}"
        frames = ctx.scalar(inst, conv.action_frames, INTEGER_KINDS)
        loop_count = ctx.scalar(inst, conv.action_loop_count, INTEGER_KINDS, default=0)
        damage = ctx.scalar(inst, conv.action_damage, NUMBER_KINDS)

        windows: list[FrameWindow] = []
        for key in self._key_instances(ctx, inst):
            windows.extend(KEY_HANDLERS[self.domain_of(key)](self, ctx, key))

        active = ctx.array(inst, conv.action_active_frames, INTEGER_KINDS)
        hit_attributes = freeze_attributes({conv.action_damage: damage} if damage is not None else None)
        for start, end in _contiguous_runs(item.value for item in active):
            if start < 0:
                ctx.mismatch(inst, f"negative active frame {start}")
                continue
            windows.append(FrameWindow(start, end, WindowKind.HIT_ACTIVE,
                                       attributes=hit_attributes, source_index=inst.index))

        next_move_id = None
        for target in ctx.referenced(inst, conv.action_next, DomainType.ACTION):
            next_move_id = ctx.scalar(target, conv.action_id, INTEGER_KINDS, default=target.index)

        if frames is None:
            frames = max((w.end for w in windows), default=-1) + 1
        elif frames < 0:
            ctx.mismatch(inst, f"negative duration {frames}")

        if not ctx.ok:
            return None

        known = {conv.action_id, conv.action_name, conv.action_frames, conv.action_loop_count,
                 conv.action_keys, conv.action_next, conv.action_active_frames}
        extra = {f.name: f.value.to_python() for f in inst.fields if f.name not in known}

        return Move(
            move_id=move_id,
            name=name,
            duration=frames,
            windows=tuple(windows),
            loop_count=loop_count,
            next_move_id=next_move_id,
            attributes=freeze_attributes(extra),
            source_index=inst.index,
        )

    def _key_instances(self, ctx: _MoveContext, inst: RawInstance) -> list[RawInstance]:
        found = ctx.value(inst, self.conventions.action_keys, (ValueKind.REFERENCE,), array=True)
        if found is None:
            return []
        keys = []
        for ref in found.value:
            if ref.is_null:
                continue
            key = self.graph.deref(ref)
            domain = self.domain_of(key)
            if domain is None:
                logger.debug(f"Move instance {inst.index}: ignoring key {key}")
                continue
            if domain not in KEY_HANDLERS:
                ctx.mismatch(inst, f"keys entry {key.type_name} #{key.index} is not a timeline key")
                continue
            keys.append(key)
        return keys

    def _drop_dangling(self, move: Move, move_ids: set, issues: list) -> Move:
        windows = []
        for window in move.windows:
            if window.cancel is not None and window.cancel.target_move_id not in move_ids:
                issues.append(DanglingMoveReference(window.source_index, move.move_id,
                                                    window.cancel.target_move_id))
                continue
            windows.append(window)
        next_move_id = move.next_move_id
        if next_move_id is not None and next_move_id not in move_ids:
            issues.append(DanglingMoveReference(move.source_index, move.move_id, next_move_id))
            next_move_id = None
        if len(windows) == len(move.windows) and next_move_id == move.next_move_id:
            return move
        return replace(move, windows=tuple(windows), next_move_id=next_move_id)

    # Shared key helpers

    def key_interval(self, ctx: _MoveContext, inst: RawInstance) -> Optional[tuple]:
        conv = self.conventions
        start = ctx.scalar(inst, conv.start_frame, INTEGER_KINDS, required=True)
        end = ctx.scalar(inst, conv.end_frame, INTEGER_KINDS, required=True)
        if start is None or end is None:
            return None
        if start < 0 or start > end:
            ctx.mismatch(inst, f"malformed frame window [{start}, {end}]")
            return None
        return start, end

    def key_attributes(self, inst: RawInstance, *structural: str) -> tuple:
        conv = self.conventions
        skip = {conv.start_frame, conv.end_frame, *structural}
        return freeze_attributes({
            f.name: f.value.to_python() for f in inst.fields if f.name not in skip
        })

    def hitboxes(self, ctx: _MoveContext, inst: RawInstance) -> tuple:
        conv = self.conventions
        boxes = []
        for box in ctx.referenced(inst, conv.boxes, DomainType.BOX):
            x = ctx.scalar(box, conv.box_x, NUMBER_KINDS, required=True)
            y = ctx.scalar(box, conv.box_y, NUMBER_KINDS, required=True)
            width = ctx.scalar(box, conv.box_width, NUMBER_KINDS, required=True)
            height = ctx.scalar(box, conv.box_height, NUMBER_KINDS, required=True)
            shape = ctx.scalar(box, conv.box_shape, INTEGER_KINDS, default=0)
            radius = ctx.scalar(box, conv.box_radius, NUMBER_KINDS, default=0.0)
            if None in (x, y, width, height):
                continue
            if shape not in tuple(HitboxShape):
                ctx.mismatch(box, f"unknown box shape {shape}")
                continue
            attributes = freeze_attributes({
                f.name: f.value.to_python() for f in box.fields
                if f.name not in (conv.box_x, conv.box_y, conv.box_width, conv.box_height,
                                  conv.box_shape, conv.box_radius)
            })
            boxes.append(Hitbox(HitboxShape(shape), float(x), float(y), float(width),
                                float(height), float(radius), attributes, box.index))
        return tuple(boxes)


def _contiguous_runs(frames) -> list[tuple]:
    """[3, 4, 5, 9] -> [(3, 5), (9, 9)]; duplicates collapse."""
    runs: list[list[int]] = []
    for frame in sorted(set(frames)):
        if runs and frame == runs[-1][1] + 1:
            runs[-1][1] = frame
        else:
            runs.append([frame, frame])
    return [tuple(run) for run in runs]


@key_handler(DomainType.HITBOX)
def _hitbox_windows(builder: CharacterBuilder, ctx: _MoveContext, inst: RawInstance) -> list:
    conv = builder.conventions
    interval = builder.key_interval(ctx, inst)
    collision_type = ctx.scalar(inst, conv.collision_type, INTEGER_KINDS, default=0)
    boxes = builder.hitboxes(ctx, inst)
    if interval is None:
        return []
    kind = WindowKind.PROXIMITY if collision_type == conv.proximity_collision_type else WindowKind.HIT_ACTIVE
    return [FrameWindow(*interval, kind, hitboxes=boxes,
                        attributes=builder.key_attributes(inst, conv.boxes),
                        source_index=inst.index)]


@key_handler(DomainType.HURTBOX)
def _hurtbox_windows(builder: CharacterBuilder, ctx: _MoveContext, inst: RawInstance) -> list:
    conv = builder.conventions
    interval = builder.key_interval(ctx, inst)
    immune = ctx.scalar(inst, conv.immune, NUMBER_KINDS + (ValueKind.BOOL,), default=0)
    boxes = builder.hitboxes(ctx, inst)
    if interval is None:
        return []
    attributes = builder.key_attributes(inst, conv.boxes)
    windows = [FrameWindow(*interval, WindowKind.HURT_ACTIVE, hitboxes=boxes,
                           attributes=attributes, source_index=inst.index)]
    if immune:
        windows.append(FrameWindow(*interval, WindowKind.INVULNERABLE,
                                   attributes=attributes, source_index=inst.index))
    return windows


@key_handler(DomainType.PUSHBOX)
def _pushbox_windows(builder: CharacterBuilder, ctx: _MoveContext, inst: RawInstance) -> list:
    interval = builder.key_interval(ctx, inst)
    boxes = builder.hitboxes(ctx, inst)
    if interval is None:
        return []
    return [FrameWindow(*interval, WindowKind.PUSH, hitboxes=boxes,
                        attributes=builder.key_attributes(inst, builder.conventions.boxes),
                        source_index=inst.index)]


@key_handler(DomainType.CANCEL)
def _cancel_windows(builder: CharacterBuilder, ctx: _MoveContext, inst: RawInstance) -> list:
    conv = builder.conventions
    interval = builder.key_interval(ctx, inst)
    single = ctx.scalar(inst, conv.cancel_target, INTEGER_KINDS)
    many = [item.value for item in ctx.array(inst, conv.cancel_targets, INTEGER_KINDS)]
    command = ctx.scalar(inst, conv.cancel_input, (ValueKind.STRING,)) or None
    condition = ctx.scalar(inst, conv.cancel_condition, INTEGER_KINDS, default=0)

    targets = ([single] if single is not None else []) + many
    if not targets and ctx.ok:
        ctx.mismatch(inst, f"no '{conv.cancel_target}' or '{conv.cancel_targets}' field")
    if interval is None or not ctx.ok:
        return []

    attributes = builder.key_attributes(inst, conv.cancel_target, conv.cancel_targets,
                                        conv.cancel_input, conv.cancel_condition)
    return [
        FrameWindow(*interval, WindowKind.CANCEL_AVAILABLE,
                    cancel=CancelRule(target, command, CancelCondition(condition)),
                    attributes=attributes, source_index=inst.index)
        for target in targets
    ]


@key_handler(DomainType.STEER)
def _steer_windows(builder: CharacterBuilder, ctx: _MoveContext, inst: RawInstance) -> list:
    conv = builder.conventions
    interval = builder.key_interval(ctx, inst)
    operation = ctx.scalar(inst, conv.steer_operation, INTEGER_KINDS, required=True)
    value_type = ctx.scalar(inst, conv.steer_value_type, INTEGER_KINDS, required=True)
    value = ctx.scalar(inst, conv.steer_value, NUMBER_KINDS, default=0.0)
    if operation is not None and operation not in tuple(SteerOperation):
        ctx.mismatch(inst, f"unknown steer operation {operation}")
    if value_type is not None and value_type not in tuple(SteerValueType):
        ctx.mismatch(inst, f"unknown steer value type {value_type}")
    if interval is None or not ctx.ok:
        return []
    steer = SteerKey(SteerOperation(operation), SteerValueType(value_type), float(value))
    return [FrameWindow(*interval, WindowKind.MOTION, motion=steer,
                        attributes=builder.key_attributes(inst, conv.steer_operation,
                                                          conv.steer_value_type, conv.steer_value),
                        source_index=inst.index)]
