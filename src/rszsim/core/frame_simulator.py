"""
Frame Simulator - step a Move's timeline frame by frame.

The simulator does not run any game logic. It tracks which frame of which
move is showing, answers "what is active now" from the move's windows, and
switches moves when a buffered input matches an open cancel window:

  1. buffer_input() queues an input token (bounded FIFO, oldest dropped)
  2. each advanced frame first scans the queue oldest-first against the
     cancel windows open at the current frame
  3. the first match switches to the target move at frame 0 and consumes
     that input; otherwise the frame counter moves on
  4. frame == duration is terminal: further steps change nothing

Every move switch is recorded in a SimulationTrace.
"""

import logging
from bisect import bisect_right
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Union

from ..entities.character_entity import (
    CancelCondition, CancelRule, Character, FrameWindow, Move, SteerKey,
    SteerOperation, SteerValueType, WindowKind,
)
from ..errors import InvalidSimulationArgument

logger = logging.getLogger(__name__)


class WindowIndex:
    """
    Interval lookup over one move's windows.

    Window starts and ends cut the timeline into segments. Every frame of a
    segment sees the same windows, so the index stores one tuple per
    segment and finds a frame's segment with bisect. Memory follows the
    number of windows, never the move's duration.
    """

    def __init__(self, move: Move):
        self.move = move
        self._edges: list[int] = sorted({w.start for w in move.windows}
                                        | {w.end + 1 for w in move.windows})
        self._segments: list[tuple] = [
            tuple(w for w in move.windows if w.contains(edge)) for edge in self._edges
        ]

    def at(self, frame: int, kind: Optional[WindowKind] = None) -> tuple:
        """Windows containing ``frame``, in declaration order."""
        slot = bisect_right(self._edges, frame) - 1
        found = self._segments[slot] if slot >= 0 else ()
        if kind is not None:
            return tuple(w for w in found if w.kind is kind)
        return found

    def spans(self, first: int, last: int) -> list[tuple]:
        """(start, end, windows) runs covering [first, last]."""
        if last < first:
            return []
        cuts = [first] + [edge for edge in self._edges if first < edge <= last] + [last + 1]
        return [(start, nxt - 1, self.at(start)) for start, nxt in zip(cuts, cuts[1:])]


@dataclass(frozen=True)
class BufferedInput:
    token: Union[str, int]
    tick: int       # simulation tick at which it was buffered


@dataclass
class SimulationCursor:
    """Mutable playback state; owned by exactly one simulator."""
    move: Move
    frame: int = 0
    tick: int = 0
    contact: CancelCondition = CancelCondition.WHIFF
    buffer: deque = field(default_factory=deque)

    def clone(self) -> 'SimulationCursor':
        return SimulationCursor(self.move, self.frame, self.tick, self.contact,
                                deque(self.buffer, maxlen=self.buffer.maxlen))


@dataclass(frozen=True)
class Transition:
    """One cancel-driven move switch."""
    tick: int
    from_move_id: int
    from_frame: int
    to_move_id: int
    token: Union[str, int]

    def __str__(self) -> str:
        return (f"Tick {self.tick:4d}: move {self.from_move_id} @ frame {self.from_frame} "
                f"-> move {self.to_move_id} (input {self.token!r})")


class SimulationTrace:
    """History of move switches performed by one simulator."""

    def __init__(self, start_move_id: int):
        self.start_move_id = start_move_id
        self.transitions: list[Transition] = []

    def add(self, transition: Transition) -> None:
        self.transitions.append(transition)

    @property
    def moves_visited(self) -> list[int]:
        return [self.start_move_id] + [t.to_move_id for t in self.transitions]

    def __len__(self) -> int:
        return len(self.transitions)

    def format_summary(self) -> str:
        lines = [f"Simulation Trace: start move #{self.start_move_id}"]
        lines.append(f"  Transitions: {len(self.transitions)}")
        for transition in self.transitions:
            lines.append(f"  {transition}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FrameSnapshot:
    """Everything a viewer needs to draw one frame."""
    move_id: int
    move_name: str
    frame: int
    duration: int
    finished: bool
    windows: tuple
    hitboxes: tuple
    hurtboxes: tuple
    cancel_options: tuple
    position: tuple
    buffered: tuple


# Steer operations that overwrite a component when it changes sign
_SIGN_RESET = (SteerOperation.SET_NEGATIVE_X, SteerOperation.SET_NEGATIVE_Y, SteerOperation.SET_NEGATIVE_Z)


def apply_steer(operation: SteerOperation, value: float, previous: float, modify: float) -> float:
    """New value of one velocity/acceleration component under a steer key."""
    if operation is SteerOperation.SET:
        return modify
    if operation is SteerOperation.ADD:
        return value + modify
    if operation is SteerOperation.MULTIPLY:
        return value * modify
    if operation in _SIGN_RESET:
        if (value < 0 < previous) or (previous < 0 < value):
            return modify
        return value
    if operation is SteerOperation.SET_MINIMUM:
        return modify if value > modify else value
    if operation is SteerOperation.SET_MAXIMUM:
        return modify if value < modify else value
    # Sign, inherit, homing and target operations need world state we do not model
    return value


class FrameSimulator:
    """Frame stepper over the moves of one Character."""

    # Settings
    INPUT_BUFFER_CAPACITY = 8   # entries kept in the input queue
    INPUT_BUFFER_FRAMES = 8     # frames an input stays eligible for a cancel

    def __init__(self, character: Character, move: Union[int, str, Move],
                 input_capacity: Optional[int] = None, input_frames: Optional[int] = None):
        self.character = character
        self.input_capacity = self._positive("input_capacity", input_capacity, self.INPUT_BUFFER_CAPACITY)
        self.input_frames = self._positive("input_frames", input_frames, self.INPUT_BUFFER_FRAMES)
        start = character.move(move)
        self.cursor = SimulationCursor(start, buffer=deque(maxlen=self.input_capacity))
        self.trace = SimulationTrace(start.move_id)
        self._indexes: dict[int, WindowIndex] = {}

    @staticmethod
    def _positive(name: str, value: Optional[int], default: int) -> int:
        if value is None:
            return default
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise InvalidSimulationArgument(name, value, "must be a positive integer")
        return value

    # State

    @property
    def move(self) -> Move:
        return self.cursor.move

    @property
    def frame(self) -> int:
        return self.cursor.frame

    @property
    def duration(self) -> int:
        return self.cursor.move.duration

    @property
    def is_finished(self) -> bool:
        return self.cursor.frame >= self.cursor.move.duration

    @property
    def contact(self) -> CancelCondition:
        return self.cursor.contact

    @property
    def buffered(self) -> tuple:
        return tuple(entry.token for entry in self.cursor.buffer)

    def _index(self, move: Move) -> WindowIndex:
        index = self._indexes.get(move.move_id)
        if index is None or index.move is not move:
            index = WindowIndex(move)
            self._indexes[move.move_id] = index
        return index

    # Transitions

    def advance(self, n: int = 1) -> int:
        """Step ``n`` frames; returns the new frame. Stops changing at the terminal frame."""
        if not isinstance(n, int) or isinstance(n, bool):
            raise InvalidSimulationArgument("advance", n, "frame count must be an integer")
        if n < 0:
            raise InvalidSimulationArgument("advance", n, "cannot advance backwards, use seek()")
        for _ in range(n):
            if self.is_finished:
                break
            self._step()
        return self.cursor.frame

    def _step(self):
        cursor = self.cursor
        self._expire_inputs()
        match = self._match_cancel()
        if match is None:
            cursor.frame += 1
        else:
            entry, rule = match
            cursor.buffer.remove(entry)
            self._switch(rule.target_move_id, entry.token)
        cursor.tick += 1

    def _expire_inputs(self):
        buffer = self.cursor.buffer
        while buffer and self.cursor.tick - buffer[0].tick >= self.input_frames:
            dropped = buffer.popleft()
            logger.debug(f"Input {dropped.token!r} expired at tick {self.cursor.tick}")

    def _match_cancel(self) -> Optional[tuple]:
        """(buffered entry, rule) of the earliest buffered input that opens a cancel."""
        cursor = self.cursor
        if not cursor.buffer:
            return None
        rules = [w.cancel for w in self._index(cursor.move).at(cursor.frame, WindowKind.CANCEL_AVAILABLE)
                 if w.cancel is not None]
        if not rules:
            return None
        for entry in cursor.buffer:
            for rule in rules:
                if self._matches(entry.token, rule) and rule.allows(cursor.contact):
                    return entry, rule
        return None

    def _matches(self, token, rule: CancelRule) -> bool:
        if rule.input is not None and token == rule.input:
            return True
        if token == rule.target_move_id:
            return True
        target = self.character.get(rule.target_move_id)
        return target is not None and token == target.name

    def _switch(self, move_id: int, token):
        cursor = self.cursor
        target = self.character.get(move_id)
        if target is None:
            logger.warning(f"Cancel target {move_id} not in character {self.character.name!r}")
            cursor.frame += 1
            return
        self.trace.add(Transition(cursor.tick, cursor.move.move_id, cursor.frame, move_id, token))
        logger.debug(f"Cancel: move {cursor.move.move_id} @ {cursor.frame} -> {move_id} ({token!r})")
        cursor.move = target
        cursor.frame = 0
        cursor.contact = CancelCondition.WHIFF

    def seek(self, frame: int) -> int:
        """Jump to ``frame`` of the current move, clamped to the duration."""
        if not isinstance(frame, int) or isinstance(frame, bool):
            raise InvalidSimulationArgument("seek", frame, "frame must be an integer")
        if frame < 0:
            raise InvalidSimulationArgument("seek", frame, "frame must not be negative")
        self.cursor.frame = min(frame, self.duration)
        return self.cursor.frame

    def reset(self, move: Union[int, str, Move, None] = None):
        """Back to frame 0 of ``move`` (default: the current move) with an empty buffer."""
        target = self.character.move(move) if move is not None else self.cursor.move
        self.cursor = SimulationCursor(target, buffer=deque(maxlen=self.input_capacity))
        self.trace = SimulationTrace(target.move_id)

    def buffer_input(self, token: Union[str, int]):
        """Queue an input; the oldest entry is dropped once the queue is full."""
        buffer = self.cursor.buffer
        if len(buffer) == buffer.maxlen:
            logger.debug(f"Input buffer full, dropping {buffer[0].token!r}")
        buffer.append(BufferedInput(token, self.cursor.tick))

    def clear_inputs(self):
        self.cursor.buffer.clear()

    def set_contact(self, condition: CancelCondition):
        """Declare whether the current move hit, was guarded or whiffed."""
        self.cursor.contact = CancelCondition(condition)

    # Queries

    def active_windows_at(self, frame: Optional[int] = None, kind: Optional[WindowKind] = None) -> tuple:
        """Windows of the current move whose [start, end] contains ``frame``."""
        frame = self.cursor.frame if frame is None else frame
        return self._index(self.cursor.move).at(frame, kind)

    def window_spans(self) -> list[tuple]:
        """Runs of frames in [0, duration] that share the same active windows."""
        return self._index(self.cursor.move).spans(0, self.duration)

    def hitboxes_at(self, frame: Optional[int] = None) -> tuple:
        windows = self.active_windows_at(frame)
        return tuple(box for w in windows if w.kind in (WindowKind.HIT_ACTIVE, WindowKind.PROXIMITY)
                     for box in w.hitboxes)

    def hurtboxes_at(self, frame: Optional[int] = None) -> tuple:
        return tuple(box for w in self.active_windows_at(frame, WindowKind.HURT_ACTIVE)
                     for box in w.hitboxes)

    def is_invulnerable(self, frame: Optional[int] = None) -> bool:
        return bool(self.active_windows_at(frame, WindowKind.INVULNERABLE))

    def cancel_options(self, frame: Optional[int] = None) -> tuple:
        """Cancel rules open at ``frame`` that the current contact state allows."""
        return tuple(w.cancel for w in self.active_windows_at(frame, WindowKind.CANCEL_AVAILABLE)
                     if w.cancel is not None and w.cancel.allows(self.cursor.contact))

    def position_at(self, frame: Optional[int] = None) -> tuple:
        """
        Root position (x, y, z) of the current move at the start of ``frame``.

        Each frame integrates acceleration into velocity and velocity into
        position, then applies the steer keys open on that frame. Position
        never goes below the ground (y = 0).
        """
        frame = self.cursor.frame if frame is None else frame
        if frame < 0:
            raise InvalidSimulationArgument("position_at", frame, "frame must not be negative")
        index = self._index(self.cursor.move)
        position = [0.0, 0.0, 0.0]
        velocity = [0.0, 0.0, 0.0]
        acceleration = [0.0, 0.0, 0.0]
        prev_velocity = [0.0, 0.0, 0.0]
        prev_acceleration = [0.0, 0.0, 0.0]

        for current in range(min(frame, self.duration)):
            for axis in range(3):
                velocity[axis] += acceleration[axis]
                position[axis] += velocity[axis]
            for window in index.at(current, WindowKind.MOTION):
                self._apply_steer(window.motion, velocity, acceleration, prev_velocity, prev_acceleration)
            prev_velocity = list(velocity)
            prev_acceleration = list(acceleration)
            if position[1] < 0:
                position[1] = velocity[1] = acceleration[1] = 0.0
        return tuple(position)

    @staticmethod
    def _apply_steer(key: Optional[SteerKey], velocity: list, acceleration: list,
                     prev_velocity: list, prev_acceleration: list):
        if key is None:
            return
        if key.value_type <= SteerValueType.VELOCITY_Z:
            axis = int(key.value_type)
            velocity[axis] = apply_steer(key.operation, velocity[axis], prev_velocity[axis], key.value)
        else:
            axis = int(key.value_type) - int(SteerValueType.ACCELERATION_X)
            acceleration[axis] = apply_steer(key.operation, acceleration[axis],
                                             prev_acceleration[axis], key.value)
        if key.operation in _SIGN_RESET:
            axis = _SIGN_RESET.index(key.operation)
            if velocity[axis] == 0:
                acceleration[axis] = 0.0

    def snapshot(self) -> FrameSnapshot:
        move = self.cursor.move
        return FrameSnapshot(
            move_id=move.move_id,
            move_name=move.name,
            frame=self.cursor.frame,
            duration=move.duration,
            finished=self.is_finished,
            windows=self.active_windows_at(),
            hitboxes=self.hitboxes_at(),
            hurtboxes=self.hurtboxes_at(),
            cancel_options=self.cancel_options(),
            position=self.position_at(),
            buffered=self.buffered,
        )

    def clone(self) -> 'FrameSimulator':
        """Independent simulator at the same state; the Character is shared (immutable)."""
        copy = FrameSimulator.__new__(FrameSimulator)
        copy.character = self.character
        copy.input_capacity = self.input_capacity
        copy.input_frames = self.input_frames
        copy.cursor = self.cursor.clone()
        copy.trace = SimulationTrace(self.trace.start_move_id)
        copy.trace.transitions = list(self.trace.transitions)
        copy._indexes = dict(self._indexes)
        return copy

    def __repr__(self) -> str:
        return (f"FrameSimulator(move={self.cursor.move.move_id}, "
                f"frame={self.cursor.frame}/{self.duration})")
