"""
Query API - the surface a viewer talks to.

    result = load_character(data, registry)
    for summary in list_moves(result.character): ...
    sim = new_simulator(result.character, "5LP")
    sim.advance(); sim.active_windows_at()

Fatal problems raise LoadError subclasses. Recoverable ones (unknown type
hashes, schema mismatches, dangling move references) come back in the
LoadReport next to the best-effort Character.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Union

from ..entities.builder import CharacterBuilder
from ..entities.character_entity import ActionInfo, Character, Move, WindowKind
from ..entities.conventions import FieldConventions
from ..formats.rsz.rsz_file import ObjectGraph, RSZFile
from ..formats.rsz.schema import SchemaRegistry
from .frame_simulator import FrameSimulator

logger = logging.getLogger(__name__)


@dataclass
class LoadReport:
    """Recoverable issues met while decoding and building, in that order."""
    decode_issues: list = field(default_factory=list)
    build_issues: list = field(default_factory=list)
    skipped_moves: list = field(default_factory=list)
    instance_count: int = 0
    placeholder_count: int = 0

    @property
    def issues(self) -> list:
        return self.decode_issues + self.build_issues

    @property
    def has_issues(self) -> bool:
        return bool(self.decode_issues or self.build_issues)

    def issues_of(self, issue_type: type) -> list:
        return [issue for issue in self.issues if isinstance(issue, issue_type)]

    def describe(self) -> list[str]:
        return [issue.describe() for issue in self.issues]

    def __str__(self) -> str:
        lines = [
            f"{self.instance_count} instances, {self.placeholder_count} placeholders, "
            f"{len(self.skipped_moves)} moves skipped, {len(self.issues)} issues"
        ]
        lines.extend(f"  {line}" for line in self.describe())
        return "\n".join(lines)


@dataclass
class LoadResult:
    character: Character
    report: LoadReport
    graph: Optional[ObjectGraph] = None


@dataclass(frozen=True)
class MoveSummary:
    """One row of a move list."""
    move_id: int
    name: str
    duration: int
    info: ActionInfo
    window_counts: tuple        # (WindowKind, count) pairs, declaration order
    cancel_targets: tuple

    def count(self, kind: WindowKind) -> int:
        return dict(self.window_counts).get(kind, 0)

    def __str__(self) -> str:
        info = self.info
        startup = "-" if info.first_active_frame is None else info.first_active_frame
        return (f"#{self.move_id:<4d} {self.name:24s} {self.duration:4d}f  "
                f"startup {startup}  cancels {len(self.cancel_targets)}")


def load_character(data: bytes, registry: SchemaRegistry,
                   conventions: Optional[FieldConventions] = None) -> LoadResult:
    """
    Decode ``data`` and build its Character.

    Raises:
        DecodeError (OutOfBounds, InvalidHeader, UnsupportedVersion,
        DanglingReference) when the graph itself cannot be trusted.
    """
    graph = RSZFile.decode(data, registry)
    built = CharacterBuilder(graph, conventions).build()
    report = LoadReport(
        decode_issues=list(graph.issues),
        build_issues=list(built.issues),
        skipped_moves=list(built.skipped_moves),
        instance_count=len(graph),
        placeholder_count=len(graph.placeholders),
    )
    if report.has_issues:
        logger.warning(f"Loaded {built.character.name!r} with {len(report.issues)} issues")
    return LoadResult(built.character, report, graph)


def summarize_move(move: Move) -> MoveSummary:
    counts = Counter(w.kind for w in move.windows)
    return MoveSummary(
        move_id=move.move_id,
        name=move.name,
        duration=move.duration,
        info=move.info,
        window_counts=tuple((kind, counts[kind]) for kind in WindowKind if counts[kind]),
        cancel_targets=tuple(dict.fromkeys(rule.target_move_id for rule in move.cancel_rules)),
    )


def list_moves(character: Character) -> list[MoveSummary]:
    """Summaries of every move, in file order."""
    return [summarize_move(move) for move in character]


def new_simulator(character: Character, move: Union[int, str, Move], **options) -> FrameSimulator:
    """Simulator positioned at frame 0 of ``move`` (id, name or Move)."""
    return FrameSimulator(character, move, **options)


class CharacterInspector:
    """Holds the current load; load() replaces it wholesale."""

    def __init__(self, registry: SchemaRegistry, conventions: Optional[FieldConventions] = None):
        self.registry = registry
        self.conventions = conventions
        self.result: Optional[LoadResult] = None

    def load(self, data: bytes) -> LoadResult:
        self.result = load_character(data, self.registry, self.conventions)
        return self.result

    @property
    def loaded(self) -> bool:
        return self.result is not None

    def _require(self) -> LoadResult:
        if self.result is None:
            raise RuntimeError("no character loaded, call load() first")
        return self.result

    @property
    def character(self) -> Character:
        return self._require().character

    @property
    def report(self) -> LoadReport:
        return self._require().report

    def moves(self) -> list[MoveSummary]:
        return list_moves(self.character)

    def move(self, key: Union[int, str]) -> Move:
        return self.character.move(key)

    def simulate(self, key: Union[int, str, Move], **options) -> FrameSimulator:
        return new_simulator(self.character, key, **options)

    def frame_table(self, key: Union[int, str, Move]) -> list[tuple]:
        """(first frame, last frame, window kinds) runs covering one move."""
        sim = self.simulate(key)
        return [(start, end, tuple(w.kind for w in windows))
                for start, end, windows in sim.window_spans()]
