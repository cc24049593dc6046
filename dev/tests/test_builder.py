"""CharacterBuilder tests: projection of decoded graphs onto Character/Move."""

import pytest

import fixtures
from rszsim.entities import (
    CancelCondition, CharacterBuilder, DanglingMoveReference, DomainType, FieldConventions,
    HitboxShape, SchemaMismatch, SteerOperation, SteerValueType, WindowKind,
    get_conventions, register_conventions, registered_versions, unregister_conventions,
)
from rszsim.errors import UnknownMove
from rszsim.formats.rsz import RSZFile, RSZWriter, SchemaRegistry


def _build(data: bytes, registry: SchemaRegistry, conventions=None):
    graph = RSZFile.decode(data, registry)
    return CharacterBuilder(graph, conventions).build()


def _sample():
    return _build(fixtures.sample_character_bytes(), fixtures.character_registry())


def test_sample_character_moves():
    result = _sample()
    character = result.character
    assert result.issues == []
    assert character.name == "Ryu"
    assert character.schema_version == "sf6"
    assert character.source_index == 15
    assert [m.name for m in character] == ["5LP", "2MK", "Hadoken"]
    assert [m.move_id for m in character] == [0, 1, 2]
    assert [m.duration for m in character] == [20, 25, 45]


def test_hitbox_window_and_geometry():
    jab = _sample().character.move("5LP")
    hits = jab.windows_of(WindowKind.HIT_ACTIVE)
    assert len(hits) == 1
    window = hits[0]
    assert (window.start, window.end) == (4, 6)
    assert window.source_index == 3
    assert window.attribute("hitDamage") == 300
    (box,) = window.hitboxes
    assert box.shape is HitboxShape.BOX
    assert (box.x, box.y, box.width, box.height) == (40.0, 80.0, 20.0, 10.0)
    assert box.source_index == 0
    assert box.contains(55.0, 85.0)
    assert not box.contains(70.0, 85.0)


def test_hurt_push_and_cancel_windows():
    jab = _sample().character.move(0)
    assert [(w.start, w.end) for w in jab.windows_of(WindowKind.HURT_ACTIVE)] == [(0, 19)]
    assert [(w.start, w.end) for w in jab.windows_of(WindowKind.PUSH)] == [(0, 19)]
    rules = jab.cancel_rules
    assert [(r.target_move_id, r.input) for r in rules] == [(1, "2MK"), (2, "SUPER")]
    assert rules[0].conditions == CancelCondition.NONE
    assert rules[1].conditions == CancelCondition.HIT


def test_steer_key_and_next_move():
    mk = _sample().character.move("2MK")
    (motion,) = mk.windows_of(WindowKind.MOTION)
    assert (motion.start, motion.end) == (0, 24)
    assert motion.motion.operation is SteerOperation.SET
    assert motion.motion.value_type is SteerValueType.VELOCITY_X
    assert motion.motion.value == 2.0
    assert mk.next_move_id == 0


def test_active_frames_and_immunity():
    fireball = _sample().character.move(2)
    hits = fireball.windows_of(WindowKind.HIT_ACTIVE)
    assert [(w.start, w.end) for w in hits] == [(12, 13), (20, 20)]
    assert all(w.attribute("damage") == 60 for w in hits)
    assert [(w.start, w.end) for w in fireball.windows_of(WindowKind.INVULNERABLE)] == [(0, 5)]
    assert fireball.attribute("damage") == 60


def test_action_info():
    info = _sample().character.move("5LP").info
    assert info.first_active_frame == 4
    assert info.recovery_frame == 7
    assert info.active_frames == 3
    assert info.first_actionable_frame == 20


def test_end_to_end_scenario_move():
    result = _build(fixtures.scenario_bytes(), fixtures.scenario_registry())
    assert result.issues == []
    (move,) = result.character.moves
    assert move.move_id == 0
    (window,) = move.windows
    assert window.kind is WindowKind.HIT_ACTIVE
    assert (window.start, window.end) == (3, 5)
    assert window.attribute("damage") == 120
    assert move.next_move_id is None
    assert move.duration == 6


def test_without_character_asset_all_actions_in_file_order():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    writer.add("ActionData", actionId=10, name="b", frames=5)
    writer.add("ActionData", actionId=4, name="a", frames=5)
    character = _build(writer.to_bytes(), registry).character
    assert character.name == ""
    assert character.source_index == -1
    assert [m.move_id for m in character] == [10, 4]


def test_schema_mismatch_skips_only_that_move():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    bad_key = writer.add("HitboxData", startFrame=9, endFrame=3)                   # 0
    good = writer.add("ActionData", actionId=0, name="good", frames=10)              # 1
    bad = writer.add("ActionData", actionId=1, name="bad", frames=10, keys=[bad_key])  # 2
    also_good = writer.add("ActionData", actionId=2, name="fine", frames=10)        # 3
    writer.add("CharacterAsset", name="x", moves=[good, bad, also_good])

    result = _build(writer.to_bytes(), registry)
    assert [m.name for m in result.character] == ["good", "fine"]
    assert result.skipped_moves == [2]
    (issue,) = result.issues
    assert isinstance(issue, SchemaMismatch)
    assert issue.instance == 0
    assert issue.type_name == "HitboxData"
    assert "[9, 3]" in issue.describe()


def test_schema_mismatch_on_wrong_field_kind():
    registry = fixtures.character_registry()
    registry.register_type("ActionData", [("actionId", "S32"), ("frames", "String")])
    writer = RSZWriter(registry)
    writer.add("ActionData", actionId=0, frames="twenty")
    writer.add("ActionData", actionId=1)
    result = _build(writer.to_bytes(), registry)
    assert result.character.moves == ()
    assert len(result.issues) == 2
    assert all(isinstance(issue, SchemaMismatch) for issue in result.issues)
    assert "frames" in result.issues[0].detail


def test_schema_mismatch_on_missing_required_field():
    registry = fixtures.character_registry()
    registry.register_type("CancelData", [("startFrame", "S32"), ("targetAction", "S32")])
    writer = RSZWriter(registry)
    cancel = writer.add("CancelData", startFrame=1, targetAction=0)
    writer.add("ActionData", actionId=0, name="solo", frames=5, keys=[cancel])
    result = _build(writer.to_bytes(), registry)
    assert len(result.character) == 0
    (issue,) = result.issues
    assert issue.instance == cancel
    assert "endFrame" in issue.detail


def test_duplicate_move_id_is_skipped():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    writer.add("ActionData", actionId=3, name="first", frames=5)
    writer.add("ActionData", actionId=3, name="second", frames=5)
    result = _build(writer.to_bytes(), registry)
    assert [m.name for m in result.character] == ["first"]
    assert "duplicate" in result.issues[0].detail


def test_dangling_cancel_target_drops_window_keeps_move():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    ok = writer.add("CancelData", startFrame=0, endFrame=4, targetAction=0)
    missing = writer.add("CancelData", startFrame=0, endFrame=4, targetAction=42)
    writer.add("ActionData", actionId=0, name="loop", frames=5, keys=[ok, missing])
    result = _build(writer.to_bytes(), registry)

    (move,) = result.character.moves
    assert [r.target_move_id for r in move.cancel_rules] == [0]
    assert result.issues == [DanglingMoveReference(missing, 0, 42)]


def test_next_move_to_skipped_move_is_dropped():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    broken = writer.add("ActionData", actionId=1, name="broken", frames=-4)
    writer.add("ActionData", actionId=0, name="lead", frames=5, nextMove=broken)
    result = _build(writer.to_bytes(), registry)
    (move,) = result.character.moves
    assert move.name == "lead"
    assert move.next_move_id is None
    assert any(isinstance(issue, DanglingMoveReference) for issue in result.issues)


def test_unknown_key_types_are_ignored():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    opaque = writer.add_raw(0x0BADF00D, b"\x00" * 8)
    writer.add("ActionData", actionId=0, name="a", frames=3, keys=[opaque])
    result = _build(writer.to_bytes(), registry)
    (move,) = result.character.moves
    assert move.windows == ()
    assert result.issues == []


def test_proximity_collision_type():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    key = writer.add("HitboxData", startFrame=1, endFrame=2, collisionType=3)
    writer.add("ActionData", actionId=0, frames=5, keys=[key])
    (move,) = _build(writer.to_bytes(), registry).character.moves
    assert move.windows[0].kind is WindowKind.PROXIMITY
    assert move.windows_of(WindowKind.HIT_ACTIVE) == ()
    assert move.name == "action_0"


def test_builds_are_independent_values():
    first = _sample().character
    second = _sample().character
    assert first == second
    assert first is not second
    with pytest.raises(Exception):
        first.name = "Ken"


def test_character_move_lookup():
    character = _sample().character
    assert character.move(1).name == "2MK"
    assert character.move("Hadoken").move_id == 2
    assert character.move(character.moves[0]) is character.moves[0]
    assert 2 in character and 9 not in character
    with pytest.raises(UnknownMove):
        character.move(9)
    with pytest.raises(KeyError):
        character.move("Tatsu")


def test_custom_conventions_by_schema_version():
    conventions = register_conventions(FieldConventions(
        version="test-rev",
        type_names={DomainType.ACTION: "MoveRecord"},
        action_id="id",
        action_frames="length",
    ))
    try:
        assert get_conventions("test-rev") is conventions
        assert get_conventions("never-registered").version == "sf6"

        registry = SchemaRegistry("test-rev")
        registry.register_type("MoveRecord", [("id", "S32"), ("length", "S32")])
        writer = RSZWriter(registry)
        writer.add("MoveRecord", id=77, length=12)
        character = _build(writer.to_bytes(), registry).character
        assert character.schema_version == "test-rev"
        assert [(m.move_id, m.duration) for m in character] == [(77, 12)]
    finally:
        unregister_conventions("test-rev")
    assert "test-rev" not in registered_versions()


def test_unregister_conventions():
    register_conventions(FieldConventions(version="scratch"))
    assert "scratch" in registered_versions()
    assert unregister_conventions("scratch").version == "scratch"
    assert "scratch" not in registered_versions()
    assert unregister_conventions("scratch") is None
    with pytest.raises(ValueError):
        unregister_conventions("sf6")


def _multi_target_registry() -> SchemaRegistry:
    registry = fixtures.character_registry()
    registry.register_type("CancelData", [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("targets", "S32", True),
        ("input", "String"),
    ])
    return registry


def test_cancel_targets_array_gives_one_window_per_target():
    registry = _multi_target_registry()
    writer = RSZWriter(registry)
    cancel = writer.add("CancelData", startFrame=2, endFrame=6, targets=[1, 2], input="any")
    writer.add("ActionData", actionId=0, name="starter", frames=10, keys=[cancel])
    writer.add("ActionData", actionId=1, name="followup", frames=10)
    writer.add("ActionData", actionId=2, name="finisher", frames=10)
    result = _build(writer.to_bytes(), registry)

    assert not result.issues
    starter = result.character.move("starter")
    windows = starter.windows_of(WindowKind.CANCEL_AVAILABLE)
    assert len(windows) == 2
    assert [w.cancel.target_move_id for w in windows] == [1, 2]
    assert all((w.start, w.end) == (2, 6) for w in windows)
    assert all(w.cancel.input == "any" for w in windows)


def test_cancel_without_any_target_skips_move():
    registry = fixtures.character_registry()
    registry.register_type("CancelData", [("startFrame", "S32"), ("endFrame", "S32"), ("input", "String")])
    writer = RSZWriter(registry)
    cancel = writer.add("CancelData", startFrame=0, endFrame=3, input="nowhere")
    writer.add("ActionData", actionId=0, name="aimless", frames=5, keys=[cancel])
    writer.add("ActionData", actionId=1, name="plain", frames=5)
    result = _build(writer.to_bytes(), registry)

    assert [m.name for m in result.character] == ["plain"]
    assert result.skipped_moves == [1]
    (issue,) = result.issues
    assert isinstance(issue, SchemaMismatch)
    assert issue.instance == cancel
    assert "targets" in issue.detail


def test_key_window_past_declared_duration_is_kept():
    registry = fixtures.character_registry()
    writer = RSZWriter(registry)
    hurt = writer.add("HurtboxData", startFrame=0, endFrame=30)
    writer.add("ActionData", actionId=0, name="short", frames=10, keys=[hurt])
    result = _build(writer.to_bytes(), registry)

    assert not result.issues
    (move,) = result.character.moves
    assert move.duration == 10
    assert (move.windows[0].start, move.windows[0].end) == (0, 30)
