"""
Shared builders for synthetic RSZ graphs.

No game files are needed: every graph used by the tests is authored here
with RSZWriter against a small registry that mirrors the character schema.
"""

import sys
from pathlib import Path

# Path setup
TESTS_DIR = Path(__file__).parent
DEV_DIR = TESTS_DIR.parent
SUITE_DIR = DEV_DIR.parent
SRC_DIR = SUITE_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from rszsim.entities.character_entity import (  # noqa: E402
    CancelCondition, CancelRule, Character, FrameWindow, Move, WindowKind,
)
from rszsim.entities.builder import CharacterBuilder  # noqa: E402
from rszsim.formats.rsz import RSZFile, RSZWriter, SchemaRegistry  # noqa: E402


CHARACTER_TYPES = {
    "CharacterAsset": [
        ("name", "String"),
        ("moves", "Object", True),
    ],
    "ActionData": [
        ("actionId", "S32"),
        ("name", "String"),
        ("frames", "S32"),
        ("loopCount", "S32"),
        ("keys", "Object", True),
        ("damage", "S32"),
        ("nextMove", "Object"),
        ("activeFrames", "S32", True),
    ],
    "HitboxData": [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("collisionType", "U8"),
        ("boxes", "Object", True),
        ("hitDamage", "S32"),
    ],
    "HurtboxData": [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("immune", "U8"),
        ("boxes", "Object", True),
    ],
    "PushboxData": [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("boxes", "Object", True),
    ],
    "CancelData": [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("targetAction", "S32"),
        ("input", "String"),
        ("conditionFlag", "Flags"),
    ],
    "SteerKey": [
        ("startFrame", "S32"),
        ("endFrame", "S32"),
        ("operation", "U8"),
        ("valueType", "U8"),
        ("value", "F32"),
    ],
    "BoxData": [
        ("x", "F32"),
        ("y", "F32"),
        ("width", "F32"),
        ("height", "F32"),
        ("shape", "U8"),
        ("radius", "F32"),
    ],
}


def character_registry(version: str = "sf6") -> SchemaRegistry:
    registry = SchemaRegistry(version)
    for name, fields in CHARACTER_TYPES.items():
        registry.register_type(name, fields)
    return registry


def scenario_registry() -> SchemaRegistry:
    """The three-field ActionData layout of the end-to-end scenario."""
    registry = SchemaRegistry()
    registry.register_type("ActionData", [
        ("damage", "S32"),
        ("nextMove", "Object"),
        ("activeFrames", "S32", True),
    ])
    return registry


def scenario_bytes() -> bytes:
    writer = RSZWriter(scenario_registry())
    writer.add("ActionData", damage=120, nextMove=None, activeFrames=[3, 4, 5])
    return writer.to_bytes()


def sample_character_writer() -> RSZWriter:
    """
    Three moves:

      0 "5LP"     20f  hit 4-6 (one box), hurt 0-19, push 0-19,
                       cancel 4-10 -> 1 on "2MK", cancel 4-10 -> 2 on "SUPER" (hit only)
      1 "2MK"     25f  hit 7-9, steer: x velocity 2.0 over 0-24, cancel 8-12 -> 0
      2 "Hadoken" 45f  activeFrames 12-13 and 20 (damage 60), invulnerable 0-5
    """
    writer = RSZWriter(character_registry())

    box_hit = writer.add("BoxData", x=40.0, y=80.0, width=20.0, height=10.0)        # 0
    box_body = writer.add("BoxData", x=0.0, y=60.0, width=25.0, height=60.0)        # 1
    box_push = writer.add("BoxData", x=0.0, y=50.0, width=15.0, height=50.0)        # 2

    lp_hit = writer.add("HitboxData", startFrame=4, endFrame=6, boxes=[box_hit], hitDamage=300)   # 3
    lp_hurt = writer.add("HurtboxData", startFrame=0, endFrame=19, boxes=[box_body])              # 4
    lp_push = writer.add("PushboxData", startFrame=0, endFrame=19, boxes=[box_push])              # 5
    lp_cancel = writer.add("CancelData", startFrame=4, endFrame=10, targetAction=1, input="2MK")  # 6
    lp_super = writer.add("CancelData", startFrame=4, endFrame=10, targetAction=2, input="SUPER",
                          conditionFlag=int(CancelCondition.HIT))                                 # 7
    mk_hit = writer.add("HitboxData", startFrame=7, endFrame=9, boxes=[box_hit], hitDamage=700)   # 8
    mk_steer = writer.add("SteerKey", startFrame=0, endFrame=24, operation=1, valueType=0,
                          value=2.0)                                                              # 9
    mk_cancel = writer.add("CancelData", startFrame=8, endFrame=12, targetAction=0, input="5LP")  # 10
    fb_hurt = writer.add("HurtboxData", startFrame=0, endFrame=5, immune=1, boxes=[box_body])     # 11

    lp = writer.add("ActionData", actionId=0, name="5LP", frames=20,
                    keys=[lp_hit, lp_hurt, lp_push, lp_cancel, lp_super])                         # 12
    mk = writer.add("ActionData", actionId=1, name="2MK", frames=25, nextMove=lp,
                    keys=[mk_hit, mk_steer, mk_cancel])                                           # 13
    fb = writer.add("ActionData", actionId=2, name="Hadoken", frames=45, damage=60,
                    keys=[fb_hurt], activeFrames=[12, 13, 20])                                    # 14
    writer.add("CharacterAsset", name="Ryu", moves=[lp, mk, fb])                                  # 15
    return writer


def sample_character_bytes() -> bytes:
    return sample_character_writer().to_bytes()


def hand_built_character() -> Character:
    """Character built directly from entities, for simulator tests."""
    jab = Move(0, "jab", 10, windows=(
        FrameWindow(2, 4, WindowKind.HIT_ACTIVE),
        FrameWindow(0, 9, WindowKind.HURT_ACTIVE),
        FrameWindow(3, 6, WindowKind.CANCEL_AVAILABLE, cancel=CancelRule(1, "A")),
        FrameWindow(3, 6, WindowKind.CANCEL_AVAILABLE, cancel=CancelRule(2, "B")),
        FrameWindow(3, 6, WindowKind.CANCEL_AVAILABLE,
                    cancel=CancelRule(3, "C", CancelCondition.HIT)),
    ))
    strong = Move(1, "strong", 15, windows=(FrameWindow(5, 8, WindowKind.HIT_ACTIVE),))
    fierce = Move(2, "fierce", 20, windows=(FrameWindow(6, 9, WindowKind.HIT_ACTIVE),))
    special = Move(3, "special", 30)
    return Character("tester", (jab, strong, fierce, special))


def sample_build_result():
    graph = RSZFile.decode(sample_character_bytes(), character_registry())
    return CharacterBuilder(graph).build()
