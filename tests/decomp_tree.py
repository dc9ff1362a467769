"""Miniature SM64 decomp tree used by the test suites."""

import os

SCRIPT_C = """\
#include <ultra64.h>
#include "sm64.h"

static const LevelScript script_func_local_1[] = {
    OBJECT(/*model*/ MODEL_BOBOMB_BUDDY, /*pos*/ -1000, 0, 2000, /*angle*/ 0, 45, 0, /*behParam*/ 0x00010000, /*beh*/ bhvBobombBuddy),
    JUMP_LINK(script_func_local_2),
    RETURN(),
};

static const LevelScript script_func_local_2[] = {
    OBJECT_WITH_ACTS(MODEL_STAR, 100, 200, 300, 0, 0, 0, 0x01000000, bhvStar, /*acts*/ ACT_2 | ACT_3),
    JUMP_LINK(script_func_local_1),
    RETURN(),
};

static const LevelScript script_func_local_3[] = {
    OBJECT(MODEL_NONE, 0, 0, 0, 0, 0, 0, 0, bhvUnused),
    RETURN(),
};

const LevelScript level_bob_entry[] = {
    INIT_LEVEL(),
    LOAD_MODEL_FROM_GEO(MODEL_BOB_BUBBLY_TREE, bubbly_tree_geo),
    LOAD_MODEL_FROM_GEO(MODEL_BOB_CHAIN_CHOMP_GATE, bob_geo_000440),

    AREA(/*index*/ 1, bob_geo_000488),
        OBJECT(MODEL_GOOMBA, 100, 0, 200, 0, 90, 0, 0x00000001, bhvGoomba),
        OBJECT(MODEL_NONE, 0, 0, 0, 0, 0, 0, BPARAM1(3) | BPARAM2(1), bhvCoinFormation),
        JUMP_LINK(script_func_local_1),
        JUMP_LINK(script_func_missing),
        MACRO_OBJECTS(/*objList*/ bob_seg7_macro_objs),
        TERRAIN(/*terrainData*/ bob_seg7_collision_level),
    END_AREA(),

    AREA(2, bob_geo_000500),
        OBJECT(MODEL_RED_COIN, 5, 6, 7, 0, 0, 0, 0, bhvRedCoin),
    END_AREA(),

    FREE_LEVEL_POOL(),
    MARIO_POS(/*area*/ 1, /*yaw*/ 135, /*pos*/ -6558, 1000, 6464),
    MARIO_POS(0x02, 0, 10, 20, 30),
    CALL(/*arg*/ 0, /*func*/ lvl_init_or_update),
    EXIT(),
};
"""

MACRO_INC_C = """\
// 0x0E000000
const MacroObject bob_seg7_macro_objs[] = {
    MACRO_OBJECT(/*preset*/ macro_goomba_triplet_formation, /*yaw*/ 45, /*pos*/ 500, 0, -300),
    MACRO_OBJECT_WITH_BHV_PARAM(macro_coin_line_horizontal, 0, 1200, 300, -400, /*behParam*/ 0x10),
    MACRO_OBJECT(macro_unknown_preset, 0, 1, 2, 3),
    MACRO_OBJECT(macro_yellow_coin, 0, -10, 20, 30),
    MACRO_OBJECT_END(),
};
"""

COLLISION_INC_C = """\
const Collision bob_seg7_collision_level[] = {
    COL_INIT(),
    COL_VERTEX_INIT(0x2),
    COL_VERTEX(-100, 0, -100),
    COL_VERTEX(100, 0, 100),
    COL_TRI_INIT(SURFACE_DEFAULT, 1),
    COL_TRI(0, 1, 0),
    COL_TRI_STOP(),
    COL_SPECIAL_INIT(3),
    SPECIAL_OBJECT(/*preset*/ special_null_start, /*pos*/ 0, 0, 0),
    SPECIAL_OBJECT_WITH_YAW(/*preset*/ special_booming_volcano_owner, /*pos*/ -1000, 800, 200, /*yaw*/ 64),
    SPECIAL_OBJECT_WITH_YAW_AND_PARAM(special_wooden_door, 300, 0, 100, 128, 0x01),
    COL_END(),
};
"""

MACRO_PRESETS_INC_C = """\
struct MacroPreset MacroObjectPresets[] = {
    /* macro_yellow_coin */ { bhvYellowCoin, MODEL_YELLOW_COIN, 0 },
    /* macro_goomba_triplet_formation */ { bhvGoombaTripletSpawner, MODEL_GOOMBA, 0 },
    /* macro_coin_line_horizontal */ { bhvCoinFormation, MODEL_NONE, 0x01 | COIN_FORMATION_FLAG },
};
"""

SPECIAL_PRESETS_INC_C = """\
static struct SpecialPreset SpecialObjectPresets[] = {
    { special_null_start, SPTYPE_NO_YROT_OR_PARAMS, 0x00, MODEL_NONE, NULL },
    { special_booming_volcano_owner, SPTYPE_YROT_NO_PARAMS, 0x00, MODEL_BOWSER_BOMB, bhvBowserBomb },
    { special_wooden_door, SPTYPE_PARAMS_AND_YROT, 0x00, 0x1D, bhvDoor },
};
"""

SPECIAL_PRESETS_H = """\
enum SpecialPresets {
    special_null_start = 0x00,
    special_wooden_door_alias = special_wooden_door,
    special_missing_alias = special_not_there,
};
"""

MODEL_IDS_H = """\
#define MODEL_NONE                    0x00
#define MODEL_GOOMBA                  0xC0
#define MODEL_LEVEL_GEOMETRY_03       0x03
#define MODEL_BOB_CHAIN_CHOMP_GATE    MODEL_LEVEL_GEOMETRY_1D
#define MODEL_LEVEL_GEOMETRY_1D       0x1D
#define MODEL_BOB_BUBBLY_TREE         MODEL_ALIAS_TREE
#define MODEL_ALIAS_TREE              MODEL_LEVEL_GEOMETRY_03_ALIAS
#define MODEL_LEVEL_GEOMETRY_03_ALIAS MODEL_LEVEL_GEOMETRY_03
#define MODEL_LOOP_A                  MODEL_LOOP_B
#define MODEL_LOOP_B                  MODEL_LOOP_A
"""

BEHAVIOR_DATA_H = """\
extern const BehaviorScript bhvGoomba[];
extern const BehaviorScript bhvStar[];
"""

GOOMBA_GEO_HEADER_H = """\
extern const GeoLayout goomba_geo[];
"""

COMMON0_C = """\
#include "goomba/geo.inc.c"
#include "bobomb/geo.inc.c"
"""


def write(path: str, text: str):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def read(path: str) -> str:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def make_project(root: str, with_actors: bool = True) -> dict:
    """Build the tree under *root* and return the interesting paths."""
    paths = {
        "script": os.path.join(root, "levels", "bob", "script.c"),
        "macro": os.path.join(root, "levels", "bob", "areas", "1", "macro.inc.c"),
        "collision": os.path.join(root, "levels", "bob", "areas", "1", "collision.inc.c"),
        "macro_presets": os.path.join(root, "include", "macro_presets.inc.c"),
        "special_presets": os.path.join(root, "include", "special_presets.inc.c"),
        "special_header": os.path.join(root, "include", "special_presets.h"),
        "model_ids": os.path.join(root, "include", "model_ids.h"),
        "behavior_data": os.path.join(root, "include", "behavior_data.h"),
    }
    write(paths["script"], SCRIPT_C)
    write(paths["macro"], MACRO_INC_C)
    write(paths["collision"], COLLISION_INC_C)
    write(paths["macro_presets"], MACRO_PRESETS_INC_C)
    write(paths["special_presets"], SPECIAL_PRESETS_INC_C)
    write(paths["special_header"], SPECIAL_PRESETS_H)
    write(paths["model_ids"], MODEL_IDS_H)
    write(paths["behavior_data"], BEHAVIOR_DATA_H)
    os.makedirs(os.path.join(root, "levels", "bob", "areas", "2"), exist_ok=True)
    if with_actors:
        write(os.path.join(root, "actors", "goomba", "geo_header.h"), GOOMBA_GEO_HEADER_H)
        os.makedirs(os.path.join(root, "actors", "bobomb"), exist_ok=True)
        write(os.path.join(root, "actors", "common0.c"), COMMON0_C)
    return paths
