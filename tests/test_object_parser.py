import os
import tempfile
import unittest

from decomp_tree import make_project, write
from sm64editor.level_object import SPECIAL_BEHAVIOR, SourceType
from sm64editor.macro_scanner import OBJECT_GRAMMARS, match_at
from sm64editor.object_parser import (
    ScriptObjectParser, degrees_to_yaw_byte, find_area_scope, read_source,
    yaw_byte_to_degrees,
)
from sm64editor.presets import ModelResolver, parse_macro_presets, parse_special_presets


def by_model(objects, model_name):
    found = [o for o in objects if o.model_name == model_name]
    assert len(found) == 1, f"expected one {model_name}, got {len(found)}"
    return found[0]


class ScriptParseTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmp = tempfile.TemporaryDirectory()
        cls.paths = make_project(cls._tmp.name)
        cls.parser = ScriptObjectParser()
        cls.area1 = cls.parser.parse_script(cls.paths["script"], 1)

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def test_area_objects_in_encounter_order(self):
        self.assertEqual([o.model_name for o in self.area1], [
            "MODEL_GOOMBA", "MODEL_NONE", "MODEL_BOBOMB_BUDDY", "MODEL_STAR", "MODEL_MARIO",
        ])

    def test_plain_object_fields(self):
        goomba = by_model(self.area1, "MODEL_GOOMBA")
        self.assertEqual(goomba.position, (100, 0, 200))
        self.assertEqual(goomba.rotation, (0, 90, 0))
        self.assertEqual(goomba.params, 1)
        self.assertEqual(goomba.behavior, "bhvGoomba")
        self.assertEqual(goomba.source_type, SourceType.NORMAL)
        self.assertEqual(goomba.area_index, 1)
        self.assertFalse(goomba.is_modified(), "Freshly parsed objects are clean")

    def test_span_points_at_invocation(self):
        text = read_source(self.paths["script"])
        for obj in self.area1:
            loc = obj.location
            self.assertEqual(loc.file, self.paths["script"])
            snippet = text[loc.offset:loc.end]
            self.assertTrue(snippet.startswith(("OBJECT", "MARIO_POS")),
                            f"{obj.model_name} span starts with {snippet[:20]!r}")

    def test_comments_and_hex_arguments(self):
        buddy = by_model(self.area1, "MODEL_BOBOMB_BUDDY")
        self.assertEqual(buddy.position, (-1000, 0, 2000))
        self.assertEqual(buddy.ry, 45)
        self.assertEqual(buddy.params, 0x00010000)
        self.assertEqual(buddy.behavior, "bhvBobombBuddy")

    def test_symbolic_params_parse_as_zero(self):
        coins = by_model(self.area1, "MODEL_NONE")
        self.assertEqual(coins.params, 0)
        self.assertEqual(coins.behavior, "bhvCoinFormation")

    def test_object_with_acts_from_jumped_block(self):
        star = by_model(self.area1, "MODEL_STAR")
        self.assertEqual(star.position, (100, 200, 300))
        self.assertEqual(star.params, 0x01000000)
        text = read_source(self.paths["script"])
        m = match_at(text, star.location.offset, OBJECT_GRAMMARS)
        self.assertEqual(m.name, "OBJECT_WITH_ACTS")

    def test_mario_filtered_by_area(self):
        mario = [o for o in self.area1 if o.source_type == SourceType.MARIO]
        self.assertEqual(len(mario), 1)
        self.assertEqual(mario[0].position, (-6558, 1000, 6464))
        self.assertEqual(mario[0].ry, 135)
        self.assertEqual(mario[0].behavior, "bhvMario")

        area2 = self.parser.parse_script(self.paths["script"], 2)
        self.assertEqual([o.model_name for o in area2], ["MODEL_RED_COIN", "MODEL_MARIO"])
        self.assertEqual(area2[1].position, (10, 20, 30), "Hex area id 0x02 selects area 2")

    def test_whole_file_parse_has_no_duplicates(self):
        objects = self.parser.parse_script(self.paths["script"])
        offsets = [o.location.offset for o in objects]
        self.assertEqual(len(offsets), len(set(offsets)))
        self.assertEqual(len(objects), 8)
        self.assertIn("bhvUnused", [o.behavior for o in objects],
                      "Blocks that nothing jumps to are still part of the file")

    def test_missing_area_and_file(self):
        self.assertEqual(self.parser.parse_script(self.paths["script"], 7), [])
        missing = os.path.join(self._tmp.name, "levels", "nope", "script.c")
        self.assertEqual(self.parser.parse_script(missing), [])

    def test_jump_cycle_terminates(self):
        path = os.path.join(self._tmp.name, "cycle", "script.c")
        write(path,
              "const LevelScript a[] = {\n"
              "    OBJECT(MODEL_A, 0, 0, 0, 0, 0, 0, 0, bhvA),\n"
              "    JUMP_LINK(b),\n"
              "};\n"
              "const LevelScript b[] = {\n"
              "    JUMP_LINK(a),\n"
              "    JUMP_LINK(b),\n"
              "};\n"
              "const LevelScript entry[] = {\n"
              "    AREA(1, geo),\n"
              "        JUMP_LINK(a),\n"
              "    END_AREA(),\n"
              "};\n")
        objects = self.parser.parse_script(path, 1)
        self.assertEqual([o.model_name for o in objects], ["MODEL_A"])

    def test_macro_list_name_and_load_models(self):
        self.assertEqual(self.parser.parse_macro_list_name(self.paths["script"], 1),
                         "bob_seg7_macro_objs")
        self.assertIsNone(self.parser.parse_macro_list_name(self.paths["script"], 2))
        self.assertEqual(self.parser.parse_load_models(self.paths["script"]), {
            "MODEL_BOB_BUBBLY_TREE": "bubbly_tree_geo",
            "MODEL_BOB_CHAIN_CHOMP_GATE": "bob_geo_000440",
        })

    def test_area_scope(self):
        text = read_source(self.paths["script"])
        start, end = find_area_scope(text, 2)
        self.assertTrue(text[start:].startswith("AREA(2"))
        self.assertTrue(text[:end].endswith("END_AREA()"))
        self.assertIsNone(find_area_scope(text, 3))


class MacroParseTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmp = tempfile.TemporaryDirectory()
        cls.paths = make_project(cls._tmp.name)
        presets = parse_macro_presets(cls.paths["macro_presets"])
        cls.objects = ScriptObjectParser().parse_macro_file(cls.paths["macro"], presets, 1)

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def test_unknown_presets_are_skipped(self):
        self.assertEqual([o.preset_name for o in self.objects], [
            "macro_goomba_triplet_formation", "macro_coin_line_horizontal", "macro_yellow_coin",
        ])

    def test_preset_supplies_model_and_behavior(self):
        goombas = self.objects[0]
        self.assertEqual(goombas.model_name, "MODEL_GOOMBA")
        self.assertEqual(goombas.behavior, "bhvGoombaTripletSpawner")
        self.assertEqual(goombas.ry, 45)
        self.assertEqual(goombas.position, (500, 0, -300))
        self.assertEqual(goombas.source_type, SourceType.MACRO)
        self.assertEqual(goombas.area_index, 1)

    def test_params_combine_preset_and_invocation(self):
        coins = self.objects[1]
        self.assertEqual(coins.params, 0x10 | 0x01)
        self.assertEqual(coins.preset_param, 0x01)
        self.assertEqual(coins.position, (1200, 300, -400))


class SpecialParseTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmp = tempfile.TemporaryDirectory()
        cls.paths = make_project(cls._tmp.name)
        parser = ScriptObjectParser()
        presets = parse_special_presets(cls.paths["special_presets"])
        resolver = ModelResolver({"MODEL_BOB_CHAIN_CHOMP_GATE": 0x1D},
                                 parser.parse_load_models(cls.paths["script"]))
        cls.objects = parser.parse_special_file(cls.paths["collision"], presets, resolver, 1)

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def test_all_variants_found(self):
        self.assertEqual([o.preset_name for o in self.objects], [
            "special_null_start", "special_booming_volcano_owner", "special_wooden_door",
        ])
        for obj in self.objects:
            self.assertEqual(obj.behavior, SPECIAL_BEHAVIOR)
            self.assertEqual(obj.source_type, SourceType.SPECIAL)

    def test_yaw_byte_converted_to_degrees(self):
        self.assertEqual(self.objects[0].ry, 0)
        self.assertEqual(self.objects[1].ry, 90)
        self.assertEqual(self.objects[1].position, (-1000, 800, 200))
        self.assertEqual(self.objects[2].ry, 180)
        self.assertEqual(self.objects[2].params, 1)

    def test_numeric_model_resolved_through_loaded_models(self):
        self.assertEqual(self.objects[2].model_name, "MODEL_BOB_CHAIN_CHOMP_GATE")
        self.assertEqual(self.objects[1].model_name, "MODEL_BOWSER_BOMB")

    def test_yaw_conversions(self):
        self.assertEqual(yaw_byte_to_degrees(64), 90)
        self.assertEqual(yaw_byte_to_degrees(1), 1)
        self.assertEqual(degrees_to_yaw_byte(90), 64)
        self.assertEqual(degrees_to_yaw_byte(360), 0)
        self.assertEqual(degrees_to_yaw_byte(-90), 192)


if __name__ == "__main__":
    unittest.main()
