import json
import os
import tempfile
import unittest

from sm64editor.settings import EditorSettings


class SettingsTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "_settings.json")

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_gives_defaults(self):
        settings = EditorSettings.load(self.path)
        self.assertEqual(settings, EditorSettings())
        self.assertIn("include", settings.include_subdirs)
        self.assertEqual(settings.collision_file_name, "collision.inc.c")

    def test_round_trip(self):
        settings = EditorSettings(last_project_root="/decomp", macro_file_name="macros.inc.c")
        settings.levels_subdirs = ["src/levels"]
        settings.save(self.path)
        self.assertEqual(EditorSettings.load(self.path), settings)

    def test_corrupt_file_gives_defaults(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(EditorSettings.load(self.path), EditorSettings())

    def test_wrong_types_are_ignored(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"last_project_root": 5, "include_subdirs": "include",
                       "actors_subdirs": ["a", 1], "collision_file_name": "",
                       "macro_file_name": "m.inc.c"}, f)
        settings = EditorSettings.load(self.path)
        defaults = EditorSettings()
        self.assertEqual(settings.last_project_root, "")
        self.assertEqual(settings.include_subdirs, defaults.include_subdirs)
        self.assertEqual(settings.actors_subdirs, defaults.actors_subdirs)
        self.assertEqual(settings.collision_file_name, "collision.inc.c")
        self.assertEqual(settings.macro_file_name, "m.inc.c")

    def test_unwritable_path_is_not_fatal(self):
        EditorSettings().save(os.path.join(self._tmp.name, "missing_dir", "_settings.json"))


if __name__ == "__main__":
    unittest.main()
