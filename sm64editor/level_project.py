"""Decomp project layout: locating level files and assembling object lists.

A level lives in ``levels/<name>/`` with ``script.c`` at the top and one
``areas/<n>/`` folder per area holding ``macro.inc.c`` and
``collision.inc.c``.  Preset tables and ``model_ids.h`` live in an
``include/`` folder found by searching upwards from the level.
"""

import logging
import os
import re
from typing import Optional

from .level_object import MARIO_MODEL, SourceType
from .macro_scanner import AREA_GRAMMAR, parse_int, scan
from .object_parser import ScriptObjectParser, load_source, read_source
from .presets import (
    ModelResolver, parse_geo_layout_names, parse_macro_presets,
    parse_model_ids, parse_special_presets,
)
from .settings import EditorSettings

log = logging.getLogger(__name__)

_BEHAVIOR_RE = re.compile(r"\b(bhv\w+)\b")
# #include "goomba/geo.inc.c" inside an actor bin source
_ACTOR_INCLUDE_RE = re.compile(r'#include\s+"([^/"]+)/')

MISSING_ACTORS_FOLDER = "MISSING_ACTORS_FOLDER"


def parse(path: str, area_index: int = -1) -> list:
    """Objects of a level script, optionally restricted to one area."""
    return ScriptObjectParser().parse_script(path, area_index)


def resolve_script_path(file_path: str) -> str:
    """Find the level script.c that owns an area file (same dir, .., or ../..)."""
    if not file_path:
        return ""
    directory = os.path.dirname(os.path.abspath(file_path))
    for rel in (".", "..", os.path.join("..", "..")):
        candidate = os.path.normpath(os.path.join(directory, rel, "script.c"))
        if os.path.isfile(candidate):
            return candidate
    return ""


class LevelProject:
    """Entry point for everything that needs to know the project layout."""

    def __init__(self, project_root: str, settings: EditorSettings = None):
        self.project_root = os.path.abspath(project_root)
        self.settings = settings or EditorSettings()
        self.parser = ScriptObjectParser()
        self._macro_presets = None
        self._special_presets = None
        self._model_ids = None

    # ── Paths ─────────────────────────────────────────────────────────

    def levels_dir(self) -> Optional[str]:
        for sub in self.settings.levels_subdirs:
            path = os.path.join(self.project_root, *sub.split("/"))
            if os.path.isdir(path):
                return path
        return None

    def level_path(self, level: str) -> str:
        """Accept either a level folder path or a level name under levels/."""
        if os.path.isdir(level):
            return os.path.abspath(level)
        levels = self.levels_dir() or os.path.join(self.project_root, "levels")
        return os.path.join(levels, level)

    def script_path(self, level: str) -> str:
        return os.path.join(self.level_path(level), "script.c")

    def area_dir(self, level: str, area_index: int) -> str:
        return os.path.join(self.level_path(level), "areas", str(area_index))

    def list_levels(self) -> list:
        """Names of level folders that contain a script.c."""
        levels = self.levels_dir()
        if not levels:
            log.warning("No levels folder found in %s", self.project_root)
            return []
        return sorted(
            name for name in os.listdir(levels)
            if os.path.isfile(os.path.join(levels, name, "script.c"))
        )

    def list_areas(self, level: str) -> list:
        """Area indices declared by AREA(n) in the script or present under areas/."""
        areas = set()
        content = load_source(self.script_path(level), "Script file")
        if content is not None:
            for m in scan(content, AREA_GRAMMAR):
                index = parse_int(m.args[0], -1)
                if index >= 0:
                    areas.add(index)
        areas_dir = os.path.join(self.level_path(level), "areas")
        if os.path.isdir(areas_dir):
            areas.update(int(n) for n in os.listdir(areas_dir) if n.isdigit())
        return sorted(areas)

    def resolve_include_path(self, file_name: str, level: str = None) -> Optional[str]:
        """Search upwards from the level folder, then the project root, for an include file."""
        subdirs = [sub.split("/") for sub in self.settings.include_subdirs]
        if level:
            current = self.level_path(level)
            while current:
                for sub in subdirs:
                    path = os.path.join(current, *sub, file_name)
                    if os.path.isfile(path):
                        return path
                parent = os.path.dirname(current)
                if parent == current:
                    break
                current = parent
        for sub in subdirs:
            path = os.path.join(self.project_root, *sub, file_name)
            if os.path.isfile(path):
                return path
        return None

    def include_dir(self) -> Optional[str]:
        """The project's include/ folder, searching the tree as a last resort."""
        for sub in self.settings.include_subdirs:
            path = os.path.join(self.project_root, *sub.split("/"))
            if os.path.isdir(path):
                return path
        for root, dirs, _ in os.walk(self.project_root):
            if "include" in dirs:
                return os.path.join(root, "include")
        return None

    def default_target_file(self, level: str, source_type: SourceType,
                            area_index: int) -> str:
        """File a new object of *source_type* is inserted into."""
        if source_type in (SourceType.NORMAL, SourceType.MARIO):
            return self.script_path(level)
        name = (self.settings.macro_file_name if source_type == SourceType.MACRO
                else self.settings.collision_file_name)
        return os.path.join(self.area_dir(level, area_index), name)

    # ── Tables ────────────────────────────────────────────────────────

    def macro_presets(self, level: str = None) -> dict:
        if self._macro_presets is None:
            self._macro_presets = parse_macro_presets(
                self.resolve_include_path("macro_presets.inc.c", level))
        return self._macro_presets

    def special_presets(self, level: str = None) -> dict:
        if self._special_presets is None:
            self._special_presets = parse_special_presets(
                self.resolve_include_path("special_presets.inc.c", level))
        return self._special_presets

    def model_ids(self, level: str = None) -> dict:
        if self._model_ids is None:
            self._model_ids = parse_model_ids(self.resolve_include_path("model_ids.h", level))
        return self._model_ids

    def model_resolver(self, level: str) -> ModelResolver:
        return ModelResolver(self.model_ids(level),
                             self.parser.parse_load_models(self.script_path(level)))

    # ── Objects ───────────────────────────────────────────────────────

    def find_macro_file(self, level: str, area_index: int) -> Optional[str]:
        """macro.inc.c holding the list the area loads with MACRO_OBJECTS()."""
        list_name = self.parser.parse_macro_list_name(self.script_path(level), area_index)
        default = os.path.join(self.area_dir(level, area_index), self.settings.macro_file_name)
        if list_name is None:
            return default if os.path.isfile(default) else None

        candidates = [default] if os.path.isfile(default) else []
        for root, dirs, files in os.walk(self.level_path(level)):
            dirs.sort()
            if self.settings.macro_file_name in files:
                path = os.path.join(root, self.settings.macro_file_name)
                if os.path.normpath(path) != os.path.normpath(default):
                    candidates.append(path)
        for path in candidates:
            content = load_source(path, "Macro file")
            if content is not None and list_name in content:
                return path
        log.warning("Macro list %s not found under %s", list_name, self.level_path(level))
        return None

    def load_area(self, level: str, area_index: int) -> list:
        """All objects of one area: script objects, macro objects and special objects."""
        objects = self.parser.parse_script(self.script_path(level), area_index)

        macro_file = self.find_macro_file(level, area_index)
        if macro_file:
            objects.extend(self.parser.parse_macro_file(
                macro_file, self.macro_presets(level), area_index))

        collision_file = os.path.join(self.area_dir(level, area_index),
                                      self.settings.collision_file_name)
        if os.path.isfile(collision_file):
            objects.extend(self.parser.parse_special_file(
                collision_file, self.special_presets(level),
                self.model_resolver(level), area_index))

        log.info("Loaded %d objects for %s area %d", len(objects), level, area_index)
        return objects

    # ── Name lists for pickers ────────────────────────────────────────

    def resolve_behaviors(self) -> list:
        """Every bhv* name mentioned in the include folder's headers."""
        include = self.include_dir()
        if include is None:
            log.warning("Could not find include directory starting from %s", self.project_root)
            return []
        behaviors = set()
        for root, _, files in os.walk(include):
            for name in files:
                if not (name.endswith(".h") or name.endswith(".inc.c")):
                    continue
                try:
                    content = read_source(os.path.join(root, name))
                except OSError as exc:
                    log.debug("Skipping %s: %s", name, exc)
                    continue
                behaviors.update(_BEHAVIOR_RE.findall(content))
        result = sorted(b for b in behaviors if len(b) > 3)
        log.info("Scanned %d behaviors from %s", len(result), include)
        return result

    def actors_dir(self) -> Optional[str]:
        for sub in self.settings.actors_subdirs:
            path = os.path.join(self.project_root, *sub.split("/"))
            if os.path.isdir(path):
                return path
        return None

    def resolve_models(self, level: str = None) -> list:
        """Model names an object may use.

        Models loaded by the level's script, every geo layout declared in the
        actor headers (plus its MODEL_ form), and MODEL_MARIO.  A missing
        actors folder is reported with the MISSING_ACTORS_FOLDER marker.
        """
        models = {MARIO_MODEL}
        if level:
            models.update(self.parser.parse_load_models(self.script_path(level)))

        actors = self.actors_dir()
        if actors is None:
            models.add(MISSING_ACTORS_FOLDER)
            return sorted(models)

        for entry in sorted(os.listdir(actors)):
            path = os.path.join(actors, entry)
            if os.path.isdir(path):
                models.add("MODEL_" + entry.upper())
                for name in sorted(os.listdir(path)):
                    if name.endswith(".h"):
                        models.update(parse_geo_layout_names(os.path.join(path, name)))
            elif entry.endswith(".h"):
                models.update(parse_geo_layout_names(path))
            elif entry.endswith(".c"):
                # Bin sources (common0.c) include actor folders
                content = load_source(path, "Actor bin source") or ""
                for folder in _ACTOR_INCLUDE_RE.findall(content):
                    if os.path.isdir(os.path.join(actors, folder)):
                        models.add("MODEL_" + folder.upper())
        return sorted(models)


def resolve_behaviors(project_root: str) -> list:
    return LevelProject(project_root).resolve_behaviors()


def resolve_models(project_root: str, level: str = None) -> list:
    return LevelProject(project_root).resolve_models(level)
