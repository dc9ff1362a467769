"""Object extraction from level scripts, macro lists and collision files.

Turns scanner matches into LevelObject entries that remember their exact
source span, so the saver can write edits back in place.
"""

import logging
import os
from typing import Optional

from .level_object import (
    MARIO_BEHAVIOR, MARIO_MODEL, SPECIAL_BEHAVIOR,
    LevelObject, SourceLocation, SourceType,
)
from .macro_scanner import (
    AREA_GRAMMAR, END_AREA_GRAMMAR, JUMP_LINK_GRAMMAR, LOAD_MODEL_GRAMMAR,
    MACRO_GRAMMARS, MACRO_OBJECTS_GRAMMAR, MARIO_POS_GRAMMAR, OBJECT_GRAMMARS,
    SPECIAL_GRAMMARS, find_script_blocks, parse_int, scan, scan_all,
)

log = logging.getLogger(__name__)


def read_source(path: str) -> str:
    """Read a C source file exactly as stored (no newline translation)."""
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()


def write_source(path: str, text: str):
    """Write text produced by read_source() back byte for byte."""
    with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(text)


def load_source(path: str, what: str = "File") -> Optional[str]:
    """read_source() that logs and returns None for a missing or unreadable file."""
    if not path or not os.path.isfile(path):
        log.warning("%s not found: %s", what, path)
        return None
    try:
        return read_source(path)
    except OSError as exc:
        log.warning("Failed to read %s: %s", path, exc)
        return None


def yaw_byte_to_degrees(value: int) -> int:
    """Special object yaw is stored as 0-255; the editor works in degrees."""
    return int(value * 360.0 / 256.0)


def degrees_to_yaw_byte(degrees: int) -> int:
    return int(round((degrees % 360) * 256.0 / 360.0)) % 256


def find_area_scope(content: str, area_index: int) -> Optional[tuple]:
    """Return (start, end) of AREA(area_index) .. END_AREA(), or None."""
    for area in scan(content, AREA_GRAMMAR):
        if parse_int(area.args[0], -1) != area_index:
            continue
        end_area = next(scan(content, END_AREA_GRAMMAR, area.offset), None)
        if end_area is not None:
            return area.offset, end_area.call_end
    return None


class ScriptObjectParser:
    """Parser for the object-bearing files of a level."""

    # ── script.c ──────────────────────────────────────────────────────

    def parse_script(self, path: str, area_index: int = -1) -> list:
        """Load OBJECT and MARIO_POS entries from a level script.

        Args:
            path: Path to the level's script.c.
            area_index: Restrict to AREA(area_index); -1 parses the whole file.

        Returns:
            List of LevelObject in encounter order (scope, then jumped
            blocks, then Mario).  Missing files or areas give an empty list.
        """
        objects = []
        content = load_source(path, "Script file")
        if content is None:
            return objects

        if area_index != -1:
            scope = find_area_scope(content, area_index)
            if scope is None:
                log.warning("Area %d not found in %s", area_index, path)
                return objects
        else:
            scope = (0, len(content))

        blocks = find_script_blocks(content)
        seen = set()
        self._parse_scope(content, path, scope[0], scope[1], area_index,
                          blocks, set(), seen, objects)

        for m in scan(content, MARIO_POS_GRAMMAR):
            mario_area = parse_int(m.args[0], -1)
            if area_index == -1 or mario_area == area_index:
                objects.append(self._mario_from_match(m, path, mario_area))
        return objects

    def _parse_scope(self, content, path, start, end, area_index,
                     blocks, visited, seen, objects):
        """Collect objects in [start, end) and follow its JUMP_LINKs."""
        for m in scan_all(content, OBJECT_GRAMMARS, start, end):
            # Whole-file parses also walk the jumped blocks directly
            if m.offset in seen:
                continue
            seen.add(m.offset)
            objects.append(self._object_from_match(m, path, area_index))

        for jump in scan(content, JUMP_LINK_GRAMMAR, start, end):
            name = jump.args[0]
            if name in visited:
                continue
            if name not in blocks:
                log.debug("JUMP_LINK target %s has no script block in %s", name, path)
                continue
            visited.add(name)
            block_start, block_end = blocks[name]
            self._parse_scope(content, path, block_start, block_end, area_index,
                              blocks, visited, seen, objects)

    @staticmethod
    def _object_from_match(m, path: str, area_index: int) -> LevelObject:
        a = m.args
        obj = LevelObject(
            model_name=a[0],
            position=(parse_int(a[1]), parse_int(a[2]), parse_int(a[3])),
            rotation=(parse_int(a[4]), parse_int(a[5]), parse_int(a[6])),
            params=parse_int(a[7]),
            behavior=a[8],
            source_type=SourceType.NORMAL,
            location=SourceLocation(path, m.offset, m.length),
            area_index=area_index,
        )
        obj.mark_clean()
        return obj

    @staticmethod
    def _mario_from_match(m, path: str, area_index: int) -> LevelObject:
        _, yaw, x, y, z = m.args
        obj = LevelObject(
            model_name=MARIO_MODEL,
            position=(parse_int(x), parse_int(y), parse_int(z)),
            rotation=(0, parse_int(yaw), 0),
            behavior=MARIO_BEHAVIOR,
            source_type=SourceType.MARIO,
            location=SourceLocation(path, m.offset, m.length),
            area_index=area_index,
        )
        obj.mark_clean()
        return obj

    def parse_macro_list_name(self, path: str, area_index: int = -1) -> Optional[str]:
        """Name of the macro object list an area loads via MACRO_OBJECTS()."""
        content = load_source(path, "Script file")
        if content is None:
            return None
        start, end = 0, len(content)
        if area_index != -1:
            scope = find_area_scope(content, area_index)
            if scope is not None:
                start, end = scope
        m = next(scan(content, MACRO_OBJECTS_GRAMMAR, start, end), None)
        return m.args[0] if m else None

    def parse_load_models(self, path: str) -> dict:
        """Map MODEL_* names to geo layouts from LOAD_MODEL_FROM_GEO()."""
        content = load_source(path, "Script file")
        if content is None:
            return {}
        return {m.args[0]: m.args[1] for m in scan(content, LOAD_MODEL_GRAMMAR)}

    # ── macro.inc.c ───────────────────────────────────────────────────

    def parse_macro_file(self, path: str, presets: dict, area_index: int = -1) -> list:
        """Load MACRO_OBJECT entries; presets not in the table are skipped."""
        objects = []
        content = load_source(path, "Macro file")
        if content is None:
            return objects

        for m in scan_all(content, MACRO_GRAMMARS):
            preset_name = m.args[0]
            preset = presets.get(preset_name)
            if preset is None:
                log.debug("Unknown macro preset %s in %s", preset_name, path)
                continue
            params = preset.param
            if len(m.args) > 5:
                params |= parse_int(m.args[5])
            obj = LevelObject(
                model_name=preset.model,
                position=(parse_int(m.args[2]), parse_int(m.args[3]), parse_int(m.args[4])),
                rotation=(0, parse_int(m.args[1]), 0),
                params=params,
                behavior=preset.behavior,
                preset_name=preset_name,
                preset_param=preset.param,
                source_type=SourceType.MACRO,
                location=SourceLocation(path, m.offset, m.length),
                area_index=area_index,
            )
            obj.mark_clean()
            objects.append(obj)
        return objects

    # ── collision.inc.c ───────────────────────────────────────────────

    def parse_special_file(self, path: str, presets: dict, resolver=None,
                           area_index: int = -1) -> list:
        """Load SPECIAL_OBJECT entries from a collision file.

        Args:
            path: collision.inc.c of an area.
            presets: {preset_name: model} from parse_special_presets().
            resolver: Optional ModelResolver to turn model ids into loaded models.
        """
        objects = []
        content = load_source(path, "Collision file")
        if content is None:
            return objects

        for m in scan_all(content, SPECIAL_GRAMMARS):
            preset_name = m.args[0]
            model = presets.get(preset_name)
            if model is None:
                log.debug("Unknown special preset %s in %s", preset_name, path)
                continue
            yaw = yaw_byte_to_degrees(parse_int(m.args[4])) if len(m.args) > 4 else 0
            params = parse_int(m.args[5]) if len(m.args) > 5 else 0
            obj = LevelObject(
                model_name=resolver.resolve(model) if resolver else model,
                position=(parse_int(m.args[1]), parse_int(m.args[2]), parse_int(m.args[3])),
                rotation=(0, yaw, 0),
                params=params,
                behavior=SPECIAL_BEHAVIOR,
                preset_name=preset_name,
                source_type=SourceType.SPECIAL,
                location=SourceLocation(path, m.offset, m.length),
                area_index=area_index,
            )
            obj.mark_clean()
            objects.append(obj)
        return objects
