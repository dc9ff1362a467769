"""Writes edited level objects back into their C source files.

Only the spans recorded at parse time are touched: modified objects get
their call re-rendered in place, deleted objects lose exactly their span,
and new objects are inserted in front of the terminator of their scope.
Everything else in the file is preserved byte for byte.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import Optional

from .level_object import LevelObject, SourceLocation, SourceType, is_placeholder
from .macro_scanner import (
    COL_END_GRAMMAR, COL_SPECIAL_INIT_GRAMMAR, END_AREA_GRAMMAR,
    MACRO_GRAMMARS, MACRO_OBJECT_END_GRAMMAR, MARIO_POS_GRAMMAR,
    OBJECT_GRAMMARS, SPECIAL_GRAMMARS, clean_argument, match_at, parse_int,
    scan, scan_all,
)
from .object_parser import (
    degrees_to_yaw_byte, find_area_scope, read_source, write_source,
    yaw_byte_to_degrees,
)

log = logging.getLogger(__name__)

GRAMMARS_BY_TYPE = {
    SourceType.NORMAL: OBJECT_GRAMMARS,
    SourceType.MACRO: MACRO_GRAMMARS,
    SourceType.SPECIAL: SPECIAL_GRAMMARS,
    SourceType.MARIO: (MARIO_POS_GRAMMAR,),
}


@dataclass
class SaveResult:
    """Outcome of LevelSaver.save()."""
    saved_files: list = field(default_factory=list)
    failed_files: list = field(default_factory=list)
    skipped_objects: list = field(default_factory=list)  # left untouched on disk

    @property
    def success(self) -> bool:
        return not self.failed_files and not self.skipped_objects


# ── Rendering ─────────────────────────────────────────────────────────

def format_params(value: int) -> str:
    return f"0x{value & 0xFFFFFFFF:08X}"


def format_special_param(value: int) -> str:
    value &= 0xFFFFFFFF
    return f"0x{value:02X}" if value <= 0xFF else f"0x{value:08X}"


def _call(name: str, args) -> str:
    return f"{name}({', '.join(str(a) for a in args)})"


def _replace_arg(raw: str, value) -> str:
    """Put *value* where the argument sits in *raw*, keeping the comments and spacing before it."""
    body = raw.rstrip()
    trailing = raw[len(body):]
    current = clean_argument(body)
    if current and body.endswith(current):
        return body[:-len(current)] + str(value) + trailing
    return raw[:len(raw) - len(raw.lstrip())] + str(value) + trailing


def _text_arg(new: str, old: str, raw: str) -> str:
    """Keep the argument as written unless the field changed to a writable value."""
    if new == old or is_placeholder(new):
        return raw
    return _replace_arg(raw, new)


def _int_arg(new: int, old, raw: str, fmt=str) -> str:
    return raw if new == old else _replace_arg(raw, fmt(new))


def _preset_ref(obj: LevelObject, baseline: bool = False) -> str:
    """Name written as the first macro/special argument."""
    if baseline:
        preset = obj.baseline_value("preset_name")
        return preset or obj.baseline_value("model_name")
    return obj.preset_name or obj.model_name


def refusal_reason(obj: LevelObject) -> Optional[str]:
    """Why an edit cannot be expressed in the object's macro, or None if it can."""
    if obj.source_type in (SourceType.MACRO, SourceType.SPECIAL) and not obj.is_new:
        if (obj.model_name != obj.baseline_value("model_name")
                and obj.preset_name == obj.baseline_value("preset_name")):
            return "the model of a preset object only changes with its preset"
    if obj.source_type == SourceType.MACRO and obj.params & obj.preset_param != obj.preset_param:
        return f"params must keep the preset bits 0x{obj.preset_param:X}"
    return None


def render_existing(obj: LevelObject, match) -> Optional[str]:
    """Re-render the call part of an existing invocation for *obj*.

    Arguments whose field is unchanged are copied as written, comments
    included, so hex constants, acts masks and textual parameters survive.
    Changed arguments keep any comment in front of them.
    """
    r = list(match.raw_args)
    old_pos = obj.baseline_value("position") or (None, None, None)
    old_rot = obj.baseline_value("rotation") or (None, None, None)
    old_params = obj.baseline_value("params")
    params_changed = obj.params != old_params
    name = match.name

    if obj.source_type == SourceType.NORMAL:
        args = [
            _text_arg(obj.model_name, obj.baseline_value("model_name"), r[0]),
            _int_arg(obj.x, old_pos[0], r[1]),
            _int_arg(obj.y, old_pos[1], r[2]),
            _int_arg(obj.z, old_pos[2], r[3]),
            _int_arg(obj.rx, old_rot[0], r[4]),
            _int_arg(obj.ry, old_rot[1], r[5]),
            _int_arg(obj.rz, old_rot[2], r[6]),
            _int_arg(obj.params, old_params, r[7], format_params),
            _text_arg(obj.behavior, obj.baseline_value("behavior"), r[8]),
        ] + r[9:]  # acts

    elif obj.source_type == SourceType.MACRO:
        args = [
            _text_arg(_preset_ref(obj), _preset_ref(obj, baseline=True), r[0]),
            _int_arg(obj.ry, old_rot[1], r[1]),
            _int_arg(obj.x, old_pos[0], r[2]),
            _int_arg(obj.y, old_pos[1], r[3]),
            _int_arg(obj.z, old_pos[2], r[4]),
        ]
        if len(r) > 5:
            args.append(_int_arg(obj.params, old_params, r[5], format_params))
        elif params_changed:
            name = "MACRO_OBJECT_WITH_BHV_PARAM"
            args.append(" " + format_params(obj.params))

    elif obj.source_type == SourceType.SPECIAL:
        args = [
            _text_arg(_preset_ref(obj), _preset_ref(obj, baseline=True), r[0]),
            _int_arg(obj.x, old_pos[0], r[1]),
            _int_arg(obj.y, old_pos[1], r[2]),
            _int_arg(obj.z, old_pos[2], r[3]),
        ]
        if len(r) > 4:
            args.append(_int_arg(obj.ry, old_rot[1], r[4], degrees_to_yaw_byte))
        elif obj.ry != old_rot[1] or params_changed:
            args.append(f" {degrees_to_yaw_byte(obj.ry)}")
        if len(r) > 5:
            args.append(_int_arg(obj.params, old_params, r[5], format_special_param))
        elif params_changed:
            args.append(" " + format_special_param(obj.params))
        name = {4: "SPECIAL_OBJECT", 5: "SPECIAL_OBJECT_WITH_YAW",
                6: "SPECIAL_OBJECT_WITH_YAW_AND_PARAM"}[len(args)]

    elif obj.source_type == SourceType.MARIO:
        args = [
            r[0],  # area id as written
            _int_arg(obj.ry, old_rot[1], r[1]),
            _int_arg(obj.x, old_pos[0], r[2]),
            _int_arg(obj.y, old_pos[1], r[3]),
            _int_arg(obj.z, old_pos[2], r[4]),
        ]
    else:
        return None
    return f"{name}({','.join(args)})"


def render_new(obj: LevelObject) -> Optional[str]:
    """Render a fresh invocation for a new object, or None if it cannot be written."""
    if obj.source_type == SourceType.NORMAL:
        if is_placeholder(obj.model_name) or is_placeholder(obj.behavior):
            return None
        return _call("OBJECT", [obj.model_name, obj.x, obj.y, obj.z, obj.rx, obj.ry,
                                obj.rz, format_params(obj.params), obj.behavior])

    if obj.source_type == SourceType.MACRO:
        preset = _preset_ref(obj)
        if is_placeholder(preset) or refusal_reason(obj):
            return None
        args = [preset, obj.ry, obj.x, obj.y, obj.z]
        if obj.params != obj.preset_param:
            return _call("MACRO_OBJECT_WITH_BHV_PARAM", args + [format_params(obj.params)])
        return _call("MACRO_OBJECT", args)

    if obj.source_type == SourceType.SPECIAL:
        preset = _preset_ref(obj)
        if is_placeholder(preset):
            return None
        args = [preset, obj.x, obj.y, obj.z]
        if obj.params:
            return _call("SPECIAL_OBJECT_WITH_YAW_AND_PARAM",
                         args + [degrees_to_yaw_byte(obj.ry), format_special_param(obj.params)])
        if obj.ry % 360:
            return _call("SPECIAL_OBJECT_WITH_YAW", args + [degrees_to_yaw_byte(obj.ry)])
        return _call("SPECIAL_OBJECT", args)

    if obj.source_type == SourceType.MARIO:
        area = obj.area_index if obj.area_index >= 0 else 1
        return _call("MARIO_POS", [area, obj.ry, obj.x, obj.y, obj.z])
    return None


# ── Saver ─────────────────────────────────────────────────────────────

class LevelSaver:
    """Applies an edit session's objects to the files they came from."""

    def __init__(self, collision_file_name: str = "collision.inc.c",
                 backup_suffix: str = ".bak"):
        self.collision_file_name = collision_file_name
        self.backup_suffix = backup_suffix  # empty disables backups

    def save(self, objects: list) -> SaveResult:
        """Write every modified, deleted or new object back to disk.

        The list is updated in place: saved new objects become persistent
        (location filled, ``is_new`` cleared) and deleted objects whose file
        was written are removed.  A file that cannot be read or written is
        reported in ``failed_files``; the remaining files are still saved.

        Args:
            objects: The full live object list of the session.

        Returns:
            SaveResult with saved/failed files and objects left untouched.
        """
        result = SaveResult()
        by_file = {}  # path -> (existing objects, new objects)

        for obj in objects:
            path = obj.target_file
            if obj.is_new:
                if obj.is_deleted:
                    continue
                if not path:
                    log.warning("New %s object %s has no target file",
                                obj.source_type.value, obj.display_name())
                    result.skipped_objects.append(obj)
                    continue
                by_file.setdefault(path, ([], []))[1].append(obj)
            elif path:
                by_file.setdefault(path, ([], []))[0].append(obj)

        for path, (existing, added) in by_file.items():
            touched = added or any(o.is_deleted or o.is_modified() for o in existing)
            if not touched:
                continue
            if not os.path.isfile(path):
                log.warning("File not found: %s", path)
                result.failed_files.append(path)
                continue
            try:
                self._save_file(path, existing, added, result)
            except OSError as exc:
                log.warning("Failed to save to %s: %s", path, exc)
                result.failed_files.append(path)
            else:
                result.saved_files.append(path)

        saved = set(result.saved_files)
        skipped = set(id(o) for o in result.skipped_objects)
        objects[:] = [
            o for o in objects
            if not (o.is_deleted and id(o) not in skipped
                    and (o.is_new or o.target_file is None or o.target_file in saved))
        ]
        log.info("Saved %d file(s), %d failed", len(result.saved_files), len(result.failed_files))
        return result

    def _save_file(self, path: str, existing: list, added: list, result: SaveResult):
        text = original = read_source(path)
        # Working spans; committed to the objects only after the write succeeds
        spans = {}
        for obj in existing:
            if not obj.is_deleted:
                spans[id(obj)] = [obj.location.offset, obj.location.length]
        edits = []     # (offset, length delta) of in-place edits
        cleaned = []   # objects whose text now matches their fields

        # Descending order keeps the offsets of earlier objects valid
        for obj in sorted(existing, key=lambda o: o.location.offset, reverse=True):
            loc = obj.location
            if not obj.is_deleted and not obj.is_modified():
                continue
            match = match_at(text, loc.offset, GRAMMARS_BY_TYPE[obj.source_type])
            if match is None or match.length != loc.length:
                log.warning("Stale span for %s at %s:%d, leaving it untouched",
                            obj.display_name(), path, loc.offset)
                result.skipped_objects.append(obj)
                continue

            if obj.is_deleted:
                text = text[:loc.offset] + text[loc.end:]
                edits.append((loc.offset, -loc.length))
                continue

            reason = refusal_reason(obj)
            if reason:
                log.warning("Not writing %s at %s:%d: %s",
                            obj.display_name(), path, loc.offset, reason)
                result.skipped_objects.append(obj)
                continue

            call = render_existing(obj, match)
            if call is None:
                result.skipped_objects.append(obj)
                continue
            delta = len(call) - match.call_length
            if delta or text[match.offset:match.call_end] != call:
                text = text[:match.offset] + call + text[match.call_end:]
                spans[id(obj)][1] += delta
                edits.append((loc.offset, delta))
            cleaned.append(obj)

        # Rebase the surviving spans once, from the edit log
        for span in spans.values():
            span[0] += sum(delta for offset, delta in edits if offset < span[0])

        inserted = []
        for obj in added:
            text = self._insert(text, path, obj, spans, result)
            if id(obj) in spans:
                inserted.append(obj)

        if os.path.basename(path) == self.collision_file_name:
            text = self._update_special_count(text, spans)

        if text != original:
            self._backup(path)
            write_source(path, text)

        for obj in existing + inserted:
            if id(obj) in spans:
                offset, length = spans[id(obj)]
                obj.location = SourceLocation(path, offset, length)
        for obj in cleaned + inserted:
            if obj.source_type == SourceType.SPECIAL and (
                    obj.is_new or obj.ry != (obj.baseline_value("rotation") or (None, None, None))[1]):
                # The file holds the yaw as a byte
                obj.rotation = (obj.rx, yaw_byte_to_degrees(degrees_to_yaw_byte(obj.ry)), obj.rz)
            obj.is_new = False
            obj.mark_clean()
        log.info("Updated %s (%d edits, %d inserted)", os.path.basename(path),
                 len(edits), len(inserted))

    def _backup(self, path: str):
        """Copy *path* aside once, before the first write over it."""
        if not self.backup_suffix:
            return
        backup = path + self.backup_suffix
        if not os.path.exists(backup):
            shutil.copy2(path, backup)
            log.info("Backed up %s", os.path.basename(path))

    # ── Insertion ─────────────────────────────────────────────────────

    def _insert(self, text: str, path: str, obj: LevelObject, spans: dict,
                result: SaveResult) -> str:
        call = render_new(obj)
        if call is None:
            log.warning("Refusing to write new %s object %r: %s", obj.source_type.value,
                        obj.display_name(), refusal_reason(obj) or "placeholder name")
            result.skipped_objects.append(obj)
            return text
        pos = self._insertion_point(text, obj)
        if pos is None:
            log.warning("No place to insert %s into %s", call, path)
            result.skipped_objects.append(obj)
            return text

        line_start = text.rfind("\n", 0, pos) + 1
        indent = text[line_start:pos]
        newline = "\r\n" if "\r\n" in text else "\n"
        if indent.strip():
            snippet = call + ", "  # terminator shares a line with other code
        else:
            snippet = call + "," + newline + indent

        text = text[:pos] + snippet + text[pos:]
        for span in spans.values():
            if span[0] >= pos:
                span[0] += len(snippet)

        match = match_at(text, pos, GRAMMARS_BY_TYPE[obj.source_type])
        spans[id(obj)] = [pos, match.length if match else len(snippet)]
        return text

    def _insertion_point(self, text: str, obj: LevelObject) -> Optional[int]:
        """Offset at which a new object's line is inserted."""
        if obj.source_type in (SourceType.NORMAL, SourceType.MARIO):
            if obj.area_index != -1:
                scope = find_area_scope(text, obj.area_index)
                if scope is not None:
                    end_area = next(scan(text, END_AREA_GRAMMAR, scope[0]), None)
                    if end_area is not None:
                        return end_area.offset
            return self._last_offset(text, END_AREA_GRAMMAR, "};")

        if obj.source_type == SourceType.MACRO:
            return self._last_offset(text, MACRO_OBJECT_END_GRAMMAR, "};")

        if obj.source_type == SourceType.SPECIAL:
            specials = scan_all(text, SPECIAL_GRAMMARS)
            if specials:
                return specials[-1].end
            init = next(scan(text, COL_SPECIAL_INIT_GRAMMAR), None)
            if init is not None:
                return init.end
            return self._last_offset(text, COL_END_GRAMMAR, "};")
        return None

    @staticmethod
    def _last_offset(text: str, grammar, fallback: str) -> Optional[int]:
        last = None
        for last in scan(text, grammar):
            pass
        if last is not None:
            return last.offset
        index = text.rfind(fallback)
        return index if index != -1 else None

    # ── Derived counters ──────────────────────────────────────────────

    @staticmethod
    def _update_special_count(text: str, spans: dict) -> str:
        """Make COL_SPECIAL_INIT(n) match the number of special objects."""
        init = next(scan(text, COL_SPECIAL_INIT_GRAMMAR), None)
        if init is None:
            return text
        count = len(scan_all(text, SPECIAL_GRAMMARS))
        if parse_int(init.args[0], -1) == count:
            return text
        call = f"COL_SPECIAL_INIT({count})"
        delta = len(call) - init.call_length
        text = text[:init.offset] + call + text[init.call_end:]
        for span in spans.values():
            if span[0] > init.offset:
                span[0] += delta
        log.info("COL_SPECIAL_INIT updated to %d", count)
        return text
