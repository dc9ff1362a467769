"""The canonical object list of an edit session, shared with the 3D viewport.

The viewport renders from its own thread.  It never touches the live list:
it takes a snapshot() and re-snapshots when objects_changed fires.  Every
mutation here swaps or appends one list element under a single lock.
"""

import dataclasses
import logging
import threading
from contextlib import contextmanager

from PyQt6.QtCore import QObject, pyqtSignal

from .level_object import LevelObject, SourceLocation, SourceType
from .level_project import resolve_script_path
from .level_saver import LevelSaver

log = logging.getLogger(__name__)


class EditSession(QObject):
    """Owns the objects of one open level area and applies UI edits to them."""

    objects_changed = pyqtSignal()   # a mutation or batch of mutations landed
    saved = pyqtSignal(object)       # SaveResult

    def __init__(self, objects=None, saver: LevelSaver = None, parent=None):
        super().__init__(parent)
        self._objects = list(objects or [])
        self._lock = threading.Lock()
        self._batch_depth = 0
        self._pending = False
        self.saver = saver or LevelSaver()

    def __len__(self):
        with self._lock:
            return len(self._objects)

    def snapshot(self) -> tuple:
        """Immutable view of the current list for the render thread."""
        with self._lock:
            return tuple(self._objects)

    def get(self, index: int) -> LevelObject:
        with self._lock:
            return self._objects[index]

    def index_of(self, obj: LevelObject) -> int:
        with self._lock:
            for i, o in enumerate(self._objects):
                if o is obj:
                    return i
        return -1

    def has_unsaved_changes(self) -> bool:
        return any(o.is_new or o.is_deleted or o.is_modified() for o in self.snapshot())

    # ── Notification ──────────────────────────────────────────────────

    @contextmanager
    def batch(self):
        """Group mutations so objects_changed fires once at the end."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._pending:
                self._pending = False
                self.objects_changed.emit()

    def _notify(self):
        if self._batch_depth:
            self._pending = True
        else:
            self.objects_changed.emit()

    # ── Mutations ─────────────────────────────────────────────────────

    def replace(self, index: int, obj: LevelObject):
        with self._lock:
            self._objects[index] = obj
        self._notify()

    def update(self, index: int, **fields) -> LevelObject:
        """Replace the object at *index* with a copy carrying *fields*."""
        with self._lock:
            new = dataclasses.replace(self._objects[index], **fields)
            self._objects[index] = new
        self._notify()
        return new

    def append(self, obj: LevelObject) -> int:
        with self._lock:
            self._objects.append(obj)
            index = len(self._objects) - 1
        self._notify()
        return index

    def add_new(self, obj: LevelObject, target_file: str) -> int:
        """Append an unsaved object that will be inserted into *target_file*."""
        obj = dataclasses.replace(obj, is_new=True, is_deleted=False,
                                  location=SourceLocation(target_file), baseline=None)
        return self.append(obj)

    def mark_deleted(self, index: int) -> LevelObject:
        return self.update(index, is_deleted=True)

    def move(self, index: int, x: int, y: int, z: int) -> LevelObject:
        return self.update(index, position=(x, y, z))

    def rotate(self, index: int, rx: int, ry: int, rz: int) -> LevelObject:
        return self.update(index, rotation=(rx, ry, rz))

    def set_model(self, index: int, model_name: str, script_path: str = None) -> int:
        """Change an object's model; returns the index now holding the object.

        A macro object takes its model from its preset, so it is converted to
        a standard OBJECT keeping its behavior.  Special objects are left as
        they are and the saver reports them as not written.
        """
        obj = self.get(index)
        if obj.source_type == SourceType.MACRO and model_name != obj.model_name:
            return self.convert_to_normal(index, obj.behavior, script_path, model_name=model_name)
        self.update(index, model_name=model_name)
        return index

    def set_behavior(self, index: int, behavior: str, script_path: str = None) -> int:
        """Change an object's behavior; returns the index now holding the object.

        Macro and special objects cannot carry an arbitrary behavior, so they
        are converted to a standard OBJECT in the level script.
        """
        obj = self.get(index)
        if obj.source_type in (SourceType.MACRO, SourceType.SPECIAL):
            return self.convert_to_normal(index, behavior, script_path)
        self.update(index, behavior=behavior)
        return index

    def convert_to_normal(self, index: int, behavior: str, script_path: str = None,
                          model_name: str = None) -> int:
        """Delete a macro/special object and re-add it as OBJECT in script.c."""
        old = self.get(index)
        script_path = script_path or resolve_script_path(old.target_file or "")
        if not script_path:
            log.warning("No script.c found for %s; new object has no target file",
                        old.display_name())
        new = LevelObject(
            model_name=model_name or old.model_name,
            position=old.position,
            rotation=(0, old.ry, 0),
            behavior=behavior,
            source_type=SourceType.NORMAL,
            location=SourceLocation(script_path) if script_path else None,
            area_index=old.area_index,
            is_new=True,
        )
        with self.batch():
            self.mark_deleted(index)
            return self.append(new)

    # ── Persistence ───────────────────────────────────────────────────

    def save(self):
        """Write all pending edits; returns the SaveResult."""
        # The saver updates what it writes; earlier snapshots keep their objects
        work = [dataclasses.replace(o) for o in self.snapshot()]
        result = self.saver.save(work)
        with self._lock:
            self._objects = work
        if not result.success:
            log.warning("Level not fully saved: %d file(s) failed, %d object(s) skipped",
                        len(result.failed_files), len(result.skipped_objects))
        self._notify()
        self.saved.emit(result)
        return result
