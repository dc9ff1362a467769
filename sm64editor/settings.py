"""Persistent editor settings (_settings.json)."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field

log = logging.getLogger(__name__)

# Settings file lives next to main.py
SETTINGS_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                             "_settings.json")


@dataclass
class EditorSettings:
    """Project layout knobs and the last opened project."""
    last_project_root: str = ""
    # Searched upwards from a level folder, then under the project root
    include_subdirs: list = field(default_factory=lambda: [
        "include", "howtomake/include", "leveleditor/include", "levels/include",
    ])
    levels_subdirs: list = field(default_factory=lambda: ["levels", "howtomake/levels"])
    actors_subdirs: list = field(default_factory=lambda: ["actors", "leveleditor/actors"])
    collision_file_name: str = "collision.inc.c"
    macro_file_name: str = "macro.inc.c"

    @classmethod
    def load(cls, path: str = SETTINGS_FILE) -> "EditorSettings":
        """Load settings, falling back to defaults for a missing or corrupt file."""
        settings = cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                cfg = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError, OSError):
            return settings  # No saved settings, use defaults
        if not isinstance(cfg, dict):
            return settings

        if isinstance(cfg.get("last_project_root"), str):
            settings.last_project_root = cfg["last_project_root"]
        for key in ("include_subdirs", "levels_subdirs", "actors_subdirs"):
            value = cfg.get(key)
            if isinstance(value, list) and all(isinstance(v, str) for v in value):
                setattr(settings, key, value)
        for key in ("collision_file_name", "macro_file_name"):
            value = cfg.get(key)
            if isinstance(value, str) and value:
                setattr(settings, key, value)
        return settings

    def save(self, path: str = SETTINGS_FILE):
        """Persist settings; a failed write is logged, not raised."""
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, ensure_ascii=False, indent=2)
        except OSError as exc:
            log.warning("Could not save settings to %s: %s", path, exc)
