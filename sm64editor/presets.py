"""Preset tables and model id resolution.

Macro and special objects name a preset instead of spelling out a model and
behavior; these helpers read the preset tables shipped in ``include/`` and
the ``#define`` model id table so objects can be shown with real names.

Every parser returns an empty result for a missing file.
"""

import logging
import os
import re
from dataclasses import dataclass

from .macro_scanner import is_int_literal, parse_int, strip_comments

log = logging.getLogger(__name__)

# /* macro_goomba_triplet_formation */ { bhvGoombaTripletSpawner, MODEL_GOOMBA, 0 },
_MACRO_PRESET_RE = re.compile(
    r"/\*\s*([A-Za-z0-9_]+)\s*\*/\s*\{\s*([^,{}]+?)\s*,\s*([^,{}]+?)\s*,\s*([^{}]+?)\s*\}")

# { special_null_start, SPTYPE_NO_YROT_OR_PARAMS, 0x00, MODEL_NONE, NULL },
_SPECIAL_PRESET_RE = re.compile(
    r"\{\s*([A-Za-z0-9_]+)\s*,\s*[A-Za-z0-9_]+\s*,\s*(?:0x[0-9a-fA-F]+|\d+)\s*,\s*([A-Za-z0-9_]+)")

# special_level_geo_03 = special_level_geo_02,
_ALIAS_RE = re.compile(r"([A-Za-z0-9_]+)\s*=\s*([A-Za-z0-9_]+)")

# #define MODEL_GOOMBA 0xC0   /  #define MODEL_LEVEL_GEOMETRY_03 MODEL_LEVEL_GEOMETRY_02
_DEFINE_RE = re.compile(
    r"^[ \t]*#[ \t]*define[ \t]+([A-Za-z_]\w*)[ \t]+(0[xX][0-9a-fA-F]+|\d+|[A-Za-z_]\w*)\b",
    re.MULTILINE)

# extern const GeoLayout goomba_geo[];
_GEO_LAYOUT_RE = re.compile(r"(?:extern\s+const\s+GeoLayout\s+)?\b([A-Za-z0-9_]+_geo)\b(?:\[\])?")


def _read_text(path: str):
    """Read a table file, or None when it does not exist or cannot be read."""
    if not path or not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as exc:
        log.warning("Failed to read %s: %s", path, exc)
        return None


# ── Macro presets ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class MacroPreset:
    """One row of macro_presets.inc.c."""
    behavior: str
    model: str
    param_text: str = "0"  # as written; may be an OR expression
    param: int = 0         # literal part of param_text


def _literal_param(param_text: str) -> int:
    """OR together the integer literals of a param expression, ignoring names."""
    value = 0
    for term in param_text.split("|"):
        term = term.strip().strip("()").strip()
        if is_int_literal(term):
            value |= parse_int(term)
    return value


def parse_macro_presets(path: str) -> dict:
    """Parse macro_presets.inc.c into {preset_name: MacroPreset}."""
    presets = {}
    content = _read_text(path)
    if content is None:
        log.warning("Macro presets file not found: %s", path)
        return presets

    for m in _MACRO_PRESET_RE.finditer(content):
        name, behavior, model, param_text = (g.strip() for g in m.groups())
        param_text = " ".join(strip_comments(param_text).split()) or "0"
        presets[name] = MacroPreset(
            behavior=behavior,
            model=model,
            param_text=param_text,
            param=_literal_param(param_text),
        )
    log.info("Parsed %d macro presets from %s", len(presets), os.path.basename(path))
    return presets


# ── Special presets ───────────────────────────────────────────────────

def _alias_header_path(path: str) -> str:
    """special_presets.inc.c -> special_presets.h"""
    if path.endswith(".inc.c"):
        header = path[:-len(".inc.c")] + ".h"
        if os.path.isfile(header):
            return header
    return os.path.splitext(path)[0] + ".h"


def parse_special_presets(path: str) -> dict:
    """Parse special_presets.inc.c into {preset_name: model}.

    Aliases from the companion header (``alias = target``) are added when
    the target is already known; they are resolved in a single pass.
    """
    mapping = {}
    content = _read_text(path)
    if content is None:
        log.warning("Special presets file not found: %s", path)
        return mapping

    for m in _SPECIAL_PRESET_RE.finditer(strip_comments(content)):
        mapping.setdefault(m.group(1), m.group(2))

    header = _read_text(_alias_header_path(path))
    if header is not None:
        for m in _ALIAS_RE.finditer(strip_comments(header)):
            alias, target = m.groups()
            if target in mapping and alias not in mapping:
                mapping[alias] = mapping[target]

    log.info("Parsed %d special object presets from %s", len(mapping), os.path.basename(path))
    return mapping


# ── Model ids ─────────────────────────────────────────────────────────

def resolve_defines(defines) -> dict:
    """Resolve (name, value_text) pairs to integers.

    Literal values are taken first, then alias passes repeat until a pass
    resolves nothing new.  Chains that never reach a literal are omitted.
    """
    values = {}
    for name, value in defines:
        if name not in values:
            values[name] = value

    mapping = {name: parse_int(v) for name, v in values.items() if is_int_literal(v)}
    changed = True
    while changed:
        changed = False
        for name, value in values.items():
            if name not in mapping and value in mapping:
                mapping[name] = mapping[value]
                changed = True
    return mapping


def parse_model_ids(path: str) -> dict:
    """Parse model_ids.h into {MODEL_NAME: numeric id}."""
    content = _read_text(path)
    if content is None:
        log.warning("Model id header not found: %s", path)
        return {}
    defines = _DEFINE_RE.findall(strip_comments(content))
    return resolve_defines(defines)


def parse_geo_layout_names(path: str) -> list:
    """List geo layouts declared in an actor header plus their MODEL_ names."""
    content = _read_text(path)
    if content is None:
        return []
    names = []
    for m in _GEO_LAYOUT_RE.finditer(content):
        geo = m.group(1)
        names.append(geo)
        names.append("MODEL_" + geo[:-len("_geo")].upper())
    return names


class ModelResolver:
    """Maps model references (names or numeric ids) to models loaded by a level."""

    def __init__(self, model_ids: dict = None, load_models: dict = None):
        self.model_ids = dict(model_ids or {})
        self.load_models = dict(load_models or {})  # MODEL_* -> geo layout
        self._id_to_model = {}
        for model in self.load_models:
            model_id = self.model_ids.get(model)
            if model_id is not None:
                self._id_to_model.setdefault(model_id, model)

    def model_id(self, model: str):
        """Numeric id of a model reference, or None."""
        if is_int_literal(model):
            return parse_int(model)
        return self.model_ids.get(model)

    def resolve(self, model: str) -> str:
        """Return the loaded model name for *model*, or *model* itself if unknown."""
        if model in self.load_models:
            return model
        model_id = self.model_id(model)
        if model_id is not None and model_id in self._id_to_model:
            return self._id_to_model[model_id]
        return model

    def geo_layout(self, model: str):
        return self.load_models.get(self.resolve(model))
