"""Data model for objects placed in an SM64 decomp level."""

import enum
from dataclasses import dataclass, field
from typing import Optional


MARIO_MODEL = "MODEL_MARIO"
MARIO_BEHAVIOR = "bhvMario"
SPECIAL_BEHAVIOR = "(Special Object)"  # Special presets have no behavior of their own

PARAMS_MASK = 0xFFFFFFFF


class SourceType(enum.Enum):
    """Which macro grammar an object was read from (and is written back with)."""
    NORMAL = "normal"    # OBJECT / OBJECT_WITH_ACTS in script.c
    MACRO = "macro"      # MACRO_OBJECT / MACRO_OBJECT_WITH_BHV_PARAM in macro.inc.c
    SPECIAL = "special"  # SPECIAL_OBJECT* in collision.inc.c
    MARIO = "mario"      # MARIO_POS in script.c


@dataclass(frozen=True)
class SourceLocation:
    """Exact span of an invocation inside its file."""
    file: str
    offset: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length


def is_placeholder(value: str) -> bool:
    """Check if a model/behavior value is an error marker that must never reach source."""
    if not value or not value.strip():
        return True
    if "ERROR" in value or value.startswith("MISSING_"):
        return True
    return value == SPECIAL_BEHAVIOR


@dataclass
class LevelObject:
    """A single placed entity from a level's C sources."""
    model_name: str = ""          # MODEL_* or geo layout reference
    position: tuple = (0, 0, 0)   # x, y, z
    rotation: tuple = (0, 0, 0)   # rx, ry, rz in degrees, ry is the yaw
    params: int = 0               # 32-bit behavior parameter bitfield
    behavior: str = ""            # bhv* name, or a sentinel for special/Mario entries
    preset_name: Optional[str] = None
    preset_param: int = 0         # macro preset bits ORed into params on every load
    source_type: SourceType = SourceType.NORMAL
    location: Optional[SourceLocation] = None
    area_index: int = -1
    is_deleted: bool = False
    is_new: bool = False
    # Field values as last read from / written to disk
    baseline: Optional[tuple] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.position = tuple(int(v) for v in self.position)
        self.rotation = tuple(int(v) for v in self.rotation)
        self.params = int(self.params) & PARAMS_MASK

    @property
    def x(self) -> int:
        return self.position[0]

    @property
    def y(self) -> int:
        return self.position[1]

    @property
    def z(self) -> int:
        return self.position[2]

    @property
    def rx(self) -> int:
        return self.rotation[0]

    @property
    def ry(self) -> int:
        return self.rotation[1]

    @property
    def rz(self) -> int:
        return self.rotation[2]

    @property
    def target_file(self) -> Optional[str]:
        """File this object lives in (or will be inserted into when new)."""
        return self.location.file if self.location else None

    @property
    def is_persisted(self) -> bool:
        return (not self.is_new and self.location is not None
                and self.location.length > 0)

    def snapshot(self) -> tuple:
        """Return the editable field values as a comparable tuple."""
        return (self.model_name, self.position, self.rotation, self.params,
                self.behavior, self.preset_name)

    def mark_clean(self):
        """Record the current field values as the on-disk state."""
        self.baseline = self.snapshot()

    def is_modified(self) -> bool:
        if self.baseline is None:
            return True
        return self.snapshot() != self.baseline

    def baseline_value(self, name: str):
        """Look up a field's on-disk value by attribute name."""
        if self.baseline is None:
            return None
        keys = ("model_name", "position", "rotation", "params",
                "behavior", "preset_name")
        return self.baseline[keys.index(name)]

    def display_name(self) -> str:
        """Name shown in object lists: preset for macro/special, else the model."""
        if self.source_type in (SourceType.MACRO, SourceType.SPECIAL) and self.preset_name:
            return self.preset_name
        return self.model_name
