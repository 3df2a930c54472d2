"""
Level Descriptor
================

Immutable data model for generated levels: ranks, piste geometry parameters,
special features and bonus objectives. The rendering layer consumes a
LevelDescriptor (or its ``to_dict()`` form) to build the playable grid.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from shift_engine.runs_core.errors import InvalidParameterError


class Rank(str, Enum):
    """Difficulty tier, ordered green < blue < red < black."""
    GREEN = "green"
    BLUE = "blue"
    RED = "red"
    BLACK = "black"

    @classmethod
    def parse(cls, value: Union["Rank", str]) -> "Rank":
        """Coerce a rank name to a Rank, rejecting unknown values."""
        if isinstance(value, Rank):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidParameterError(f"Unknown rank: {value!r}") from None

    @property
    def index(self) -> int:
        return _RANK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Rank):
            return NotImplemented
        return self.index < other.index

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Rank):
            return NotImplemented
        return self.index <= other.index

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Rank):
            return NotImplemented
        return self.index > other.index

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Rank):
            return NotImplemented
        return self.index >= other.index


_RANK_ORDER: Tuple[Rank, ...] = (Rank.GREEN, Rank.BLUE, Rank.RED, Rank.BLACK)
RANKS = _RANK_ORDER


class Variant(str, Enum):
    """Level variant decided once per generation request."""
    REGULAR = "regular"
    PARK = "park"


class Weather(str, Enum):
    CLEAR = "clear"
    LIGHT_SNOW = "light_snow"
    STORM = "storm"


class PisteShape(str, Enum):
    STRAIGHT = "straight"
    WIDE = "wide"
    GENTLE_CURVE = "gentle_curve"
    WINDING = "winding"
    SERPENTINE = "serpentine"
    FUNNEL = "funnel"
    DOGLEG = "dogleg"
    HOURGLASS = "hourglass"


class SpecialFeature(str, Enum):
    KICKERS = "kickers"
    RAILS = "rails"
    HALFPIPE = "halfpipe"


class ObstacleType(str, Enum):
    TREES = "trees"
    ROCKS = "rocks"
    PYLONS = "pylons"


class ObjectiveKind(str, Enum):
    """Closed set of bonus objective kinds."""
    EXPLORATION = "exploration"
    PRECISION_GROOMING = "precision_grooming"
    PIPE_MASTERY = "pipe_mastery"
    FUEL_EFFICIENCY = "fuel_efficiency"
    FLAWLESS = "flawless"
    SPEED_RUN = "speed_run"
    WINCH_MASTERY = "winch_mastery"


LABEL_KEYS: Dict[ObjectiveKind, str] = {
    ObjectiveKind.EXPLORATION: "bonusExplore",
    ObjectiveKind.PRECISION_GROOMING: "bonusPrecision",
    ObjectiveKind.PIPE_MASTERY: "bonusPipeMastery",
    ObjectiveKind.FUEL_EFFICIENCY: "bonusFuel",
    ObjectiveKind.FLAWLESS: "bonusFlawless",
    ObjectiveKind.SPEED_RUN: "bonusSpeed",
    ObjectiveKind.WINCH_MASTERY: "bonusWinch",
}


@dataclass(frozen=True)
class SteepZone:
    """Band of steep rows; y values are fractions of level height."""
    start_y: float
    end_y: float
    slope: int


@dataclass(frozen=True)
class WinchAnchor:
    y: float


@dataclass(frozen=True)
class AccessPath:
    """Service road bypassing a steep zone along one side of the piste."""
    start_y: float
    end_y: float
    side: str  # "left" or "right"


@dataclass(frozen=True)
class SlalomGate:
    """
    Gate position on the piste.

    ``y`` is a fraction of level height, ``offset`` a fraction of the piste
    half-width from the row center (-1 = left edge, +1 = right edge).
    """
    y: float
    offset: float
    width: int


@dataclass(frozen=True)
class PisteVariation:
    freq_offset: float = 0.0
    amp_scale: float = 1.0
    phase: float = 0.0
    width_phase: float = 0.0


@dataclass(frozen=True)
class WildlifeSpawn:
    species: str
    count: int


@dataclass(frozen=True)
class BonusObjective:
    """
    Optional goal attached to a level.

    ``kind`` is kept as a plain string so that objectives coming back from
    storage with an unrecognized kind survive until the evaluator flags them.
    """
    kind: str
    target: Optional[float]
    total: Optional[int] = None
    label_key: str = ""

    @staticmethod
    def of(kind: ObjectiveKind, target: float, total: Optional[int] = None) -> "BonusObjective":
        return BonusObjective(
            kind=kind.value,
            target=target,
            total=total,
            label_key=LABEL_KEYS[kind],
        )

    @property
    def known_kind(self) -> Optional[ObjectiveKind]:
        """The ObjectiveKind for this objective, or None if unrecognized."""
        try:
            return ObjectiveKind(self.kind)
        except ValueError:
            return None

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "BonusObjective":
        """
        Build an objective from a plain mapping.

        Accepts ``type`` or ``kind`` for the kind, and the threshold under
        ``target`` or a kind-specific alias (``required_paths``,
        ``required_quality`` and their camelCase spellings).
        """
        kind = data.get("type", data.get("kind", ""))
        kind = kind.value if isinstance(kind, Enum) else str(kind)
        target = None
        for key in ("target", "required_paths", "requiredPaths",
                    "required_quality", "requiredQuality"):
            if data.get(key) is not None:
                target = data[key]
                break
        total = None
        for key in ("total", "total_paths", "totalPaths"):
            if data.get(key) is not None:
                total = data[key]
                break
        label_key = data.get("label_key", data.get("labelKey"))
        if label_key is None:
            try:
                label_key = LABEL_KEYS[ObjectiveKind(kind)]
            except ValueError:
                label_key = ""
        return BonusObjective(kind=kind, target=target, total=total, label_key=str(label_key))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind, "target": self.target}
        if self.total is not None:
            data["total"] = self.total
        data["label_key"] = self.label_key
        return data


@dataclass(frozen=True)
class LevelDescriptor:
    """
    A complete generated level.

    Fractional positions (steep zones, anchors, access paths, gates) are
    relative to ``height``; dimensions are in tiles, time in seconds.
    """
    id: int
    seed: int
    rank: Rank
    difficulty: str
    name_key: str
    name: str
    task_key: str
    width: int
    height: int
    piste_shape: PisteShape
    piste_width: float
    piste_variation: PisteVariation
    target_coverage: int
    time_limit: int
    is_night: bool
    weather: Weather
    has_winch: bool
    obstacle_density: float = 0.0
    obstacles: Tuple[ObstacleType, ...] = ()
    steep_zones: Tuple[SteepZone, ...] = ()
    winch_anchors: Tuple[WinchAnchor, ...] = ()
    access_paths: Tuple[AccessPath, ...] = ()
    hazards: Tuple[str, ...] = ()
    has_dangerous_boundaries: bool = False
    slalom_gates: Tuple[SlalomGate, ...] = ()
    special_features: Tuple[SpecialFeature, ...] = ()
    wildlife: Tuple[WildlifeSpawn, ...] = ()
    bonus_objectives: Tuple[BonusObjective, ...] = ()
    intro_speaker: str = ""
    intro_dialogue: str = ""

    @property
    def is_park(self) -> bool:
        return self.difficulty == Variant.PARK.value

    @property
    def variant(self) -> Variant:
        return Variant.PARK if self.is_park else Variant.REGULAR

    @property
    def area(self) -> int:
        return self.width * self.height

    def has_feature(self, feature: SpecialFeature) -> bool:
        return feature in self.special_features

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-compatible representation."""
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BonusObjective):
        return value.to_dict()
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    if hasattr(value, "__dataclass_fields__"):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    return value
