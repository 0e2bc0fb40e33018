"""
Props

Gym equipment placed in the scene: a shape (opaque SVG path data), a 2D
similarity transform and a set of named snap points hands can grab.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from rig.skeleton import rotate_point

Point = Tuple[float, float]


class PropCategory(Enum):
    """How a prop behaves while a hand holds it."""
    FREE_WEIGHT = "free_weight"  # dumbbells, kettlebells - hand drives prop
    BAR = "bar"                  # barbells, pull-up bars - prop drives hand
    CABLE = "cable"              # cable handles - prop drives hand
    FIXTURE = "fixture"          # benches, racks - prop drives hand

    @property
    def hand_driven(self) -> bool:
        return self is PropCategory.FREE_WEIGHT

    @classmethod
    def parse(cls, value: Any, default: Optional["PropCategory"] = None) -> "PropCategory":
        """Look up a category by value, falling back to `default` (FIXTURE)."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.FIXTURE


@dataclass(frozen=True)
class SnapPoint:
    """Named anchor in the prop's own (unscaled, unrotated) space."""
    id: str
    name: str
    x: float
    y: float
    visible: bool = True


@dataclass(frozen=True)
class PropTransform:
    """Translation, rotation (degrees) and per-axis scale of a prop."""
    x: float = 200.0
    y: float = 350.0
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0

    def lerp(self, other: "PropTransform", t: float) -> "PropTransform":
        """Componentwise blend; exact at t=0 and t=1."""
        return PropTransform(
            x=_lerp(self.x, other.x, t),
            y=_lerp(self.y, other.y, t),
            rotation=_lerp(self.rotation, other.rotation, t),
            scale_x=_lerp(self.scale_x, other.scale_x, t),
            scale_y=_lerp(self.scale_y, other.scale_y, t),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "scaleX": self.scale_x,
            "scaleY": self.scale_y,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["PropTransform"] = None) -> "PropTransform":
        base = base or cls()
        return cls(
            x=float(data.get("x", base.x)),
            y=float(data.get("y", base.y)),
            rotation=float(data.get("rotation", base.rotation)),
            scale_x=float(data.get("scaleX", data.get("scale_x", base.scale_x))),
            scale_y=float(data.get("scaleY", data.get("scale_y", base.scale_y))),
        )


# Keys PropTransform.from_dict understands
TRANSFORM_KEYS = frozenset({"x", "y", "rotation", "scaleX", "scaleY", "scale_x", "scale_y"})


def _lerp(a: float, b: float, t: float) -> float:
    return a * (1.0 - t) + b * t


DEFAULT_TRANSFORM = PropTransform()


@dataclass(frozen=True)
class Prop:
    """A piece of equipment in the scene."""
    id: str
    name: str
    category: PropCategory = PropCategory.FIXTURE
    transform: PropTransform = DEFAULT_TRANSFORM
    snap_points: Tuple[SnapPoint, ...] = ()
    path: str = ""
    view_box: str = "-100 -100 200 200"
    color: str = "#6b7280"
    layer: str = "front"

    def snap_point(self, snap_point_id: str) -> Optional[SnapPoint]:
        for sp in self.snap_points:
            if sp.id == snap_point_id:
                return sp
        return None

    def with_transform(self, transform: PropTransform) -> "Prop":
        return replace(self, transform=transform)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "transform": self.transform.to_dict(),
            "snapPoints": [
                {"id": sp.id, "name": sp.name, "x": sp.x, "y": sp.y, "visible": sp.visible}
                for sp in self.snap_points
            ],
            "path": self.path,
            "viewBox": self.view_box,
            "color": self.color,
            "layer": self.layer,
        }


def transform_point(x: float, y: float, transform: PropTransform) -> Point:
    """
    Map a point from prop-local space to world space.

    Order: scale, then rotate, then translate.
    """
    sx = x * transform.scale_x
    sy = y * transform.scale_y
    rx, ry = rotate_point(sx, sy, transform.rotation)
    return transform.x + rx, transform.y + ry


def find_prop(props: List[Prop], prop_id: str) -> Optional[Prop]:
    return next((p for p in props if p.id == prop_id), None)


def new_prop_id() -> str:
    return uuid.uuid4().hex[:12]


# --- Presets ---

@dataclass(frozen=True)
class PropPreset:
    name: str
    category: PropCategory
    path: str
    view_box: str
    snap_points: Tuple[SnapPoint, ...] = field(default_factory=tuple)
    color: str = "#6b7280"
    layer: str = "front"


BARBELL_PATH = (
    "M-180,-4 L180,-4 L180,4 L-180,4 Z "
    "M-140,-35 L-130,-35 L-130,35 L-140,35 Z M-152,-35 L-142,-35 L-142,35 L-152,35 Z "
    "M130,-35 L140,-35 L140,35 L130,35 Z M142,-35 L152,-35 L152,35 L142,35 Z"
)

DUMBBELL_PATH = (
    "M-30,-3 L30,-3 L30,3 L-30,3 Z "
    "M-30,-12 L-15,-12 L-15,12 L-30,12 Z M15,-12 L30,-12 L30,12 L15,12 Z"
)

PROP_PRESETS: Dict[str, PropPreset] = {
    "barbell": PropPreset(
        name="Barbell",
        category=PropCategory.BAR,
        path=BARBELL_PATH,
        view_box="-190 -40 380 80",
        snap_points=(
            SnapPoint("center", "Center", 0, 0),
            SnapPoint("close_l", "Close L", -30, 0),
            SnapPoint("close_r", "Close R", 30, 0),
            SnapPoint("medium_l", "Medium L", -60, 0),
            SnapPoint("medium_r", "Medium R", 60, 0),
            SnapPoint("wide_l", "Wide L", -100, 0),
            SnapPoint("wide_r", "Wide R", 100, 0),
            SnapPoint("outside_l", "Outside L", -145, 0),
            SnapPoint("outside_r", "Outside R", 145, 0),
        ),
    ),
    "dumbbell": PropPreset(
        name="Dumbbell",
        category=PropCategory.FREE_WEIGHT,
        path=DUMBBELL_PATH,
        view_box="-35 -15 70 30",
        snap_points=(
            SnapPoint("center", "Handle", 0, 0),
            SnapPoint("disc_l", "Disc L", -22, 0),
            SnapPoint("disc_r", "Disc R", 22, 0),
        ),
    ),
    "bench_flat": PropPreset(
        name="Bench (Flat)",
        category=PropCategory.FIXTURE,
        path="M-90,-20 L90,-20 L90,-10 L-90,-10 Z M-80,-10 L-80,20 M80,-10 L80,20",
        view_box="-30 -100 60 200",
        snap_points=(
            SnapPoint("head", "Head", 0, -80),
            SnapPoint("center", "Center", 0, 0),
        ),
        color="#374151",
        layer="back",
    ),
}


def prop_from_preset(preset_key: str, prop_id: Optional[str] = None) -> Prop:
    """
    Create a new prop instance from a preset.

    Raises:
        KeyError: if `preset_key` is not a known preset
    """
    preset = PROP_PRESETS[preset_key]
    return Prop(
        id=prop_id or new_prop_id(),
        name=preset.name,
        category=preset.category,
        transform=DEFAULT_TRANSFORM,
        snap_points=preset.snap_points,
        path=preset.path,
        view_box=preset.view_box,
        color=preset.color,
        layer=preset.layer,
    )
