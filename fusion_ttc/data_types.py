from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# -----------------------------
# Geometry
# -----------------------------

@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle; containment is half-open like cv::Rect."""
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Rect needs positive width/height, got {self.width}x{self.height}")

    def contains(self, px: float, py: float) -> bool:
        return (self.x <= px < self.x + self.width) and (self.y <= py < self.y + self.height)

    def shrink(self, factor: float) -> "Rect":
        if not 0.0 <= factor < 1.0:
            raise ValueError(f"shrink factor must be in [0, 1), got {factor}")
        return Rect(
            x=self.x + factor * self.width / 2.0,
            y=self.y + factor * self.height / 2.0,
            width=self.width * (1.0 - factor),
            height=self.height * (1.0 - factor),
        )

    @classmethod
    def from_xywh(cls, bbox) -> "Rect":
        x, y, w, h = (float(v) for v in bbox)
        return cls(x, y, w, h)


# -----------------------------
# Sensor observations
# -----------------------------

@dataclass(frozen=True)
class SpatialPoint3D:
    x: float        # forward (m)
    y: float        # left (m)
    z: float        # up (m)
    r: float = 0.0  # reflectivity


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0

    @property
    def pt(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Correspondence:
    previous_index: int   # index into the previous frame's keypoints
    current_index: int    # index into the current frame's keypoints
    distance: float       # matching cost, lower is better


# -----------------------------
# Regions and frames
# -----------------------------

@dataclass
class DetectionRegion:
    id: int
    class_label: int
    confidence: float
    bounds: Rect
    assigned_points: List[SpatialPoint3D] = field(default_factory=list)
    assigned_keypoints: List[Keypoint] = field(default_factory=list)
    assigned_correspondences: List[Correspondence] = field(default_factory=list)


@dataclass
class Frame:
    keypoints: List[Keypoint]
    regions: List[DetectionRegion]
    points: List[SpatialPoint3D] = field(default_factory=list)
    index: Optional[int] = None

    def __post_init__(self):
        ids = [r.id for r in self.regions]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Region ids must be unique within a frame, got {ids}")

    def region_by_id(self) -> Dict[int, DetectionRegion]:
        return {r.id: r for r in self.regions}


@dataclass
class FramePair:
    previous: Frame
    current: Frame
    correspondences: List[Correspondence]
    frame_rate: Optional[float] = None

    def __post_init__(self):
        if self.frame_rate is not None and not self.frame_rate > 0:
            raise ValueError(f"frame_rate must be positive, got {self.frame_rate}")


# -----------------------------
# Outputs
# -----------------------------

@dataclass
class RegionTTC:
    previous_id: int
    current_id: int
    class_label: int
    confidence: float
    ttc_lidar: float
    ttc_camera: float
    n_lidar_prev: int
    n_lidar_curr: int
    n_kpt_matches: int
    x_min: Optional[float] = None    # nearest forward distance (m)
    width_y: Optional[float] = None  # lateral extent (m)

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class FrameResult:
    matches: Dict[int, int]
    regions: List[RegionTTC]
    frame_index: Optional[int] = None

    def rows(self) -> List[dict]:
        out = []
        for r in self.regions:
            row = {"frame": self.frame_index}
            row.update(r.to_dict())
            out.append(row)
        return out
