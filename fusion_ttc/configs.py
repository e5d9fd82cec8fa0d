import os
import sys
from dataclasses import dataclass, fields, replace
from typing import Optional

import yaml

SHRINK_FACTOR = 0.10       # shrink boxes by 10% before assigning LiDAR points
KPT_OUTLIER_RATIO = 0.7    # drop matches with distance < ratio * mean distance
CAM_MIN_DIST_PX = 100.0    # min current-frame keypoint separation (px)
CAM_DIST_EPS = sys.float_info.epsilon
FRAME_RATE = 10.0          # Hz, KITTI camera/velodyne rate
LIDAR_REDUCER = "median"   # "median" or "closest"

# ego-lane crop (meters); None disables cropping
LIDAR_CROP = {"min_x": 2.0, "max_x": 20.0, "max_y": 2.0,
              "min_z": -1.5, "max_z": -0.9, "min_r": 0.1}


@dataclass
class FusionParams:
    shrink_factor: float = SHRINK_FACTOR
    outlier_ratio: float = KPT_OUTLIER_RATIO
    min_dist: float = CAM_MIN_DIST_PX
    dist_eps: float = CAM_DIST_EPS
    frame_rate: float = FRAME_RATE
    lidar_reducer: str = LIDAR_REDUCER
    lidar_crop: Optional[dict] = None

    def __post_init__(self):
        if not 0.0 <= self.shrink_factor < 1.0:
            raise ValueError(f"shrink_factor must be in [0, 1), got {self.shrink_factor}")
        if self.frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {self.frame_rate}")
        if self.lidar_reducer not in ("median", "closest"):
            raise ValueError(f"unknown lidar_reducer '{self.lidar_reducer}'")


def load_params(params_yaml=None, **overrides):
    """
    Build FusionParams from the module defaults, an optional YAML file and
    keyword overrides (applied last, None values ignored).

    A YAML `lidar_crop: default` entry expands to LIDAR_CROP.
    """
    params = FusionParams()
    cfg = {}
    if params_yaml is not None:
        if not os.path.exists(params_yaml):
            raise FileNotFoundError(f"Params file not found: {params_yaml}")
        with open(params_yaml, "r") as f:
            cfg = yaml.safe_load(f) or {}
    cfg.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(FusionParams)}
    unknown = sorted(set(cfg) - known)
    if unknown:
        raise ValueError(f"Unknown parameter(s) in {params_yaml or 'overrides'}: {unknown}")

    if cfg.get("lidar_crop") == "default":
        cfg["lidar_crop"] = dict(LIDAR_CROP)
    return replace(params, **cfg)
