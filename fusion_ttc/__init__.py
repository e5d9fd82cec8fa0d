from .data_types import (Correspondence, DetectionRegion, Frame, FramePair, FrameResult,
                         Keypoint, Rect, RegionTTC, SpatialPoint3D)
from .configs import FusionParams, load_params
