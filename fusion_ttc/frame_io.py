"""
Frame-pair files and result tables.

A frame-pair file is JSON:

    {
      "frame_rate": 10.0,
      "previous": {"index": 17,
                   "keypoints": [[u, v], ...],
                   "regions": [{"id": 0, "class": 2, "confidence": 0.8,
                                "bbox": [x, y, w, h]}, ...],
                   "lidar": "lidar/0017.npz"},
      "current":  {...},
      "matches":  [[previous_index, current_index, distance], ...]
    }

`lidar` is either a path (relative to the JSON file; .npz/.npy/.pcd) or an
inline list of [x, y, z(, r)] rows.
"""
import json
import logging
import math
import os

import numpy as np
import pandas as pd

from lidar_projection.project_lidar import array_to_points, load_point_cloud
from .data_types import DetectionRegion, Frame, FramePair, Rect
from .features import correspondences_from_list, keypoints_from_list

logger = logging.getLogger(__name__)


class FrameDataError(ValueError):
    pass


def _load_region(rec, where):
    try:
        return DetectionRegion(
            id=int(rec["id"]),
            class_label=int(rec.get("class", -1)),
            confidence=float(rec.get("confidence", 0.0)),
            bounds=Rect.from_xywh(rec["bbox"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise FrameDataError(f"{where}: bad region record {rec}: {e}") from e


def _load_lidar(source, base_dir):
    if source is None:
        return []
    if isinstance(source, str):
        path = source if os.path.isabs(source) else os.path.join(base_dir, source)
        return load_point_cloud(path)
    return array_to_points(np.asarray(source, dtype=np.float64))


def _load_frame(data, name, base_dir):
    if name not in data:
        raise FrameDataError(f"missing '{name}' frame section")
    sec = data[name]
    try:
        keypoints = keypoints_from_list(sec.get("keypoints", []))
        points = _load_lidar(sec.get("lidar"), base_dir)
    except ValueError as e:
        raise FrameDataError(f"{name}: {e}") from e
    regions = [_load_region(r, name) for r in sec.get("regions", [])]
    try:
        return Frame(keypoints=keypoints, regions=regions, points=points, index=sec.get("index"))
    except ValueError as e:
        raise FrameDataError(f"{name}: {e}") from e


def load_frame_pair(json_path):
    if not os.path.exists(json_path):
        raise FileNotFoundError(f"Frame pair file not found: {json_path}")
    with open(json_path, "r") as f:
        data = json.load(f)
    base_dir = os.path.dirname(os.path.abspath(json_path))

    previous = _load_frame(data, "previous", base_dir)
    current = _load_frame(data, "current", base_dir)
    try:
        matches = correspondences_from_list(data.get("matches", []))
    except ValueError as e:
        raise FrameDataError(str(e)) from e

    for m in matches:
        if not (0 <= m.previous_index < len(previous.keypoints)):
            raise FrameDataError(f"match {m} references missing previous keypoint")
        if not (0 <= m.current_index < len(current.keypoints)):
            raise FrameDataError(f"match {m} references missing current keypoint")

    logger.debug("%s: %d/%d regions, %d/%d LiDAR points, %d matches", json_path,
                 len(previous.regions), len(current.regions),
                 len(previous.points), len(current.points), len(matches))
    try:
        return FramePair(previous=previous, current=current, correspondences=matches,
                         frame_rate=data.get("frame_rate"))
    except (TypeError, ValueError) as e:
        raise FrameDataError(f"{json_path}: {e}") from e


def _json_safe(v):
    # NaN/inf are legitimate TTC outcomes; JSON has no literal for them
    if isinstance(v, float) and not math.isfinite(v):
        return None if math.isnan(v) else ("inf" if v > 0 else "-inf")
    return v


def save_result_json(result, out_path):
    out = {
        "frame": result.frame_index,
        "matches": {str(k): v for k, v in result.matches.items()},
        "regions": [{k: _json_safe(v) for k, v in r.to_dict().items()} for r in result.regions],
    }
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w") as f:
        json.dump(out, f, indent=2)
    return out_path


def save_rows_csv(rows, csv_path, append=True):
    """Write per-region rows; with append=True an existing table is extended."""
    new_df = pd.DataFrame(rows)
    if append and os.path.exists(csv_path):
        existing_df = pd.read_csv(csv_path)
        new_df = pd.concat([existing_df, new_df], ignore_index=True)
    os.makedirs(os.path.dirname(csv_path) or ".", exist_ok=True)
    new_df.to_csv(csv_path, index=False)
    return new_df
