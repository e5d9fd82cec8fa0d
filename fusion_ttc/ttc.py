import logging

import numpy as np

from .configs import CAM_DIST_EPS, CAM_MIN_DIST_PX, LIDAR_REDUCER

logger = logging.getLogger(__name__)


def sorted_median(values):
    """Median of a sequence: middle value (odd) or mean of the two middle values (even)."""
    vals = sorted(values)
    if not vals:
        raise ValueError("median of an empty sequence")
    mid = len(vals) // 2
    if len(vals) % 2 == 0:
        return (vals[mid - 1] + vals[mid]) / 2.0
    return vals[mid]


def compute_ttc_lidar(points_prev, points_curr, frame_rate, reducer=LIDAR_REDUCER):
    """
    TTC from the forward (x) distance of one object's LiDAR points in two
    consecutive frames, assuming a constant closing velocity.

    reducer="median" uses the median x of each set (robust to stray close
    returns); reducer="closest" uses the minimum x.

    Negative TTC means the object is not closing; equal distances give inf.
    """
    if not points_prev or not points_curr:
        raise ValueError("compute_ttc_lidar needs at least one point in each frame")

    if reducer == "median":
        d_prev = sorted_median(p.x for p in points_prev)
        d_curr = sorted_median(p.x for p in points_curr)
    elif reducer == "closest":
        d_prev = min(p.x for p in points_prev)
        d_curr = min(p.x for p in points_curr)
    else:
        raise ValueError(f"unknown reducer '{reducer}'")

    dT = 1.0 / frame_rate
    with np.errstate(divide="ignore", invalid="ignore"):
        ttc = dT * np.float64(d_curr) / (np.float64(d_prev) - np.float64(d_curr))
    logger.debug("lidar TTC: x_prev=%.3f x_curr=%.3f -> %.3f s", d_prev, d_curr, ttc)
    return float(ttc)


def distance_ratios(kpts_prev, kpts_curr, matches, min_dist=CAM_MIN_DIST_PX, eps=CAM_DIST_EPS):
    """Ratios dist_curr / dist_prev over every unordered pair of matches that pass the guards."""
    if len(matches) < 2:
        return np.zeros(0, dtype=np.float64)

    prev = np.array([kpts_prev[m.previous_index].pt for m in matches], dtype=np.float64)
    curr = np.array([kpts_curr[m.current_index].pt for m in matches], dtype=np.float64)

    i, j = np.triu_indices(len(matches), k=1)
    dist_prev = np.linalg.norm(prev[i] - prev[j], axis=1)
    dist_curr = np.linalg.norm(curr[i] - curr[j], axis=1)

    keep = (dist_prev > eps) & (dist_curr >= min_dist)
    return dist_curr[keep] / dist_prev[keep]


def compute_ttc_camera(kpts_prev, kpts_curr, matches, frame_rate,
                       min_dist=CAM_MIN_DIST_PX, eps=CAM_DIST_EPS):
    """
    TTC from the scale change between keypoint pairs of one object.

    Returns NaN when no pair survives the distance guards, a negative value
    when the object is shrinking (not closing).
    """
    ratios = distance_ratios(kpts_prev, kpts_curr, matches, min_dist=min_dist, eps=eps)
    if ratios.size == 0:
        logger.debug("camera TTC: no usable keypoint pairs among %d matches", len(matches))
        return float("nan")

    med_ratio = sorted_median(ratios.tolist())
    dT = 1.0 / frame_rate
    with np.errstate(divide="ignore", invalid="ignore"):
        ttc = -dT / (1.0 - np.float64(med_ratio))
    logger.debug("camera TTC: %d ratios, median %.4f -> %.3f s", ratios.size, med_ratio, ttc)
    return float(ttc)
