import logging

import numpy as np

from lidar_projection.project_lidar import array_to_points, points_to_array, project_points_to_image
from .configs import KPT_OUTLIER_RATIO, SHRINK_FACTOR

logger = logging.getLogger(__name__)


def _bounds_array(regions, shrink_factor=0.0):
    """Rx4 array of (x1, y1, x2, y2) with x2/y2 exclusive."""
    out = np.zeros((len(regions), 4), dtype=np.float64)
    for i, reg in enumerate(regions):
        b = reg.bounds.shrink(shrink_factor) if shrink_factor else reg.bounds
        out[i] = (b.x, b.y, b.x + b.width, b.y + b.height)
    return out


def cluster_lidar_with_roi(regions, points, P, shrink_factor=SHRINK_FACTOR):
    """
    Assign each LiDAR point to the single region whose shrunk box contains
    its projection.

    Points enclosed by none or by several shrunk boxes are dropped. Appends
    to `region.assigned_points`; returns the number of assigned points.
    """
    if not regions or len(points) == 0:
        return 0

    uv, valid = project_points_to_image(points, P)
    boxes = _bounds_array(regions, shrink_factor)

    u = uv[:, 0][:, None]
    v = uv[:, 1][:, None]
    with np.errstate(invalid="ignore"):
        inside = ((boxes[None, :, 0] <= u) & (u < boxes[None, :, 2]) &
                  (boxes[None, :, 1] <= v) & (v < boxes[None, :, 3]))   # N x R
    inside &= valid[:, None]

    n_enclosing = inside.sum(axis=1)
    unique = n_enclosing == 1
    owner = np.argmax(inside, axis=1)

    if isinstance(points, np.ndarray):
        points = array_to_points(points)

    for i in np.flatnonzero(unique):
        regions[owner[i]].assigned_points.append(points[i])

    logger.debug("clustered %d points: %d assigned, %d ambiguous, %d outside",
                 len(points), int(unique.sum()), int((n_enclosing > 1).sum()),
                 int((n_enclosing == 0).sum()))
    return int(unique.sum())


def cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, matches,
                                 outlier_ratio=KPT_OUTLIER_RATIO):
    """
    Attach to `region` the correspondences whose current keypoint lies in its
    box, then drop those with distance below outlier_ratio * mean distance.
    """
    inside = [m for m in matches if region.bounds.contains(*kpts_curr[m.current_index].pt)]
    if not inside:
        logger.debug("region %s: no keypoint matches inside box", region.id)
        return region.assigned_correspondences

    mean_dist = sum(m.distance for m in inside) / len(inside)
    kept = [m for m in inside if m.distance >= outlier_ratio * mean_dist]

    region.assigned_correspondences = kept
    region.assigned_keypoints = [kpts_curr[m.current_index] for m in kept]
    logger.debug("region %s: %d/%d keypoint matches kept (mean distance %.3f)",
                 region.id, len(kept), len(inside), mean_dist)
    return kept


def region_extent(region):
    """
    Nearest forward distance and lateral width of a region's LiDAR points,
    or (None, None) without points.
    """
    if not region.assigned_points:
        return None, None
    arr = points_to_array(region.assigned_points)
    return float(arr[:, 0].min()), float(arr[:, 1].max() - arr[:, 1].min())
