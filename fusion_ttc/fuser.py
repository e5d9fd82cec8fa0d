import logging

import numpy as np

from lidar_projection.project_lidar import crop_lidar_points
from .box_matching import match_bounding_boxes
from .configs import FusionParams
from .data_types import FrameResult, RegionTTC
from .roi import cluster_kpt_matches_with_roi, cluster_lidar_with_roi, region_extent
from .ttc import compute_ttc_camera, compute_ttc_lidar

logger = logging.getLogger(__name__)


class FramePairFuser:
    """
    Runs the per-pair pipeline in two phases so every assignment list is
    final before any TTC estimator reads it:

      1. assign: LiDAR clustering (both frames), box matching, keypoint
         association for matched current regions
      2. estimate: LiDAR and camera TTC per matched region pair
    """

    def __init__(self, P, params=None):
        self.P = np.asarray(P, dtype=np.float64)
        self.params = params if params is not None else FusionParams()

    def _cluster_frame(self, frame):
        if any(r.assigned_points for r in frame.regions):
            # already enriched by an earlier pass
            return
        points = frame.points
        if self.params.lidar_crop:
            points = crop_lidar_points(points, **self.params.lidar_crop)
        cluster_lidar_with_roi(frame.regions, points, self.P, self.params.shrink_factor)

    def assign(self, pair):
        p = self.params
        self._cluster_frame(pair.previous)
        self._cluster_frame(pair.current)

        matches = match_bounding_boxes(pair.correspondences, pair.previous, pair.current)

        curr_by_id = pair.current.region_by_id()
        for cid in matches.values():
            if curr_by_id[cid].assigned_correspondences:
                # already associated by an earlier pass
                continue
            cluster_kpt_matches_with_roi(curr_by_id[cid], pair.previous.keypoints,
                                         pair.current.keypoints, pair.correspondences,
                                         outlier_ratio=p.outlier_ratio)
        return matches

    def estimate(self, pair, matches):
        p = self.params
        frame_rate = pair.frame_rate if pair.frame_rate is not None else p.frame_rate
        prev_by_id = pair.previous.region_by_id()
        curr_by_id = pair.current.region_by_id()

        out = []
        for pid, cid in matches.items():
            prev_reg, curr_reg = prev_by_id[pid], curr_by_id[cid]

            if prev_reg.assigned_points and curr_reg.assigned_points:
                ttc_lidar = compute_ttc_lidar(prev_reg.assigned_points, curr_reg.assigned_points,
                                              frame_rate, reducer=p.lidar_reducer)
            else:
                logger.info("region %s: no LiDAR points in one of the frames, skipping LiDAR TTC", cid)
                ttc_lidar = float("nan")

            ttc_camera = compute_ttc_camera(pair.previous.keypoints, pair.current.keypoints,
                                            curr_reg.assigned_correspondences, frame_rate,
                                            min_dist=p.min_dist, eps=p.dist_eps)

            x_min, width_y = region_extent(curr_reg)
            out.append(RegionTTC(
                previous_id=pid, current_id=cid,
                class_label=curr_reg.class_label, confidence=curr_reg.confidence,
                ttc_lidar=ttc_lidar, ttc_camera=ttc_camera,
                n_lidar_prev=len(prev_reg.assigned_points),
                n_lidar_curr=len(curr_reg.assigned_points),
                n_kpt_matches=len(curr_reg.assigned_correspondences),
                x_min=x_min, width_y=width_y,
            ))
        return out

    def process(self, pair):
        matches = self.assign(pair)
        regions = self.estimate(pair, matches)
        logger.info("frame %s: %d region matches, %d with LiDAR TTC, %d with camera TTC",
                    pair.current.index, len(matches),
                    sum(np.isfinite(r.ttc_lidar) for r in regions),
                    sum(np.isfinite(r.ttc_camera) for r in regions))
        return FrameResult(matches=matches, regions=regions, frame_index=pair.current.index)
