"""Tests for LiDAR and keypoint assignment to detection boxes."""

import numpy as np
import pytest

from fusion_ttc.data_types import Correspondence, Keypoint, SpatialPoint3D
from fusion_ttc.roi import cluster_kpt_matches_with_roi, cluster_lidar_with_roi, region_extent

from conftest import point_at, region


class TestClusterLidarWithRoi:
    def test_point_inside_single_box_is_assigned(self, simple_P):
        a, b = region(0, 0, 0, 100, 100), region(1, 200, 0, 100, 100)
        p = point_at(50, 50, x=8.0)
        n = cluster_lidar_with_roi([a, b], [p], simple_P, shrink_factor=0.1)
        assert n == 1
        assert a.assigned_points == [p]
        assert b.assigned_points == []

    def test_point_in_overlapping_boxes_is_dropped(self, simple_P):
        a, b = region(0, 0, 0, 100, 100), region(1, 50, 0, 100, 100)
        n = cluster_lidar_with_roi([a, b], [point_at(75, 50)], simple_P, shrink_factor=0.1)
        assert n == 0
        assert a.assigned_points == [] and b.assigned_points == []

    def test_point_near_edge_excluded_by_shrink(self, simple_P):
        a = region(0, 0, 0, 100, 100)
        edge = point_at(2, 50)
        assert cluster_lidar_with_roi([a], [edge], simple_P, shrink_factor=0.1) == 0
        assert cluster_lidar_with_roi([a], [edge], simple_P, shrink_factor=0.0) == 1

    def test_point_outside_all_boxes_is_dropped(self, simple_P):
        a = region(0, 0, 0, 100, 100)
        assert cluster_lidar_with_roi([a], [point_at(500, 500)], simple_P) == 0

    def test_point_behind_image_plane_is_dropped(self, simple_P):
        a = region(0, -1000, -1000, 2000, 2000)
        behind = SpatialPoint3D(x=-5.0, y=1.0, z=1.0)
        assert cluster_lidar_with_roi([a], [behind], simple_P, shrink_factor=0.0) == 0

    def test_each_point_assigned_once_in_input_order(self, simple_P):
        a, b = region(0, 0, 0, 100, 100), region(1, 200, 0, 100, 100)
        pts = [point_at(50, 50, x=3.0), point_at(250, 50), point_at(40, 60, x=4.0)]
        cluster_lidar_with_roi([a, b], pts, simple_P, shrink_factor=0.1)
        assert a.assigned_points == [pts[0], pts[2]]
        assert b.assigned_points == [pts[1]]

    def test_array_input(self, simple_P):
        a = region(0, 0, 0, 100, 100)
        arr = np.array([[2.0, 100.0, 100.0], [2.0, 1000.0, 0.0]])   # -> (50, 50), (500, 0)
        assert cluster_lidar_with_roi([a], arr, simple_P) == 1
        assert a.assigned_points[0].x == pytest.approx(2.0)

    def test_no_regions_or_points(self, simple_P):
        assert cluster_lidar_with_roi([], [point_at(1, 1)], simple_P) == 0
        assert cluster_lidar_with_roi([region(0, 0, 0, 10, 10)], [], simple_P) == 0


class TestClusterKptMatchesWithRoi:
    def _keypoints(self):
        kpts_prev = [Keypoint(10.0 * i, 10.0) for i in range(6)]
        kpts_curr = [Keypoint(10.0 * i, 10.0) for i in range(5)] + [Keypoint(500.0, 500.0)]
        return kpts_prev, kpts_curr

    def test_matches_below_ratio_of_mean_are_removed(self):
        kpts_prev, kpts_curr = self._keypoints()
        matches = [Correspondence(0, 0, 10.0), Correspondence(1, 1, 10.0),
                   Correspondence(2, 2, 10.0), Correspondence(3, 3, 2.0)]
        reg = region(0, 0, 0, 100, 100)
        kept = cluster_kpt_matches_with_roi(reg, kpts_prev, kpts_curr, matches)
        # mean = 8.0, threshold 5.6
        assert kept == matches[:3]
        assert reg.assigned_correspondences == matches[:3]
        assert reg.assigned_keypoints == kpts_curr[:3]

    def test_remaining_distances_respect_bound(self):
        kpts_prev, kpts_curr = self._keypoints()
        dists = [1.0, 4.0, 9.0, 12.0, 20.0]
        matches = [Correspondence(i, i, d) for i, d in enumerate(dists)]
        reg = region(0, 0, 0, 100, 100)
        cluster_kpt_matches_with_roi(reg, kpts_prev, kpts_curr, matches)
        mean = sum(dists) / len(dists)
        assert reg.assigned_correspondences
        assert all(m.distance >= 0.7 * mean for m in reg.assigned_correspondences)

    def test_second_pass_removes_nothing_once_stable(self):
        kpts_prev, kpts_curr = self._keypoints()
        matches = [Correspondence(i, i, d) for i, d in enumerate([10.0, 11.0, 12.0, 2.0])]
        first = region(0, 0, 0, 100, 100)
        kept = cluster_kpt_matches_with_roi(first, kpts_prev, kpts_curr, matches)
        second = region(1, 0, 0, 100, 100)
        again = cluster_kpt_matches_with_roi(second, kpts_prev, kpts_curr, kept)
        assert again == kept

    def test_only_current_keypoint_location_counts(self):
        kpts_prev, kpts_curr = self._keypoints()
        # previous keypoint 5 is inside the box, its current keypoint is not
        matches = [Correspondence(5, 5, 10.0), Correspondence(0, 0, 10.0)]
        reg = region(0, 0, 0, 100, 100)
        cluster_kpt_matches_with_roi(reg, kpts_prev, kpts_curr, matches)
        assert reg.assigned_correspondences == [matches[1]]

    def test_no_matches_inside_is_tolerated(self):
        kpts_prev, kpts_curr = self._keypoints()
        reg = region(0, 1000, 1000, 10, 10)
        kept = cluster_kpt_matches_with_roi(reg, kpts_prev, kpts_curr,
                                            [Correspondence(0, 0, 1.0)])
        assert kept == []
        assert reg.assigned_correspondences == []
        assert cluster_kpt_matches_with_roi(reg, kpts_prev, kpts_curr, []) == []


class TestRegionExtent:
    def test_extent_of_assigned_points(self):
        reg = region(0, 0, 0, 10, 10)
        reg.assigned_points.extend([SpatialPoint3D(8.0, -0.5, 0.0), SpatialPoint3D(7.5, 0.7, 0.0),
                                    SpatialPoint3D(9.0, 0.1, 0.0)])
        x_min, width_y = region_extent(reg)
        assert x_min == pytest.approx(7.5)
        assert width_y == pytest.approx(1.2)

    def test_empty_region(self):
        assert region_extent(region(0, 0, 0, 10, 10)) == (None, None)
