import numpy as np
import pytest

from fusion_ttc.data_types import (Correspondence, DetectionRegion, Frame, Keypoint, Rect,
                                   SpatialPoint3D)

# Y = (y, z, x): a point (x, y, z) lands on pixel (y / x, z / x)
SIMPLE_P = np.array([[0.0, 1.0, 0.0, 0.0],
                     [0.0, 0.0, 1.0, 0.0],
                     [1.0, 0.0, 0.0, 0.0]])


def point_at(u, v, x=1.0, r=0.5):
    """3D point at forward distance x that projects to pixel (u, v) under SIMPLE_P."""
    return SpatialPoint3D(x=x, y=u * x, z=v * x, r=r)


def region(rid, x, y, w, h, cls=2, conf=0.9):
    return DetectionRegion(id=rid, class_label=cls, confidence=conf, bounds=Rect(x, y, w, h))


@pytest.fixture
def simple_P():
    return SIMPLE_P.copy()


@pytest.fixture
def two_box_pair():
    """
    Previous and current frames with two boxes each (ids differ across frames),
    keypoints inside both boxes and matches linking left->left, right->right.
    """
    prev_regions = [region(10, 0, 0, 400, 400), region(11, 500, 0, 400, 400)]
    curr_regions = [region(20, 0, 0, 400, 400), region(21, 500, 0, 400, 400)]

    # left object grows by 5% between frames (closing), right object is unchanged
    left_prev = [(100, 100), (300, 100), (100, 300), (300, 300)]
    left_curr = [(200 + (u - 200) * 1.05, 200 + (v - 200) * 1.05) for u, v in left_prev]
    right_prev = [(600, 100), (800, 100), (600, 300), (800, 300)]
    right_curr = list(right_prev)

    kpts_prev = [Keypoint(u, v) for u, v in left_prev + right_prev]
    kpts_curr = [Keypoint(u, v) for u, v in left_curr + right_curr]
    matches = [Correspondence(i, i, 10.0) for i in range(8)]

    prev_points = [point_at(200, 200, x=10.0), point_at(210, 210, x=10.0), point_at(190, 200, x=10.0),
                   point_at(700, 200, x=20.0)]
    curr_points = [point_at(200, 200, x=9.5), point_at(210, 210, x=9.5), point_at(190, 200, x=9.5),
                   point_at(700, 200, x=20.0)]

    prev = Frame(keypoints=kpts_prev, regions=prev_regions, points=prev_points, index=0)
    curr = Frame(keypoints=kpts_curr, regions=curr_regions, points=curr_points, index=1)
    return prev, curr, matches
