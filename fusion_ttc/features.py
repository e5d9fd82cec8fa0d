# Adapters from OpenCV feature types and plain lists to the fusion data model
import cv2

from .data_types import Correspondence, Keypoint


def keypoint_from_cv(kp):
    return Keypoint(x=float(kp.pt[0]), y=float(kp.pt[1]), size=float(kp.size),
                    angle=float(kp.angle), response=float(kp.response), octave=int(kp.octave))


def keypoints_from_cv(kpts):
    return [keypoint_from_cv(kp) for kp in kpts]


def keypoint_to_cv(kp):
    return cv2.KeyPoint(kp.x, kp.y, kp.size, kp.angle, kp.response, kp.octave)


def correspondences_from_cv(dmatches):
    """cv2.DMatch list -> Correspondence list (queryIdx = previous, trainIdx = current)."""
    return [Correspondence(previous_index=int(m.queryIdx), current_index=int(m.trainIdx),
                           distance=float(m.distance)) for m in dmatches]


def correspondence_to_cv(m):
    return cv2.DMatch(m.previous_index, m.current_index, m.distance)


def keypoints_from_list(rows):
    """[[x, y], ...] or [[x, y, size], ...] -> Keypoint list."""
    out = []
    for row in rows:
        if len(row) < 2:
            raise ValueError(f"keypoint needs at least x, y: {row}")
        out.append(Keypoint(float(row[0]), float(row[1]),
                            size=float(row[2]) if len(row) > 2 else 0.0))
    return out


def correspondences_from_list(rows):
    """[[previous_index, current_index, distance], ...] -> Correspondence list."""
    out = []
    for row in rows:
        if len(row) != 3:
            raise ValueError(f"match needs previous_index, current_index, distance: {row}")
        out.append(Correspondence(int(row[0]), int(row[1]), float(row[2])))
    return out
