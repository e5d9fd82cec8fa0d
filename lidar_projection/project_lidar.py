import argparse
import logging
import os

import numpy as np
import yaml

from fusion_ttc.data_types import SpatialPoint3D

logger = logging.getLogger(__name__)


def _as_homogeneous(M, name):
    """Pad a 3x3 / 3x4 matrix to 4x4 so P_rect, R_rect and RT can be chained."""
    M = np.asarray(M, dtype=np.float64)
    if M.shape == (4, 4):
        return M
    out = np.eye(4, dtype=np.float64)
    if M.shape == (3, 3):
        out[:3, :3] = M
    elif M.shape == (3, 4):
        out[:3, :] = M
    else:
        raise ValueError(f"{name}: expected 3x3, 3x4 or 4x4 matrix, got {M.shape}")
    return out


def compose_projection(P_rect, R_rect, RT):
    """
    Chain intrinsic projection, rectification and extrinsics into one 3x4
    matrix: Y = P_rect * R_rect * RT * [x y z 1]^T.
    """
    P = np.asarray(P_rect, dtype=np.float64)
    if P.shape != (3, 4):
        raise ValueError(f"P_rect: expected 3x4 matrix, got {P.shape}")
    return P @ _as_homogeneous(R_rect, "R_rect") @ _as_homogeneous(RT, "RT")


def load_calib(calib_yaml):
    """
    Load the LiDAR->image projection from YAML.

    Either a pre-composed `P` (3x4) or the three KITTI-style matrices
    `P_rect` (3x4), `R_rect` (3x3/4x4) and `RT` (3x4/4x4). Entries may be
    nested lists or flat row-major lists.
    """
    if not os.path.exists(calib_yaml):
        raise FileNotFoundError(f"Calibration file not found: {calib_yaml}")
    with open(calib_yaml, "r") as f:
        cal = yaml.safe_load(f) or {}

    if "P" in cal:
        return np.array(cal["P"], dtype=np.float64).reshape(3, 4)

    missing = [k for k in ("P_rect", "R_rect", "RT") if k not in cal]
    if missing:
        raise ValueError(f"{calib_yaml}: missing calibration entries {missing}")

    P_rect = np.array(cal["P_rect"], dtype=np.float64).reshape(3, 4)
    R_rect = np.array(cal["R_rect"], dtype=np.float64)
    R_rect = R_rect.reshape(4, 4) if R_rect.size == 16 else R_rect.reshape(3, 3)
    RT = np.array(cal["RT"], dtype=np.float64)
    RT = RT.reshape(4, 4) if RT.size == 16 else RT.reshape(3, 4)
    return compose_projection(P_rect, R_rect, RT)


def points_to_array(points):
    """List of SpatialPoint3D (or an Nx3/Nx4 array) -> Nx4 float array [x, y, z, r]."""
    if isinstance(points, np.ndarray):
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (3, 4):
            raise ValueError(f"expected Nx3 or Nx4 point array, got {arr.shape}")
        if arr.shape[1] == 3:
            arr = np.column_stack([arr, np.zeros(len(arr))])
        return arr
    if len(points) == 0:
        return np.zeros((0, 4), dtype=np.float64)
    return np.array([[p.x, p.y, p.z, p.r] for p in points], dtype=np.float64)


def array_to_points(arr):
    arr = points_to_array(arr)
    return [SpatialPoint3D(float(x), float(y), float(z), float(r)) for x, y, z, r in arr]


def project_points_to_image(points, P):
    """
    Project 3D points into pixel coordinates.

    Args:
        points: list of SpatialPoint3D or Nx3/Nx4 array (x forward, y left, z up)
        P: 3x4 (or 4x4) projection from compose_projection / load_calib

    Returns:
        uv: Nx2 pixel coordinates (NaN where the point cannot be projected)
        valid: N boolean mask, False for points on or behind the image plane
    """
    xyz = points_to_array(points)[:, :3]
    P = np.asarray(P, dtype=np.float64)
    if P.shape == (4, 4):
        P = P[:3, :]
    if P.shape != (3, 4):
        raise ValueError(f"projection must be 3x4 or 4x4, got {P.shape}")

    X = np.column_stack([xyz, np.ones(len(xyz))])   # Nx4 homogeneous
    Y = X @ P.T                                     # Nx3
    w = Y[:, 2]
    valid = w > 0

    uv = np.full((len(xyz), 2), np.nan, dtype=np.float64)
    uv[valid] = Y[valid, :2] / w[valid, None]
    return uv, valid


def crop_lidar_points(points, min_x=2.0, max_x=20.0, max_y=2.0,
                      min_z=-1.5, max_z=-0.9, min_r=0.1):
    """Keep points inside the ego-lane box with enough reflectivity."""
    arr = points_to_array(points)
    keep = ((arr[:, 0] >= min_x) & (arr[:, 0] <= max_x) &
            (np.abs(arr[:, 1]) <= max_y) &
            (arr[:, 2] >= min_z) & (arr[:, 2] <= max_z) &
            (arr[:, 3] >= min_r))
    logger.debug("crop: kept %d/%d LiDAR points", int(keep.sum()), len(arr))
    if isinstance(points, np.ndarray):
        return points[keep]
    return [p for p, k in zip(points, keep) if k]


def load_point_cloud(path):
    """
    Read LiDAR points as SpatialPoint3D.

    Supports `.npz` (key `xyz`, Nx3 or Nx4), `.npy`, and `.pcd` via open3d.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Point cloud not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext == ".npz":
        data = np.load(path)
        if "xyz" not in data:
            raise ValueError(f"{path}: expected an 'xyz' array")
        arr = data["xyz"]
    elif ext == ".npy":
        arr = np.load(path)
    elif ext == ".pcd":
        import open3d as o3d
        pcd = o3d.io.read_point_cloud(path)
        arr = np.asarray(pcd.points, dtype=np.float64)
    else:
        raise ValueError(f"Unsupported point cloud format: {path}")
    logger.debug("loaded %d LiDAR points from %s", len(arr), path)
    return array_to_points(np.asarray(arr, dtype=np.float64))


def main(argv=None):
    ap = argparse.ArgumentParser(description="Project a LiDAR scan into the image plane")
    ap.add_argument("--points", required=True, help="Point cloud (.npz with 'xyz', .npy or .pcd)")
    ap.add_argument("--calib_yaml", required=True, help="Calibration YAML (P or P_rect/R_rect/RT)")
    ap.add_argument("--out_npz", required=True, help="Output NPZ with uv and valid mask")
    ap.add_argument("--crop", action="store_true", help="Apply the default ego-lane crop first")
    args = ap.parse_args(argv)

    P = load_calib(args.calib_yaml)
    print(f"[INFO] Projection matrix P:\n{P}")
    points = load_point_cloud(args.points)
    print(f"[INFO] Loaded {len(points)} LiDAR points")
    if args.crop:
        points = crop_lidar_points(points)
        print(f"[INFO] After crop: {len(points)} points")

    uv, valid = project_points_to_image(points, P)
    print(f"[INFO] Valid projections: {int(valid.sum())}")
    if valid.any():
        print(f"  U: [{np.nanmin(uv[:, 0]):.1f}, {np.nanmax(uv[:, 0]):.1f}]")
        print(f"  V: [{np.nanmin(uv[:, 1]):.1f}, {np.nanmax(uv[:, 1]):.1f}]")

    os.makedirs(os.path.dirname(args.out_npz) or ".", exist_ok=True)
    np.savez_compressed(args.out_npz, uv=uv, valid=valid, xyz=points_to_array(points))
    print(f"[OK] Saved projection to: {args.out_npz}")


if __name__ == "__main__":
    main()
