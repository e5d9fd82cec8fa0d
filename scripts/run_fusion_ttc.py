#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from glob import glob

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from fusion_ttc.configs import load_params
from fusion_ttc.runner import run_pairs
from lidar_projection.project_lidar import load_calib


def main(argv=None):
    ap = argparse.ArgumentParser(description="LiDAR/camera TTC over consecutive frame pairs")
    ap.add_argument("--pairs", required=True,
                    help="Frame-pair JSON file, directory of *.json, or glob pattern")
    ap.add_argument("--calib_yaml", required=True, help="Calibration YAML (P or P_rect/R_rect/RT)")
    ap.add_argument("--params_yaml", default=None, help="Fusion parameters YAML")
    ap.add_argument("--out_dir", default="data/ttc_output", help="Output root for this run")
    ap.add_argument("--frame_rate", type=float, default=None, help="Override frame rate (Hz)")
    ap.add_argument("--shrink_factor", type=float, default=None, help="Override box shrink factor")
    ap.add_argument("--lidar_reducer", choices=["median", "closest"], default=None)
    ap.add_argument("--crop", action="store_true", help="Apply the default ego-lane LiDAR crop")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] %(message)s")

    if os.path.isdir(args.pairs):
        pair_files = sorted(glob(os.path.join(args.pairs, "*.json")))
    else:
        pair_files = sorted(glob(args.pairs))
    if not pair_files:
        raise FileNotFoundError(f"No frame-pair files match: {args.pairs}")

    params = load_params(args.params_yaml, frame_rate=args.frame_rate,
                         shrink_factor=args.shrink_factor, lidar_reducer=args.lidar_reducer,
                         lidar_crop="default" if args.crop else None)
    P = load_calib(args.calib_yaml)

    print(f"[CFG] Pairs: {len(pair_files)} @ {params.frame_rate:.1f} fps, shrink={params.shrink_factor:.2f}")
    rows = run_pairs(pair_files, P, params, out_dir=args.out_dir)
    print(f"[OK] {len(rows)} region TTC rows saved under: {os.path.abspath(args.out_dir)}")


if __name__ == "__main__":
    main()
