import logging
import os

from .frame_io import load_frame_pair, save_result_json, save_rows_csv
from .fuser import FramePairFuser

logger = logging.getLogger(__name__)


def run_pairs(pair_files, P, params, out_dir=None, csv_name="ttc_results.csv"):
    """
    Process frame-pair files in order. Writes one <stem>.ttc.json per pair and
    a combined CSV when out_dir is given. Returns the collected CSV rows.
    """
    fuser = FramePairFuser(P, params)
    csv_rows = []
    for path in pair_files:
        stem = os.path.splitext(os.path.basename(path))[0]
        pair = load_frame_pair(path)
        result = fuser.process(pair)
        if result.frame_index is None:
            result.frame_index = stem

        for r in result.regions:
            logger.info("%s: box %s->%s TTC lidar=%.2fs camera=%.2fs", stem,
                        r.previous_id, r.current_id, r.ttc_lidar, r.ttc_camera)

        if out_dir is not None:
            save_result_json(result, os.path.join(out_dir, f"{stem}.ttc.json"))
        csv_rows.extend(result.rows())

    if out_dir is not None and csv_rows:
        save_rows_csv(csv_rows, os.path.join(out_dir, csv_name))
    return csv_rows
