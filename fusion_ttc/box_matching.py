import logging
from collections import Counter, defaultdict

logger = logging.getLogger(__name__)


def _enclosing_region_id(regions, pt):
    """Id of the first region whose box contains pt, None if no box does."""
    for reg in regions:
        if reg.bounds.contains(*pt):
            return reg.id
    return None


def count_box_votes(matches, prev_frame, curr_frame):
    """
    Tally, per current region id, how many correspondences link it to each
    previous region id. Correspondences leaving either side outside every
    box do not vote.
    """
    votes = defaultdict(Counter)
    skipped = 0
    for m in matches:
        cid = _enclosing_region_id(curr_frame.regions, curr_frame.keypoints[m.current_index].pt)
        pid = _enclosing_region_id(prev_frame.regions, prev_frame.keypoints[m.previous_index].pt)
        if cid is None or pid is None:
            skipped += 1
            continue
        votes[cid][pid] += 1
    logger.debug("box votes: %d of %d matches outside any box", skipped, len(matches))
    return votes


def best_previous_id(counter, prev_ids):
    """Most voted previous id; ties (including all-zero) go to the lowest id."""
    candidates = set(counter) | set(prev_ids)
    if not candidates:
        return None
    return min(candidates, key=lambda pid: (-counter.get(pid, 0), pid))


def match_bounding_boxes(matches, prev_frame, curr_frame):
    """
    Match current-frame regions to previous-frame regions by majority vote of
    the keypoint correspondences falling in each box pair.

    Returns {previous_id: current_id}. If two current regions pick the same
    previous region, the first one in frame order keeps it.
    """
    votes = count_box_votes(matches, prev_frame, curr_frame)
    prev_ids = [r.id for r in prev_frame.regions]

    bb_best_matches = {}
    for reg in curr_frame.regions:
        counter = votes.get(reg.id, Counter())
        pid = best_previous_id(counter, prev_ids)
        if pid is None:
            continue
        if not counter:
            logger.debug("region %s: no votes, falling back to previous id %s", reg.id, pid)
        if pid in bb_best_matches:
            logger.debug("previous id %s already matched to %s, skipping %s",
                         pid, bb_best_matches[pid], reg.id)
            continue
        bb_best_matches[pid] = reg.id
    return bb_best_matches
