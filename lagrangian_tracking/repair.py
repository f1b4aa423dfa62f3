"""
Track repair.

A particle missed by the detector for a frame or two ends its track and
reappears under a new UID.  The repair pass bridges such breaks: the end of
each track is extrapolated by its last displacement, and if a track that
starts shortly afterwards lies close enough to that prediction, its rows are
relabelled with the earlier track's UID.
"""

import logging
from collections import defaultdict

import numpy as np

from .table import FRAME, UID, X, Y, TrackTable

logger = logging.getLogger(__name__)

DEFAULT_MAX_FRAMES_SKIPPED = 1


def _endpoint(rows, members):
    """Position, per-frame displacement and frame of a track's last row."""
    last = rows[members[-1]]
    prev = rows[members[-2]]
    gap = last[FRAME] - prev[FRAME]
    displacement = (last[[X, Y]] - prev[[X, Y]]) / gap
    return last[[X, Y]], displacement, int(last[FRAME])


def _find_successor(rows, uid, members, starts, search_radius, max_frames_skipped):
    """UID of the track that continues *uid*, or None."""
    position, displacement, end = _endpoint(rows, members[uid])
    predicted = position + displacement
    for df in range(1, max_frames_skipped + 1):
        candidates = sorted(u for u in starts.get(end + df, ()) if u != uid)
        if not candidates:
            continue
        points = np.array([rows[members[u][0], [X, Y]] for u in candidates])
        distance = np.hypot(*(points - predicted).T)
        j = int(np.argmin(distance))
        if distance[j] < (df + 1) * search_radius:
            return candidates[j]
    return None


def repair_tracks(table, search_radius, max_frames_skipped=DEFAULT_MAX_FRAMES_SKIPPED):
    """Bridge tracks broken by briefly missed detections.

    Tracks are visited once each in increasing UID order.  After a merge the
    extended track's new end is examined again, so chains of broken pieces
    are joined in a single call and a second call performs no merges.

    Parameters
    ----------
    table : TrackTable
        Assembled tracks; every track must have at least two rows.
    search_radius : float
        Matching radius of the linking pass, in meters.  A gap of ``df``
        frames accepts start points within ``(df + 1) * search_radius``.
    max_frames_skipped : int
        Largest frame distance from a track's end to a candidate start
        (1 = the next frame); 0 disables repair.

    Returns
    -------
    repaired : TrackTable
        Rows regrouped by UID and sorted by frame within each track.
    n_merges : int
        Number of merges performed.
    """
    if max_frames_skipped < 0:
        raise ValueError("max_frames_skipped must be non-negative")
    _, counts = np.unique(table.rows[:, UID], return_counts=True)
    if np.any(counts < 2):
        raise ValueError("every track needs at least two rows to be repaired")
    if max_frames_skipped == 0 or len(table) < 2:
        return table.regroup(), 0

    rows = table.rows.copy()
    members = {}
    for uid in np.unique(rows[:, UID]).astype(np.int64):
        idx = np.flatnonzero(rows[:, UID] == uid)
        members[int(uid)] = idx[np.argsort(rows[idx, FRAME], kind="stable")]

    starts = defaultdict(set)
    for uid, idx in members.items():
        starts[int(rows[idx[0], FRAME])].add(uid)

    n_merges = 0
    for uid in sorted(members):
        if uid not in members:
            continue
        while True:
            target = _find_successor(rows, uid, members, starts, search_radius, max_frames_skipped)
            if target is None:
                break
            head, tail = members[uid], members.pop(target)
            if rows[tail[0], FRAME] <= rows[head[-1], FRAME]:
                raise RuntimeError(f"merging track {target} into {uid} would overlap in frames")
            starts[int(rows[tail[0], FRAME])].discard(target)
            rows[tail, UID] = uid
            members[uid] = np.concatenate([head, tail])
            n_merges += 1
            logger.debug("merged track %d into %d", target, uid)

    logger.info("track repair: %d merges, %d tracks remain", n_merges, len(members))
    return TrackTable(rows).regroup(), n_merges
