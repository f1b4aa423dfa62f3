"""
Frame-to-frame association.

Detections of frame i+1 are linked to the resolved observations of frame i
by a nearest-neighbour search around displacement-predicted positions.  Each
observation of frame i can hand its UID to at most one successor; every
detection left over starts a new track.
"""

import logging

import numpy as np
from scipy.spatial import cKDTree

from .velocity import backfill_velocity

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default parameters
# ---------------------------------------------------------------------------
DEFAULT_MAX_LOOKBACK = 50


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------
def predict_positions(snapshot):
    """Constant-displacement extrapolation of every observation.

    Observations without a recorded displacement are predicted to stay put.
    """
    predicted = snapshot.positions.copy()
    moved = snapshot.has_displacement
    predicted[moved] += snapshot.displacement[moved]
    return predicted


def nearest_matches(predicted, positions):
    """For every row of *positions*, the nearest row of *predicted*.

    Returns
    -------
    distance : ndarray of float
        Euclidean distance to the nearest predicted position.
    index : ndarray of int
        Row of *predicted* that is nearest.
    """
    if len(predicted) == 0 or len(positions) == 0:
        return np.empty(0, dtype=float), np.empty(0, dtype=np.int64)
    tree = cKDTree(predicted)
    distance, index = tree.query(positions, k=1)
    return np.asarray(distance, dtype=float), np.asarray(index, dtype=np.int64)


def resolve_conflicts(distance, index, search_radius):
    """Accept at most one successor per predecessor.

    Candidates at or beyond *search_radius* are dropped.  When several
    successors share a predecessor, the closest wins; ties go to the
    successor that comes first in x order.

    Returns
    -------
    prev_idx, curr_idx : ndarray of int
        Accepted pairs, ordered by successor row.
    """
    curr_idx = np.flatnonzero(distance < search_radius)
    if curr_idx.size == 0:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)
    prev_idx = index[curr_idx]
    order = np.lexsort((curr_idx, distance[curr_idx], prev_idx))
    prev_sorted = prev_idx[order]
    first = np.ones(len(order), dtype=bool)
    first[1:] = prev_sorted[1:] != prev_sorted[:-1]
    winners = np.sort(curr_idx[order][first])
    return index[winners], winners


def start_tracks(snapshot, allocator, rows=None):
    """Give fresh UIDs (lifetime 0) to *rows* of *snapshot*, all if None."""
    if rows is None:
        rows = np.arange(len(snapshot))
    rows = np.asarray(rows, dtype=np.int64)
    snapshot.uid[rows] = allocator.allocate(len(rows))
    snapshot.assigned[rows] = True
    snapshot.lifetime[rows] = 0
    snapshot.has_displacement[rows] = False
    return len(rows)


def find_reference_frame(snapshots, index, max_lookback=DEFAULT_MAX_LOOKBACK):
    """Nearest non-empty snapshot at or before *index*.

    At most ``max_lookback`` frames before *index* are examined.

    Returns
    -------
    int or None
        Index into *snapshots*, or None if no non-empty snapshot lies within
        the lookback window.
    """
    stop = max(-1, index - max_lookback - 1)
    for j in range(index, stop, -1):
        if not snapshots[j].is_empty:
            return j
    return None


# ---------------------------------------------------------------------------
# Frame-pair association
# ---------------------------------------------------------------------------
def associate(prev, curr, search_radius, sampling_frequency, allocator,
              zero_velocity_undefined=True):
    """Resolve UIDs, lifetimes and displacements of *curr* from *prev*.

    Parameters
    ----------
    prev : Snapshot
        Fully resolved observations of frame i (non-empty).
    curr : Snapshot
        Raw detections of frame i+1.
    search_radius : float
        Maximum distance between a detection and a predicted position.
    sampling_frequency : float
        Frame rate in Hz, used for the velocity back-fill on *prev*.
    allocator : UidAllocator
        Source of UIDs for detections that start new tracks.
    zero_velocity_undefined : bool
        Treat an exactly-zero displacement or velocity as undefined.

    Returns
    -------
    int
        Number of detections linked to an existing track.
    """
    distance, index = nearest_matches(predict_positions(prev), curr.positions)
    prev_idx, curr_idx = resolve_conflicts(distance, index, search_radius)

    curr.uid[curr_idx] = prev.uid[prev_idx]
    curr.assigned[curr_idx] = True
    curr.lifetime[curr_idx] = prev.lifetime[prev_idx] + 1
    displacement = curr.positions[curr_idx] - prev.positions[prev_idx]
    curr.displacement[curr_idx] = displacement
    moved = np.ones(len(curr_idx), dtype=bool)
    if zero_velocity_undefined:
        moved &= np.any(displacement != 0.0, axis=1)
    curr.has_displacement[curr_idx] = moved

    backfill_velocity(prev, curr, prev_idx, curr_idx, sampling_frequency,
                      zero_velocity_undefined=zero_velocity_undefined)

    unmatched = np.setdiff1d(np.arange(len(curr)), curr_idx, assume_unique=True)
    start_tracks(curr, allocator, unmatched)
    logger.debug(
        "frame %d -> %d: %d linked, %d new tracks",
        prev.frame, curr.frame, len(curr_idx), len(unmatched),
    )
    return len(curr_idx)
