"""
Flat track table.

The public output of the tracker is a 2D float array with one row per
observation and a parallel array of per-track row counts::

    [x, y, vx, vy, uid, lifetime, frame, ax, ay, aux...]

Rows are grouped by UID.  Undefined velocities and accelerations are NaN.
"""

import numpy as np

from .assembler import Track

# ---------------------------------------------------------------------------
# Column layout
# ---------------------------------------------------------------------------
X, Y, VX, VY, UID, LIFETIME, FRAME, AX, AY = range(9)
AUX_START = 9
N_CORE_COLUMNS = AUX_START


def interpolate_gaps(values):
    """Linearly fill NaN entries of a 1D series.

    Leading and trailing gaps take the nearest defined value.  An all-NaN
    series is returned unchanged.
    """
    values = np.asarray(values, dtype=float).copy()
    missing = np.isnan(values)
    if missing.all() or not missing.any():
        return values
    idx = np.arange(len(values))
    values[missing] = np.interp(idx[missing], idx[~missing], values[~missing])
    return values


class TrackTable:
    """Rows of all tracks plus their lengths.

    Attributes
    ----------
    rows : ndarray, shape (n_rows, 9 + k)
        Observations grouped by UID.
    lengths : ndarray of int
        ``lengths[i]`` is the row count of the i-th UID group.
    """

    def __init__(self, rows, lengths=None):
        rows = np.asarray(rows, dtype=float)
        if rows.ndim != 2 or rows.shape[1] < N_CORE_COLUMNS:
            raise ValueError(f"track table needs at least {N_CORE_COLUMNS} columns")
        self.rows = rows
        if lengths is None:
            lengths = self._group_lengths(rows[:, UID])
        self.lengths = np.asarray(lengths, dtype=np.int64)
        if self.lengths.sum() != len(rows):
            raise ValueError("track lengths do not add up to the number of rows")

    @staticmethod
    def _group_lengths(uid_column):
        if len(uid_column) == 0:
            return np.empty(0, dtype=np.int64)
        breaks = np.flatnonzero(np.diff(uid_column) != 0) + 1
        bounds = np.concatenate([[0], breaks, [len(uid_column)]])
        return np.diff(bounds)

    @classmethod
    def from_tracks(cls, tracks):
        tracks = list(tracks)
        if not tracks:
            return cls(np.empty((0, N_CORE_COLUMNS)), np.empty(0, dtype=np.int64))
        return cls(np.vstack([t.rows() for t in tracks]), [len(t) for t in tracks])

    def __len__(self):
        return len(self.lengths)

    def __repr__(self):
        return f"TrackTable(tracks={len(self)}, rows={len(self.rows)})"

    @property
    def n_aux(self):
        return self.rows.shape[1] - AUX_START

    def uids(self):
        """UIDs in table order, one per track."""
        if len(self.lengths) == 0:
            return np.empty(0, dtype=np.int64)
        starts = np.concatenate([[0], np.cumsum(self.lengths)[:-1]]).astype(np.int64)
        return self.rows[starts, UID].astype(np.int64)

    def select(self, uid):
        """All rows carrying *uid*, in table order."""
        return self.rows[self.rows[:, UID] == uid]

    def regroup(self):
        """New table grouped by UID (first-appearance order), frame-sorted within each UID."""
        if len(self.rows) == 0:
            return TrackTable(self.rows.copy(), np.empty(0, dtype=np.int64))
        uid = self.rows[:, UID]
        _, first = np.unique(uid, return_index=True)
        rank = np.empty(len(first), dtype=np.int64)
        rank[np.argsort(first, kind="stable")] = np.arange(len(first))
        group = rank[np.searchsorted(np.unique(uid), uid)]
        order = np.lexsort((self.rows[:, FRAME], group))
        return TrackTable(self.rows[order])

    def tracks(self):
        """Re-materialise :class:`Track` objects from the rows."""
        out = []
        start = 0
        for n in self.lengths:
            block = self.rows[start:start + n]
            start += n
            out.append(Track(
                uid=int(block[0, UID]),
                frames=block[:, FRAME].astype(np.int64),
                positions=block[:, [X, Y]],
                velocity=block[:, [VX, VY]],
                lifetime=block[:, LIFETIME].astype(np.int64),
                acceleration=block[:, [AX, AY]],
                aux=block[:, AUX_START:],
            ))
        return out
