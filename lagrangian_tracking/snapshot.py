"""
Per-frame particle observations.

A :class:`Snapshot` holds every detection of one frame as parallel numpy
columns.  It is created once at ingestion and then mutated in place while
the sequential linking pass resolves UIDs, lifetimes, displacements and
velocities.  Unresolved quantities are tracked with boolean masks rather
than numeric sentinels, and surface as ``None`` on
:class:`ParticleObservation`.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class ParticleObservation:
    """Read-only view of one row of a :class:`Snapshot`."""

    frame: int
    position: Tuple[float, float]
    displacement: Optional[Tuple[float, float]]
    velocity: Optional[Tuple[float, float]]
    uid: Optional[int]
    lifetime: Optional[int]
    aux: Tuple[float, ...] = ()


def _pair(row):
    return (float(row[0]), float(row[1]))


class Snapshot:
    """All observations of a single frame.

    Attributes
    ----------
    frame : int
        Frame index the observations belong to.
    positions : ndarray, shape (N, 2)
        Particle centroids in meters.
    aux : ndarray, shape (N, k)
        Auxiliary columns carried through untouched.
    uid, assigned : ndarray
        Track identifier and whether it has been set.
    lifetime : ndarray
        Consecutive successful matches; meaningful where ``assigned``.
    displacement, has_displacement : ndarray
        Displacement from the matched predecessor.
    velocity, has_successor : ndarray
        Raw velocity towards the matched successor.
    velocity_defined : ndarray
        ``has_successor`` after the zero-velocity policy is applied.
    """

    def __init__(self, frame, positions, aux=None):
        self.frame = int(frame)
        self.positions = np.asarray(positions, dtype=float).reshape(-1, 2)
        n = len(self.positions)
        if aux is None:
            self.aux = np.empty((n, 0), dtype=float)
        else:
            aux = np.asarray(aux, dtype=float)
            if aux.ndim == 1:
                aux = aux.reshape(n, -1) if n else aux.reshape(0, 0)
            if aux.shape[0] != n:
                raise ValueError(
                    f"frame {frame}: {aux.shape[0]} auxiliary rows for {n} positions"
                )
            self.aux = aux

        self.uid = np.zeros(n, dtype=np.int64)
        self.assigned = np.zeros(n, dtype=bool)
        self.lifetime = np.zeros(n, dtype=np.int64)
        self.displacement = np.zeros((n, 2), dtype=float)
        self.has_displacement = np.zeros(n, dtype=bool)
        self.velocity = np.zeros((n, 2), dtype=float)
        self.has_successor = np.zeros(n, dtype=bool)
        self.velocity_defined = np.zeros(n, dtype=bool)

    def __len__(self):
        return len(self.positions)

    def __repr__(self):
        return f"Snapshot(frame={self.frame}, n={len(self)})"

    @property
    def is_empty(self):
        return len(self) == 0

    def sort_by_x(self):
        """Reorder every column by ascending x (stable)."""
        order = np.argsort(self.positions[:, 0], kind="stable")
        for name in (
            "positions", "aux", "uid", "assigned", "lifetime", "displacement",
            "has_displacement", "velocity", "has_successor", "velocity_defined",
        ):
            setattr(self, name, getattr(self, name)[order])
        return self

    def assigned_uids(self):
        return self.uid[self.assigned]

    def max_uid(self) -> Optional[int]:
        uids = self.assigned_uids()
        if uids.size == 0:
            return None
        return int(uids.max())

    def observation(self, i) -> ParticleObservation:
        assigned = bool(self.assigned[i])
        return ParticleObservation(
            frame=self.frame,
            position=_pair(self.positions[i]),
            displacement=_pair(self.displacement[i]) if self.has_displacement[i] else None,
            velocity=_pair(self.velocity[i]) if self.velocity_defined[i] else None,
            uid=int(self.uid[i]) if assigned else None,
            lifetime=int(self.lifetime[i]) if assigned else None,
            aux=tuple(float(v) for v in self.aux[i]),
        )

    def __iter__(self):
        for i in range(len(self)):
            yield self.observation(i)


def build_snapshots(
    frames: Mapping[int, Sequence],
    aux_fields: Sequence[Mapping[int, Sequence]] = (),
):
    """Turn raw per-frame detections into a contiguous list of snapshots.

    Parameters
    ----------
    frames : mapping of int to sequence of (x, y)
        Detected centroids per frame index.
    aux_fields : sequence of mappings
        Each maps a frame index to one value (or one row of values) per
        detection of that frame.  Fields are concatenated column-wise in the
        given order.  Frames absent from a field get NaN columns.

    Returns
    -------
    list[Snapshot]
        One snapshot per frame index from ``min(frames)`` to ``max(frames)``;
        indices missing from *frames* yield empty snapshots.  Each snapshot
        is sorted by x.
    """
    if not frames:
        return []

    widths = []
    for field in aux_fields:
        width = 1
        for values in field.values():
            arr = np.asarray(values, dtype=float)
            if arr.ndim == 2:
                width = arr.shape[1]
                break
        widths.append(width)

    first, last = min(frames), max(frames)
    snapshots = []
    for frame in range(first, last + 1):
        positions = np.asarray(frames.get(frame, ()), dtype=float).reshape(-1, 2)
        n = len(positions)
        columns = []
        for field, width in zip(aux_fields, widths):
            if frame in field:
                col = np.asarray(field[frame], dtype=float).reshape(-1, width)
                if col.shape[0] != n:
                    raise ValueError(
                        f"frame {frame}: auxiliary field has {col.shape[0]} rows, expected {n}"
                    )
            else:
                col = np.full((n, width), np.nan)
            columns.append(col)
        aux = np.hstack(columns) if columns else None
        snapshots.append(Snapshot(frame, positions, aux).sort_by_x())
    return snapshots
