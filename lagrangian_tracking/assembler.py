"""
Track assembly.

Once every snapshot has been resolved, observations sharing a UID are
gathered into frame-ordered :class:`Track` objects and an acceleration is
derived from the velocity history by explicit finite differencing.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default parameters
# ---------------------------------------------------------------------------
FRAME_OFFSET = -2
MIN_TRACK_LENGTH = 2


class NoTracksFoundError(RuntimeError):
    """Raised when no track of at least two observations survives assembly."""


# ---------------------------------------------------------------------------
# Finite differencing
# ---------------------------------------------------------------------------
def finite_difference(values, defined, dt):
    """Boundary-aware first derivative of a sampled series.

    Central differences are used where both neighbours are defined, a
    forward difference where only the next sample is, and a backward
    difference where only the previous sample is.  Samples that are
    themselves undefined, or have no defined neighbour, come out as NaN.

    Parameters
    ----------
    values : ndarray, shape (n,) or (n, k)
        Uniformly spaced samples.
    defined : ndarray of bool, shape (n,)
        Which samples hold a real value.
    dt : float
        Sample spacing.
    """
    values = np.asarray(values, dtype=float)
    defined = np.asarray(defined, dtype=bool)
    out = np.full(values.shape, np.nan)
    n = len(values)
    for k in range(n):
        if not defined[k]:
            continue
        left = k > 0 and defined[k - 1]
        right = k < n - 1 and defined[k + 1]
        if left and right:
            out[k] = (values[k + 1] - values[k - 1]) / (2.0 * dt)
        elif right:
            out[k] = (values[k + 1] - values[k]) / dt
        elif left:
            out[k] = (values[k] - values[k - 1]) / dt
    return out


# ---------------------------------------------------------------------------
# Track
# ---------------------------------------------------------------------------
class Track:
    """Frame-ordered observations of one particle.

    Attributes
    ----------
    uid : int
        Track identifier.
    frames : ndarray of int
        Frame numbers in the output numbering convention.
    positions : ndarray, shape (n, 2)
        Centroids in meters.
    velocity : ndarray, shape (n, 2)
        Departing velocity in m/s, NaN where undefined.
    lifetime : ndarray of int
        Consecutive matches at each row.
    acceleration : ndarray, shape (n, 2)
        Finite-difference acceleration in m/s^2, NaN where undefined.
    aux : ndarray, shape (n, k)
        Auxiliary columns.
    """

    def __init__(self, uid, frames, positions, velocity, lifetime, acceleration, aux=None):
        self.uid = int(uid)
        self.frames = np.array(frames, dtype=np.int64)
        self.positions = np.array(positions, dtype=float)
        self.velocity = np.array(velocity, dtype=float)
        self.lifetime = np.array(lifetime, dtype=np.int64)
        self.acceleration = np.array(acceleration, dtype=float)
        if aux is None:
            aux = np.empty((len(self.frames), 0))
        self.aux = np.array(aux, dtype=float)
        for arr in (self.frames, self.positions, self.velocity, self.lifetime,
                    self.acceleration, self.aux):
            arr.flags.writeable = False

    def __len__(self):
        return len(self.frames)

    def __repr__(self):
        return f"Track(uid={self.uid}, frames={self.frames[0]}..{self.frames[-1]}, n={len(self)})"

    def rows(self):
        """Rows in the flat-table layout ``[x, y, vx, vy, uid, lifetime, frame, ax, ay, aux...]``."""
        n = len(self)
        return np.column_stack([
            self.positions,
            self.velocity,
            np.full(n, self.uid, dtype=float),
            self.lifetime.astype(float),
            self.frames.astype(float),
            self.acceleration,
            self.aux,
        ])


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------
def _collect(snapshots):
    keep = [s for s in snapshots if s.assigned.any()]
    if not keep:
        return None

    def cat(name):
        return np.concatenate([getattr(s, name)[s.assigned] for s in keep])

    return {
        "uid": cat("uid"),
        "frame": np.concatenate([np.full(s.assigned.sum(), s.frame, dtype=np.int64) for s in keep]),
        "positions": cat("positions"),
        "velocity": cat("velocity"),
        "has_successor": cat("has_successor"),
        "velocity_defined": cat("velocity_defined"),
        "lifetime": cat("lifetime"),
        "aux": np.concatenate([s.aux[s.assigned] for s in keep]),
    }


def assemble_tracks(snapshots, sampling_frequency, frame_offset=FRAME_OFFSET,
                    min_length=MIN_TRACK_LENGTH):
    """Gather resolved snapshots into tracks.

    Parameters
    ----------
    snapshots : list[Snapshot]
        Output of the linking pass.
    sampling_frequency : float
        Frame rate in Hz; sets the differencing step ``1 / sampling_frequency``.
    frame_offset : int
        Constant added to every frame index in the output.
    min_length : int
        Tracks with fewer observations are discarded.

    Returns
    -------
    list[Track]
        Ordered by UID.

    Raises
    ------
    NoTracksFoundError
        If no track survives the length filter.
    """
    data = _collect(snapshots)
    if data is None:
        raise NoTracksFoundError("no particle observations were linked")

    order = np.lexsort((data["frame"], data["uid"]))
    data = {key: value[order] for key, value in data.items()}
    uids, starts, counts = np.unique(data["uid"], return_index=True, return_counts=True)

    dt = 1.0 / float(sampling_frequency)
    tracks = []
    for uid, start, count in zip(uids, starts, counts):
        if count < min_length:
            continue
        sl = slice(start, start + count)
        has_successor = data["has_successor"][sl]
        acceleration = finite_difference(data["velocity"][sl], has_successor, dt)
        # the final row has no departing velocity; hold the last one-sided estimate
        if count > 1 and not has_successor[-1]:
            acceleration[-1] = acceleration[-2]
        velocity = np.where(data["velocity_defined"][sl, None], data["velocity"][sl], np.nan)
        tracks.append(Track(
            uid=uid,
            frames=data["frame"][sl] + frame_offset,
            positions=data["positions"][sl],
            velocity=velocity,
            lifetime=data["lifetime"][sl],
            acceleration=acceleration,
            aux=data["aux"][sl],
        ))

    discarded = len(uids) - len(tracks)
    if not tracks:
        raise NoTracksFoundError(
            f"all {len(uids)} tracks are shorter than {min_length} observations"
        )
    logger.info("assembled %d tracks (%d discarded as too short)", len(tracks), discarded)
    return tracks
