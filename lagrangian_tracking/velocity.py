"""Velocity back-fill for matched frame pairs."""

import numpy as np


def backfill_velocity(prev, curr, prev_idx, curr_idx, sampling_frequency,
                      zero_velocity_undefined=True):
    """Store the departing velocity of each matched pair on *prev*.

    The velocity of an observation is the particle state while leaving its
    frame, so it can only be written once the successor in *curr* is known.

    Parameters
    ----------
    prev, curr : Snapshot
        Consecutive snapshots (frame i and i+1).
    prev_idx, curr_idx : ndarray of int
        Row indices of the accepted pairs.
    sampling_frequency : float
        Frame rate in Hz; velocity = displacement * sampling_frequency.
    zero_velocity_undefined : bool
        If True, a velocity of exactly (0, 0) is reported as undefined.
    """
    if len(prev_idx) == 0:
        return
    velocity = (curr.positions[curr_idx] - prev.positions[prev_idx]) * float(sampling_frequency)
    prev.velocity[prev_idx] = velocity
    prev.has_successor[prev_idx] = True
    defined = np.ones(len(prev_idx), dtype=bool)
    if zero_velocity_undefined:
        defined &= np.any(velocity != 0.0, axis=1)
    prev.velocity_defined[prev_idx] = defined
