"""
Lagrangian Particle Tracking.

A library for linking per-frame particle centroids into trajectories using
displacement-predicted nearest-neighbour association, with velocity and
acceleration estimation and repair of tracks broken by missed detections.
"""

from .snapshot import ParticleObservation, Snapshot, build_snapshots
from .uid import UidAllocator
from .associator import (
    predict_positions,
    nearest_matches,
    resolve_conflicts,
    start_tracks,
    find_reference_frame,
    associate,
)
from .velocity import backfill_velocity
from .assembler import (
    FRAME_OFFSET,
    NoTracksFoundError,
    Track,
    finite_difference,
    assemble_tracks,
)
from .table import TrackTable, interpolate_gaps
from .repair import repair_tracks
from .tracker import TrackerConfig, link_snapshots, run_tracker
from .simulation import (
    create_particle,
    move_particle,
    is_off_screen,
    simulate_particles,
)
