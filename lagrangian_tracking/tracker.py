"""
Lagrangian particle tracker.

Links per-frame particle centroids into trajectories: a sequential
frame-by-frame association pass labels every detection with a UID and
lifetime, tracks are assembled with velocity and acceleration, and a repair
pass bridges trajectories broken by briefly missed detections.
"""

import logging
from dataclasses import dataclass

from .assembler import FRAME_OFFSET, assemble_tracks
from .associator import DEFAULT_MAX_LOOKBACK, associate, find_reference_frame, start_tracks
from .repair import DEFAULT_MAX_FRAMES_SKIPPED, repair_tracks
from .snapshot import build_snapshots
from .table import TrackTable
from .uid import UidAllocator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass
class TrackerConfig:
    """Parameters of a tracking run.

    Attributes
    ----------
    sampling_frequency : float
        Frame rate in Hz.
    search_radius : float
        Maximum distance (meters) between a detection and the predicted
        position of its predecessor.
    max_frames_skipped : int
        Largest frame distance from a track's end to a candidate start
        considered by the repair pass (1 = the next frame).
    max_lookback : int
        How many frames to walk back for a non-empty reference frame.
    zero_velocity_undefined : bool
        Report exactly-zero displacements and velocities as undefined.
    frame_offset : int
        Constant added to frame indices in the output table.
    repair : bool
        Run the repair pass.
    """

    sampling_frequency: float
    search_radius: float
    max_frames_skipped: int = DEFAULT_MAX_FRAMES_SKIPPED
    max_lookback: int = DEFAULT_MAX_LOOKBACK
    zero_velocity_undefined: bool = True
    frame_offset: int = FRAME_OFFSET
    repair: bool = True

    def validate(self):
        if not self.sampling_frequency > 0:
            raise ValueError("sampling_frequency must be positive")
        if not self.search_radius > 0:
            raise ValueError("search_radius must be positive")
        if self.max_frames_skipped < 0:
            raise ValueError("max_frames_skipped must be non-negative")
        if self.max_lookback < 0:
            raise ValueError("max_lookback must be non-negative")
        return self


# ---------------------------------------------------------------------------
# Sequential linking pass
# ---------------------------------------------------------------------------
def link_snapshots(snapshots, config, allocator=None):
    """Resolve UIDs, lifetimes, displacements and velocities in place.

    Parameters
    ----------
    snapshots : list[Snapshot]
        Consecutive frames, each sorted by x.
    config : TrackerConfig
        Run parameters.
    allocator : UidAllocator or None
        UID source; a fresh allocator starting at 1 is used if None.

    Returns
    -------
    UidAllocator
        The allocator after the pass, holding the largest UID issued.
    """
    if allocator is None:
        allocator = UidAllocator()
    if not snapshots:
        return allocator

    if not snapshots[0].is_empty:
        start_tracks(snapshots[0], allocator)

    for i in range(1, len(snapshots)):
        prev, curr = snapshots[i - 1], snapshots[i]
        if curr.is_empty:
            continue
        if prev.is_empty:
            ref = find_reference_frame(snapshots, i - 1, config.max_lookback)
            if ref is None:
                logger.debug("frame %d: no reference frame within %d frames",
                             curr.frame, config.max_lookback)
            else:
                allocator.observe(snapshots[ref].assigned_uids())
            start_tracks(curr, allocator)
            continue
        associate(prev, curr, config.search_radius, config.sampling_frequency,
                  allocator, zero_velocity_undefined=config.zero_velocity_undefined)

    logger.info("linked %d frames, %d UIDs issued", len(snapshots), allocator.current)
    return allocator


# ---------------------------------------------------------------------------
# High-level entry point
# ---------------------------------------------------------------------------
def run_tracker(
    frames,
    sampling_frequency,
    search_radius,
    max_frames_skipped=DEFAULT_MAX_FRAMES_SKIPPED,
    aux_fields=(),
    **options,
):
    """Track particles through a sequence of frames.

    Parameters
    ----------
    frames : mapping of int to sequence of (x, y)
        Detected particle centroids (meters) per frame index.
    sampling_frequency : float
        Frame rate in Hz.
    search_radius : float
        Matching radius in meters.
    max_frames_skipped : int
        Largest frame distance from a track's end to a candidate start
        considered by the repair pass (1 = the next frame).
    aux_fields : sequence of mappings
        Per-frame auxiliary values (orientation, diameter, ...) parallel to
        *frames*, appended to the output rows in order.
    **options
        Remaining :class:`TrackerConfig` fields (``max_lookback``,
        ``zero_velocity_undefined``, ``frame_offset``, ``repair``).

    Returns
    -------
    TrackTable
        Rows ``[x, y, vx, vy, uid, lifetime, frame, ax, ay, aux...]`` grouped
        by UID, with per-track ``lengths``.

    Raises
    ------
    NoTracksFoundError
        If no track of at least two observations is found.
    """
    config = TrackerConfig(
        sampling_frequency=sampling_frequency,
        search_radius=search_radius,
        max_frames_skipped=max_frames_skipped,
        **options,
    ).validate()

    snapshots = build_snapshots(frames, aux_fields)
    link_snapshots(snapshots, config)
    tracks = assemble_tracks(snapshots, config.sampling_frequency, frame_offset=config.frame_offset)
    table = TrackTable.from_tracks(tracks)

    if config.repair:
        table, _ = repair_tracks(table, config.search_radius, config.max_frames_skipped)
    return table
