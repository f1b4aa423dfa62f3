import numpy as np
import pytest

from lagrangian_tracking.snapshot import Snapshot, build_snapshots


def test_missing_frames_become_empty_snapshots():
    snaps = build_snapshots({0: [(1.0, 0.0)], 3: [(2.0, 0.0)]})
    assert [s.frame for s in snaps] == [0, 1, 2, 3]
    assert [len(s) for s in snaps] == [1, 0, 0, 1]
    assert snaps[1].is_empty


def test_empty_input():
    assert build_snapshots({}) == []


def test_sorted_by_x_with_aux_columns_following():
    frames = {0: [(2.0, 0.0), (1.0, 5.0), (3.0, 1.0)]}
    angle = {0: [20.0, 10.0, 30.0]}
    size = {0: [[2, 0.2], [1, 0.1], [3, 0.3]]}
    (snap,) = build_snapshots(frames, [angle, size])
    np.testing.assert_array_equal(snap.positions[:, 0], [1.0, 2.0, 3.0])
    np.testing.assert_array_equal(snap.aux, [[10, 1, 0.1], [20, 2, 0.2], [30, 3, 0.3]])


def test_aux_field_missing_a_frame_is_nan():
    snaps = build_snapshots({0: [(0.0, 0.0)], 1: [(1.0, 0.0)]}, [{0: [7.0]}])
    assert snaps[0].aux[0, 0] == 7.0
    assert np.isnan(snaps[1].aux[0, 0])


def test_aux_row_mismatch_raises():
    with pytest.raises(ValueError):
        build_snapshots({0: [(0.0, 0.0), (1.0, 1.0)]}, [{0: [1.0]}])


def test_fresh_observation_is_unassigned():
    snap = Snapshot(4, [(0.5, 0.25)])
    obs = snap.observation(0)
    assert obs.frame == 4
    assert obs.position == (0.5, 0.25)
    assert obs.uid is None
    assert obs.lifetime is None
    assert obs.velocity is None
    assert obs.displacement is None
    assert snap.max_uid() is None


def test_aux_rows_for_an_empty_frame_raise():
    with pytest.raises(ValueError):
        build_snapshots({0: [(0.0, 0.0)], 1: []}, [{0: [1.0], 1: [5.0]}])
