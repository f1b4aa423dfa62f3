import numpy as np

from lagrangian_tracking.associator import (
    associate,
    find_reference_frame,
    nearest_matches,
    predict_positions,
    resolve_conflicts,
    start_tracks,
)
from lagrangian_tracking.snapshot import Snapshot
from lagrangian_tracking.uid import UidAllocator


def _started(frame, positions, alloc):
    snap = Snapshot(frame, positions).sort_by_x()
    start_tracks(snap, alloc)
    return snap


class TestMatching:
    def test_nearest_matches(self):
        predicted = np.array([[0.0, 0.0], [1.0, 0.0]])
        distance, index = nearest_matches(predicted, np.array([[0.9, 0.0], [0.1, 0.0]]))
        np.testing.assert_array_equal(index, [1, 0])
        np.testing.assert_allclose(distance, [0.1, 0.1])

    def test_nearest_matches_empty(self):
        distance, index = nearest_matches(np.empty((0, 2)), np.array([[0.0, 0.0]]))
        assert distance.size == 0 and index.size == 0

    def test_closest_successor_wins_a_shared_predecessor(self):
        distance = np.array([0.1, 0.05, 0.5])
        index = np.array([0, 0, 1])
        prev_idx, curr_idx = resolve_conflicts(distance, index, search_radius=0.2)
        np.testing.assert_array_equal(prev_idx, [0])
        np.testing.assert_array_equal(curr_idx, [1])

    def test_distance_equal_to_radius_is_rejected(self):
        prev_idx, curr_idx = resolve_conflicts(np.array([0.2]), np.array([0]), 0.2)
        assert prev_idx.size == 0 and curr_idx.size == 0

    def test_tie_goes_to_first_in_x_order(self):
        prev_idx, curr_idx = resolve_conflicts(np.array([0.1, 0.1]), np.array([0, 0]), 1.0)
        np.testing.assert_array_equal(curr_idx, [0])

    def test_prediction_uses_last_displacement(self):
        snap = Snapshot(0, [(1.0, 1.0), (2.0, 2.0)])
        snap.displacement[0] = (0.5, -0.5)
        snap.has_displacement[0] = True
        np.testing.assert_allclose(predict_positions(snap), [[1.5, 0.5], [2.0, 2.0]])


class TestAssociate:
    def test_inherits_uid_and_lifetime(self):
        alloc = UidAllocator()
        prev = _started(0, [(0.0, 0.0), (1.0, 0.0)], alloc)
        curr = Snapshot(1, [(1.1, 0.0), (0.1, 0.0)]).sort_by_x()
        n = associate(prev, curr, search_radius=0.5, sampling_frequency=10.0, allocator=alloc)

        assert n == 2
        np.testing.assert_array_equal(curr.uid, [1, 2])
        np.testing.assert_array_equal(curr.lifetime, [1, 1])
        np.testing.assert_allclose(curr.displacement, [[0.1, 0.0], [0.1, 0.0]])
        # velocity lives on the departing observation
        np.testing.assert_allclose(prev.velocity, [[1.0, 0.0], [1.0, 0.0]])
        assert prev.velocity_defined.all()
        assert not curr.has_successor.any()
        assert alloc.current == 2

    def test_unmatched_detections_get_fresh_uids(self):
        alloc = UidAllocator()
        prev = _started(0, [(0.0, 0.0)], alloc)
        curr = Snapshot(1, [(0.05, 0.0), (3.0, 3.0)]).sort_by_x()
        associate(prev, curr, 0.5, 1.0, alloc)

        np.testing.assert_array_equal(curr.uid, [1, 2])
        np.testing.assert_array_equal(curr.lifetime, [1, 0])
        assert curr.observation(1).displacement is None

    def test_displacement_prediction_steers_the_match(self):
        alloc = UidAllocator()
        f0 = _started(0, [(0.0, 0.0)], alloc)
        f1 = Snapshot(1, [(0.3, 0.0)])
        associate(f0, f1, 0.35, 1.0, alloc)
        # without prediction 0.35 would be the nearer detection
        f2 = Snapshot(2, [(0.6, 0.0), (0.35, 0.0)]).sort_by_x()
        associate(f1, f2, 0.3, 1.0, alloc)

        by_x = dict(zip(f2.positions[:, 0], f2.uid))
        assert by_x[0.6] == 1
        assert by_x[0.35] == 2
        assert f2.lifetime[f2.positions[:, 0] == 0.6][0] == 2

    def test_zero_displacement_is_undefined_by_default(self):
        alloc = UidAllocator()
        prev = _started(0, [(0.2, 0.2)], alloc)
        curr = Snapshot(1, [(0.2, 0.2)])
        associate(prev, curr, 0.1, 1.0, alloc)
        assert curr.observation(0).displacement is None
        assert prev.observation(0).velocity is None
        assert prev.has_successor[0]

    def test_zero_displacement_kept_when_coercion_disabled(self):
        alloc = UidAllocator()
        prev = _started(0, [(0.2, 0.2)], alloc)
        curr = Snapshot(1, [(0.2, 0.2)])
        associate(prev, curr, 0.1, 1.0, alloc, zero_velocity_undefined=False)
        assert curr.observation(0).displacement == (0.0, 0.0)
        assert prev.observation(0).velocity == (0.0, 0.0)


class TestReferenceFrame:
    def _snaps(self):
        return [
            Snapshot(0, [(0.0, 0.0)]),
            Snapshot(1, np.empty((0, 2))),
            Snapshot(2, np.empty((0, 2))),
        ]

    def test_finds_nearest_non_empty(self):
        assert find_reference_frame(self._snaps(), 2, max_lookback=5) == 0

    def test_current_frame_counts(self):
        assert find_reference_frame(self._snaps(), 0, max_lookback=0) == 0

    def test_not_found_beyond_lookback(self):
        assert find_reference_frame(self._snaps(), 2, max_lookback=1) is None
