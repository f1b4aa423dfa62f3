"""Shared fixtures for the tracker tests."""
import pytest


@pytest.fixture
def drifting_particle():
    """Factory for a single particle moving along x by ``step`` per frame.

    ``jump`` is added to x from frame ``jump_at`` on; frames listed in
    ``missing`` have no detection.
    """
    def make(n_frames=10, step=0.01, jump=0.0, jump_at=None, missing=(), y=0.0):
        frames = {}
        for k in range(n_frames):
            if k in missing:
                continue
            x = step * k
            if jump_at is not None and k >= jump_at:
                x += jump
            frames[k] = [(x, y)]
        return frames

    return make
