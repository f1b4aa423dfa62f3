"""Monotonic track-identifier allocation."""

import numpy as np


class UidAllocator:
    """Issues strictly increasing positive track identifiers.

    A single allocator is threaded through a whole linking pass so that the
    running maximum survives skipped and empty frames.

    Attributes
    ----------
    current : int
        Largest UID issued or observed so far (0 before any allocation).
    """

    def __init__(self, start=0):
        if start < 0:
            raise ValueError("start must be non-negative")
        self.current = int(start)

    def allocate(self, n=1):
        """Return ``n`` fresh consecutive UIDs as an int64 array."""
        if n < 0:
            raise ValueError("cannot allocate a negative number of UIDs")
        uids = np.arange(self.current + 1, self.current + 1 + n, dtype=np.int64)
        self.current += int(n)
        return uids

    def observe(self, uids):
        """Raise the running maximum to cover every UID in *uids*."""
        uids = np.asarray(uids)
        if uids.size:
            self.current = max(self.current, int(uids.max()))
        return self.current

    def __repr__(self):
        return f"UidAllocator(current={self.current})"
