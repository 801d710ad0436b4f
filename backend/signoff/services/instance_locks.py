"""Instance Locks - Serialize mutations per instance"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class InstanceLockRegistry:
    """
    One re-entrant lock per instance ID

    Gate state is read, modified and written back without a version check, so
    two concurrent sign-offs on the same instance must not interleave.
    Entries are reference counted and dropped once nobody holds or waits on
    them.
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._holders: Dict[str, int] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, instance_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(instance_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[instance_id] = lock
            self._holders[instance_id] = self._holders.get(instance_id, 0) + 1
            return lock

    def _release_entry(self, instance_id: str) -> None:
        with self._guard:
            remaining = self._holders[instance_id] - 1
            if remaining:
                self._holders[instance_id] = remaining
            else:
                del self._holders[instance_id]
                del self._locks[instance_id]

    @contextmanager
    def hold(self, instance_id: str) -> Iterator[None]:
        """Hold the instance's lock for the duration of the block"""
        lock = self._acquire_entry(instance_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(instance_id)
