"""
ARKAINX Casino — Per-User Locks

One re-entrant lock per user id. The service holds it across the whole
bet → draw → credit → persist unit; the ledger and session store take it
again (re-entrantly) when called on their own, so every balance or
session mutation for a user is serialized in-process. Cross-process
writers are serialized by SQLite's BEGIN IMMEDIATE.

Locks are held weakly: an entry lives only while some thread holds or
waits on it, so the table stays as small as the set of active users.
"""

import threading
import weakref
from contextlib import contextmanager


class UserLocks:

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, user_id: str):
        lock = self._lock_for(user_id)
        with lock:
            yield
