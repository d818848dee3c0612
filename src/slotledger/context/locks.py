from __future__ import annotations

import threading


class UserLocks:
    """ Hands out one re-entrant lock per user id.

    The token balance of a user is the only contended resource. Holding the
    user's lock while the balance is checked and written keeps two threads
    of the same process from approving against the same balance. Across
    processes the row lock taken by the database does the same.

    """

    def __init__(self) -> None:
        self.thread_lock = threading.Lock()
        self.locks: dict[str, threading.RLock] = {}

    def __call__(self, user_id: str) -> threading.RLock:
        with self.thread_lock:
            if user_id not in self.locks:
                self.locks[user_id] = threading.RLock()

            return self.locks[user_id]
