# sehat_rakshak/core/locks.py
"""
Per-patient logical locks for the prescription write path.

Two submissions for the same patient must not interleave their medication
inserts. With Redis reachable the lock is a redis-py Lock, so it holds across
worker processes; otherwise, or when Redis fails mid-request, a process-local
threading.Lock per patient is used.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

import redis

from sehat_rakshak.core.redis import make_lock

logger = logging.getLogger(__name__)

# key -> [lock, number of holders and waiters]; an entry is dropped when the count reaches 0
_local_locks: dict[str, list] = {}
_local_locks_guard = threading.Lock()


class LockTimeoutError(Exception):
    pass


@contextmanager
def _hold_local(key: str, timeout: float) -> Iterator[None]:
    with _local_locks_guard:
        entry = _local_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    lock = entry[0]

    acquired = lock.acquire(timeout=timeout)
    try:
        if not acquired:
            raise LockTimeoutError(f"Timed out waiting for {key}")
        yield
    finally:
        if acquired:
            lock.release()
        with _local_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                _local_locks.pop(key, None)


@contextmanager
def patient_lock(patient_id: UUID, *, timeout: float = 10.0) -> Iterator[None]:
    """
    Hold the prescription lock for one patient.

    `timeout` bounds both the wait for the lock and (for Redis) how long the
    lock may be held before it expires on its own.
    Raises LockTimeoutError if the lock cannot be acquired in time.
    """
    key = f"lock:prescriptions:patient:{patient_id}"
    lock = make_lock(key, timeout=timeout)

    acquired = False
    if lock is not None:
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.warning("Redis lock %s unavailable (%s). Using process-local lock.", key, e)
            lock = None
        else:
            if not acquired:
                raise LockTimeoutError(f"Timed out waiting for {key}")

    if lock is None:
        with _hold_local(key, timeout):
            yield
        return

    try:
        yield
    finally:
        try:
            lock.release()
        except redis.RedisError as e:
            # LockError (expired) included; the key expires on its own either way
            logger.warning("Redis lock %s not released cleanly: %s", key, e)
