"""
In-process lock registry.

Named re-entrant locks created on first use. Multi-key acquisition takes
keys in one global order (plan, worker, substation, material, then by id)
and every wait is bounded by a timeout.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ..domain.shared.exceptions import LockTimeoutError
from .config import settings


class LockRegistry:
    """Registry of named locks (plan:, worker:, substation:, material: keys)."""

    def __init__(self, default_timeout: float | None = None) -> None:
        self._default_timeout = (
            default_timeout
            if default_timeout is not None
            else settings.LOCK_TIMEOUT_SECONDS
        )
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def acquire(self, *keys: str, timeout: float | None = None) -> Iterator[None]:
        """
        Hold every named lock for the duration of the block.

        Raises:
            LockTimeoutError: If any lock cannot be taken in time. Locks
                already taken by this call are released first.
        """
        wait = self._default_timeout if timeout is None else timeout
        held: list[threading.RLock] = []
        try:
            for key in sorted(set(keys), key=_lock_order):
                lock = self._lock_for(key)
                if not lock.acquire(timeout=wait):
                    raise LockTimeoutError(key, wait)
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()


_KIND_ORDER = {"plan": 0, "worker": 1, "substation": 2, "material": 3}


def _lock_order(key: str) -> tuple[int, str]:
    kind, _, ident = key.partition(":")
    return _KIND_ORDER.get(kind, len(_KIND_ORDER)), ident


def plan_key(plan_id: object) -> str:
    return f"plan:{plan_id}"


def worker_key(worker_id: object) -> str:
    return f"worker:{worker_id}"


def substation_key(substation_id: object) -> str:
    return f"substation:{substation_id}"


def material_key(material_code: str) -> str:
    return f"material:{material_code}"
