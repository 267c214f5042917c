"""In-process named locks serialising conversion work per plan and per resource."""

from __future__ import annotations

import time
from contextlib import contextmanager
from threading import Lock
from typing import Iterable, Iterator, Optional

from reservation_engine.services.errors import ResourceBusyError
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


def plan_lock_key(tenant_id: str, plan_id: str) -> str:
    return f"plan:{tenant_id}:{plan_id}"


def resource_lock_key(tenant_id: str, resource_id: str) -> str:
    return f"resource:{tenant_id}:{resource_id}"


class ResourceLockService:
    """Owns every named lock; callers never share ad-hoc lock maps.

    Keys are always taken in sorted order so two callers asking for
    overlapping sets cannot deadlock each other. A key stays registered only
    while someone holds or waits on it.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._registry_lock = Lock()
        self._locks: dict[str, Lock] = {}
        self._users: dict[str, int] = {}

    def _checkout(self, key: str) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._registry_lock:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    def try_acquire(self, keys: Iterable[str], timeout: Optional[float] = None) -> list[str]:
        """Acquire all keys or none; returns the held keys in acquisition order."""
        wait = self._settings.lock_timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + max(wait, 0.0)
        held: list[str] = []
        for key in sorted(set(keys)):
            remaining = max(deadline - time.monotonic(), 0.0)
            if not self._checkout(key).acquire(timeout=remaining):
                self._checkin(key)
                self.release(held)
                logger.warning("Lock wait exceeded | key=%s | timeout=%.2f", key, wait)
                raise ResourceBusyError(
                    f"Timed out waiting for lock {key}",
                    keys=[key],
                )
            held.append(key)
        return held

    def release(self, keys: Iterable[str]) -> None:
        for key in reversed(list(keys)):
            with self._registry_lock:
                lock = self._locks[key]
            lock.release()
            self._checkin(key)

    @contextmanager
    def acquire(self, keys: Iterable[str], timeout: Optional[float] = None) -> Iterator[list[str]]:
        held = self.try_acquire(keys, timeout)
        try:
            yield held
        finally:
            self.release(held)

    def is_locked(self, key: str) -> bool:
        with self._registry_lock:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @property
    def registered_keys(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._locks)
