"""
Locking primitives: a reader/writer lock for the in-process search index and
per-property booking locks (in-memory for a single process, Redis-backed for
multiple workers).
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class LockUnavailable(RuntimeError):
    """Raised when a property lock could not be acquired in time."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Could not lock property {property_id}")


class ReadWriteLock:
    """
    Many concurrent readers or one writer. Waiting writers block new readers so
    a steady stream of searches cannot starve index mutations.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class PropertyLocks(Protocol):
    """Serializes the fetch/check/commit sequence of bookings per property."""

    def hold(self, property_id: str):
        ...


@dataclass
class InMemoryPropertyLocks:
    """One threading.Lock per property; only valid within a single process."""

    wait_seconds: float = 10.0
    _locks: dict[str, threading.Lock] = field(default_factory=dict)
    _guard: threading.Lock = field(default_factory=threading.Lock)

    def _lock_for(self, property_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(property_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[property_id] = lock
            return lock

    @contextmanager
    def hold(self, property_id: str) -> Iterator[None]:
        lock = self._lock_for(property_id)
        if not lock.acquire(timeout=self.wait_seconds):
            raise LockUnavailable(property_id)
        try:
            yield
        finally:
            lock.release()


@dataclass
class RedisPropertyLocks:
    """Redis lock per property so several worker processes share one view."""

    url: str
    prefix: str = "stayease:lock"
    timeout_seconds: float = 30.0
    wait_seconds: float = 10.0

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    @contextmanager
    def hold(self, property_id: str) -> Iterator[None]:
        lock = self.client.lock(
            f"{self.prefix}:{property_id}",
            timeout=self.timeout_seconds,
            blocking_timeout=self.wait_seconds,
        )
        try:
            acquired = lock.acquire()
        except redis_exceptions.ConnectionError as exc:
            logger.warning("Redis unavailable while locking %s: %s", property_id, exc)
            raise LockUnavailable(property_id) from exc
        if not acquired:
            raise LockUnavailable(property_id)
        try:
            yield
        finally:
            try:
                lock.release()
            except redis_exceptions.LockError:
                logger.warning("Booking lock for %s expired before release", property_id)
            except redis_exceptions.ConnectionError as exc:
                # The key expires on its own after timeout_seconds.
                logger.warning(
                    "Redis unavailable while releasing %s: %s", property_id, exc
                )
