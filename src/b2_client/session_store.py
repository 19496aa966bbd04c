"""
Session stores persist the cached authorization between invocations so B2 is not asked for a new token every time.

Two interchangeable implementations:
- JSONFileSessionStore: the default, a single JSON file on local disk.
- InMemorySessionStore: used when the disk cache is disabled, lives as long as the process.

The stores are plain key/value stores, deciding whether a cached session has expired is the SessionManager's job.
Both are safe to use from several threads: many concurrent readers, one exclusive writer.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol

from b2_lib.exceptions import SessionCacheError

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """
    Lock allowing many concurrent readers or a single writer.
    Writers waiting for the lock block new readers, so a steady stream of readers can not starve a writer.
    """

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._active_readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._condition:
            while self._writer_active or self._writers_waiting:
                self._condition.wait()
            self._active_readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._active_readers -= 1
                if self._active_readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._condition:
            self._writers_waiting += 1
            while self._writer_active or self._active_readers:
                self._condition.wait()
            self._writers_waiting -= 1
            self._writer_active = True
        try:
            yield
        finally:
            with self._condition:
                self._writer_active = False
                self._condition.notify_all()


class SessionStore(Protocol):
    """Interface shared by all session stores."""

    def get(self, key: str) -> Any | None:
        """Return the value stored under key, None if nothing is stored."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store value under key."""
        ...


class InMemorySessionStore:
    """Process local session store, nothing is written to disk."""

    def __init__(self):
        self._values: dict[str, Any] = {}
        self._lock = ReadWriteLock()

    def get(self, key: str) -> Any | None:
        with self._lock.read_lock():
            return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock.write_lock():
            self._values[key] = value


class JSONFileSessionStore:
    """
    Session store backed by a single JSON file.

    Every `set` overwrites the whole file with `{key: value}`, so only the most recently set key survives.
    That is enough as the session is the only thing cached.
    The file is created readable by the current user only, it contains a bearer token.
    """

    def __init__(self, cache_path: Path):
        self.cache_path = cache_path
        self._lock = ReadWriteLock()

    def get(self, key: str) -> Any | None:
        with self._lock.read_lock():
            try:
                with open(self.cache_path, "r") as file:
                    contents = json.load(file)
            except FileNotFoundError:
                # No cached value yet, not an error.
                return None
            except json.JSONDecodeError as err:
                raise SessionCacheError(cache_path=self.cache_path, reason=f"invalid JSON ({err})") from err
            except OSError as err:
                raise SessionCacheError(cache_path=self.cache_path, reason=str(err)) from err

        if not isinstance(contents, dict):
            raise SessionCacheError(cache_path=self.cache_path, reason="expected a JSON object at the top level")
        return contents.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock.write_lock():
            try:
                self.cache_path.parent.mkdir(parents=True, exist_ok=True)
                file_descriptor = os.open(self.cache_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                with os.fdopen(file_descriptor, "w") as file:
                    json.dump({key: value}, file, indent=1)
            except OSError as err:
                raise SessionCacheError(cache_path=self.cache_path, reason=str(err)) from err
        logger.debug(f"Wrote '{key}' to the session cache at '{self.cache_path}'.")


def create_session_store(cache_path: Path | None) -> SessionStore:
    """Disk based store for a cache path, in-memory store when caching to disk is disabled (cache_path is None)."""
    if cache_path is None:
        return InMemorySessionStore()
    return JSONFileSessionStore(cache_path=cache_path)
