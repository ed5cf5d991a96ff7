"""Per-key mutual exclusion for in-process writers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class _Entry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class KeyedLock:
    """Exclusive lock per string key.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the key space can grow without bound.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, key: str, *, timeout_seconds: float | None = None) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Raises ``TimeoutError`` when the lock is not acquired in time.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=-1 if timeout_seconds is None else timeout_seconds)
        try:
            if not acquired:
                raise TimeoutError(f"timed out waiting for lock on {key}")
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)
