"""Key/value storage backing the provider's session persistence.

The identity provider reads and writes its session blob through one of
these stores. ``ActivityTrackingStorage`` wraps the real medium and
stamps the last-activity key whenever the session token is written.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ACTIVITY_KEY = "last-activity"
LANGUAGE_KEY = "language"


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@runtime_checkable
class KeyValueStorage(Protocol):
    """Storage interface expected by the Supabase auth client."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage. Lost on restart."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """JSON file storage that survives process restarts.

    The whole mapping is rewritten on every change; the file only ever
    holds a handful of keys. Safe to share between the event loop and the
    auth client's token refresh thread.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._items: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable session storage {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed session storage {self.path}")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._items), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value
            self._flush()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._items.pop(key, None) is not None:
                self._flush()


class ActivityTrackingStorage:
    """Storage wrapper that records the last user activity.

    Every write to ``session_key`` also stamps ``ACTIVITY_KEY`` with the
    current time in epoch milliseconds.
    """

    def __init__(
        self,
        inner: KeyValueStorage,
        session_key: str,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.inner = inner
        self.session_key = session_key
        self._clock = clock
        self._stamp_lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        return self.inner.get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self.inner.set_item(key, value)
        if key == self.session_key:
            self.stamp_activity()

    def remove_item(self, key: str) -> None:
        self.inner.remove_item(key)

    def stamp_activity(self) -> int:
        """Store the current time as the last activity.

        Never moves the stamp backwards if the clock does.

        Returns:
            The stored timestamp
        """
        with self._stamp_lock:
            now = self._clock()
            previous = self.last_activity()
            if previous is not None and previous > now:
                return previous
            self.inner.set_item(ACTIVITY_KEY, str(now))
            return now

    def last_activity(self) -> int | None:
        """Read the stored activity timestamp, None if never stamped."""
        raw = self.inner.get_item(ACTIVITY_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Discarding malformed activity timestamp: {raw!r}")
            return None

    def clear_local_state(self) -> None:
        """Drop the session token, activity stamp and cached language."""
        for key in (self.session_key, ACTIVITY_KEY, LANGUAGE_KEY):
            self.inner.remove_item(key)
