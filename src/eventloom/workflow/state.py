"""Per-run shared state."""

from __future__ import annotations

import threading
from typing import Any

_MISSING = object()


class StateStore:
    """Thread-safe key/value mapping scoped to one workflow run.

    Handlers may run on worker threads, so every operation takes the store's
    lock. Iteration order of :meth:`keys` is not part of the contract.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def lookup(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` if the key is present, ``(None, False)`` otherwise."""

        with self._lock:
            value = self._data.get(key, _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set(self, key: str, value: Any) -> None:  # noqa: A003
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def get_str(self, key: str) -> tuple[str, bool]:
        value, ok = self.lookup(key)
        if not ok or not isinstance(value, str):
            return "", False
        return value, True

    def get_int(self, key: str) -> tuple[int, bool]:
        value, ok = self.lookup(key)
        # bool is an int subclass; a stored flag is not a counter
        if not ok or isinstance(value, bool) or not isinstance(value, int):
            return 0, False
        return value, True

    def get_bool(self, key: str) -> tuple[bool, bool]:
        value, ok = self.lookup(key)
        if not ok or not isinstance(value, bool):
            return False, False
        return value, True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data = {}

    def clone(self) -> StateStore:
        """Point-in-time copy; values are shared by reference."""

        with self._lock:
            return StateStore(self._data)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __repr__(self) -> str:
        return f"StateStore(keys={sorted(self.keys())!r})"
