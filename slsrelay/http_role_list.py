"""Thread-safe FIFO of HTTP clients waiting to be served."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

from .log import LogLevel, get_logger


class HttpRoleList:
    """Queue of HTTP client roles shared between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._roles: deque[Any] = deque()

    def push(self, role: Any) -> None:
        """Append role; None is ignored."""
        if role is None:
            return
        with self._lock:
            self._roles.append(role)

    def pop(self) -> Any:
        """Remove and return the oldest role, or None when empty."""
        with self._lock:
            return self._roles.popleft() if self._roles else None

    def erase(self) -> None:
        """Close every queued role and empty the list."""
        with self._lock:
            get_logger().log(LogLevel.TRACE, f"HttpRoleList.erase, count={len(self._roles)}.")
            roles = list(self._roles)
            self._roles.clear()
        for role in roles:
            role.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._roles)