"""Registry of publishers, live-to-uplive app mapping and app configuration."""

from __future__ import annotations

import threading
from typing import Any

from .log import LogLevel, get_logger


class PublisherRegistryError(Exception):
    """Raised when a stream already has a publisher."""


def _role_name(role: Any) -> str:
    return getattr(role, "role_name", type(role).__name__)


class PublisherMap:
    """Maps 'host/uplive/stream' keys to publishing roles."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._live_to_uplive: dict[str, str] = {}
        self._uplive_to_conf: dict[str, Any] = {}
        self._publishers: dict[str, Any] = {}

    def set_conf(self, key: str, conf: Any) -> None:
        with self._lock:
            self._uplive_to_conf[key] = conf

    def set_live_to_uplive(self, live: str, uplive: str) -> None:
        with self._lock:
            self._live_to_uplive[live] = uplive

    def set_publisher(self, app_stream_name: str, role: Any) -> None:
        """Register a publisher; raise PublisherRegistryError if one is present."""
        with self._lock:
            current = self._publishers.get(app_stream_name)
            if current is not None:
                raise PublisherRegistryError(
                    f"publisher {_role_name(current)} already exists for '{app_stream_name}'"
                )
            self._publishers[app_stream_name] = role
            get_logger().log(
                LogLevel.INFO,
                f"PublisherMap.set_publisher, ok, {_role_name(role)}, "
                f"app_streamname={app_stream_name}, size={len(self._publishers)}.",
            )

    def remove(self, role: Any) -> bool:
        """Remove the first entry held by role; return whether one was found."""
        with self._lock:
            for name, pub in self._publishers.items():
                if pub is role:
                    del self._publishers[name]
                    get_logger().log(
                        LogLevel.INFO,
                        f"PublisherMap.remove, {_role_name(pub)}, live_key={name}.",
                    )
                    return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._publishers.clear()
            self._live_to_uplive.clear()
            self._uplive_to_conf.clear()

    def get_uplive(self, key_app: str) -> str | None:
        with self._lock:
            return self._live_to_uplive.get(key_app)

    def get_conf(self, key_app: str) -> Any:
        with self._lock:
            return self._uplive_to_conf.get(key_app)

    def get_publisher(self, app_stream_name: str) -> Any:
        with self._lock:
            return self._publishers.get(app_stream_name)

    def get_publisher_names(self) -> list[str]:
        """Return the registered stream names in sorted order."""
        with self._lock:
            return sorted(self._publishers)