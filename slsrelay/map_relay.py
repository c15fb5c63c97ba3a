"""Relay configurations per uplive app and relay managers per stream."""

from __future__ import annotations

import threading
from typing import Callable

from .log import LogLevel, get_logger
from .puller_manager import PullerManager
from .pusher_manager import PusherManager
from .relay_info import (
    Connector,
    HashConnector,
    RelayConf,
    RelayInfo,
    _RelayManagerBase,
    relay_info_from_conf,
)

_MANAGER_TYPES: dict[str, type[_RelayManagerBase]] = {
    "pull": PullerManager,
    "push": PusherManager,
}


class RelayMap:
    """Holds relay settings per 'host/uplive' app and one manager per stream."""

    def __init__(
        self,
        connector: Connector,
        hash_connector: HashConnector | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._connector = connector
        self._hash_connector = hash_connector
        self._clock = clock
        self._managers: dict[str, _RelayManagerBase] = {}
        self._relay_info: dict[str, RelayInfo] = {}

    def add_relay_conf(self, app_uplive: str, conf: RelayConf) -> RelayInfo:
        """Store the relay settings of an app; raise ValueError if already set."""
        if conf is None:
            raise ValueError("relay conf is None")
        with self._lock:
            if app_uplive in self._relay_info:
                raise ValueError(f"relay conf already exists for app '{app_uplive}'")
            info = relay_info_from_conf(conf)
            self._relay_info[app_uplive] = info
            return info

    def get_relay_conf(self, app_uplive: str) -> RelayInfo | None:
        with self._lock:
            return self._relay_info.get(app_uplive)

    def add_relay_manager(self, app_uplive: str, stream_name: str) -> _RelayManagerBase | None:
        """Return the stream's manager, creating it; None if the app has no usable relay."""
        log = get_logger()
        info = self.get_relay_conf(app_uplive)
        if info is None:
            log.log(
                LogLevel.INFO,
                f"RelayMap.add_relay_manager, no relay conf info, "
                f"app_uplive={app_uplive}, stream_name={stream_name}.",
            )
            return None
        key = f"{app_uplive}/{stream_name}"
        with self._lock:
            current = self._managers.get(key)
            if current is not None:
                return current
            manager_cls = _MANAGER_TYPES.get(info.type)
            if manager_cls is None:
                log.log(
                    LogLevel.INFO,
                    f"RelayMap.add_relay_manager, failed, wrong type='{info.type}', "
                    f"app_uplive={app_uplive}, stream_name={stream_name}.",
                )
                return None
            manager = manager_cls(
                info,
                app_uplive,
                stream_name,
                self._connector,
                hash_connector=self._hash_connector,
                clock=self._clock,
            )
            self._managers[key] = manager
            log.log(
                LogLevel.INFO,
                f"RelayMap.add_relay_manager, ok, app_uplive={app_uplive}, "
                f"stream_name={stream_name}.",
            )
            return manager

    def clear(self) -> None:
        """Drop all managers and relay settings."""
        with self._lock:
            self._managers.clear()
            self._relay_info.clear()