"""Relay configuration records and the state shared by relay managers."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .log import LogLevel, get_logger


class RelayMode(str, Enum):
    """How a relay manager chooses among its upstreams."""

    LOOP = "loop"
    ALL = "all"
    HASH = "hash"


@dataclass
class RelayConf:
    """A relay section of the configuration as written by the user."""

    type: str
    upstreams: str
    mode: str = "loop"
    reconnect_interval: int = 10
    idle_streams_timeout: int = -1


@dataclass
class RelayInfo:
    """A validated relay configuration."""

    type: str
    mode: RelayMode
    upstreams: list[str] = field(default_factory=list)
    reconnect_interval: int = 10
    idle_streams_timeout: int = -1


def relay_info_from_conf(conf: RelayConf) -> RelayInfo:
    """Build a RelayInfo; an unknown mode falls back to hash."""
    try:
        mode = RelayMode(conf.mode)
    except ValueError:
        mode = RelayMode.HASH
        get_logger().log(
            LogLevel.INFO,
            f"relay_info_from_conf, wrong mode='{conf.mode}', use default '{mode.value}'.",
        )
    upstreams = conf.upstreams.split()
    if not upstreams:
        get_logger().log(
            LogLevel.INFO, f"relay_info_from_conf, wrong upstreams='{conf.upstreams}'."
        )
    return RelayInfo(
        type=conf.type,
        mode=mode,
        upstreams=upstreams,
        reconnect_interval=conf.reconnect_interval,
        idle_streams_timeout=conf.idle_streams_timeout,
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


Connector = Callable[[Any, str], bool]
HashConnector = Callable[[Any], bool]


class _RelayManagerBase:
    """State and helpers common to puller and pusher managers."""

    def __init__(
        self,
        relay_info: RelayInfo | None,
        app_uplive: str,
        stream_name: str,
        connector: Connector,
        hash_connector: HashConnector | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.relay_info = relay_info
        self.app_uplive = app_uplive
        self.stream_name = stream_name
        self.connector = connector
        self.hash_connector = hash_connector
        self._clock = clock or _now_ms
        self.map_data: Any = None
        self.map_publisher: Any = None
        self.role_list: Any = None
        self.listen_port = 0
        self.reconnect_begin_tm = 0

    @property
    def key_stream_name(self) -> str:
        return f"{self.app_uplive}/{self.stream_name}"

    def upstream_url(self, upstream: str) -> str:
        return f"srt://{upstream}/{self.stream_name}"

    def _now(self) -> int:
        return int(self._clock())

    def _connect(self, url: str) -> bool:
        return bool(self.connector(self, url))

    def _connect_hash(self) -> bool:
        if self.hash_connector is None:
            get_logger().log(
                LogLevel.INFO,
                f"{type(self).__name__}, no hash connector, stream={self.key_stream_name}.",
            )
            return False
        return bool(self.hash_connector(self))

    def _publisher(self) -> Any:
        if self.map_publisher is None:
            return None
        return self.map_publisher.get_publisher(self.key_stream_name)

    def _attach(self, relay: Any) -> None:
        relay.map_data_key = self.key_stream_name
        relay.map_data = self.map_data
        relay.map_publisher = self.map_publisher
        relay.relay_manager = self
        self.role_list.push(relay)