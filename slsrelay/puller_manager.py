"""Manager that pulls a stream from one of several upstreams."""

from __future__ import annotations

from typing import Any

from .log import LogLevel, get_logger
from .map_publisher import PublisherRegistryError
from .relay_info import RelayMode, _RelayManagerBase


class PullerManager(_RelayManagerBase):
    """Pulls a stream, trying upstreams in turn (loop) or by hash."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.cur_loop_index = -1

    def connect_loop(self) -> bool:
        """Try upstreams starting after the last used one; stop at the first success."""
        info = self.relay_info
        if info is None or not info.upstreams:
            get_logger().log(
                LogLevel.INFO,
                f"PullerManager.connect_loop, failed, no upstreams, stream={self.key_stream_name}.",
            )
            return False
        upstreams = info.upstreams
        if self.cur_loop_index == -1:
            self.cur_loop_index = len(upstreams) - 1
        index = self.cur_loop_index + 1
        ok = False
        while True:
            if index >= len(upstreams):
                index = 0
            url = self.upstream_url(upstreams[index])
            ok = self._connect(url)
            if ok:
                break
            if index == self.cur_loop_index:
                get_logger().log(
                    LogLevel.INFO,
                    f"PullerManager.connect_loop, failed, no available pullers, "
                    f"stream={self.key_stream_name}.",
                )
                break
            get_logger().log(
                LogLevel.INFO,
                f"PullerManager.connect_loop, failed, index={index}, url='{url}'.",
            )
            index += 1
        self.cur_loop_index = index
        return ok

    def start(self) -> bool:
        """Connect a puller unless the stream already has a publisher."""
        info = self.relay_info
        if info is None:
            get_logger().log(
                LogLevel.INFO,
                f"PullerManager.start, failed, no relay info, stream={self.key_stream_name}.",
            )
            return False
        if self._publisher() is not None:
            get_logger().log(
                LogLevel.INFO,
                f"PullerManager.start, failed, publisher exists, stream={self.key_stream_name}.",
            )
            return False
        if info.mode is RelayMode.LOOP:
            return self.connect_loop()
        if info.mode is RelayMode.HASH:
            return self._connect_hash()
        get_logger().log(
            LogLevel.INFO,
            f"PullerManager.start, failed, wrong mode={info.mode.value}, "
            f"stream={self.key_stream_name}.",
        )
        return False

    def check_relay_param(self) -> bool:
        """Return True when role list, publisher map and data map are set."""
        for name in ("role_list", "map_publisher", "map_data"):
            if getattr(self, name) is None:
                get_logger().log(
                    LogLevel.WARNING,
                    f"PullerManager.check_relay_param, failed, {name} is None, "
                    f"stream={self.stream_name}.",
                )
                return False
        return True

    def set_relay_param(self, relay: Any) -> bool:
        """Register relay as the stream's publisher and hand it to the workers."""
        key = self.key_stream_name
        if not self.check_relay_param():
            return False
        try:
            self.map_publisher.set_publisher(key, relay)
        except PublisherRegistryError:
            get_logger().log(
                LogLevel.WARNING,
                f"PullerManager.set_relay_param, publisher exists, stream={key}.",
            )
            return False
        try:
            self.map_data.add(key)
        except (KeyError, ValueError, RuntimeError):
            get_logger().log(
                LogLevel.WARNING,
                f"PullerManager.set_relay_param, map_data.add failed, stream={key}.",
            )
            self.map_publisher.remove(relay)
            return False
        self._attach(relay)
        return True

    def add_reconnect_stream(self, relay_url: str) -> bool:
        """Start the reconnect interval from now."""
        self.reconnect_begin_tm = self._now()
        return True

    def reconnect(self, cur_tm_ms: int) -> bool:
        """Start again once the reconnect interval has passed."""
        info = self.relay_info
        interval = info.reconnect_interval if info is not None else 0
        if cur_tm_ms - self.reconnect_begin_tm < interval * 1000:
            return False
        self.reconnect_begin_tm = cur_tm_ms
        if not self.check_relay_param():
            return False
        ok = self.start()
        get_logger().log(
            LogLevel.INFO,
            f"PullerManager.reconnect, start {'ok' if ok else 'failed'}, "
            f"stream={self.key_stream_name}.",
        )
        return ok