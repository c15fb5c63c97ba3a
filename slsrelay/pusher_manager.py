"""Manager that pushes a published stream to upstreams."""

from __future__ import annotations

import threading
from typing import Any

from .log import LogLevel, get_logger
from .relay_info import RelayMode, _RelayManagerBase


class PusherManager(_RelayManagerBase):
    """Pushes a stream to all upstreams, or to one chosen by hash."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._lock = threading.RLock()
        self.pending_reconnects: dict[str, int] = {}

    def connect_all(self) -> bool:
        """Connect to every upstream; failures are queued for reconnect."""
        info = self.relay_info
        if info is None:
            get_logger().log(
                LogLevel.INFO,
                f"PusherManager.connect_all, failed, no relay info, stream={self.key_stream_name}.",
            )
            return False
        all_ok = True
        for upstream in info.upstreams:
            url = self.upstream_url(upstream)
            ok = self._connect(url)
            if not ok:
                with self._lock:
                    self.pending_reconnects[url] = self._now()
            all_ok = all_ok and ok
        return all_ok

    def start(self) -> bool:
        """Connect pushers if the stream has a publisher."""
        info = self.relay_info
        if info is None:
            get_logger().log(
                LogLevel.INFO,
                f"PusherManager.start, failed, no relay info, stream={self.key_stream_name}.",
            )
            return False
        if self.map_publisher is not None and self._publisher() is None:
            get_logger().log(
                LogLevel.INFO,
                f"PusherManager.start, failed, no publisher, stream={self.key_stream_name}.",
            )
            return False
        if info.mode is RelayMode.ALL:
            return self.connect_all()
        if info.mode is RelayMode.HASH:
            return self._connect_hash()
        get_logger().log(
            LogLevel.INFO,
            f"PusherManager.start, failed, wrong mode={info.mode.value}, "
            f"stream={self.key_stream_name}.",
        )
        return False

    def set_relay_param(self, relay: Any) -> bool:
        """Bind relay to the stream's data and hand it to the workers."""
        self._attach(relay)
        return True

    def add_reconnect_stream(self, relay_url: str) -> bool:
        """Schedule a reconnect for relay_url (all mode) or the stream (hash mode)."""
        info = self.relay_info
        if info is None:
            return False
        if info.mode is RelayMode.ALL:
            with self._lock:
                self.pending_reconnects[relay_url] = self._now()
            return True
        if info.mode is RelayMode.HASH:
            self.reconnect_begin_tm = self._now()
            return True
        get_logger().log(
            LogLevel.INFO,
            f"PusherManager.add_reconnect_stream, failed, wrong mode={info.mode.value}.",
        )
        return False

    def check_relay_param(self) -> bool:
        """Return True when the role list and data map are set."""
        for name in ("role_list", "map_data"):
            if getattr(self, name) is None:
                get_logger().log(
                    LogLevel.WARNING,
                    f"PusherManager.check_relay_param, failed, {name} is None, "
                    f"stream={self.stream_name}.",
                )
                return False
        return True

    def reconnect(self, cur_tm_ms: int) -> bool:
        """Retry failed pushers whose reconnect interval has passed."""
        if not self.check_relay_param():
            return False
        info = self.relay_info
        if info is None:
            return False
        no_publisher = self.map_publisher is not None and self._publisher() is None
        if info.mode is RelayMode.ALL:
            return self.reconnect_all(cur_tm_ms, no_publisher)
        if info.mode is RelayMode.HASH:
            if cur_tm_ms - self.reconnect_begin_tm < info.reconnect_interval * 1000:
                return False
            self.reconnect_begin_tm = cur_tm_ms
            if no_publisher:
                get_logger().log(
                    LogLevel.INFO,
                    f"PusherManager.reconnect, no publisher, stream={self.key_stream_name}.",
                )
                return False
            return self._connect_hash()
        get_logger().log(
            LogLevel.INFO,
            f"PusherManager.reconnect, failed, wrong mode={info.mode.value}.",
        )
        return False

    def reconnect_all(self, cur_tm_ms: int, no_publisher: bool) -> bool:
        """Retry each due url; return True only if every url is connected."""
        interval_ms = self.relay_info.reconnect_interval * 1000 if self.relay_info else 0
        last_ok = False
        all_ok = True
        with self._lock:
            for url, begin_tm in list(self.pending_reconnects.items()):
                if cur_tm_ms - begin_tm < interval_ms:
                    all_ok = all_ok and last_ok
                    continue
                if no_publisher:
                    all_ok = all_ok and last_ok
                    self.pending_reconnects[url] = cur_tm_ms
                    get_logger().log(
                        LogLevel.INFO,
                        f"PusherManager.reconnect_all, failed, url={url}, no publisher.",
                    )
                    continue
                last_ok = self._connect(url)
                if last_ok:
                    del self.pending_reconnects[url]
                else:
                    self.pending_reconnects[url] = cur_tm_ms
                all_ok = all_ok and last_ok
        return all_ok