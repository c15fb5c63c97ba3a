"""Worker group that polls roles, dispatches their I/O and reaps dead ones."""

from __future__ import annotations

import threading
import time
from enum import IntEnum
from typing import Any, Callable, Iterable, Protocol

from .log import LogLevel, get_logger

POLLING_TIME_MS = 1
DEFAULT_WORKER_CONNECTIONS = 100
DEFAULT_STAT_POST_INTERVAL_S = 5


class RoleState(IntEnum):
    """Life-cycle states a role reports through get_state()."""

    UNINIT = 0
    INITED = 1
    WORKING = 2
    INVALID = 3


class Poller(Protocol):
    """Readiness source; roles register themselves through add_to_epoll()."""

    def wait(self, timeout_ms: int) -> tuple[Iterable[int], Iterable[int]]:
        """Return (readable fds, writable fds); both empty when nothing is ready."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _role_name(role: Any) -> str:
    return getattr(role, "role_name", type(role).__name__)


class WorkerGroup:
    """Serves a set of roles: publishers, players, listeners and relays.

    A role exposes ``fd``, ``handler()`` returning a count (negative on
    failure), ``add_to_epoll(poller)``, ``get_state(cur_ms)``, ``uninit()``,
    ``invalid_srt()``, ``check_http_client()``, ``get_stat_info()``,
    ``is_reconnect()`` and ``relay_manager``.
    """

    def __init__(
        self,
        poller: Poller,
        role_list: Any = None,
        worker_number: int = 0,
        worker_connections: int = DEFAULT_WORKER_CONNECTIONS,
        stat_post_interval: int = DEFAULT_STAT_POST_INTERVAL_S,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.poller = poller
        self.role_list = role_list
        self.worker_number = worker_number
        self.worker_connections = worker_connections
        self.stat_post_interval = stat_post_interval
        self._clock = clock or _now_ms
        self._sleep = sleep or time.sleep
        self._roles: dict[int, Any] = {}
        self._wait_http_roles: list[Any] = []
        self._reconnect_managers: list[Any] = []
        self._reload = False
        self._exit = threading.Event()
        self._thread: threading.Thread | None = None
        self._stat_lock = threading.Lock()
        self._stat_info = ""
        self._stat_post_last_tm_ms = int(self._clock())

    @property
    def roles(self) -> dict[int, Any]:
        return dict(self._roles)

    @property
    def waiting_http_roles(self) -> list[Any]:
        return list(self._wait_http_roles)

    @property
    def pending_reconnects(self) -> list[Any]:
        return list(self._reconnect_managers)

    @property
    def exited(self) -> bool:
        return self._exit.is_set()

    def _log(self, level: LogLevel, message: str) -> None:
        get_logger().log(level, f"WorkerGroup[{self.worker_number}].{message}")

    def start(self) -> None:
        """Run the polling loop in a background thread."""
        self._log(LogLevel.INFO, "start.")
        self._exit.clear()
        self._thread = threading.Thread(
            target=self._work, name=f"worker-{self.worker_number}", daemon=True
        )
        self._thread.start()

    def _work(self) -> None:
        while not self._exit.is_set():
            self.handler()
        self.clear()

    def stop(self) -> None:
        """Stop the loop and release roles still waiting on HTTP clients."""
        self._log(LogLevel.INFO, "stop.")
        self._exit.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
        waiting, self._wait_http_roles = self._wait_http_roles, []
        for role in waiting:
            if role is not None:
                role.uninit()

    def reload(self) -> None:
        """Exit once the group has no roles left."""
        self._reload = True

    def handler(self) -> int:
        """Poll once, dispatch ready roles, run idle checks; return handled count."""
        if self._reload and not self._roles:
            self._log(LogLevel.INFO, "handler, reload with no roles, exit.")
            self._exit.set()
            return 0

        readable, writable = self.poller.wait(POLLING_TIME_MS)
        readable, writable = list(readable), list(writable)
        if not readable and not writable:
            self.idle_check()
            return 0

        self._log(
            LogLevel.TRACE,
            f"handler, writable count={len(writable)}, readable count={len(readable)}.",
        )
        count = self._dispatch(writable, "writable") + self._dispatch(readable, "readable")
        self.idle_check()
        if count == 0:
            self._sleep(POLLING_TIME_MS / 1000)
        return count

    def _dispatch(self, fds: list[int], kind: str) -> int:
        count = 0
        for fd in fds:
            role = self._roles.get(fd)
            if role is None:
                self._log(LogLevel.WARNING, f"handler, no role for {kind} sock={fd}.")
                continue
            ret = role.handler()
            if ret < 0:
                self._log(
                    LogLevel.TRACE,
                    f"handler, {kind} sock={fd} is invalid, {_role_name(role)}.",
                )
                role.invalid_srt()
            else:
                count += ret
        return count

    def idle_check(self) -> None:
        self.check_wait_http_role()
        self.check_reconnect_relay()
        self.check_invalid_sock()
        self.check_new_role()

    def check_new_role(self) -> None:
        """Take one role from the shared list and register it with the poller."""
        if self.role_list is None or len(self._roles) >= self.worker_connections:
            return
        role = self.role_list.pop()
        if role is None:
            return
        fd = role.fd
        if fd == 0:
            return
        if role.add_to_epoll(self.poller):
            self._roles[fd] = role
            self._log(
                LogLevel.INFO,
                f"check_new_role, {_role_name(role)} added, fd={fd}, size={len(self._roles)}.",
            )
        else:
            self._log(
                LogLevel.INFO, f"check_new_role, {_role_name(role)} add failed, fd={fd}."
            )

    def check_wait_http_role(self) -> None:
        """Drive roles whose HTTP notification is pending; drop finished ones."""
        still_waiting = []
        for role in self._wait_http_roles:
            if role is None:
                continue
            if not role.check_http_client():
                self._log(LogLevel.INFO, f"check_wait_http_role, delete {_role_name(role)}.")
                role.uninit()
                continue
            role.handler()
            still_waiting.append(role)
        self._wait_http_roles = still_waiting

    def check_reconnect_relay(self) -> None:
        """Ask relay managers to reconnect; keep those that did not succeed."""
        cur_ms = int(self._clock())
        remaining = []
        for manager in self._reconnect_managers:
            if manager is None:
                self._log(LogLevel.INFO, "check_reconnect_relay, remove invalid manager.")
                continue
            if not manager.reconnect(cur_ms):
                remaining.append(manager)
        self._reconnect_managers = remaining

    def check_invalid_sock(self) -> None:
        """Collect statistics when due and retire roles that are no longer valid."""
        cur_ms = int(self._clock())
        update_stat = cur_ms - self._stat_post_last_tm_ms >= self.stat_post_interval * 1000
        if update_stat:
            with self._stat_lock:
                self._stat_info = ""
            self._stat_post_last_tm_ms = cur_ms

        for fd, role in list(self._roles.items()):
            if role is None:
                del self._roles[fd]
                continue
            if update_stat:
                info = role.get_stat_info()
                with self._stat_lock:
                    self._stat_info += info
            state = role.get_state(cur_ms)
            if state not in (RoleState.INVALID, RoleState.UNINIT):
                continue
            self._log(
                LogLevel.INFO,
                f"check_invalid_sock, {_role_name(role)} invalid sock={fd}, state={state}.",
            )
            if role.is_reconnect():
                self._reconnect_managers.append(role.relay_manager)
            role.uninit()
            if role.check_http_client():
                self._wait_http_roles.append(role)
            del self._roles[fd]

    def clear(self) -> None:
        """Uninitialise and forget every served role."""
        self._log(LogLevel.INFO, f"clear, size={len(self._roles)}.")
        roles, self._roles = self._roles, {}
        for role in roles.values():
            if role is not None:
                role.uninit()

    def get_stat_info(self) -> str:
        """Return the statistics gathered at the last collection."""
        with self._stat_lock:
            return self._stat_info