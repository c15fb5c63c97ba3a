import time

import pytest

from slsrelay.group import POLLING_TIME_MS, RoleState, WorkerGroup
from slsrelay.http_role_list import HttpRoleList


class FakePoller:
    def __init__(self):
        self.fds = []
        self.events = []

    def add(self, fd):
        self.fds.append(fd)

    def wait(self, timeout_ms):
        if self.events:
            return self.events.pop(0)
        return [], []


class FakeRole:
    def __init__(self, fd, result=0, accept=True, stat="", http=False, manager=None):
        self.fd = fd
        self.result = result
        self.accept = accept
        self.stat = stat
        self.http = http
        self.manager = manager
        self.state = RoleState.WORKING
        self.handled = 0
        self.invalidated = False
        self.uninited = 0

    @property
    def relay_manager(self):
        return self.manager

    def add_to_epoll(self, poller):
        if self.accept:
            poller.add(self.fd)
        return self.accept

    def handler(self):
        self.handled += 1
        return self.result

    def invalid_srt(self):
        self.invalidated = True

    def get_state(self, cur_ms):
        return self.state

    def uninit(self):
        self.uninited += 1

    def check_http_client(self):
        return self.http

    def get_stat_info(self):
        return self.stat

    def is_reconnect(self):
        return self.manager is not None

    def close(self):
        pass


class FakeManager:
    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    def reconnect(self, cur_ms):
        self.calls.append(cur_ms)
        return self.results.pop(0)


class Clock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


def make_group(**kwargs):
    poller = FakePoller()
    role_list = HttpRoleList()
    clock = Clock()
    sleeps = []
    group = WorkerGroup(poller, role_list, clock=clock, sleep=sleeps.append, **kwargs)
    return group, poller, role_list, clock, sleeps


def test_check_new_role_registers_role():
    group, poller, role_list, _, _ = make_group()
    role = FakeRole(7)
    role_list.push(role)
    group.check_new_role()
    assert group.roles == {7: role}
    assert poller.fds == [7]
    assert len(role_list) == 0


def test_check_new_role_respects_worker_connections():
    group, _, role_list, _, _ = make_group(worker_connections=1)
    role_list.push(FakeRole(1))
    role_list.push(FakeRole(2))
    group.check_new_role()
    group.check_new_role()
    assert list(group.roles) == [1]
    assert len(role_list) == 1


def test_check_new_role_drops_invalid_fd_and_failed_registration():
    group, poller, role_list, _, _ = make_group()
    role_list.push(FakeRole(0))
    role_list.push(FakeRole(3, accept=False))
    group.check_new_role()
    group.check_new_role()
    assert group.roles == {}
    assert poller.fds == []


def test_handler_dispatches_and_sums_counts():
    group, poller, role_list, _, sleeps = make_group()
    a, b = FakeRole(1, result=5), FakeRole(2, result=3)
    role_list.push(a)
    role_list.push(b)
    group.check_new_role()
    group.check_new_role()
    poller.events.append(([1], [2]))
    assert group.handler() == 8
    assert (a.handled, b.handled) == (1, 1)
    assert sleeps == []


def test_handler_invalidates_failing_role_and_sleeps_when_idle():
    group, poller, role_list, _, sleeps = make_group()
    bad = FakeRole(4, result=-1)
    role_list.push(bad)
    group.check_new_role()
    poller.events.append(([4, 99], []))
    assert group.handler() == 0
    assert bad.invalidated is True
    assert sleeps == [POLLING_TIME_MS / 1000]


def test_handler_without_events_runs_idle_check():
    group, _, role_list, _, sleeps = make_group()
    role = FakeRole(5)
    role_list.push(role)
    assert group.handler() == 0
    assert 5 in group.roles
    assert sleeps == []


def test_reload_with_no_roles_exits():
    group, poller, _, _, _ = make_group()
    group.reload()
    poller.events.append(([1], []))
    assert group.handler() == 0
    assert group.exited is True
    assert poller.events == [([1], [])]


def test_reload_waits_for_roles():
    group, _, role_list, _, _ = make_group()
    role_list.push(FakeRole(1))
    group.check_new_role()
    group.reload()
    group.handler()
    assert group.exited is False


def test_invalid_role_is_removed_and_uninit():
    group, _, role_list, _, _ = make_group()
    role = FakeRole(8)
    role_list.push(role)
    group.check_new_role()
    role.state = RoleState.INVALID
    group.check_invalid_sock()
    assert group.roles == {}
    assert role.uninited == 1
    assert group.waiting_http_roles == []


def test_role_waiting_for_http_moves_to_wait_list_then_is_released():
    group, _, role_list, _, _ = make_group()
    role = FakeRole(9, http=True)
    role_list.push(role)
    group.check_new_role()
    role.state = RoleState.UNINIT
    group.check_invalid_sock()
    assert group.waiting_http_roles == [role]

    group.check_wait_http_role()
    assert role.handled == 1
    assert group.waiting_http_roles == [role]

    role.http = False
    group.check_wait_http_role()
    assert group.waiting_http_roles == []
    assert role.uninited == 2


def test_reconnecting_relay_is_retried_until_success():
    group, _, role_list, clock, _ = make_group()
    manager = FakeManager([False, True])
    role = FakeRole(10, manager=manager)
    role_list.push(role)
    group.check_new_role()
    role.state = RoleState.INVALID
    group.check_invalid_sock()
    assert group.pending_reconnects == [manager]

    clock.now = 1000
    group.check_reconnect_relay()
    assert group.pending_reconnects == [manager]
    clock.now = 2000
    group.check_reconnect_relay()
    assert group.pending_reconnects == []
    assert manager.calls == [1000, 2000]


def test_stat_info_collected_after_interval():
    group, _, role_list, clock, _ = make_group(stat_post_interval=5)
    role_list.push(FakeRole(1, stat="{a}"))
    role_list.push(FakeRole(2, stat="{b}"))
    group.check_new_role()
    group.check_new_role()
    group.check_invalid_sock()
    assert group.get_stat_info() == ""
    clock.now = 5000
    group.check_invalid_sock()
    assert group.get_stat_info() == "{a}{b}"


def test_clear_uninits_all_roles():
    group, _, role_list, _, _ = make_group()
    roles = [FakeRole(1), FakeRole(2)]
    for role in roles:
        role_list.push(role)
        group.check_new_role()
    group.clear()
    assert group.roles == {}
    assert [r.uninited for r in roles] == [1, 1]


def test_stop_releases_waiting_roles():
    group, _, role_list, _, _ = make_group()
    role = FakeRole(3, http=True)
    role_list.push(role)
    group.check_new_role()
    role.state = RoleState.INVALID
    group.check_invalid_sock()
    group.stop()
    assert group.waiting_http_roles == []
    assert role.uninited == 2
    assert group.exited is True


def test_thread_loop_clears_roles_on_stop():
    poller = FakePoller()
    role_list = HttpRoleList()
    role = FakeRole(6)
    role_list.push(role)
    group = WorkerGroup(poller, role_list, sleep=lambda s: None)
    group.start()
    deadline = time.monotonic() + 5
    while 6 not in group.roles and time.monotonic() < deadline:
        time.sleep(0.001)
    assert 6 in group.roles
    group.stop()
    assert group.roles == {}
    assert role.uninited == 1


@pytest.mark.parametrize("state", [RoleState.INITED, RoleState.WORKING])
def test_live_states_are_kept(state):
    group, _, role_list, _, _ = make_group()
    role = FakeRole(11)
    role_list.push(role)
    group.check_new_role()
    role.state = state
    group.check_invalid_sock()
    assert group.roles == {11: role}
    assert role.uninited == 0