from slsrelay.map_publisher import PublisherMap
from slsrelay.puller_manager import PullerManager
from slsrelay.relay_info import RelayInfo, RelayMode


class FakeRoleList:
    def __init__(self):
        self.roles = []

    def push(self, role):
        self.roles.append(role)


class FakeMapData:
    def __init__(self, fail=False):
        self.keys = []
        self.fail = fail

    def add(self, key):
        if self.fail:
            raise KeyError(key)
        self.keys.append(key)


class Relay:
    pass


class Connector:
    def __init__(self, ok_urls=()):
        self.ok = set(ok_urls)
        self.calls = []

    def __call__(self, manager, url):
        self.calls.append(url)
        return url in self.ok


def make(upstreams, ok_urls=(), mode=RelayMode.LOOP, hash_connector=None, info=True):
    conn = Connector(ok_urls)
    relay_info = RelayInfo(type="pull", mode=mode, upstreams=list(upstreams),
                           reconnect_interval=5) if info else None
    mgr = PullerManager(relay_info, "host/uplive", "s", conn, hash_connector, clock=lambda: 1000)
    return mgr, conn


def wire(mgr, map_data=None):
    mgr.role_list = FakeRoleList()
    mgr.map_publisher = PublisherMap()
    mgr.map_data = map_data or FakeMapData()
    return mgr


def test_start_without_relay_info():
    mgr, conn = make(["a:1"], info=False)
    assert mgr.start() is False
    assert conn.calls == []


def test_start_refused_when_publisher_exists():
    mgr, conn = make(["a:1"], ok_urls=["srt://a:1/s"])
    wire(mgr)
    mgr.map_publisher.set_publisher(mgr.key_stream_name, Relay())
    assert mgr.start() is False
    assert conn.calls == []


def test_connect_loop_first_success_stops():
    mgr, conn = make(["a:1", "b:2", "c:3"], ok_urls=["srt://b:2/s"])
    assert mgr.start() is True
    assert conn.calls == ["srt://a:1/s", "srt://b:2/s"]
    assert mgr.cur_loop_index == 1


def test_connect_loop_resumes_after_last_index():
    mgr, conn = make(["a:1", "b:2", "c:3"], ok_urls=["srt://b:2/s"])
    mgr.connect_loop()
    conn.calls.clear()
    assert mgr.connect_loop() is True
    assert conn.calls == ["srt://c:3/s", "srt://a:1/s", "srt://b:2/s"]


def test_connect_loop_all_fail_tries_each_once():
    mgr, conn = make(["a:1", "b:2", "c:3"])
    assert mgr.connect_loop() is False
    assert sorted(conn.calls) == sorted(set(conn.calls))
    assert len(conn.calls) == 3
    assert mgr.cur_loop_index == 2


def test_connect_loop_no_upstreams():
    mgr, conn = make([])
    assert mgr.connect_loop() is False
    assert conn.calls == []


def test_hash_mode_uses_hash_connector():
    seen = []
    mgr, conn = make(["a:1"], mode=RelayMode.HASH, hash_connector=lambda m: seen.append(m) or True)
    assert mgr.start() is True
    assert seen == [mgr]
    assert conn.calls == []


def test_hash_mode_without_hash_connector():
    mgr, _ = make(["a:1"], mode=RelayMode.HASH)
    assert mgr.start() is False


def test_set_relay_param_registers_relay():
    mgr, _ = make(["a:1"])
    wire(mgr)
    relay = Relay()
    assert mgr.set_relay_param(relay) is True
    assert mgr.map_publisher.get_publisher(mgr.key_stream_name) is relay
    assert mgr.map_data.keys == [mgr.key_stream_name]
    assert mgr.role_list.roles == [relay]
    assert relay.relay_manager is mgr
    assert relay.map_data_key == mgr.key_stream_name


def test_set_relay_param_requires_params():
    mgr, _ = make(["a:1"])
    assert mgr.check_relay_param() is False
    assert mgr.set_relay_param(Relay()) is False


def test_set_relay_param_duplicate_publisher():
    mgr, _ = make(["a:1"])
    wire(mgr)
    mgr.set_relay_param(Relay())
    assert mgr.set_relay_param(Relay()) is False
    assert len(mgr.role_list.roles) == 1


def test_set_relay_param_map_data_failure_removes_publisher():
    mgr, _ = make(["a:1"])
    wire(mgr, FakeMapData(fail=True))
    assert mgr.set_relay_param(Relay()) is False
    assert mgr.map_publisher.get_publisher(mgr.key_stream_name) is None


def test_reconnect_waits_for_interval():
    mgr, conn = make(["a:1"], ok_urls=["srt://a:1/s"])
    wire(mgr)
    mgr.add_reconnect_stream("srt://a:1/s")
    assert mgr.reconnect_begin_tm == 1000
    assert mgr.reconnect(1000 + 4999) is False
    assert conn.calls == []
    assert mgr.reconnect(1000 + 5000) is True
    assert conn.calls == ["srt://a:1/s"]
    assert mgr.reconnect_begin_tm == 6000


def test_reconnect_without_params_fails():
    mgr, conn = make(["a:1"], ok_urls=["srt://a:1/s"])
    assert mgr.reconnect(100000) is False
    assert conn.calls == []