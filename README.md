# slsrelay

`slsrelay` holds the core parts of an SRT live streaming relay server. It is
plain Python with no third-party dependencies.

## Modules

- `slsrelay.log`: `LogLevel` runs from `FATAL` (0) to `TRACE` (5). `Logger`
  writes lines of the form `YYYY-mm-dd HH:MM:SS:mmm SLS LEVEL: message` to
  stdout, or to a stream you pass in. `set_log_file` makes it also append
  those lines to a file, and only the first file set is used.
  `set_log_level` takes a level name in any case. `get_logger()` returns the
  logger shared by the whole process.
- `slsrelay.ring_buffer`: `RingBuffer` is a thread-safe byte FIFO. It starts
  at 4096 bytes and grows when a `put` does not fit. `put` raises
  `ValueError` on empty data. `get(size)` removes and returns up to `size`
  bytes.
- `slsrelay.map_publisher`: `PublisherMap` maps play-side app keys to
  publish-side app keys and stores the configuration of each app. It also
  holds the publisher of each `host/app/stream` key. `set_publisher` raises
  `PublisherRegistryError` when the stream already has a publisher.
  `get_publisher_names` returns the keys in sorted order.
- `slsrelay.http_client`: `HttpClient` is a non-blocking HTTP/1.1 client
  used for event and statistics posts.
  - It reports its stages (`CallbackType.OPEN`, `CLOSE`, `RESPONSE_END`,
    `REQUEST_CONTENT`) to an optional callback. The callback supplies the
    request body.
  - It collects the response into a `ResponseInfo`.
  - It provides `check_timeout`, `check_repeat` and `check_finished`.
  - `parse_url` splits `http://host[:port][/uri]` into a `ParsedUrl`.
  - `build_request_header` builds the GET or POST header.
  - Failures raise `HttpClientError`.
- `slsrelay.http_role_list`: `HttpRoleList` is a thread-safe FIFO of HTTP
  clients. `erase()` closes every client in it.
- `slsrelay.relay_info`: `RelayConf` is a relay section as written by the
  user. `relay_info_from_conf` turns it into a validated `RelayInfo`, using
  `RelayMode.LOOP`, `ALL` or `HASH`. An unknown mode falls back to hash.
- `slsrelay.puller_manager`: `PullerManager` pulls a stream from its
  upstreams.
  - In loop mode it tries the upstreams in turn, starting after the last one
    used.
  - In hash mode it calls a hash connector.
  - It does not start when the stream already has a publisher.
  - It reconnects once the reconnect interval has passed.
- `slsrelay.pusher_manager`: `PusherManager` pushes a published stream.
  - In all mode it connects to every upstream and queues each failed URL for
    `reconnect_all`.
  - In hash mode it calls a hash connector.
- `slsrelay.map_relay`: `RelayMap` stores the relay settings of each app.
  `add_relay_conf` raises `ValueError` on a duplicate. `add_relay_manager`
  creates, and then reuses, one puller or pusher manager per stream.
- `slsrelay.group`: `WorkerGroup` runs the worker loop. Each `handler()`
  call does the following:
  - polls a caller-supplied poller;
  - dispatches ready roles;
  - retires roles whose state is `RoleState.INVALID` or `UNINIT`;
  - queues relay managers for reconnect;
  - keeps roles with a pending HTTP notification alive until it ends;
  - takes new roles from a shared list, up to `worker_connections`;
  - gathers statistics every `stat_post_interval` seconds, which
    `get_stat_info()` returns.

  `start()` runs the loop in a background thread, `stop()` ends it, and
  `reload()` makes the group exit once it has no roles left.

## What this package does not do

- It has no SRT transport. Nothing here opens, accepts or reads SRT sockets.
- It has no listener and does not parse stream ids.
- It has no per-stream media data store.
- It has no configuration-file reader and no command-line program.
- Several parts need objects from the caller:
  - Relay managers connect through the `connector` and `hash_connector`
    callables you give them.
  - `WorkerGroup` relies on a poller whose `wait(timeout_ms)` returns
    `(readable_fds, writable_fds)`.
  - `WorkerGroup` also relies on role objects that provide the methods listed
    in its docstring.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from slsrelay.ring_buffer import RingBuffer
from slsrelay.map_publisher import PublisherMap
from slsrelay.http_client import parse_url

buf = RingBuffer()
buf.put(b"hello")
assert buf.get(5) == b"hello"

publishers = PublisherMap()
publishers.set_live_to_uplive("live.example.com/live", "uplive.example.com/uplive")
assert publishers.get_uplive("live.example.com/live") == "uplive.example.com/uplive"

url = parse_url("http://localhost:8080/sls/stat")
assert (url.host, url.port, url.uri) == ("localhost", 8080, "/sls/stat")
```