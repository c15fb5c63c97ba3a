"""Small non-blocking HTTP/1.1 client used for event and statistics posts."""

from __future__ import annotations

import re
import select
import socket
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable

from .log import LogLevel, get_logger
from .ring_buffer import RingBuffer

HTTP_DATA_SIZE = 4096
INVALID_CLIENT_ID = 0
HTTP_RESPONSE_CODE_200 = "200"
DEFAULT_PORT = 80
DEFAULT_TIMEOUT_S = 5
SELECT_TIMEOUT_S = 0.010

_ACCEPT = "Accept: text/html, */*\r\n"
_USER_AGENT = "User-Agent: srt-live-server\r\n"
_CONTENT_TYPE = "Content-Type: application/x-www-form-urlencoded\r\n"
_CONNECTION = "Connection: Keep-Alive\r\n"
_CACHE_CONTROL = "Cache-Control: no-cache\r\n"
_HEADER_END = b"\r\n\r\n"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class HttpClientError(Exception):
    """Raised when a request cannot be built, sent or received."""


class CallbackType(IntEnum):
    """Stages at which the client calls its stage callback."""

    OPEN = 0
    CLOSE = 1
    RESPONSE_END = 2
    REQUEST_CONTENT = 3


@dataclass(frozen=True)
class ParsedUrl:
    host: str
    port: int
    uri: str


@dataclass
class ResponseInfo:
    header: list[str] = field(default_factory=list)
    code: str = ""
    content: bytes = b""
    content_length: int = -1

    @property
    def complete(self) -> bool:
        return self.content_length == len(self.content)


StageCallback = Callable[["HttpClient", CallbackType, Any], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_url(url: str) -> ParsedUrl:
    """Split an 'http://host[:port][/uri]' URL into host, port and uri."""
    if not url:
        raise HttpClientError("empty url")
    scheme, sep, rest = url.partition(":")
    if not sep:
        raise HttpClientError(f"no ':' in url '{url}'")
    if scheme != "http":
        raise HttpClientError(f"not 'http' prefix, url '{url}'")
    rest = rest[2:]  # skip '//'
    hostport, slash, path = rest.partition("/")
    if not slash:
        get_logger().log(LogLevel.INFO, f"parse_url, no '/' in '{url}'.")
    host, colon, port_text = hostport.partition(":")
    port = _atoi(port_text) if colon else DEFAULT_PORT
    return ParsedUrl(host=host, port=port, uri=slash + path)


def build_request_header(method: str, uri: str, host: str, content_length: int) -> str:
    """Return the request line and headers, ending with a blank line."""
    if method not in ("GET", "POST"):
        raise HttpClientError(f"wrong method '{method}'")
    lines = [f"{method} {uri} HTTP/1.1\r\n", _ACCEPT, _USER_AGENT, _CONTENT_TYPE, f"Host: {host}\r\n"]
    if content_length > 0:
        lines.append(f"Content-Length: {content_length}\r\n")
    lines += [_CONNECTION, _CACHE_CONTROL, "\r\n"]
    return "".join(lines)


class HttpClient:
    """Sends one request over TCP and collects the response without blocking."""

    role_name = "http_client"

    def __init__(self, timeout: int = DEFAULT_TIMEOUT_S, callback: StageCallback | None = None) -> None:
        self.client_id = INVALID_CLIENT_ID
        self.timeout = timeout
        self.interval = 0
        self.callback = callback
        self.url = ""
        self.uri = ""
        self.method = "POST"
        self.remote_host = ""
        self.remote_port = DEFAULT_PORT
        self.begin_tm_ms = 0
        self.end_tm_ms = 0
        self.response = ResponseInfo()
        self._sock: socket.socket | None = None
        self._out = RingBuffer()
        self._pending = b""
        self._head_buf = b""

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def _notify(self, stage: CallbackType, value: Any) -> Any:
        if self.callback is not None:
            return self.callback(self, stage, value)
        return None

    def _reset_response(self) -> None:
        self.response = ResponseInfo()
        self.end_tm_ms = 0
        self._out.clear()
        self._pending = b""
        self._head_buf = b""

    def _close_socket(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def open(self, url: str, method: str | None = None, interval: int = 0) -> None:
        """Connect to url, queue the request and start sending it."""
        self.begin_tm_ms = _now_ms()
        ok = False
        try:
            if not url:
                raise HttpClientError("empty url")
            self.url = url
            if method:
                self.method = method
            self.interval = interval
            parsed = parse_url(url)
            self.remote_host, self.remote_port, self.uri = parsed.host, parsed.port, parsed.uri
            try:
                ip = socket.gethostbyname(self.remote_host)
            except (OSError, UnicodeError) as exc:
                raise HttpClientError(
                    f"failed to resolve '{self.remote_host}', port {self.remote_port}"
                ) from exc
            self._close_socket()
            try:
                sock = socket.create_connection((ip, self.remote_port), timeout=self.timeout)
            except OSError as exc:
                raise HttpClientError(
                    f"failed to connect to '{self.remote_host}':{self.remote_port}"
                ) from exc
            sock.setblocking(False)
            self._sock = sock
            self._reset_response()
            try:
                self.generate_http_request()
                self.handler()
            except HttpClientError:
                self._close_socket()
                raise
            ok = True
        finally:
            self._notify(CallbackType.OPEN, ok)

    def close(self) -> None:
        """Close the connection and forget any response."""
        get_logger().log(
            LogLevel.TRACE,
            f"HttpClient.close, url='{self.url}', content_length={self.response.content_length}.",
        )
        self._close_socket()
        self._notify(CallbackType.CLOSE, True)
        self._reset_response()

    def reopen(self) -> None:
        """Close and send the same request again."""
        self.close()
        self.open(self.url, self.method, self.interval)

    def check_timeout(self, cur_tm_ms: int = 0) -> bool:
        """Return True once the request should be treated as timed out."""
        if self._sock is None:
            return True
        if self.end_tm_ms > 0:
            return not self.response.complete
        if cur_tm_ms == 0:
            cur_tm_ms = _now_ms()
        if cur_tm_ms - self.begin_tm_ms < self.timeout * 1000:
            return False
        self.end_tm_ms = cur_tm_ms
        self._notify(CallbackType.RESPONSE_END, self.response)
        get_logger().log(
            LogLevel.INFO,
            f"HttpClient.check_timeout, url='{self.url}', method='{self.method}', "
            f"content_len={len(self.response.content)}, "
            f"content_length={self.response.content_length}.",
        )
        return True

    def check_repeat(self, cur_tm_ms: int = 0) -> bool:
        """Return True when a repeating request is due again."""
        if self.interval <= 0:
            return False
        if cur_tm_ms == 0:
            cur_tm_ms = _now_ms()
        return cur_tm_ms - self.begin_tm_ms >= self.interval * 1000

    def check_finished(self) -> bool:
        """Return True when the whole body arrived or no connection is open."""
        return self.response.complete or self._sock is None

    def _finish(self) -> None:
        self.end_tm_ms = _now_ms()
        self._notify(CallbackType.RESPONSE_END, self.response)
        get_logger().log(
            LogLevel.INFO,
            f"HttpClient.parse_http_response, finished, url='{self.url}', "
            f"method='{self.method}', content_len={len(self.response.content)}.",
        )

    def parse_http_response(self, response: bytes | str) -> bool:
        """Feed received data; return False while the header is incomplete."""
        data = response.encode("utf-8") if isinstance(response, str) else bytes(response)
        info = self.response
        if info.header:
            info.content += data
            if info.complete:
                self._finish()
            return True

        self._head_buf += data
        head, sep, body = self._head_buf.partition(_HEADER_END)
        if not sep:
            get_logger().log(LogLevel.TRACE, "HttpClient.parse_http_response, header incomplete.")
            return False
        self._head_buf = b""
        info.header = head.decode("latin-1").split("\r\n")

        status = info.header[0].split(" ", 2)
        if len(status) == 3:
            info.code = status[1]
        for line in info.header:
            if "Content-Length:" in line:
                info.content_length = _atoi(line.split(":", 1)[1])
                break

        info.content = body
        if info.complete:
            self._finish()
        return True

    def recv(self) -> bool:
        """Read everything available and parse it."""
        if self._sock is None:
            return False
        chunks = []
        while True:
            try:
                chunk = self._sock.recv(HTTP_DATA_SIZE)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as exc:
                raise HttpClientError(f"recv failed, url='{self.url}'") from exc
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)
        if not data:
            return False
        return self.parse_http_response(data)

    def send(self) -> int:
        """Write queued request bytes; return how many were sent."""
        if self._sock is None:
            return 0
        sent = 0
        while True:
            if not self._pending:
                self._pending = self._out.get(HTTP_DATA_SIZE)
                if not self._pending:
                    break
            try:
                n = self._sock.send(self._pending)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as exc:
                raise HttpClientError(f"send failed, url='{self.url}'") from exc
            if n <= 0:
                break
            sent += n
            self._pending = self._pending[n:]
            if self._pending:
                break
        return sent

    def handler(self) -> None:
        """Wait briefly for the socket, then send and receive what is ready."""
        if self._sock is None:
            return
        try:
            readable, writable, _ = select.select([self._sock], [self._sock], [], SELECT_TIMEOUT_S)
        except (OSError, ValueError) as exc:
            raise HttpClientError(f"select failed, url='{self.url}'") from exc
        if writable:
            self.send()
        if readable:
            self.recv()

    def generate_http_request(self) -> None:
        """Queue the request header and the body supplied by the callback."""
        body = self._notify(CallbackType.REQUEST_CONTENT, None) or b""
        if isinstance(body, str):
            body = body.encode("utf-8")
        header = build_request_header(self.method, self.uri, self.remote_host, len(body))
        self._out.put(header.encode("utf-8"))
        if body:
            self._out.put(body)
        get_logger().log(
            LogLevel.INFO,
            f"HttpClient.generate_http_request, ok, url='{self.url}', content len={len(body)}.",
        )