"""Growable byte ring buffer guarded by a lock."""

from __future__ import annotations

import threading

from .log import LogLevel, get_logger

DEFAULT_MAX_DATA_SIZE = 4096


class RingBuffer:
    """FIFO of bytes in a circular store that grows when a write does not fit."""

    def __init__(self, size: int = DEFAULT_MAX_DATA_SIZE) -> None:
        self._lock = threading.Lock()
        self._reset(size)

    def _reset(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"buffer size must be positive, got {size}")
        self._buf = bytearray(size)
        self._read = 0
        self._write = 0
        self._count = 0

    def set_size(self, n: int) -> None:
        """Replace the store with an empty one of n bytes."""
        with self._lock:
            self._reset(n)

    def capacity(self) -> int:
        with self._lock:
            return len(self._buf)

    def count(self) -> int:
        with self._lock:
            return self._count

    def __len__(self) -> int:
        return self.count()

    def clear(self) -> None:
        """Drop all buffered data, keeping the capacity."""
        with self._lock:
            self._read = self._write = self._count = 0

    def put(self, data: bytes) -> int:
        """Append data and return its length; raise ValueError on empty input."""
        data = bytes(data)
        n = len(data)
        if n == 0:
            raise ValueError("cannot put empty data")
        with self._lock:
            cap = len(self._buf)
            if n > cap - self._count:
                existing = self._take(self._count)
                new_cap = cap + max(DEFAULT_MAX_DATA_SIZE, n)
                get_logger().log(
                    LogLevel.INFO,
                    f"RingBuffer.put, len={n} exceeds free space, capacity {cap} -> {new_cap}.",
                )
                self._buf = bytearray(new_cap)
                total = len(existing) + n
                self._buf[:total] = existing + data
                self._read = 0
                self._count = total
                self._write = total % new_cap
                return n
            first = min(n, cap - self._write)
            self._buf[self._write:self._write + first] = data[:first]
            self._buf[:n - first] = data[first:]
            self._write = (self._write + n) % cap
            self._count += n
            return n

    def get(self, size: int) -> bytes:
        """Remove and return up to size bytes."""
        with self._lock:
            return self._take(size)

    def _take(self, size: int) -> bytes:
        n = min(max(size, 0), self._count)
        if n == 0:
            return b""
        cap = len(self._buf)
        first = min(n, cap - self._read)
        out = bytes(self._buf[self._read:self._read + first]) + bytes(self._buf[:n - first])
        self._read = (self._read + n) % cap
        self._count -= n
        return out