"""Core parts of an SRT live streaming relay server: logging, a ring buffer,
publisher and relay registries, relay managers, a worker group and an HTTP
notification client."""

__version__ = "0.1.0"