# Client address derivation and same-origin validation for mutating requests.
# A browser always sends Origin on cross-site POST/PUT/DELETE, so requiring it
# to match Host is a lightweight CSRF defense.

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlsplit

UNKNOWN_CLIENT = "unknown"

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}
_LOCAL_HOST_MARKERS: tuple[str, ...] = ("localhost", "127.0.0.1")


def client_address(headers: Mapping[str, str]) -> str:
    """First x-forwarded-for hop, else x-real-ip, else ``UNKNOWN_CLIENT``."""
    for name in ("x-forwarded-for", "x-real-ip"):
        value = headers.get(name)
        if value:
            first = value.split(",")[0].strip()
            if first:
                return first
    return UNKNOWN_CLIENT


def origin_host(origin: str) -> str | None:
    """Return ``host[:port]`` of an Origin value, or None if it does not parse.

    Hostname is lowercased and the scheme's default port dropped, so
    ``https://Example.com:443`` compares equal to a ``Host: example.com``.
    """
    try:
        parts = urlsplit(origin.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None

    if not parts.scheme or not hostname:
        return None
    if ":" in hostname:
        hostname = f"[{hostname}]"
    if port is None or _DEFAULT_PORTS.get(parts.scheme) == port:
        return hostname
    return f"{hostname}:{port}"


def check_origin(headers: Mapping[str, str], *, strict: bool, allow_localhost: bool) -> bool:
    """Return True when the request's Origin is acceptable.

    Args:
        headers: Request headers (case-insensitive mapping).
        strict: Reject requests without an Origin header. Relaxed mode lets
            non-browser callers (curl, server-to-server) through.
        allow_localhost: Accept any localhost / 127.0.0.1 origin. Only ever
            True in development.
    """
    origin = headers.get("origin")
    if not origin:
        return not strict

    host = origin_host(origin)
    if host is None:
        return False

    request_host = headers.get("host")
    if request_host and host == request_host:
        return True

    if allow_localhost and any(marker in host for marker in _LOCAL_HOST_MARKERS):
        return True

    return False
