"""
Port availability checks: is something using (host, port) right now?

TCP and UDP are checked differently:

- tcp: remote check. Connect to (host, port); if the connect succeeds, a
  listener is there and the port is in use.
- udp: local check. There is no listener handshake for datagrams, so try to
  bind (host, port) ourselves; if the bind fails with "address in use", the
  port is in use.

Probe sockets are always closed before returning. IPv6 probes set
IPV6_V6ONLY so "::1" never silently falls back to an IPv4-mapped address.
"""

from __future__ import annotations

import errno
import logging
import platform
import socket
from typing import Callable, NamedTuple

logger = logging.getLogger(__name__)

TCP = "tcp"
UDP = "udp"
PROTOCOLS = (TCP, UDP)

DEFAULT_HOST = "127.0.0.1"
CONNECT_TIMEOUT = 1.0
LISTEN_BACKLOG = 5


def _errnos(*names: str) -> frozenset[int]:
    return frozenset(getattr(errno, n) for n in names if hasattr(errno, n))


# Connect failures that mean "nobody is listening there".
_CONNECT_FREE_ERRNOS = _errnos(
    "ECONNREFUSED",
    "ECONNRESET",
    "ECONNABORTED",
    "ETIMEDOUT",
    "EHOSTUNREACH",
    "ENETUNREACH",
    "EADDRNOTAVAIL",
    "WSAECONNREFUSED",
    "WSAECONNRESET",
    "WSAETIMEDOUT",
    "WSAEHOSTUNREACH",
    "WSAENETUNREACH",
    "WSAEADDRNOTAVAIL",
)
# Bind failures that mean "somebody already holds the port".
_BIND_IN_USE_ERRNOS = _errnos("EADDRINUSE", "WSAEADDRINUSE")


def require_int_port(port: object) -> None:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"port must be an integer, got {port!r}")


class Endpoint(NamedTuple):
    host: str
    port: int
    protocol: str

    @classmethod
    def create(cls, host: str | None, port: int, protocol: str | None = None) -> Endpoint:
        """Validate and normalize (host, port, protocol); raise ValueError on bad input."""
        require_int_port(port)
        if not 0 <= port <= 65535:
            raise ValueError(f"port must be in 0..65535, got {port}")
        return cls(host or DEFAULT_HOST, port, normalize_protocol(protocol))


def normalize_protocol(protocol: str | None) -> str:
    """'TCP' / 'udp' / None -> 'tcp' | 'udp'. None means tcp."""
    proto = (protocol or TCP).lower()
    if proto not in PROTOCOLS:
        raise ValueError(f"protocol must be tcp|udp, got {protocol!r}")
    return proto


def reuse_addr_allowed() -> bool:
    """
    Platform policy for SO_REUSEADDR on probe sockets.

    On Windows SO_REUSEADDR lets a second socket bind a port that is already
    bound, which would make every bind probe succeed, so it is never set there.
    """
    return platform.system() != "Windows"


def _addresses(host: str, port: int, socktype: int, passive: bool = False) -> list[tuple]:
    """getaddrinfo for one host; socket.gaierror (bad host) propagates."""
    flags = socket.AI_PASSIVE if passive else 0
    return socket.getaddrinfo(host, port, socket.AF_UNSPEC, socktype, 0, flags)


def _open_socket(family: int, socktype: int, proto: int, reuse: bool = False) -> socket.socket:
    sock = socket.socket(family, socktype, proto)
    try:
        if family == socket.AF_INET6 and hasattr(socket, "IPV6_V6ONLY"):
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
        if reuse and reuse_addr_allowed():
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    except OSError:
        sock.close()
        raise
    return sock


def _connect_means_free(exc: OSError) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError, socket.timeout)):
        return True
    return exc.errno in _CONNECT_FREE_ERRNOS


def _bind_means_in_use(exc: OSError) -> bool:
    return exc.errno in _BIND_IN_USE_ERRNOS


def tcp_connect_check(host: str, port: int, timeout: float = CONNECT_TIMEOUT) -> bool:
    """True if something accepts a TCP connection on (host, port)."""
    for family, socktype, proto, _canon, addr in _addresses(host, port, socket.SOCK_STREAM):
        with _open_socket(family, socktype, proto) as sock:
            sock.settimeout(timeout)
            try:
                sock.connect(addr)
            except OSError as e:
                if not _connect_means_free(e):
                    raise
                logger.debug("tcp %s: connect failed (%s)", addr, e)
                continue
        logger.debug("tcp %s: connected, in use", addr)
        return True
    return False


def bind_probe(host: str, port: int, socktype: int, backlog: int | None = None) -> bool:
    """
    Try to bind (and listen, when backlog is given) on (host, port).

    Returns True if the port could be claimed, False if it is already in use.
    The socket is released before returning.
    """
    for family, stype, proto, _canon, addr in _addresses(host, port, socktype, passive=True):
        with _open_socket(family, stype, proto, reuse=True) as sock:
            try:
                sock.bind(addr)
                if backlog is not None:
                    sock.listen(backlog)
            except OSError as e:
                if not _bind_means_in_use(e):
                    raise
                logger.debug("bind %s: address in use", addr)
                continue
        logger.debug("bind %s: ok", addr)
        return True
    return False


def udp_bind_check(host: str, port: int, timeout: float = CONNECT_TIMEOUT) -> bool:
    """True if (host, port) cannot be bound for UDP because someone holds it."""
    return not bind_probe(host, port, socket.SOCK_DGRAM)


# One check per protocol; tcp tests liveness, udp tests claimability.
CHECKS: dict[str, Callable[..., bool]] = {
    TCP: tcp_connect_check,
    UDP: udp_bind_check,
}


def check_port(
    port: int,
    protocol: str | None = TCP,
    *,
    host: str | None = DEFAULT_HOST,
    timeout: float = CONNECT_TIMEOUT,
) -> bool:
    """
    Return True if the port is in use (NOT free), False if it is free.

    Refused / timed-out connects and address-in-use binds are answers, not
    errors. Any other OSError (permission denied, unknown host) propagates.
    """
    ep = Endpoint.create(host, port, protocol)
    in_use = CHECKS[ep.protocol](ep.host, ep.port, timeout=timeout)
    logger.debug("check_port %s:%d/%s -> %s", ep.host, ep.port, ep.protocol, "in use" if in_use else "free")
    return in_use


is_port_in_use = check_port


def can_listen(host: str, port: int) -> bool:
    """True if a TCP listening socket could be opened on (host, port)."""
    return bind_probe(host, port, socket.SOCK_STREAM, backlog=LISTEN_BACKLOG)
