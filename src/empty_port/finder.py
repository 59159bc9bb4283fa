"""Find an empty TCP/UDP port in the dynamic range (49152..65535, see IANA port numbers)."""

from __future__ import annotations

import logging
import os
import random

from .probe import (
    CONNECT_TIMEOUT,
    DEFAULT_HOST,
    TCP,
    UDP,
    can_listen,
    normalize_protocol,
    require_int_port,
    tcp_connect_check,
    udp_bind_check,
)

logger = logging.getLogger(__name__)

DYNAMIC_PORT_MIN = 49152
SCAN_CEILING = 65000

# Unbounded scans start somewhere in [50000, 51500).
_RANDOM_START_BASE = 50000
_RANDOM_START_SPREAD = 1500


class PortNotFoundError(OSError):
    """No usable port was found before the scan ceiling."""


def start_port(port: int | None = None) -> int:
    """
    First candidate for a scan.

    A caller bound in 1..49151 is used as is; any other integer bound (0,
    negative, or >= 49152) is clamped to 49152. Port 0 is never scanned:
    binding it would hand back an OS-chosen ephemeral port instead of 0.
    A non-integer bound raises ValueError.

    Without a bound, pick a pseudo-random start mixed with the pid so
    concurrent processes on one host tend to scan different ports.
    """
    if port is None:
        offset = (random.randrange(_RANDOM_START_SPREAD) + os.getpid()) % _RANDOM_START_SPREAD
        return _RANDOM_START_BASE + offset
    require_int_port(port)
    if 0 < port < DYNAMIC_PORT_MIN:
        return port
    return DYNAMIC_PORT_MIN


def empty_port(
    port: int | None = None,
    protocol: str | None = TCP,
    *,
    host: str | None = DEFAULT_HOST,
    timeout: float = CONNECT_TIMEOUT,
) -> int:
    """
    Return a port on host that is free right now.

    Scans start_port(port), start_port(port)+1, ... below 65000. For tcp,
    ports with a live listener are skipped, then a listening socket is opened
    to confirm the port can be claimed. For udp, a local bind is the only
    check. The probe socket is released before returning, so the port is a
    hint: bind it immediately. timeout bounds each tcp connect check.
    Raises PortNotFoundError when nothing is free.
    """
    host = host or DEFAULT_HOST
    proto = normalize_protocol(protocol)
    first = start_port(port)
    for candidate in range(first, SCAN_CEILING):
        if proto == UDP:
            if not udp_bind_check(host, candidate):
                logger.debug("empty_port: %s:%d/udp is free", host, candidate)
                return candidate
            continue
        # Skip live listeners before trying to claim the port.
        if tcp_connect_check(host, candidate, timeout=timeout):
            continue
        if can_listen(host, candidate):
            logger.debug("empty_port: %s:%d/tcp is free", host, candidate)
            return candidate
    raise PortNotFoundError(f"empty port not found in [{first}, {SCAN_CEILING}) on {host}/{proto}")


find_free_port = empty_port
