"""Wait for a port to come up, polling with exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .probe import CONNECT_TIMEOUT, DEFAULT_HOST, TCP, check_port

logger = logging.getLogger(__name__)

DEFAULT_MAX_WAIT = 10.0
INITIAL_INTERVAL = 0.001


class Backoff:
    """
    Sleep 1ms, 2ms, 4ms, ... until more than max_wait seconds have been slept.

    A negative max_wait never runs out. tick() returns False once the budget
    is exceeded; otherwise it sleeps and returns True.
    """

    def __init__(
        self,
        max_wait: float = DEFAULT_MAX_WAIT,
        sleep: Callable[[float], None] = time.sleep,
        interval: float = INITIAL_INTERVAL,
    ) -> None:
        self.max_wait = max_wait
        self.waited = 0.0
        self.interval = interval
        self._sleep = sleep

    @property
    def exhausted(self) -> bool:
        return self.max_wait >= 0 and self.waited > self.max_wait

    def tick(self) -> bool:
        if self.exhausted:
            return False
        self._sleep(self.interval)
        self.waited += self.interval
        self.interval *= 2
        return True


def wait_port(
    port: int,
    max_wait: float | None = None,
    protocol: str | None = TCP,
    *,
    host: str | None = DEFAULT_HOST,
    timeout: float = CONNECT_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Wait until something is listening on (tcp) or bound to (udp) the port.

    Sleeps up to max_wait seconds (default 10); pass a negative max_wait to
    wait forever. Returns True as soon as check_port reports the port in use,
    False when the budget runs out. timeout bounds each tcp connect attempt.
    """
    if max_wait is None:
        max_wait = DEFAULT_MAX_WAIT
    backoff = Backoff(max_wait, sleep=sleep)
    while backoff.tick():
        if check_port(port, protocol, host=host, timeout=timeout):
            logger.debug("wait_port: %s:%d up after %.3fs", host, port, backoff.waited)
            return True
    logger.debug("wait_port: %s:%d not up after %.3fs", host, port, backoff.waited)
    return False


def wait_port_legacy(
    port: int,
    sleep: float,
    retry: int,
    protocol: str | None = TCP,
) -> bool:
    """Old (port, sleep, retry, protocol) form: the budget is sleep * retry seconds."""
    return wait_port(port, sleep * retry, protocol)
