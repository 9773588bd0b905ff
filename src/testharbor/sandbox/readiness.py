"""Bounded readiness waits for dependent services.

A wait retries a probe with a fixed sleep until it succeeds or the attempt
budget runs out. Running out is a ProvisioningFailure naming the signal that
never arrived; it is never retried silently. There is no cancellation.
"""

from __future__ import annotations

import socket
import time
from collections.abc import Callable

import httpx
import structlog

from testharbor.config.models import ReadinessConfig
from testharbor.core.errors import ProvisioningFailure

log = structlog.get_logger(__name__)

Probe = Callable[[], bool]


def http_probe(url: str, *, timeout: float = 5.0) -> Probe:
    """Probe that succeeds when ``url`` answers a HEAD request with 2xx/3xx."""

    def probe() -> bool:
        try:
            response = httpx.head(url, timeout=timeout, follow_redirects=False)
        except httpx.HTTPError as e:
            log.debug("http_probe_failed", url=url, error=str(e))
            return False
        return response.status_code < 400

    return probe


def tcp_probe(host: str, port: int, *, timeout: float = 5.0) -> Probe:
    """Probe that succeeds when a TCP connection to host:port is accepted."""

    def probe() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError as e:
            log.debug("tcp_probe_failed", host=host, port=port, error=str(e))
            return False

    return probe


def wait_until_ready(
    signal: str,
    probe: Probe,
    *,
    max_attempts: int = 30,
    interval_sec: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Retry ``probe`` until it returns True.

    Args:
        signal: Human-readable name of what is awaited (e.g. "cloud-mock http")
        probe: Callable returning True once ready
        max_attempts: Attempt budget
        interval_sec: Fixed sleep between attempts

    Returns:
        The attempt number that succeeded.

    Raises:
        ProvisioningFailure: Budget exhausted.
    """
    last_error: str | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            ready = probe()
        except Exception as e:  # noqa: BLE001 - probe errors count as "not ready"
            ready = False
            last_error = f"{type(e).__name__}: {e}"
        if ready:
            log.info("service_ready", signal=signal, attempt=attempt)
            return attempt
        log.debug("service_not_ready", signal=signal, attempt=attempt, max_attempts=max_attempts)
        if attempt < max_attempts:
            sleep(interval_sec)

    log.error("service_never_ready", signal=signal, attempts=max_attempts, last_error=last_error)
    raise ProvisioningFailure.not_ready(signal, max_attempts, last_error)


def wait_with_config(signal: str, probe: Probe, config: ReadinessConfig) -> int:
    """wait_until_ready() with budget and interval taken from config."""
    return wait_until_ready(
        signal,
        probe,
        max_attempts=config.max_attempts,
        interval_sec=config.interval_sec,
    )
