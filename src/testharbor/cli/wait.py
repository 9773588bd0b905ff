"""harbor wait command - block until a dependent service answers."""

from urllib.parse import urlsplit

import click

from testharbor.cli.utils import get_harbor_context, handle_harbor_errors
from testharbor.core.progress import spinner, status
from testharbor.sandbox.readiness import Probe, http_probe, tcp_probe, wait_until_ready


def probe_for(target: str, timeout: float) -> Probe:
    """HTTP probe for http(s) URLs, TCP probe for ``tcp://host:port`` or ``host:port``."""
    if target.startswith(("http://", "https://")):
        return http_probe(target, timeout=timeout)

    parts = urlsplit(target if "://" in target else f"tcp://{target}")
    if not parts.hostname or parts.port is None:
        raise click.BadParameter(f"Expected an http(s) URL or host:port, got {target!r}")
    return tcp_probe(parts.hostname, parts.port, timeout=timeout)


@click.command()
@click.argument("targets", nargs=-1, required=True)
@click.option("--attempts", type=click.IntRange(min=1), default=None, help="Attempt budget per service")
@click.option("--interval", type=click.FloatRange(min=0), default=None, help="Seconds between attempts")
@click.pass_context
@handle_harbor_errors
def wait_command(
    ctx: click.Context,
    targets: tuple[str, ...],
    attempts: int | None,
    interval: float | None,
) -> None:
    """Wait until every service in TARGETS is ready.

    TARGETS are http(s) URLs (ready on any 2xx/3xx answer) or host:port pairs
    (ready when a TCP connection is accepted). Defaults come from the
    readiness config section.
    """
    readiness = get_harbor_context(ctx).config.readiness
    max_attempts = attempts or readiness.max_attempts
    interval_sec = readiness.interval_sec if interval is None else interval

    for target in targets:
        probe = probe_for(target, readiness.probe_timeout_sec)
        with spinner(f"Waiting for {target}"):
            attempt = wait_until_ready(target, probe, max_attempts=max_attempts, interval_sec=interval_sec)
        status(f"{target} ready (attempt {attempt}/{max_attempts})", style="success")
