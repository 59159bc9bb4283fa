"""CLI for port helpers: find a free port, check a port, wait for a port."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from .config import CONFIG_FILENAME, get_config
from .finder import PortNotFoundError, empty_port
from .probe import PROTOCOLS, check_port
from .waiter import wait_port

EXIT_UNEXPECTED = 2


def _config_callback(ctx: click.Context, _param: click.Parameter, value: Path | None) -> Path | None:
    if value is not None and not value.exists():
        raise click.BadParameter(f"Config file not found: {value}")
    return value


def _protocol_option(f):
    return click.option(
        "--protocol",
        type=click.Choice(PROTOCOLS, case_sensitive=False),
        default=None,
        help="tcp or udp (default: from config, else tcp).",
    )(f)


def _host_option(f):
    return click.option("--host", default=None, help="Host to probe (default: from config, else 127.0.0.1).")(f)


def _fail(message: str, code: int = 1) -> None:
    click.echo(message, err=True)
    sys.exit(code)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    envvar="EMPTY_PORT_CONFIG",
    help=f"YAML file with host/protocol/max_wait/timeout (default: {CONFIG_FILENAME} in cwd). Env vars override.",
    callback=_config_callback,
)
@click.option("-v", "--verbose", is_flag=True, help="Log every probe to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Find, check and wait for local TCP/UDP ports (for test servers)."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s", stream=sys.stderr)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = get_config(config_path)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config") from None


@main.command(short_help="Print a free port.")
@_host_option
@click.option("--port", type=int, default=None, help="Lower bound below 49152 (default: random start >= 50000).")
@_protocol_option
@click.pass_context
def find(ctx: click.Context, host: str | None, port: int | None, protocol: str | None) -> None:
    """Print a port that is free right now.

    The port is not reserved: bind it immediately. Exits 1 if no port below
    65000 is free.
    """
    config = ctx.obj["config"]
    try:
        found = empty_port(
            port,
            protocol or config["protocol"],
            host=host or config["host"],
            timeout=config["timeout"],
        )
    except PortNotFoundError as e:
        _fail(str(e))
    except OSError as e:
        _fail(f"Probe failed: {e}", EXIT_UNEXPECTED)
    click.echo(found)


@main.command(short_help="Exit 0 if the port is in use, 1 if free.")
@click.argument("port", type=click.IntRange(0, 65535))
@_host_option
@_protocol_option
@click.pass_context
def check(ctx: click.Context, port: int, host: str | None, protocol: str | None) -> None:
    """Check whether PORT is in use.

    tcp connects to the port (something must be listening); udp tries to bind
    it locally. Prints "in use" or "free".
    """
    config = ctx.obj["config"]
    try:
        in_use = check_port(
            port,
            protocol or config["protocol"],
            host=host or config["host"],
            timeout=config["timeout"],
        )
    except OSError as e:
        _fail(f"Probe failed: {e}", EXIT_UNEXPECTED)
    click.echo("in use" if in_use else "free")
    if not in_use:
        sys.exit(1)


@main.command(short_help="Wait until the port is in use.")
@click.argument("port", type=click.IntRange(0, 65535))
@_host_option
@_protocol_option
@click.option(
    "--max-wait",
    type=float,
    default=None,
    help="Seconds to wait (default: from config, else 10). Negative waits forever.",
)
@click.pass_context
def wait(ctx: click.Context, port: int, host: str | None, protocol: str | None, max_wait: float | None) -> None:
    """Wait until something listens on (tcp) or binds (udp) PORT.

    Polls with exponential backoff starting at 1ms. Exits 1 on timeout.
    """
    config = ctx.obj["config"]
    budget = max_wait if max_wait is not None else config["max_wait"]
    try:
        up = wait_port(
            port,
            budget,
            protocol or config["protocol"],
            host=host or config["host"],
            timeout=config["timeout"],
        )
    except OSError as e:
        _fail(f"Probe failed: {e}", EXIT_UNEXPECTED)
    if not up:
        _fail(f"Timed out after {budget}s waiting for port {port}")


if __name__ == "__main__":
    main()
