"""Command line interface for masterq.

Provides commands to list the servers registered with a master server, send
an info query to a single game server and show the active configuration.
"""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from masterq.address import Region
from masterq.config.config import ConfigManager, init_config
from masterq.game.server import GameServer
from masterq.master.server import MasterServer
from masterq.models import LogLevel
from masterq.utils.exceptions import MasterQueryError
from masterq.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

REGION_CHOICES = [region.name.lower() for region in Region]


def _get_config_from_context(ctx: click.Context) -> ConfigManager:
    """Get ConfigManager from CLI context.

    Args:
        ctx: Click context

    Returns:
        ConfigManager instance

    """
    if ctx and ctx.obj and ctx.obj.get("config_manager") is not None:
        return ctx.obj["config_manager"]
    return init_config()


def _parse_filters(values: tuple[str, ...]) -> dict[str, str]:
    """Turn ``key=value`` options into a filter mapping."""
    filters: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            msg = f"Filter must look like key=value: {value}"
            raise click.BadParameter(msg, param_hint="--filter")
        filters[key] = item
    return filters


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx, config, verbose):
    """Masterq - query Valve master servers and game servers."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbosity"] = verbose

    try:
        config_manager = init_config(config)
    except MasterQueryError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj["config_manager"] = config_manager

    # Verbosity only raises the console level, the configured file level stays
    observability = config_manager.config.observability
    if verbose >= 2:
        setup_logging(observability.model_copy(update={"log_level": LogLevel.DEBUG}))
    elif verbose == 1:
        setup_logging(observability.model_copy(update={"log_level": LogLevel.INFO}))


@cli.command("servers")
@click.option(
    "--master",
    "-m",
    "master",
    type=str,
    help="Master server as host:port (default from configuration)",
)
@click.option(
    "--region",
    "-r",
    type=click.Choice(REGION_CHOICES, case_sensitive=False),
    help="Region to list (default from configuration)",
)
@click.option(
    "--filter",
    "-f",
    "filters",
    multiple=True,
    help="Filter as key=value, e.g. gamedir=cstrike (repeatable)",
)
@click.option("--raw-filter", type=str, help="Filter string passed through unchanged")
@click.option("--retries", type=click.IntRange(min=1), help="Send attempts per page")
@click.option("--timeout", type=click.FloatRange(min=0.0, min_open=True), help="Seconds to wait per reply")
@click.option(
    "--lenient",
    is_flag=True,
    help="Print the servers collected so far when a page never arrives",
)
@click.option("--plain", is_flag=True, help="Print one address per line")
@click.pass_context
def servers(ctx, master, region, filters, raw_filter, retries, timeout, lenient, plain):
    """List game servers registered with a master server."""
    console = Console()
    cfg = _get_config_from_context(ctx).config.master

    if raw_filter is not None and filters:
        msg = "Use either --filter or --raw-filter, not both"
        raise click.UsageError(msg)
    filter_ = raw_filter if raw_filter is not None else _parse_filters(filters)

    async def _fetch() -> list:
        server = (
            MasterServer(master, retries=retries, timeout=timeout)
            if master
            else MasterServer(cfg.host, cfg.port, retries=retries, timeout=timeout)
        )
        async with server:
            found = await server.get_servers(
                region if region is not None else cfg.region,
                filter_,
                strict=not lenient,
            )
        return sorted(found)

    try:
        addresses = asyncio.run(_fetch())
    except MasterQueryError as e:
        logger.debug("Server list fetch failed", exc_info=True)
        raise click.ClickException(str(e)) from e

    if plain:
        for address in addresses:
            click.echo(str(address))
        return

    table = Table(title="Game Servers")
    table.add_column("Address", style="cyan")
    table.add_column("Port", justify="right")
    for address in addresses:
        table.add_row(address.host, str(address.port))
    console.print(table)
    console.print(f"[green]{len(addresses)} servers[/green]")


@cli.command("info")
@click.argument("address", type=str)
@click.option("--retries", type=click.IntRange(min=1), help="Send attempts")
@click.option("--timeout", type=click.FloatRange(min=0.0, min_open=True), help="Seconds to wait per reply")
@click.pass_context
def info(ctx, address, retries, timeout):
    """Send an info query to the game server at ADDRESS (host[:port])."""
    _get_config_from_context(ctx)
    console = Console()

    async def _query() -> bytes:
        async with GameServer(address, retries=retries, timeout=timeout) as server:
            return await server.query_info()

    try:
        payload = asyncio.run(_query())
    except MasterQueryError as e:
        logger.debug("Info query failed", exc_info=True)
        raise click.ClickException(str(e)) from e

    table = Table(title=f"Info reply from {address}")
    table.add_column("Offset", justify="right", style="cyan")
    table.add_column("Bytes")
    for offset in range(0, len(payload), 16):
        table.add_row(f"{offset:04x}", payload[offset : offset + 16].hex(" "))
    console.print(table)
    console.print(f"[green]{len(payload)} bytes[/green]")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the active configuration as TOML."""
    click.echo(_get_config_from_context(ctx).export())


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
