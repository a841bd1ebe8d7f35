"""
ink-counter CLI

Command-line front end for the ink! counter contract.  Every command goes
through the same resilient client: it connects to the first reachable RPC
endpoint, and falls back to a local simulated counter when no live
contract is reachable.

Commands:
  query      - Read the counter
  increment  - Increase the counter by one
  decrement  - Decrease the counter by one
  shell      - Interactive session
  deploy     - Upload and instantiate the contract
  keygen     - Create a local wallet key
  whoami     - Show current wallet address
  info       - Show configuration
"""

from __future__ import annotations

import logging
import sys

import click

from .config import INKCOUNTER_ENV, load_config
from .sigil.eth import generate_eoa, get_address, load_private_key, save_private_key


# ============ Constants ============

VERSION = "0.1.0"

_LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="inkcounter")
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """ink! counter client."""
    logging.basicConfig(
        level=_LOG_LEVELS[min(verbose, len(_LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.counter import decrement, increment, query, shell
from .theurgy.deploy import deploy

cli.add_command(query)
cli.add_command(increment)
cli.add_command(decrement)
cli.add_command(shell)
cli.add_command(deploy)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        pk = load_private_key()
        address = get_address(pk)
        click.echo(f"Address: {address}")
    except ValueError:
        click.echo("No wallet found.")
        click.echo("Run 'inkcounter keygen' to create one.")
        sys.exit(1)


@cli.command()
@click.option("--force", is_flag=True, help="Replace an existing key")
def keygen(force: bool) -> None:
    """Create a local wallet key in ~/.inkcounter/.env."""
    try:
        existing = load_private_key()
    except ValueError:
        existing = None

    if existing and not force:
        click.echo(f"Wallet already exists: {get_address(existing)}")
        click.echo("Use --force to replace it.")
        sys.exit(1)

    private_key, address = generate_eoa()
    env_path = save_private_key(private_key)
    click.secho(f"Created wallet {address}", fg="green")
    click.echo(f"  Key saved to {env_path}")


# ============ Info ============


@cli.command()
def info() -> None:
    """Show configuration."""
    try:
        config = load_config()
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    click.secho("  Configuration ──────────────────────────", fg="cyan")
    click.echo()
    click.echo(click.style("  Version:     ", dim=True) + VERSION)
    click.echo(click.style("  Config file: ", dim=True) + str(INKCOUNTER_ENV))
    click.echo(
        click.style("  Contract:    ", dim=True)
        + (config.contract_address or click.style("not set (simulated mode)", fg="yellow"))
    )
    if config.endpoints:
        click.echo(click.style("  Endpoints:", dim=True))
        for endpoint in config.endpoints:
            click.echo(f"    {endpoint.url}  ({endpoint.timeout:.1f}s)")
    else:
        click.echo(click.style("  Endpoints:   ", dim=True) + click.style("none (simulated mode)", fg="yellow"))
    click.echo(click.style("  Settle delay:", dim=True) + f" {config.settle_delay:.1f}s")

    try:
        address = get_address(load_private_key())
        click.echo(click.style("  Wallet:      ", dim=True) + address)
    except ValueError:
        click.echo(
            click.style("  Wallet:      ", dim=True)
            + click.style("not initialized", fg="yellow")
            + click.style("  (run: inkcounter keygen)", dim=True)
        )
    click.echo()


# ============ Entry Points ============


def main() -> None:
    """ink-counter CLI entry point."""
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
