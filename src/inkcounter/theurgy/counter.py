"""
Theurgy Counter - Read and change the counter from the command line.

``query``, ``increment`` and ``decrement`` run one operation each; ``shell``
keeps one client open and accepts operations interactively, which is the
way to exercise the simulated counter across several calls.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Awaitable, Callable, Optional

import click

from ..config import DEFAULT_ATTEMPT_TIMEOUT, ClientConfig, load_config, parse_endpoint_list
from ..pneuma.client import ContractClient
from .session import CounterSession, CounterView


def client_options(func: Callable) -> Callable:
    """Endpoint and contract options shared by every counter command."""
    options = [
        click.option(
            "--rpc",
            envvar="INK_COUNTER_RPC",
            default=None,
            help="Comma-separated RPC endpoints, tried in order",
        ),
        click.option(
            "--contract",
            envvar="INK_COUNTER_CONTRACT",
            default=None,
            help="Deployed counter contract address",
        ),
        click.option(
            "--timeout",
            type=float,
            default=None,
            help="Per-endpoint connection timeout in seconds",
        ),
        click.option(
            "--settle-delay",
            type=float,
            default=None,
            help="Seconds to wait before re-reading after a transaction",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(
    rpc: Optional[str],
    contract: Optional[str],
    timeout: Optional[float],
    settle_delay: Optional[float],
) -> ClientConfig:
    try:
        config = load_config()
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    endpoints = None
    if rpc is not None or timeout is not None:
        if timeout is None:
            timeout = config.endpoints[0].timeout if config.endpoints else DEFAULT_ATTEMPT_TIMEOUT
        urls = rpc if rpc is not None else ",".join(e.url for e in config.endpoints)
        endpoints = parse_endpoint_list(urls, timeout)
    return config.with_overrides(
        contract_address=contract,
        endpoints=endpoints,
        settle_delay=settle_delay,
    )


def render(view: CounterView) -> None:
    mode = view.mode or "uninitialized"
    if view.value is not None:
        click.echo(
            click.style("  Counter: ", dim=True)
            + click.style(str(view.value), fg="bright_white", bold=True)
            + click.style(f"  ({mode})", dim=True)
        )
    if view.account:
        click.echo(click.style("  Account: ", dim=True) + view.account)
    if view.error:
        click.secho(f"  ERROR: {view.error}", fg="red")


async def _run_once(
    config: ClientConfig,
    operation: Callable[[CounterSession], Awaitable[CounterView]],
    needs_wallet: bool,
) -> CounterSession:
    client = ContractClient(config)
    session = CounterSession(client)
    try:
        await session.initialize()
        if needs_wallet:
            await session.connect_wallet()
            if session.error:
                return session
        await operation(session)
        return session
    finally:
        await client.close()


def _execute(
    config: ClientConfig,
    operation: Callable[[CounterSession], Awaitable[CounterView]],
    needs_wallet: bool = False,
) -> None:
    session = asyncio.run(_run_once(config, operation, needs_wallet))
    render(session.view)
    if session.view.mode == "simulated":
        click.secho("  (no live contract reachable; showing the simulated counter)", fg="yellow")
    if session.last_error is not None:
        sys.exit(session.last_error.exit_code)


@click.command()
@client_options
def query(rpc, contract, timeout, settle_delay) -> None:
    """Read the current counter value."""
    config = build_config(rpc, contract, timeout, settle_delay)
    _execute(config, lambda s: s.query())


@click.command()
@click.option("--no-refresh", is_flag=True, help="Do not re-read the counter afterwards")
@client_options
def increment(no_refresh, rpc, contract, timeout, settle_delay) -> None:
    """Increase the counter by one."""
    config = build_config(rpc, contract, timeout, settle_delay)
    _execute(config, lambda s: s.increment(refresh=not no_refresh), needs_wallet=True)


@click.command()
@click.option("--no-refresh", is_flag=True, help="Do not re-read the counter afterwards")
@client_options
def decrement(no_refresh, rpc, contract, timeout, settle_delay) -> None:
    """Decrease the counter by one."""
    config = build_config(rpc, contract, timeout, settle_delay)
    _execute(config, lambda s: s.decrement(refresh=not no_refresh), needs_wallet=True)


SHELL_COMMANDS = {
    "q": "query",
    "query": "query",
    "i": "increment",
    "inc": "increment",
    "increment": "increment",
    "d": "decrement",
    "dec": "decrement",
    "decrement": "decrement",
    "w": "connect_wallet",
    "wallet": "connect_wallet",
}


async def _shell(config: ClientConfig) -> None:
    client = ContractClient(config)
    session = CounterSession(client)
    try:
        render(await session.initialize())
        click.echo(f"  Mode: {session.view.mode}")
        click.echo("  Commands: q(uery), i(ncrement), d(ecrement), w(allet), exit")
        while True:
            line = await asyncio.to_thread(click.prompt, "counter", default="q", show_default=False)
            line = line.strip().lower()
            if line in ("exit", "quit"):
                break
            name = SHELL_COMMANDS.get(line)
            if name is None:
                click.echo(f"  Unknown command: {line}")
                continue
            view = await getattr(session, name)()
            render(view)
    finally:
        await client.close()


@click.command()
@client_options
def shell(rpc, contract, timeout, settle_delay) -> None:
    """Interactive counter session."""
    config = build_config(rpc, contract, timeout, settle_delay)
    try:
        asyncio.run(_shell(config))
    except (click.Abort, EOFError):
        click.echo()
