"""
Theurgy Deploy - Upload and instantiate the counter contract.

Flow:
1. Read the compiled contract code
2. Connect to the first reachable node and authorize a wallet account
3. Upload the code and run the ``default`` constructor (or ``new`` with --init)
4. Save the contract address as INK_COUNTER_CONTRACT in ~/.inkcounter/.env

Any failure exits non-zero.  When no node is reachable the deployment is
simulated, the placeholder address is reported and nothing is saved.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from ..config import ClientConfig, save_env_value
from ..errors import CounterError
from ..pneuma.client import ContractClient, Mode, TransactionReceipt
from ..pneuma.selectors import INT32_MAX, INT32_MIN
from .counter import build_config


async def _deploy(config: ClientConfig, code: bytes, init_value: Optional[int]) -> tuple[str, TransactionReceipt]:
    client = ContractClient(config.with_overrides(contract_address=""))
    try:
        await client.connect_wallet()
        return await client.deploy(code, init_value)
    finally:
        await client.close()


@click.command()
@click.argument("code_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--init",
    "init_value",
    type=click.IntRange(INT32_MIN, INT32_MAX),
    default=None,
    help="Initial value (uses the new constructor)",
)
@click.option("--rpc", envvar="INK_COUNTER_RPC", default=None, help="Comma-separated RPC endpoints")
@click.option("--timeout", type=float, default=None, help="Per-endpoint connection timeout in seconds")
@click.option("--save/--no-save", default=True, help="Store the address in ~/.inkcounter/.env")
def deploy(
    code_file: Path,
    init_value: Optional[int],
    rpc: Optional[str],
    timeout: Optional[float],
    save: bool,
) -> None:
    """
    Deploy the counter contract from a compiled code file.
    """
    click.echo("=== Counter Deploy ===")
    click.echo("")

    code = code_file.read_bytes()
    if not code:
        click.secho(f"ERROR: Contract file is empty: {code_file}", fg="red")
        sys.exit(1)

    config = build_config(rpc, None, timeout, None)
    click.echo(f"  Code: {code_file} ({len(code)} bytes)")
    click.echo(f"  Constructor: {'new(' + str(init_value) + ')' if init_value is not None else 'default()'}")
    click.echo("")

    try:
        address, receipt = asyncio.run(_deploy(config, code, init_value))
    except CounterError as exc:
        click.secho(f"Deployment failed: {exc}", fg="red")
        sys.exit(exc.exit_code)

    if receipt.mode == Mode.SIMULATED:
        click.secho("  No node reachable: deployment was simulated.", fg="yellow")
    else:
        click.echo(f"  TX: {receipt.tx_hash}")

    click.secho(f"SUCCESS: Contract deployed at {address}", fg="green")

    if save and receipt.mode == Mode.LIVE:
        env_path = save_env_value("INK_COUNTER_CONTRACT", address)
        click.echo(f"  Saved INK_COUNTER_CONTRACT to {env_path}")
