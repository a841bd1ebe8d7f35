"""
Contract Client - Façade over the counter contract.

The client decides once, in ``initialize()``, whether it talks to a live
node or to the local simulation, and every operation then follows that
mode.  Connectivity problems never escape ``initialize()``: they downgrade
the client to simulated mode.  Per-call failures (transport, decode,
rejection) are raised to the caller and leave the last snapshot untouched.

State machine::

    uninitialized -> connecting -> ready(live | simulated)
    ready -> submitting -> ready
    any -> closed

Live increments and decrements wait for submission acknowledgement only.
Callers refresh after ``settle_delay`` (see ``refresh()``); the read that
follows is not guaranteed to observe the change.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..config import PLACEHOLDER_CONTRACT_ADDRESS, ClientConfig
from ..errors import (
    AuthorizationDenied,
    CounterError,
    DecodeError,
    NoEndpointAvailable,
    RpcError,
    SignerUnavailable,
    TransportError,
)
from ..sigil.wallet import Account, SignerGateway, SigningCapability, session_identity
from ..utils import utc_now_rfc3339
from .resolver import EndpointResolver
from .rpc import CLOSED, CONTRACTS_CALL, CONTRACTS_INSTANTIATE, Connection
from .selectors import DECREMENT, GET, INCREMENT, decode_counter
from .simulation import SimulationFallback
from .tx import (
    build_call_request,
    build_contract_tx,
    build_instantiate_tx,
    sign_and_submit,
)

logger = logging.getLogger(__name__)

# Flag bit set by the contracts pallet when the message reverted
REVERT_FLAG = 0x1


class Mode(str, Enum):
    LIVE = "live"
    SIMULATED = "simulated"


class ClientState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    SUBMITTING = "submitting"
    CLOSED = "closed"


@dataclass(frozen=True)
class CounterSnapshot:
    value: int
    source: Mode
    observed_at: str


@dataclass(frozen=True)
class TransactionReceipt:
    operation: str
    mode: Mode
    tx_hash: Optional[str] = None
    settled: bool = False


def _extract_ok(result: dict[str, Any], what: str) -> dict[str, Any]:
    """Unwrap ``{"result": {"Ok": ...}}`` from a contracts RPC response."""
    outcome = result.get("result")
    if isinstance(outcome, dict) and "Err" in outcome:
        raise TransportError(f"{what} failed: {outcome['Err']}")
    if not isinstance(outcome, dict) or not isinstance(outcome.get("Ok"), dict):
        raise TransportError(f"{what} returned no result: {result!r}")
    return outcome["Ok"]


class ContractClient:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        resolver: Optional[EndpointResolver] = None,
        gateway: Optional[SignerGateway] = None,
        simulation: Optional[SimulationFallback] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.resolver = resolver or EndpointResolver()
        self.gateway = gateway or SignerGateway()
        self.simulation = simulation or SimulationFallback()

        self.state = ClientState.UNINITIALIZED
        self.mode: Optional[Mode] = None
        self.account: Optional[Account] = None
        self.snapshot: Optional[CounterSnapshot] = None
        self._connection: Optional[Connection] = None

    async def __aenter__(self) -> "ContractClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def contract_address(self) -> Optional[str]:
        return self.config.contract_address

    # ============ Initialization ============

    async def initialize(self) -> Mode:
        """
        Pick the operating mode.  Never raises for connectivity problems.

        Returns:
            Mode.LIVE when a node with contract support is reachable and a
            contract address is configured, otherwise Mode.SIMULATED
        """
        if self.state in (ClientState.READY, ClientState.SUBMITTING) and self.mode is not None:
            return self.mode
        if self.state == ClientState.CLOSED:
            raise TransportError("Client is closed")

        self.state = ClientState.CONNECTING

        if not self.config.contract_address:
            logger.info("No contract address configured; using simulated counter")
            return self._ready(Mode.SIMULATED)

        try:
            connection = await asyncio.wait_for(
                self.resolver.resolve(self.config.endpoints),
                timeout=self.config.init_timeout,
            )
        except NoEndpointAvailable as exc:
            logger.warning("%s; using simulated counter", exc)
            return self._ready(Mode.SIMULATED)
        except asyncio.TimeoutError:
            logger.warning(
                "Endpoint resolution exceeded %.1fs; using simulated counter",
                self.config.init_timeout,
            )
            return self._ready(Mode.SIMULATED)
        except CounterError as exc:
            logger.warning("Cannot initialize chain client (%s); using simulated counter", exc)
            return self._ready(Mode.SIMULATED)

        if not connection.supports(CONTRACTS_CALL):
            logger.warning("%s does not expose %s; using simulated counter", connection.url, CONTRACTS_CALL)
            await connection.close()
            return self._ready(Mode.SIMULATED)

        self._connection = connection
        return self._ready(Mode.LIVE)

    def _ready(self, mode: Mode) -> Mode:
        self.mode = mode
        self.state = ClientState.READY
        logger.info("Contract client ready (%s)", mode.value)
        return mode

    async def _ensure_ready(self) -> Mode:
        if self.state == ClientState.UNINITIALIZED:
            return await self.initialize()
        if self.state == ClientState.CLOSED:
            raise TransportError("Client is closed")
        assert self.mode is not None
        return self.mode

    async def _live_connection(self, required: str = CONTRACTS_CALL) -> Connection:
        """The current connection, re-resolved if the peer dropped it."""
        if self._connection is not None and self._connection.state != CLOSED:
            return self._connection

        logger.info("Connection lost; resolving a new endpoint")
        try:
            self._connection = await asyncio.wait_for(
                self.resolver.resolve(self.config.endpoints),
                timeout=self.config.init_timeout,
            )
        except (NoEndpointAvailable, asyncio.TimeoutError) as exc:
            self._connection = None
            raise TransportError(f"Connection lost and no endpoint is reachable: {exc}") from exc

        if not self._connection.supports(required):
            connection, self._connection = self._connection, None
            await connection.close()
            raise TransportError(f"Reconnected to {connection.url}, which does not expose {required}")
        return self._connection

    # ============ Wallet ============

    async def connect_wallet(self, app_name: Optional[str] = None) -> Account:
        """
        Discover a wallet, authorize this session and select its first account.

        Raises:
            NoSignerInstalled: If no wallet provider is installed
            AuthorizationDenied: If the wallet grants no accounts
        """
        providers = self.gateway.discover()
        provider = providers[0]
        identity = session_identity(app_name or self.config.app_name)
        accounts = await self.gateway.authorize(provider, identity)
        self.account = accounts[0]
        logger.info("Wallet connected: %s via %s", self.account.address, provider.name)
        return self.account

    def _signing_capability(self) -> SigningCapability:
        if self.account is None:
            raise SignerUnavailable("No authorized account. Connect a wallet first.")
        try:
            return self.gateway.for_account(self.account)
        except AuthorizationDenied as exc:
            raise SignerUnavailable(str(exc)) from exc

    # ============ Query ============

    async def query(self) -> CounterSnapshot:
        """
        Read the counter.

        Raises:
            TransportError: Live read failed (the client stays live)
            DecodeError: The node returned malformed data
        """
        mode = await self._ensure_ready()

        if mode == Mode.SIMULATED:
            value = self.simulation.read()
        else:
            value = await self._read_live()

        self.snapshot = CounterSnapshot(value=value, source=mode, observed_at=utc_now_rfc3339())
        logger.debug("Counter value (%s): %d", mode.value, value)
        return self.snapshot

    async def _read_live(self) -> int:
        connection = await self._live_connection()
        origin = self.account.address if self.account else self.config.contract_address
        request = build_call_request(
            self.config.contract_address,
            GET,
            origin=origin,
            gas_limit=self.config.gas_limit,
            proof_size=self.config.proof_size,
        )
        result = await connection.call(request)
        ok = _extract_ok(result, "Counter query")
        try:
            flags = int(ok.get("flags", 0))
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Malformed call flags: {ok.get('flags')!r}") from exc
        if flags & REVERT_FLAG:
            raise TransportError("Counter query reverted")
        return decode_counter(ok.get("data", ""))

    # ============ Transactions ============

    async def increment(self) -> TransactionReceipt:
        return await self._transact(INCREMENT)

    async def decrement(self) -> TransactionReceipt:
        return await self._transact(DECREMENT)

    async def _transact(self, op: str) -> TransactionReceipt:
        mode = await self._ensure_ready()
        capability = self._signing_capability()

        self.state = ClientState.SUBMITTING
        try:
            if mode == Mode.SIMULATED:
                value = self.simulation.apply(op)
                logger.info("Simulated %s by %s: counter is now %d", op, capability.address, value)
                return TransactionReceipt(operation=op, mode=mode, settled=True)

            connection = await self._live_connection()
            tx = build_contract_tx(
                self.config.contract_address,
                op,
                gas_limit=self.config.gas_limit,
                proof_size=self.config.proof_size,
            )
            tx_hash = await sign_and_submit(connection, tx, capability)
            return TransactionReceipt(operation=op, mode=mode, tx_hash=tx_hash, settled=False)
        finally:
            if self.state == ClientState.SUBMITTING:
                self.state = ClientState.READY

    async def refresh(self) -> CounterSnapshot:
        """Query again once a submitted transaction has had time to settle."""
        mode = await self._ensure_ready()
        if mode == Mode.LIVE and self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)
        return await self.query()

    # ============ Deployment ============

    async def deploy(self, code: bytes, init_value: Optional[int] = None) -> tuple[str, TransactionReceipt]:
        """
        Upload contract code and run its constructor.

        Args:
            code: Compiled contract code (Wasm)
            init_value: Initial counter value; ``None`` uses the default constructor

        Returns:
            Tuple of (contract_address, receipt)
        """
        mode = await self._ensure_ready_for_deploy()
        op = "default" if init_value is None else "new"
        capability = self._signing_capability()

        if mode == Mode.SIMULATED:
            self.simulation.reset(0 if init_value is None else init_value)
            self.config = self.config.with_overrides(contract_address=PLACEHOLDER_CONTRACT_ADDRESS)
            logger.info("Simulated deployment at %s", PLACEHOLDER_CONTRACT_ADDRESS)
            return PLACEHOLDER_CONTRACT_ADDRESS, TransactionReceipt(operation=op, mode=mode, settled=True)

        connection = await self._live_connection(CONTRACTS_INSTANTIATE)
        tx = build_instantiate_tx(
            code,
            init_value,
            gas_limit=self.config.gas_limit,
            proof_size=self.config.proof_size,
        )
        dry_run = {
            "origin": capability.address,
            **{k: v for k, v in tx.items() if k != "nonce"},
        }
        try:
            result = await connection.request(CONTRACTS_INSTANTIATE, [dry_run])
        except RpcError as exc:
            raise TransportError(f"Instantiate dry run failed: {exc}") from exc
        if not isinstance(result, dict):
            raise TransportError(f"Unexpected {CONTRACTS_INSTANTIATE} result: {result!r}")
        address = _extract_ok(result, "Instantiate dry run").get("accountId")
        if not address:
            raise TransportError("Instantiate dry run did not report a contract address")

        self.state = ClientState.SUBMITTING
        try:
            tx_hash = await sign_and_submit(connection, tx, capability)
        finally:
            self.state = ClientState.READY
        self.config = self.config.with_overrides(contract_address=str(address))
        logger.info("Contract instantiated at %s (tx %s)", address, tx_hash)
        return str(address), TransactionReceipt(operation=op, mode=mode, tx_hash=tx_hash)

    async def _ensure_ready_for_deploy(self) -> Mode:
        """Deployment needs a node but not an existing contract address."""
        if self.state != ClientState.UNINITIALIZED or self.config.contract_address:
            return await self._ensure_ready()

        self.state = ClientState.CONNECTING
        try:
            connection = await asyncio.wait_for(
                self.resolver.resolve(self.config.endpoints),
                timeout=self.config.init_timeout,
            )
        except (NoEndpointAvailable, asyncio.TimeoutError) as exc:
            logger.warning("No node for deployment (%s); using simulated counter", exc)
            return self._ready(Mode.SIMULATED)

        if not connection.supports(CONTRACTS_INSTANTIATE):
            await connection.close()
            return self._ready(Mode.SIMULATED)
        self._connection = connection
        return self._ready(Mode.LIVE)

    # ============ Teardown ============

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        self.state = ClientState.CLOSED
