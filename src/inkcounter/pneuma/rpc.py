"""
JSON-RPC transport for contract nodes.

A connection is bound to exactly one endpoint and moves through
``connecting -> live -> closed``.  WebSocket endpoints (ws://, wss://) use
the websockets library; HTTP endpoints (http://, https://) use httpx.

The connection exposes the two chain capabilities the client needs:
``call`` (read-only contract dry run) and ``submit`` (signed extrinsic).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Protocol
from urllib.parse import urlparse

import httpx
from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import Endpoint
from ..errors import RpcError, TransportError

logger = logging.getLogger(__name__)

CONNECTING = "connecting"
LIVE = "live"
CLOSED = "closed"

# Method the node must expose for contract reads to be possible
CONTRACTS_CALL = "contracts_call"
CONTRACTS_INSTANTIATE = "contracts_instantiate"
SUBMIT_EXTRINSIC = "author_submitExtrinsic"
READY_PROBE = "rpc_methods"

# Per-request bound on both wires
REQUEST_TIMEOUT = 30.0


class Connection(Protocol):
    url: str
    state: str

    async def open(self) -> None:
        ...

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        ...

    async def call(self, request: dict[str, Any]) -> dict[str, Any]:
        ...

    async def submit(self, extrinsic: str) -> str:
        ...

    def supports(self, method: str) -> bool:
        ...

    async def close(self) -> None:
        ...


class RpcConnection:
    """
    Shared JSON-RPC logic; subclasses supply the wire.

    ``open()`` connects and then waits for the ready signal: a successful
    ``rpc_methods`` probe.  The probe result tells us which RPC methods the
    node offers; a node that rejects the probe is still considered ready.
    """

    def __init__(self, endpoint: Endpoint) -> None:
        self.endpoint = endpoint
        self.url = endpoint.url
        self.state = CONNECTING
        self.methods: Optional[frozenset[str]] = None
        self._id = 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.url!r}, state={self.state!r})"

    # ============ Lifecycle ============

    async def open(self) -> None:
        if self.state == CLOSED:
            raise TransportError(f"Connection to {self.url} is closed")
        await self._connect()
        try:
            result = await self.request(READY_PROBE)
        except RpcError as exc:
            logger.debug("%s rejected %s: %s", self.url, READY_PROBE, exc)
            self.methods = None
        else:
            names = result.get("methods", []) if isinstance(result, dict) else []
            self.methods = frozenset(str(name) for name in names)
        self.state = LIVE
        logger.debug("Connection to %s is live", self.url)

    async def close(self) -> None:
        if self.state == CLOSED:
            return
        self.state = CLOSED
        try:
            await self._disconnect()
        except Exception as exc:  # best effort
            logger.debug("Error while closing %s: %s", self.url, exc)

    def supports(self, method: str) -> bool:
        """True if the node advertises ``method`` (or did not say)."""
        if self.methods is None:
            return True
        return method in self.methods

    # ============ JSON-RPC ============

    def _next_id(self) -> int:
        self._id += 1
        return self._id

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name (e.g., "contracts_call")
            params: RPC parameters

        Returns:
            Result field from the RPC response

        Raises:
            RpcError: If the node answers with an error object
            TransportError: If the request cannot be delivered or parsed
        """
        if self.state == CLOSED:
            raise TransportError(f"Connection to {self.url} is closed")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params or [],
        }
        logger.debug("-> %s %s", self.url, method)
        data = await self._roundtrip(payload)

        if not isinstance(data, dict):
            raise TransportError(f"Malformed RPC response from {self.url}: {data!r}")
        if "error" in data:
            raise RpcError.from_payload(data["error"])

        return data.get("result")

    async def call(self, request: dict[str, Any]) -> dict[str, Any]:
        """Dry-run a contract message and return the execution result."""
        result = await self.request(CONTRACTS_CALL, [request])
        if not isinstance(result, dict):
            raise TransportError(f"Unexpected {CONTRACTS_CALL} result: {result!r}")
        return result

    async def submit(self, extrinsic: str) -> str:
        """Submit a signed extrinsic; returns its hash once the node accepts it."""
        result = await self.request(SUBMIT_EXTRINSIC, [extrinsic])
        if not isinstance(result, str):
            raise TransportError(f"Unexpected {SUBMIT_EXTRINSIC} result: {result!r}")
        return result

    # ============ Wire (subclass hooks) ============

    async def _connect(self) -> None:
        raise NotImplementedError

    async def _roundtrip(self, payload: dict[str, Any]) -> Any:
        raise NotImplementedError

    async def _disconnect(self) -> None:
        raise NotImplementedError


class WebSocketConnection(RpcConnection):
    def __init__(self, endpoint: Endpoint, request_timeout: float = REQUEST_TIMEOUT) -> None:
        super().__init__(endpoint)
        self.request_timeout = request_timeout
        self._ws: Optional[ClientConnection] = None
        self._lock = asyncio.Lock()

    async def _connect(self) -> None:
        try:
            self._ws = await ws_connect(self.url, open_timeout=None)
        except (OSError, WebSocketException, ValueError) as exc:
            raise TransportError(f"Cannot connect to {self.url}: {exc}") from exc

    async def _roundtrip(self, payload: dict[str, Any]) -> Any:
        if self._ws is None:
            raise TransportError(f"Connection to {self.url} is not open")

        # One request in flight at a time
        async with self._lock:
            try:
                return await asyncio.wait_for(self._exchange(payload), timeout=self.request_timeout)
            except asyncio.TimeoutError as exc:
                raise TransportError(
                    f"No reply from {self.url} to {payload['method']} within {self.request_timeout:.1f}s"
                ) from exc
            except ConnectionClosed as exc:
                self.state = CLOSED
                raise TransportError(f"Connection to {self.url} closed: {exc}") from exc
            except OSError as exc:
                self.state = CLOSED
                raise TransportError(f"I/O error on {self.url}: {exc}") from exc

    async def _exchange(self, payload: dict[str, Any]) -> Any:
        """Send one request and wait for the reply with its id, skipping notifications."""
        assert self._ws is not None
        await self._ws.send(json.dumps(payload))
        while True:
            raw = await self._ws.recv()
            try:
                message = json.loads(raw)
            except ValueError as exc:
                raise TransportError(f"Invalid JSON from {self.url}") from exc
            if isinstance(message, dict) and message.get("id") == payload["id"]:
                return message

    async def _disconnect(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None


class HttpConnection(RpcConnection):
    def __init__(
        self,
        endpoint: Endpoint,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(endpoint)
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _connect(self) -> None:
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _roundtrip(self, payload: dict[str, Any]) -> Any:
        if self._client is None:
            raise TransportError(f"Connection to {self.url} is not open")
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP error from {self.url}: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {self.url}") from exc

    async def _disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def open_connection(endpoint: Endpoint) -> RpcConnection:
    """Create an (unopened) connection for an endpoint based on its URL scheme."""
    scheme = urlparse(endpoint.url).scheme.lower()
    if scheme in ("ws", "wss"):
        return WebSocketConnection(endpoint)
    if scheme in ("http", "https"):
        return HttpConnection(endpoint)
    raise TransportError(f"Unsupported endpoint scheme: {endpoint.url}")
