"""
Error taxonomy for the counter client.

Every failure the client can surface is a ``CounterError``.  Each subclass
carries the process exit code the CLI uses when the error ends a command.
"""

from __future__ import annotations

from typing import Any, Optional


class CounterError(RuntimeError):
    exit_code: int = 1


class NoEndpointAvailable(CounterError):
    """Every candidate endpoint failed or timed out."""

    exit_code = 10

    def __init__(self, attempted: list[str]) -> None:
        self.attempted = list(attempted)
        if attempted:
            message = f"No endpoint available (tried: {', '.join(attempted)})"
        else:
            message = "No endpoint available (endpoint list is empty)"
        super().__init__(message)


class NoSignerInstalled(CounterError):
    exit_code = 11


class AuthorizationDenied(CounterError):
    exit_code = 12


class SignerUnavailable(CounterError):
    exit_code = 13


class DecodeError(CounterError, ValueError):
    exit_code = 14


class TransportError(CounterError):
    exit_code = 15


class RpcError(TransportError):
    """A JSON-RPC error object returned by the node."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        text = f"RPC error {code}: {message}"
        if data is not None:
            text += f" ({data!r})"
        super().__init__(text)

    @classmethod
    def from_payload(cls, payload: Any) -> "RpcError":
        if isinstance(payload, dict):
            return cls(
                int(payload.get("code", -32000)),
                str(payload.get("message", "Unknown error")),
                payload.get("data"),
            )
        return cls(-32000, str(payload))


class TransactionRejected(CounterError):
    exit_code = 16

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)
