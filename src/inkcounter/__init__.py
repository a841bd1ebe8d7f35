__all__ = [
    # Client
    "ContractClient",
    "CounterSnapshot",
    "TransactionReceipt",
    "Mode",
    "ClientState",
    # Configuration
    "ClientConfig",
    "Endpoint",
    "load_config",
    # Components
    "EndpointResolver",
    "SimulationFallback",
    "SimulatedState",
    "SignerGateway",
    "Account",
    "KeyfileProvider",
    "InMemoryProvider",
    "CounterSession",
    "CounterView",
    # Codec
    "SELECTORS",
    "encode_call",
    "decode_counter",
    "encode_counter",
    # Errors
    "CounterError",
    "NoEndpointAvailable",
    "NoSignerInstalled",
    "AuthorizationDenied",
    "SignerUnavailable",
    "DecodeError",
    "TransportError",
    "RpcError",
    "TransactionRejected",
]

from .config import ClientConfig, Endpoint, load_config
from .errors import (
    AuthorizationDenied,
    CounterError,
    DecodeError,
    NoEndpointAvailable,
    NoSignerInstalled,
    RpcError,
    SignerUnavailable,
    TransactionRejected,
    TransportError,
)
from .pneuma.client import ClientState, ContractClient, CounterSnapshot, Mode, TransactionReceipt
from .pneuma.resolver import EndpointResolver
from .pneuma.selectors import SELECTORS, decode_counter, encode_call, encode_counter
from .pneuma.simulation import SimulatedState, SimulationFallback
from .sigil.wallet import Account, InMemoryProvider, KeyfileProvider, SignerGateway
from .theurgy.session import CounterSession, CounterView
