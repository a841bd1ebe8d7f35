"""
Transaction Builder - Build, sign, and submit contract calls.

A contract call is described by the wire shape

    {dest, value: 0, gasLimit: {refTime, proofSize}, storageDepositLimit: null, input}

plus a UUIDv7 nonce.  The call is canonicalized with RFC 8785 (JCS), signed
by the account's signing capability, and wrapped in an envelope
``{call, signer, signature}`` which is submitted hex-encoded through
``author_submitExtrinsic``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import rfc8785

from ..config import DEFAULT_GAS_LIMIT, DEFAULT_PROOF_SIZE
from ..errors import CounterError, RpcError, TransactionRejected
from ..sigil.eth import recover_signer
from ..sigil.wallet import SigningCapability
from ..utils import from_hex, to_hex, uuidv7
from .rpc import Connection
from .selectors import encode_call

logger = logging.getLogger(__name__)


def weight(gas_limit: int = DEFAULT_GAS_LIMIT, proof_size: int = DEFAULT_PROOF_SIZE) -> dict[str, int]:
    return {"refTime": gas_limit, "proofSize": proof_size}


def build_call_request(
    contract_address: str,
    op: str,
    origin: str,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    proof_size: int = DEFAULT_PROOF_SIZE,
) -> dict[str, Any]:
    """Request body for a read-only ``contracts_call`` dry run."""
    return {
        "origin": origin,
        "dest": contract_address,
        "value": 0,
        "gasLimit": weight(gas_limit, proof_size),
        "storageDepositLimit": None,
        "inputData": to_hex(encode_call(op)),
    }


def build_contract_tx(
    contract_address: str,
    op: str,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    proof_size: int = DEFAULT_PROOF_SIZE,
) -> dict[str, Any]:
    """
    Build an unsigned contract message call.

    Args:
        contract_address: Deployed contract address
        op: Operation name (increment, decrement, ...)
        gas_limit: Ref-time gas limit
        proof_size: Proof-size gas limit

    Returns:
        Unsigned call dict
    """
    return {
        "dest": contract_address,
        "value": 0,
        "gasLimit": weight(gas_limit, proof_size),
        "storageDepositLimit": None,
        "input": to_hex(encode_call(op)),
        "nonce": str(uuidv7()),
    }


def build_instantiate_tx(
    code: bytes,
    init_value: Optional[int] = None,
    gas_limit: int = DEFAULT_GAS_LIMIT,
    proof_size: int = DEFAULT_PROOF_SIZE,
) -> dict[str, Any]:
    """
    Build an unsigned upload-and-instantiate call.

    The constructor is ``default`` unless ``init_value`` is given, in which
    case ``new(init_value)`` is used.
    """
    data = encode_call("default") if init_value is None else encode_call("new", init_value)
    return {
        "value": 0,
        "gasLimit": weight(gas_limit, proof_size),
        "storageDepositLimit": None,
        "code": {"Upload": to_hex(code)},
        "data": to_hex(data),
        "salt": "0x",
        "nonce": str(uuidv7()),
    }


def sign_call(tx: dict[str, Any], capability: SigningCapability) -> str:
    """
    Sign a call and return the hex-encoded envelope.

    Args:
        tx: Unsigned call dict
        capability: Signing capability of the sending account

    Returns:
        0x-prefixed hex extrinsic
    """
    signature = capability.sign(rfc8785.dumps(tx))
    envelope = {
        "call": tx,
        "signer": capability.address,
        "signature": to_hex(signature),
    }
    return to_hex(rfc8785.dumps(envelope))


def decode_envelope(extrinsic: str) -> dict[str, Any]:
    """Parse a hex envelope produced by ``sign_call``."""
    envelope = json.loads(from_hex(extrinsic).decode("utf-8"))
    if not isinstance(envelope, dict) or not {"call", "signer", "signature"} <= envelope.keys():
        raise ValueError("Not a signed call envelope")
    return envelope


def verify_envelope(envelope: dict[str, Any]) -> bool:
    """Check that the envelope signature was made by its declared signer."""
    payload = rfc8785.dumps(envelope["call"])
    signer = recover_signer(payload, from_hex(envelope["signature"]))
    return signer.lower() == str(envelope["signer"]).lower()


async def sign_and_submit(
    connection: Connection,
    tx: dict[str, Any],
    capability: SigningCapability,
) -> str:
    """
    Sign a call and submit it, waiting for acknowledgement only.

    Returns:
        Transaction hash reported by the node

    Raises:
        TransactionRejected: If the wallet declines to sign or the node
            refuses the extrinsic
        TransportError: If the submission cannot be delivered
    """
    try:
        extrinsic = sign_call(tx, capability)
    except CounterError:
        raise
    except Exception as exc:  # wallet plugins raise their own types
        raise TransactionRejected(f"Signing declined: {exc}") from exc

    try:
        tx_hash = await connection.submit(extrinsic)
    except RpcError as exc:
        raise TransactionRejected(f"Transaction rejected: {exc.message}") from exc

    logger.info("Submitted %s from %s: %s", tx.get("input") or "instantiate", capability.address, tx_hash)
    return tx_hash
