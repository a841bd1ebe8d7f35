"""
ECDSA / secp256k1 Key Management for the counter client.

Keys back the built-in keyfile wallet.  They are read from the environment
or from ~/.inkcounter/.env as PRIVATE_KEY (hex, comma-separated when the
wallet holds several accounts).

Dependencies: eth-account (no full web3.py needed)
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from ..config import INKCOUNTER_ENV, save_env_value


def generate_eoa() -> tuple[str, str]:
    """
    Generate a new ECDSA/secp256k1 keypair (EOA).

    Returns:
        Tuple of (private_key_hex, address)
    """
    private_key = "0x" + secrets.token_hex(32)
    account = Account.from_key(private_key)
    return private_key, account.address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Save private key to .env file, keeping any other settings in it.

    Args:
        private_key: 0x-prefixed hex private key
        env_path: Path to .env file (default: ~/.inkcounter/.env)

    Returns:
        Path to the saved .env file
    """
    return save_env_value("PRIVATE_KEY", private_key, env_path)


def _normalize_key(private_key: str) -> str:
    private_key = private_key.strip()
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key
    return private_key


def load_private_keys(env_path: Optional[Path] = None) -> list[str]:
    """
    Load all configured private keys from .env file or environment.

    Args:
        env_path: Path to .env file (default: ~/.inkcounter/.env)

    Returns:
        0x-prefixed hex private keys, possibly empty
    """
    env_path = env_path or INKCOUNTER_ENV

    if env_path.exists():
        load_dotenv(env_path, override=True)

    raw = os.environ.get("PRIVATE_KEY", "")
    return [_normalize_key(k) for k in raw.split(",") if k.strip()]


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load the first configured private key.

    Raises:
        ValueError: If PRIVATE_KEY is not set
    """
    keys = load_private_keys(env_path)
    if not keys:
        env_path = env_path or INKCOUNTER_ENV
        raise ValueError(f"PRIVATE_KEY not found. Set PRIVATE_KEY in {env_path}")
    return keys[0]


def get_account(private_key: Optional[str] = None) -> LocalAccount:
    """
    Get an eth-account LocalAccount from a private key.

    Args:
        private_key: 0x-prefixed hex private key.
                     If None, loads from .env.
    """
    if private_key is None:
        private_key = load_private_key()
    return Account.from_key(private_key)


def get_address(private_key: Optional[str] = None) -> str:
    return get_account(private_key).address


def recover_signer(message: bytes, signature: bytes) -> str:
    """Recover the checksummed address that produced an EIP-191 signature."""
    signable = encode_defunct(primitive=message)
    return Account.recover_message(signable, signature=signature)
