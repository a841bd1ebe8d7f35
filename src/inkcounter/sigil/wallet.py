"""
Signer Gateway - Wallet discovery, authorization and signing capabilities.

A wallet provider is anything that can list accounts for an application and
sign on their behalf.  Providers are found three ways:

- passed explicitly to the gateway,
- published by installed packages under the ``inkcounter.wallets`` entry
  point group (each entry point is a zero-argument factory),
- the built-in keyfile provider, when PRIVATE_KEY is configured.

The client never holds key material.  It keeps an ``Account`` and asks the
gateway for a fresh ``SigningCapability`` for every transaction, so a key
that was revoked or rotated out of band is noticed on the next call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from ..errors import AuthorizationDenied, NoSignerInstalled
from ..utils import uuidv7
from .eth import load_private_keys

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "inkcounter.wallets"


@dataclass(frozen=True)
class Account:
    """An authorized account; carries no signing material."""
    address: str
    provider: str
    label: Optional[str] = None


class SigningCapability(Protocol):
    address: str

    def sign(self, payload: bytes) -> bytes:
        ...


class WalletProvider(Protocol):
    name: str

    async def enable(self, app_identity: str) -> list[Account]:
        ...

    def signer(self, address: str) -> SigningCapability:
        ...


@dataclass(frozen=True)
class LocalSigner:
    """Signs with an in-process eth-account key (EIP-191 personal_sign)."""
    address: str
    _account: LocalAccount = field(repr=False)

    def sign(self, payload: bytes) -> bytes:
        signed = self._account.sign_message(encode_defunct(primitive=payload))
        return bytes(signed.signature)


class _KeyedProvider:
    """Common behaviour for providers backed by raw private keys."""

    name = "keys"
    source = "configured keys"

    def __init__(self) -> None:
        self.authorized: list[str] = []

    def _keys(self) -> list[str]:
        raise NotImplementedError

    def _accounts(self) -> list[LocalAccount]:
        """
        Raises:
            NoSignerInstalled: If a key is not a valid private key
        """
        accounts = []
        for index, key in enumerate(self._keys()):
            try:
                accounts.append(EthAccount.from_key(key))
            except Exception as exc:  # eth-account raises several types; never echo the key
                raise NoSignerInstalled(
                    f"Key #{index} from {self.source} is not a valid private key"
                ) from exc
        return accounts

    async def enable(self, app_identity: str) -> list[Account]:
        self.authorized.append(app_identity)
        return [
            Account(address=acct.address, provider=self.name, label=f"{self.name} #{index}")
            for index, acct in enumerate(self._accounts())
        ]

    def signer(self, address: str) -> SigningCapability:
        for acct in self._accounts():
            if acct.address.lower() == address.lower():
                return LocalSigner(acct.address, acct)
        raise AuthorizationDenied(f"Account {address} is no longer available from {self.name}")


class KeyfileProvider(_KeyedProvider):
    """Accounts from PRIVATE_KEY in the environment or ~/.inkcounter/.env."""

    name = "keyfile"
    source = "PRIVATE_KEY"

    def __init__(self, env_path: Optional[Path] = None) -> None:
        super().__init__()
        self.env_path = env_path

    def _keys(self) -> list[str]:
        return load_private_keys(self.env_path)

    def available(self) -> bool:
        """True when at least one key is configured; keys are validated on use."""
        return bool(self._keys())


class InMemoryProvider(_KeyedProvider):
    """
    Accounts from explicit private keys.

    Args:
        keys: 0x-prefixed hex private keys
        name: Provider name reported on accounts
        deny: Behave like a user who declines the authorization request
    """

    def __init__(self, keys: Iterable[str], name: str = "memory", deny: bool = False) -> None:
        super().__init__()
        self.name = name
        self.deny = deny
        self._key_list = list(keys)

    def _keys(self) -> list[str]:
        return list(self._key_list)

    async def enable(self, app_identity: str) -> list[Account]:
        if self.deny:
            self.authorized.append(app_identity)
            return []
        return await super().enable(app_identity)

    def revoke(self, address: str) -> None:
        """Drop the key for ``address``, as a wallet would on revocation."""
        self._key_list = [
            key for key in self._key_list
            if EthAccount.from_key(key).address.lower() != address.lower()
        ]


def session_identity(app_name: str) -> str:
    """App identity unique to this session, so providers cannot reuse a stale grant."""
    return f"{app_name}-{uuidv7()}"


class SignerGateway:
    def __init__(
        self,
        providers: Optional[Sequence[WalletProvider]] = None,
        *,
        use_entry_points: bool = True,
        use_keyfile: bool = True,
        env_path: Optional[Path] = None,
    ) -> None:
        self._explicit = list(providers or [])
        self._use_entry_points = use_entry_points
        self._use_keyfile = use_keyfile
        self._env_path = env_path
        self._known: dict[str, WalletProvider] = {}

    def _entry_point_providers(self) -> list[WalletProvider]:
        found: list[WalletProvider] = []
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                factory = ep.load()
                found.append(factory())
            except Exception as exc:
                logger.warning("Skipping wallet provider %s: %s", ep.name, exc)
        return found

    def discover(self) -> list[WalletProvider]:
        """
        List the installed wallet providers.

        Raises:
            NoSignerInstalled: If no provider is available
        """
        providers: list[WalletProvider] = list(self._explicit)
        if self._use_entry_points:
            providers.extend(self._entry_point_providers())
        if self._use_keyfile:
            keyfile = KeyfileProvider(self._env_path)
            if keyfile.available():
                providers.append(keyfile)

        if not providers:
            raise NoSignerInstalled(
                "No wallet provider found. Set PRIVATE_KEY or install a wallet plugin."
            )

        for provider in providers:
            self._known.setdefault(provider.name, provider)
        logger.info("Discovered %d wallet provider(s): %s", len(providers), [p.name for p in providers])
        return providers

    async def authorize(self, provider: WalletProvider, app_identity: str) -> list[Account]:
        """
        Ask a provider to grant ``app_identity`` access to its accounts.

        Raises:
            AuthorizationDenied: If the provider returns no accounts
        """
        self._known[provider.name] = provider
        accounts = await provider.enable(app_identity)
        if not accounts:
            raise AuthorizationDenied(
                f"No accounts authorized by {provider.name}. "
                "Create an account in the wallet and authorize this application."
            )
        logger.info("%s authorized %d account(s) for %s", provider.name, len(accounts), app_identity)
        return list(accounts)

    def for_account(self, account: Account) -> SigningCapability:
        """
        Derive a signing capability for ``account``; never cached.

        Raises:
            AuthorizationDenied: If the provider is gone or no longer has the account
        """
        provider = self._known.get(account.provider)
        if provider is None:
            raise AuthorizationDenied(f"Wallet provider {account.provider!r} is not authorized")
        return provider.signer(account.address)
