"""
Client configuration.

Settings come from the environment, optionally seeded from
~/.inkcounter/.env.  Every value has a default so the client can always
start; with no endpoints or no contract address it runs in simulated mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

# Default config directory
INKCOUNTER_DIR = Path.home() / ".inkcounter"
INKCOUNTER_ENV = INKCOUNTER_DIR / ".env"

DEFAULT_ENDPOINTS = (
    "wss://rpc.shibuya.astar.network",
    "wss://shibuya.public.blastapi.io",
    "wss://contracts-rococo-rpc.polkadot.io",
)
DEFAULT_ATTEMPT_TIMEOUT = 3.0
DEFAULT_INIT_TIMEOUT = 10.0
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_GAS_LIMIT = 1_000_000_000
DEFAULT_PROOF_SIZE = 131_072
DEFAULT_APP_NAME = "ink-counter"

# Address the original demo deployment reports when no chain is available
PLACEHOLDER_CONTRACT_ADDRESS = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


@dataclass(frozen=True)
class Endpoint:
    """A candidate RPC endpoint and how long to wait for it to become ready."""
    url: str
    timeout: float = DEFAULT_ATTEMPT_TIMEOUT

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class ClientConfig:
    contract_address: Optional[str] = None
    endpoints: tuple[Endpoint, ...] = field(
        default_factory=lambda: tuple(Endpoint(url) for url in DEFAULT_ENDPOINTS)
    )
    init_timeout: float = DEFAULT_INIT_TIMEOUT
    settle_delay: float = DEFAULT_SETTLE_DELAY
    gas_limit: int = DEFAULT_GAS_LIMIT
    proof_size: int = DEFAULT_PROOF_SIZE
    app_name: str = DEFAULT_APP_NAME

    def with_overrides(self, **changes) -> "ClientConfig":
        """Return a copy with the non-None keyword values applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def make_endpoints(urls: Sequence[str], timeout: float = DEFAULT_ATTEMPT_TIMEOUT) -> tuple[Endpoint, ...]:
    return tuple(Endpoint(url.strip(), timeout) for url in urls if url.strip())


def parse_endpoint_list(value: str, timeout: float = DEFAULT_ATTEMPT_TIMEOUT) -> tuple[Endpoint, ...]:
    """Parse a comma-separated endpoint list (empty string means no endpoints)."""
    return make_endpoints(value.split(","), timeout)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def save_env_value(key: str, value: str, env_path: Optional[Path] = None) -> Path:
    """Save a single key=value to the .env file, preserving other entries."""
    env_path = env_path or INKCOUNTER_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                k, v = stripped.split("=", 1)
                existing[k.strip()] = v.strip()

    existing[key] = value
    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # The file may hold keys, so keep it private on Unix
    if os.name != "nt":
        env_path.chmod(0o600)

    os.environ[key] = value
    return env_path


def load_config(env_path: Optional[Path] = None) -> ClientConfig:
    """
    Build the client configuration from the environment.

    Args:
        env_path: Path to .env file (default: ~/.inkcounter/.env)

    Returns:
        Immutable ClientConfig

    Raises:
        ValueError: If a numeric setting cannot be parsed
    """
    env_path = env_path or INKCOUNTER_ENV
    if env_path.exists():
        load_dotenv(env_path, override=False)

    attempt_timeout = _env_float("INK_COUNTER_ATTEMPT_TIMEOUT", DEFAULT_ATTEMPT_TIMEOUT)
    rpc = os.environ.get("INK_COUNTER_RPC")
    if rpc is None:
        endpoints = make_endpoints(DEFAULT_ENDPOINTS, attempt_timeout)
    else:
        endpoints = parse_endpoint_list(rpc, attempt_timeout)

    return ClientConfig(
        contract_address=os.environ.get("INK_COUNTER_CONTRACT") or None,
        endpoints=endpoints,
        init_timeout=_env_float("INK_COUNTER_INIT_TIMEOUT", DEFAULT_INIT_TIMEOUT),
        settle_delay=_env_float("INK_COUNTER_SETTLE_DELAY", DEFAULT_SETTLE_DELAY),
        gas_limit=_env_int("INK_COUNTER_GAS_LIMIT", DEFAULT_GAS_LIMIT),
        app_name=os.environ.get("INK_COUNTER_APP_NAME", DEFAULT_APP_NAME),
    )
