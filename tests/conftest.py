from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point ~/.inkcounter at a temp dir and clear settings from the environment."""
    env_path = tmp_path / ".inkcounter" / ".env"
    for name in (
        "PRIVATE_KEY",
        "INK_COUNTER_RPC",
        "INK_COUNTER_CONTRACT",
        "INK_COUNTER_ATTEMPT_TIMEOUT",
        "INK_COUNTER_INIT_TIMEOUT",
        "INK_COUNTER_SETTLE_DELAY",
        "INK_COUNTER_GAS_LIMIT",
        "INK_COUNTER_APP_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
    with patch("inkcounter.config.INKCOUNTER_ENV", env_path), patch(
        "inkcounter.sigil.eth.INKCOUNTER_ENV", env_path
    ), patch("inkcounter.cli.INKCOUNTER_ENV", env_path):
        yield env_path
