"""
CLI integration tests using Click's test runner.

Every command runs against an empty endpoint list, so the client falls
back to the simulated counter and no network access is needed.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from inkcounter.cli import cli
from inkcounter.config import PLACEHOLDER_CONTRACT_ADDRESS
from inkcounter.sigil.eth import generate_eoa, get_address


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def wallet(monkeypatch: pytest.MonkeyPatch) -> tuple[str, str]:
    private_key, address = generate_eoa()
    monkeypatch.setenv("PRIVATE_KEY", private_key)
    return private_key, address


@pytest.fixture()
def code_file(tmp_path: Path) -> Path:
    path = tmp_path / "counter.wasm"
    path.write_bytes(b"\x00asm\x01\x00\x00\x00")
    return path


class TestVersionAndInfo:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_info_without_wallet(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["info"])
        assert result.exit_code == 0
        assert "not set (simulated mode)" in result.output
        assert "not initialized" in result.output

    def test_info_rejects_bad_config(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INK_COUNTER_SETTLE_DELAY", "later")
        result = runner.invoke(cli, ["info"])
        assert result.exit_code == 1
        assert "INK_COUNTER_SETTLE_DELAY" in result.output


class TestIdentity:
    def test_whoami_without_wallet(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["whoami"])
        assert result.exit_code == 1
        assert "No wallet found" in result.output

    def test_keygen_then_whoami(self, runner: CliRunner, isolated_home: Path) -> None:
        result = runner.invoke(cli, ["keygen"])
        assert result.exit_code == 0
        assert isolated_home.exists()

        whoami = runner.invoke(cli, ["whoami"])
        assert whoami.exit_code == 0
        address = whoami.output.split("Address:")[1].strip()
        assert address in result.output

    def test_keygen_refuses_to_overwrite(self, runner: CliRunner, wallet: tuple[str, str]) -> None:
        result = runner.invoke(cli, ["keygen"])
        assert result.exit_code == 1
        assert get_address(wallet[0]) in result.output


class TestCounterCommands:
    def test_query_simulated(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["query", "--rpc", ""])
        assert result.exit_code == 0
        assert "Counter: 0" in result.output
        assert "simulated" in result.output

    def test_increment_requires_wallet(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["increment", "--rpc", ""])
        assert result.exit_code == 11
        assert "No wallet provider found" in result.output

    def test_increment_with_wallet(self, runner: CliRunner, wallet: tuple[str, str]) -> None:
        result = runner.invoke(cli, ["increment", "--rpc", ""])
        assert result.exit_code == 0
        assert "Counter: 1" in result.output
        assert wallet[1] in result.output

    def test_malformed_key_exits_cleanly(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRIVATE_KEY", "not-a-key")
        result = runner.invoke(cli, ["increment", "--rpc", ""])
        assert result.exit_code == 11
        assert "not a valid private key" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_decrement_with_wallet(self, runner: CliRunner, wallet: tuple[str, str]) -> None:
        result = runner.invoke(cli, ["decrement", "--rpc", ""])
        assert result.exit_code == 0
        assert "Counter: -1" in result.output

    def test_unreachable_endpoint_falls_back(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["query", "--rpc", "ws://127.0.0.1:1", "--contract", PLACEHOLDER_CONTRACT_ADDRESS, "--timeout", "1"]
        )
        assert result.exit_code == 0
        assert "Counter: 0" in result.output
        assert "no live contract reachable" in result.output

    def test_each_invocation_starts_a_fresh_simulation(self, runner: CliRunner, wallet: tuple[str, str]) -> None:
        first = runner.invoke(cli, ["increment", "--rpc", ""])
        second = runner.invoke(cli, ["increment", "--rpc", ""])
        assert "Counter: 1" in first.output
        assert "Counter: 1" in second.output

    def test_shell_session_keeps_simulated_state(self, runner: CliRunner, wallet: tuple[str, str]) -> None:
        result = runner.invoke(cli, ["shell", "--rpc", ""], input="w\ni\ni\nd\nbogus\nexit\n")
        assert result.exit_code == 0
        assert "Counter: 2" in result.output
        assert "Unknown command: bogus" in result.output
        assert "Counter: 1" in result.output


class TestDeploy:
    def test_simulated_deploy_does_not_save(
        self, runner: CliRunner, wallet: tuple[str, str], code_file: Path, isolated_home: Path
    ) -> None:
        result = runner.invoke(cli, ["deploy", str(code_file), "--rpc", ""])
        assert result.exit_code == 0
        assert f"SUCCESS: Contract deployed at {PLACEHOLDER_CONTRACT_ADDRESS}" in result.output
        assert "simulated" in result.output
        assert not isolated_home.exists()

    def test_deploy_requires_wallet(self, runner: CliRunner, code_file: Path) -> None:
        result = runner.invoke(cli, ["deploy", str(code_file), "--rpc", ""])
        assert result.exit_code == 11
        assert "Deployment failed" in result.output

    def test_deploy_rejects_out_of_range_init(
        self, runner: CliRunner, wallet: tuple[str, str], code_file: Path
    ) -> None:
        result = runner.invoke(cli, ["deploy", str(code_file), "--rpc", "", "--init", str(2**31)])
        assert result.exit_code == 2
        assert "--init" in result.output

    def test_deploy_rejects_empty_code(self, runner: CliRunner, wallet: tuple[str, str], tmp_path: Path) -> None:
        empty = tmp_path / "empty.wasm"
        empty.write_bytes(b"")
        result = runner.invoke(cli, ["deploy", str(empty), "--rpc", ""])
        assert result.exit_code == 1
        assert "empty" in result.output
