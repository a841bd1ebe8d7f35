"""ContractClient: mode selection, queries and the transaction lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from _fakes import ALL_METHODS, CONTRACT, FAKE_CONTRACT, DecliningProvider, FakeNode, make_client
from inkcounter.config import PLACEHOLDER_CONTRACT_ADDRESS, Endpoint
from inkcounter.errors import (
    DecodeError,
    NoSignerInstalled,
    SignerUnavailable,
    TransactionRejected,
    TransportError,
)
from inkcounter.pneuma.client import ClientState, Mode
from inkcounter.pneuma.simulation import SimulatedState, SimulationFallback
from inkcounter.pneuma.tx import verify_envelope
from inkcounter.sigil.eth import generate_eoa


def run(coro):
    return asyncio.run(coro)


class TestInitialize:
    def test_live_when_endpoint_reachable(self) -> None:
        client, connector = make_client({"down-1": "hang", "down-2": "fail", "reachable": "ok"})
        assert run(client.initialize()) == Mode.LIVE
        assert client.state == ClientState.READY
        assert client.connection.url == "reachable"
        assert connector.attempts == ["down-1", "down-2", "reachable"]

    def test_simulated_when_nothing_reachable(self) -> None:
        client, _ = make_client({"down-1": "hang", "down-2": "fail"})
        assert run(client.initialize()) == Mode.SIMULATED
        assert client.connection is None

    def test_simulated_with_empty_endpoint_list(self) -> None:
        client, connector = make_client({})
        assert run(client.initialize()) == Mode.SIMULATED
        assert connector.attempts == []

    def test_simulated_without_contract_address(self) -> None:
        client, connector = make_client(contract=None)
        assert run(client.initialize()) == Mode.SIMULATED
        assert connector.attempts == []

    def test_simulated_when_node_lacks_contracts(self) -> None:
        node = FakeNode(methods=frozenset({"rpc_methods", "system_health"}))
        client, connector = make_client(node=node)
        assert run(client.initialize()) == Mode.SIMULATED
        assert connector.connections[0].closed

    def test_overall_timeout_downgrades(self) -> None:
        behaviors = {f"slow-{i}": "hang" for i in range(5)}
        client, _ = make_client(behaviors)
        client.config = client.config.with_overrides(
            endpoints=tuple(Endpoint(url, 10.0) for url in behaviors),
            init_timeout=0.05,
        )
        assert run(client.initialize()) == Mode.SIMULATED

    def test_idempotent(self) -> None:
        client, connector = make_client()

        async def scenario():
            await client.initialize()
            await client.initialize()

        run(scenario())
        assert connector.attempts == ["reachable"]


class TestQuery:
    def test_live_value(self) -> None:
        client, _ = make_client(node=FakeNode(value=-7))
        snapshot = run(client.query())
        assert snapshot.value == -7
        assert snapshot.source == Mode.LIVE

    def test_lazy_initialization(self) -> None:
        client, connector = make_client()
        assert client.state == ClientState.UNINITIALIZED
        run(client.query())
        assert connector.attempts == ["reachable"]

    def test_transport_error_keeps_live_mode_and_snapshot(self) -> None:
        node = FakeNode(value=3)
        client, _ = make_client(node=node)

        async def scenario():
            first = await client.query()
            node.fail_next_call = True
            with pytest.raises(TransportError):
                await client.query()
            assert client.mode == Mode.LIVE
            assert client.snapshot == first
            return await client.query()

        assert run(scenario()).value == 3

    def test_short_return_data(self) -> None:
        node = FakeNode()
        node.return_data = "0x0100"
        client, _ = make_client(node=node)
        with pytest.raises(DecodeError):
            run(client.query())
        assert client.snapshot is None

    def test_null_return_data(self) -> None:
        node = FakeNode(value=5)
        client, _ = make_client(node=node)

        async def scenario():
            first = await client.query()
            node.call_result = {"result": {"Ok": {"flags": 0, "data": None}}}
            with pytest.raises(DecodeError):
                await client.query()
            return first

        first = run(scenario())
        assert client.snapshot == first

    def test_malformed_flags(self) -> None:
        node = FakeNode()
        node.call_result = {"result": {"Ok": {"flags": "reverted", "data": "0x00000000"}}}
        client, _ = make_client(node=node)
        with pytest.raises(DecodeError, match="flags"):
            run(client.query())
        assert client.mode == Mode.LIVE

    def test_contract_error_result(self) -> None:
        node = FakeNode()
        node.call_result = {"result": {"Err": {"Module": {"index": 8, "error": "0x05"}}}}
        client, _ = make_client(node=node)
        with pytest.raises(TransportError, match="failed"):
            run(client.query())

    def test_reverted_call(self) -> None:
        node = FakeNode()
        node.call_result = {"result": {"Ok": {"flags": 1, "data": "0x00000000"}}}
        client, _ = make_client(node=node)
        with pytest.raises(TransportError, match="reverted"):
            run(client.query())

    def test_reconnects_after_dropped_connection(self) -> None:
        client, connector = make_client()

        async def scenario():
            await client.initialize()
            connector.connections[0].drop_next = True
            with pytest.raises(TransportError):
                await client.query()
            return await client.query()

        assert run(scenario()).value == 0
        assert connector.attempts == ["reachable", "reachable"]
        assert client.mode == Mode.LIVE

    def test_reconnect_to_node_without_contracts(self) -> None:
        node = FakeNode()
        client, connector = make_client(node=node)

        async def scenario():
            await client.initialize()
            connector.connections[0].drop_next = True
            with pytest.raises(TransportError):
                await client.query()
            node.methods = ALL_METHODS - {"contracts_call"}
            with pytest.raises(TransportError, match="does not expose contracts_call"):
                await client.query()

        run(scenario())
        assert connector.connections[1].closed
        assert client.connection is None
        assert client.mode == Mode.LIVE


class TestSimulatedLifecycle:
    def test_increment_then_decrement(self) -> None:
        client, _ = make_client({})

        async def scenario():
            await client.connect_wallet()
            values = [(await client.query()).value]
            receipt = await client.increment()
            values.append((await client.query()).value)
            await client.decrement()
            values.append((await client.query()).value)
            values.append((await client.query()).value)
            return receipt, values

        receipt, values = run(scenario())
        assert values == [0, 1, 0, 0]
        assert receipt.mode == Mode.SIMULATED
        assert receipt.settled
        assert receipt.tx_hash is None

    def test_clients_share_state_only_when_given_the_same_one(self) -> None:
        state = SimulatedState()
        a, _ = make_client({}, simulation=SimulationFallback(state))
        b, _ = make_client({}, simulation=SimulationFallback(state))
        c, _ = make_client({})

        async def scenario():
            await a.connect_wallet()
            await a.increment()
            return (await b.query()).value, (await c.query()).value

        assert run(scenario()) == (1, 0)


class TestSigner:
    @pytest.mark.parametrize("live", [True, False])
    def test_increment_without_signer(self, live: bool) -> None:
        node = FakeNode(value=4)
        client, _ = make_client({"reachable": "ok"} if live else {}, node=node)

        async def scenario():
            before = (await client.query()).value
            with pytest.raises(SignerUnavailable):
                await client.increment()
            with pytest.raises(SignerUnavailable):
                await client.decrement()
            return before, (await client.query()).value

        before, after = run(scenario())
        assert before == after
        assert node.submitted == []
        assert client.state == ClientState.READY

    def test_no_wallet_installed(self) -> None:
        client, _ = make_client(with_wallet=False)

        async def scenario():
            with pytest.raises(NoSignerInstalled):
                await client.connect_wallet()
            return await client.query()

        assert run(scenario()).value == 0

    def test_revoked_account(self) -> None:
        client, _ = make_client({})

        async def scenario():
            account = await client.connect_wallet()
            client.gateway._known[account.provider].revoke(account.address)
            with pytest.raises(SignerUnavailable):
                await client.increment()
            return (await client.query()).value

        assert run(scenario()) == 0


class TestLiveTransactions:
    def test_increment_submits_signed_call(self) -> None:
        node = FakeNode(value=10)
        client, _ = make_client(node=node)

        async def scenario():
            account = await client.connect_wallet()
            receipt = await client.increment()
            snapshot = await client.refresh()
            return account, receipt, snapshot

        account, receipt, snapshot = run(scenario())

        assert receipt.mode == Mode.LIVE
        assert receipt.tx_hash and receipt.tx_hash.startswith("0x")
        assert not receipt.settled
        assert snapshot.value == 11

        envelope = node.submitted[0]
        assert verify_envelope(envelope)
        assert envelope["signer"] == account.address
        call = envelope["call"]
        assert call["dest"] == CONTRACT
        assert call["value"] == 0
        assert call["storageDepositLimit"] is None
        assert call["input"] == "0x12bd51d3"
        assert call["gasLimit"] == {"refTime": 1_000_000_000, "proofSize": 131_072}

    def test_decrement(self) -> None:
        node = FakeNode(value=0)
        client, _ = make_client(node=node)

        async def scenario():
            await client.connect_wallet()
            await client.decrement()
            return await client.refresh()

        assert run(scenario()).value == -1
        assert node.submitted[0]["call"]["input"] == "0x4151ffe0"

    def test_rejected_transaction_does_not_touch_state(self) -> None:
        node = FakeNode(value=2)
        node.reject_submissions = True
        client, _ = make_client(node=node)

        async def scenario():
            await client.connect_wallet()
            before = await client.query()
            with pytest.raises(TransactionRejected, match="Invalid Transaction"):
                await client.increment()
            return before

        before = run(scenario())
        assert client.snapshot == before
        assert node.value == 2
        assert client.state == ClientState.READY
        assert client.mode == Mode.LIVE

    def test_declined_signature_is_rejected(self) -> None:
        node = FakeNode(value=7)
        client, _ = make_client(node=node, provider=DecliningProvider([generate_eoa()[0]]))

        async def scenario():
            await client.connect_wallet()
            with pytest.raises(TransactionRejected, match="Signing declined: user declined signing"):
                await client.increment()
            return (await client.query()).value

        assert run(scenario()) == 7
        assert node.submitted == []
        assert client.state == ClientState.READY

    def test_transport_failure_during_submit(self) -> None:
        client, connector = make_client({"reachable": "ok"})

        async def scenario():
            await client.connect_wallet()
            await client.initialize()
            connector.connections[0].drop_next = True
            with pytest.raises(TransportError):
                await client.increment()

        run(scenario())
        assert client.state == ClientState.READY

    def test_refresh_waits_for_settlement(self) -> None:
        client, _ = make_client()
        client.config = client.config.with_overrides(settle_delay=0.05)

        async def scenario():
            await client.initialize()
            loop = asyncio.get_running_loop()
            started = loop.time()
            await client.refresh()
            return loop.time() - started

        assert run(scenario()) >= 0.04


class TestDeploy:
    def test_live_deploy(self) -> None:
        node = FakeNode(value=99, methods=ALL_METHODS)
        client, _ = make_client(node=node, contract="")

        async def scenario():
            await client.connect_wallet()
            address, receipt = await client.deploy(b"\x00asm\x01\x00\x00\x00", init_value=5)
            return address, receipt, await client.query()

        address, receipt, snapshot = run(scenario())
        assert address == FAKE_CONTRACT
        assert receipt.mode == Mode.LIVE
        assert receipt.operation == "new"
        assert node.submitted[0]["call"]["data"] == "0x9bae9d5e05000000"
        assert snapshot.value == 5
        assert client.contract_address == FAKE_CONTRACT

    def test_simulated_deploy(self) -> None:
        client, _ = make_client({}, contract="")

        async def scenario():
            await client.connect_wallet()
            address, receipt = await client.deploy(b"\x00asm")
            return address, receipt, await client.query()

        address, receipt, snapshot = run(scenario())
        assert address == PLACEHOLDER_CONTRACT_ADDRESS
        assert receipt.operation == "default"
        assert receipt.mode == Mode.SIMULATED
        assert snapshot.value == 0

    def test_deploy_requires_signer(self) -> None:
        client, _ = make_client({}, contract="")
        with pytest.raises(SignerUnavailable):
            run(client.deploy(b"\x00asm"))


class TestTeardown:
    def test_close_releases_connection(self) -> None:
        client, connector = make_client()

        async def scenario():
            async with client:
                assert client.mode == Mode.LIVE

        run(scenario())
        assert connector.connections[0].closed
        assert client.state == ClientState.CLOSED

    def test_closed_client_refuses_work(self) -> None:
        client, _ = make_client()

        async def scenario():
            await client.initialize()
            await client.close()
            await client.query()

        with pytest.raises(TransportError, match="closed"):
            run(scenario())
