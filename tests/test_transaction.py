import json

import httpx
import pytest
import pytest_asyncio
import respx

from deezel.network import Network
from deezel.primitives import address_to_script
from deezel.rpc import RpcClient, RpcConfig, RpcError
from deezel.runestone import Runestone
from deezel.transaction import (
    DUST_OUTPUT_VALUE,
    TransactionConfig,
    TransactionConstructor,
)
from deezel.wallet import WalletConfig, WalletManager

BITCOIN_URL = "http://localhost:18332"
METASHREW_URL = "http://localhost:8080"


@pytest_asyncio.fixture
async def constructor(tmp_path):
    wallet_config = WalletConfig(
        wallet_path=str(tmp_path / "test_wallet.dat"),
        network=Network.TESTNET,
        bitcoin_rpc_url=BITCOIN_URL,
        metashrew_rpc_url=METASHREW_URL,
    )
    wallet_manager = WalletManager(wallet_config)
    rpc_client = RpcClient(RpcConfig(BITCOIN_URL, METASHREW_URL))
    built = TransactionConstructor(wallet_manager, rpc_client, TransactionConfig())
    yield built
    await rpc_client.aclose()
    await wallet_manager.rpc_client.aclose()


@pytest.mark.asyncio
async def test_transaction_constructor_creation(constructor):
    assert constructor.config.network == Network.TESTNET


def test_default_config_values():
    config = TransactionConfig()
    assert (config.network, config.fee_rate, config.max_inputs, config.max_outputs) == (
        Network.TESTNET,
        1.0,
        100,
        20,
    )


@pytest.mark.asyncio
async def test_minting_transaction_layout(constructor):
    tx = await constructor.create_minting_transaction()
    assert tx.version == 2
    assert tx.lock_time == 0
    assert tx.inputs == []
    assert len(tx.outputs) == 2
    dust, op_return = tx.outputs
    assert dust.value == DUST_OUTPUT_VALUE == 546
    assert dust.script_pubkey == constructor.wallet_manager.descriptor.script_at(0)
    assert op_return.value == 0
    assert op_return.script_pubkey == Runestone.new_diesel().encipher()


@pytest.mark.asyncio
async def test_minting_transaction_carries_diesel_runestone(constructor):
    tx = await constructor.create_minting_transaction()
    runestone = Runestone.extract(tx)
    assert runestone is not None
    assert runestone.is_diesel()


@pytest.mark.asyncio
async def test_successive_transactions_use_new_addresses(constructor):
    first = await constructor.create_minting_transaction()
    second = await constructor.create_minting_transaction()
    assert first.outputs[0].script_pubkey != second.outputs[0].script_pubkey
    expected = address_to_script(constructor.wallet_manager.descriptor.address_at(1, "tb"))
    assert second.outputs[0].script_pubkey == expected


@pytest.mark.asyncio
async def test_trace_transaction_calls_alkanes_trace(constructor):
    txid = "ab" * 32
    with respx.mock:
        route = respx.post(METASHREW_URL).mock(
            return_value=httpx.Response(
                200, json={"jsonrpc": "2.0", "result": {"events": []}, "id": 0}
            )
        )
        trace = await constructor.trace_transaction(txid)
    assert trace == {"events": []}
    body = json.loads(route.calls.last.request.content)
    assert body["method"] == "alkanes_trace"
    assert body["params"] == [txid, 2]


@pytest.mark.asyncio
async def test_broadcast_returns_txid_and_traces(constructor):
    tx = await constructor.create_minting_transaction()
    with respx.mock:
        route = respx.post(METASHREW_URL).mock(
            return_value=httpx.Response(200, json={"jsonrpc": "2.0", "result": [], "id": 0})
        )
        txid = await constructor.broadcast_transaction(tx)
    assert txid == tx.txid()
    assert len(txid) == 64
    body = json.loads(route.calls.last.request.content)
    assert body["params"] == [txid, 2]


@pytest.mark.asyncio
async def test_broadcast_propagates_trace_error(constructor):
    tx = await constructor.create_minting_transaction()
    with respx.mock:
        respx.post(METASHREW_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "result": None,
                    "error": {"code": -5, "message": "not found"},
                    "id": 0,
                },
            )
        )
        with pytest.raises(RpcError) as info:
            await constructor.broadcast_transaction(tx)
    assert info.value.code == -5