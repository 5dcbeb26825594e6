# deezel

A library for working with DIESEL tokens on Bitcoin. It builds the
Runestone that mints them and decodes Runestones found in transactions.
It talks to Bitcoin and Metashrew nodes through a Sandshrew JSON-RPC
endpoint, watches the chain for new blocks, and derives receive
addresses from a watch-only descriptor wallet.

It needs Python 3.10 or later. At runtime it depends on `httpx` and
`pycryptodome`. The `test` extra adds `pytest`, `pytest-asyncio` and
`respx`.

## Modules

| Module | Contents |
| --- | --- |
| `deezel.network` | `Network`, `NetworkParams`, `get_rpc_url`: address prefixes and RPC endpoints |
| `deezel.primitives` | `Transaction`, `TxIn`, `TxOut`, `Instruction`, `iter_instructions`, `ScriptError`, segwit address encoding (`encode_segwit_address`, `decode_segwit_address`), `address_to_script` |
| `deezel.runestone` | `Runestone` and the varint helpers `encode_varint`, `decode_varint`, `decode_all` |
| `deezel.decoder` | `decode_runestone`, `decode_protostone` and helpers, `RunestoneDecodeError` |
| `deezel.rpc` | `RpcConfig`, `RpcClient` (async), `RpcError` |
| `deezel.esplora` | `SandshrewEsploraBackend`: Esplora queries over Sandshrew RPC |
| `deezel.monitor` | `BlockMonitor`, `BlockMonitorConfig` and the events `NewBlock`, `TransactionConfirmed`, `MonitorError` |
| `deezel.keys` | `ExtendedPublicKey`, `WpkhDescriptor`, `hash160`, `KeyError_` |
| `deezel.wallet` | `WalletConfig`, `Balance`, `WalletManager` |
| `deezel.transaction` | `TransactionConfig`, `TransactionConstructor` |

## Network presets

```python
from deezel.network import NetworkParams, get_rpc_url

params = NetworkParams.from_provider("regtest")
print(params.bech32_prefix)                     # "bcrt"

custom = NetworkParams.from_magic("05:00:bc")   # p2sh:p2pkh:bech32, prefixes in hex
print(custom.p2sh_prefix, custom.p2pkh_prefix)  # 5 0

print(get_rpc_url("localhost"))                 # "http://localhost:18888"
```

The provider names are `mainnet`, `testnet`, `signet`, `regtest` and
`localhost`. `get_rpc_url` also accepts a full `http://` or `https://`
URL and returns it unchanged. For any other name it returns the mainnet
endpoint. `NetworkParams.from_provider` and `NetworkParams.from_magic`
raise `ValueError` for an unknown provider or a malformed magic string.

## Building and reading a DIESEL Runestone

```python
from deezel.primitives import Transaction, TxOut
from deezel.runestone import Runestone

runestone = Runestone.new_diesel()   # protocol tag 1, message [2, 0, 77]
script = runestone.encipher()        # OP_RETURN OP_PUSHNUM_13 <payload pushes>

tx = Transaction(outputs=[TxOut(value=0, script_pubkey=script)])
found = Runestone.extract(tx)
assert found is not None and found.is_diesel()
```

The payload is a run of LEB128 varints. Each protocol value is written
as tag 13 followed by the value. Payloads longer than 520 bytes are
split over several data pushes. `Runestone.extract` returns `None` when
there is no Runestone or the payload is malformed.

## Decoding any Runestone

```python
from deezel.decoder import decode_runestone

info = decode_runestone(tx)
print(info["output_index"], info["protocol_tag"], info["message_bytes"])
print(info["protostone"]["type"])    # "DIESEL", "Alkane", "Protorune", ...
```

The result also holds `transaction_id`, `protocol_data`, `all_tags` and
`raw_integers`. `decode_runestone` raises `RunestoneDecodeError` in two
cases: the transaction has no Runestone, or the Runestone's payload is
malformed.

## Talking to a node

```python
import asyncio

from deezel.rpc import RpcClient, RpcConfig


async def main():
    config = RpcConfig(
        bitcoin_rpc_url="http://localhost:18888",
        metashrew_rpc_url="http://localhost:18888",
    )
    async with RpcClient(config) as client:
        print(await client.get_block_count(), await client.get_metashrew_height())


asyncio.run(main())
```

Methods whose names start with `btc_` are sent to the Bitcoin endpoint
as JSON-RPC 1.0. All other methods go to the Metashrew endpoint as
JSON-RPC 2.0. Any method can be called through `RpcClient.call`. A
transport failure, a non-success HTTP status, an unparsable reply or an
error reply raises `RpcError`.

`SandshrewEsploraBackend` wraps a client to provide these calls:

- `get_transaction_details(txid)`, which returns a decoded `Transaction`;
- the address queries for UTXOs, transactions and mempool transactions;
- `broadcast_transaction(tx_hex)`, which calls `esplora_broadcast`.

## Watching for blocks

`BlockMonitor(rpc_client, config)` polls `btc_getblockcount` and
`metashrew_height`. It logs a warning when the Metashrew height is not
one above the Bitcoin height. When the height rises, it fetches the
block hash with `btc_getblockhash` and publishes a `NewBlock` event.

`BlockMonitorConfig` sets three values, all in seconds except the retry
count:

| Setting | Default |
| --- | --- |
| `polling_interval` | 30 |
| `max_retries` | 5 |
| `retry_delay` | 5 |

After `max_retries` failed checks in a row, the monitor publishes a
`MonitorError` and stops. Await `start()` to begin polling in a
background task. Iterate `events()` with `async for` to receive events,
and await `stop()` to cancel polling.

## Wallet

`WalletManager(WalletConfig(...))` derives P2WPKH receive addresses from
a `wpkh(...)` descriptor over an extended public key. By default it
uses a built-in testnet `tpub`, so the default works for `TESTNET` and
`REGTEST`. For `Network.BITCOIN`, pass mainnet descriptors.

- `get_address()` returns the next address.
- `save()` writes the next address index to `wallet_path` as JSON, and
  the write is atomic.
- An existing file is loaded when the wallet is created.
- `sync()` only compares the Bitcoin and Metashrew heights and logs the
  balance.

## Minting

`TransactionConstructor(wallet_manager, rpc_client, config)` provides
two steps:

- `create_minting_transaction()` builds a transaction with a 546-sat
  dust output, paid to a fresh wallet address, and an `OP_RETURN`
  output holding the DIESEL Runestone.
- `broadcast_transaction(tx)` computes the txid and traces it with
  `alkanes_trace` at vout 2, then returns the txid.

## What it does not do

- There is no command-line program. Everything is used as a library.
- The wallet is watch-only. It holds no private keys and signs nothing.
- The wallet does not scan the chain for its coins. `get_balance()`
  always reports zero.
- Minting transactions have no inputs, no fee and no change.
  `TransactionConfig` settings (`fee_rate`, `max_inputs`,
  `max_outputs`) are carried but not used to select coins.
- `TransactionConstructor.broadcast_transaction` does not send the
  transaction to the network. To submit raw hex, use
  `SandshrewEsploraBackend.broadcast_transaction`.
- The monitor never emits `TransactionConfirmed`. It tracks only new
  blocks.