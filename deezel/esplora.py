"""Esplora-style blockchain queries made through the Sandshrew RPC."""

from __future__ import annotations

import binascii
import logging
from typing import Any

from deezel.primitives import Transaction
from deezel.rpc import RpcClient

logger = logging.getLogger(__name__)


class SandshrewEsploraBackend:
    """Blockchain data source backed by Sandshrew's esplora methods."""

    def __init__(self, rpc_client: RpcClient) -> None:
        logger.info("Creating Sandshrew Esplora backend")
        self.rpc_client = rpc_client

    async def get_transaction_details(self, txid: str) -> Transaction:
        """Fetch and decode the transaction with id ``txid``."""
        logger.debug("Getting transaction details for %s", txid)
        tx_hex = await self.rpc_client.call("esplora_tx::hex", [str(txid)])
        if not isinstance(tx_hex, str):
            raise ValueError("Transaction hex not found in response")
        try:
            raw = bytes.fromhex(tx_hex)
        except (ValueError, binascii.Error) as exc:
            raise ValueError("Failed to decode transaction hex") from exc
        try:
            return Transaction.from_bytes(raw)
        except ValueError as exc:
            raise ValueError(f"Failed to deserialize transaction: {exc}") from exc

    async def get_address_utxos(self, address: str) -> Any:
        return await self.rpc_client.call("esplora_address::utxo", [address])

    async def get_address_transactions(self, address: str) -> Any:
        return await self.rpc_client.call("esplora_address::txs", [address])

    async def get_address_mempool_transactions(self, address: str) -> Any:
        return await self.rpc_client.call("esplora_address::txs:mempool", [address])

    async def broadcast_transaction(self, tx_hex: str) -> Any:
        logger.debug("Broadcasting transaction")
        return await self.rpc_client.call("esplora_broadcast", [tx_hex])