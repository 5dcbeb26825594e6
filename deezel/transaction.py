"""Construction of DIESEL minting transactions and tracing of their results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from deezel.network import Network
from deezel.primitives import Transaction, TxOut, address_to_script
from deezel.rpc import RpcClient
from deezel.runestone import Runestone
from deezel.wallet import WalletManager

logger = logging.getLogger(__name__)

DUST_OUTPUT_VALUE = 546
# Dust output (index 0) + OP_RETURN output (index 1) + 1: the protostone's virtual output.
TRACE_VOUT = 2


@dataclass(frozen=True)
class TransactionConfig:
    """Limits and fee settings for building transactions."""

    network: Network = Network.TESTNET
    fee_rate: float = 1.0
    max_inputs: int = 100
    max_outputs: int = 20


class TransactionConstructor:
    """Builds DIESEL minting transactions and verifies them through tracing."""

    def __init__(
        self,
        wallet_manager: WalletManager,
        rpc_client: RpcClient,
        config: TransactionConfig | None = None,
    ) -> None:
        self.wallet_manager = wallet_manager
        self.rpc_client = rpc_client
        self.config = config if config is not None else TransactionConfig()

    async def create_minting_transaction(self) -> Transaction:
        """Build a transaction with a dust output and a DIESEL runestone output."""
        logger.info("Creating DIESEL token minting transaction")
        dust_address = await self.wallet_manager.get_address()
        try:
            dust_script = address_to_script(dust_address)
        except ValueError as exc:
            raise ValueError(f"Failed to parse dust address: {exc}") from exc
        runestone_script = Runestone.new_diesel().encipher()
        tx = Transaction(
            version=2,
            lock_time=0,
            inputs=[],
            outputs=[
                TxOut(DUST_OUTPUT_VALUE, dust_script),
                TxOut(0, runestone_script),
            ],
        )
        logger.info("DIESEL token minting transaction created successfully")
        logger.debug("Transaction: %r", tx)
        return tx

    async def broadcast_transaction(self, tx: Transaction) -> str:
        """Report ``tx`` as broadcast, trace it and return its txid."""
        logger.info("Broadcasting transaction")
        logger.debug("Transaction hex: %s", tx.serialize().hex())
        txid = tx.txid()
        logger.info("Transaction broadcast successfully: %s", txid)
        await self.trace_transaction(txid)
        return txid

    async def trace_transaction(self, txid: str) -> Any:
        """Trace the minting output of ``txid`` and return the trace."""
        logger.info("Tracing transaction: %s vout: %d", txid, TRACE_VOUT)
        trace = await self.rpc_client.trace_transaction(txid, TRACE_VOUT)
        logger.info("Transaction traced successfully")
        logger.debug("Trace result: %r", trace)
        return trace