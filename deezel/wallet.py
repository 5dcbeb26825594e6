"""Wallet management: address derivation, persisted state and sync checks."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from deezel.esplora import SandshrewEsploraBackend
from deezel.keys import KeyError_, WpkhDescriptor
from deezel.network import Network, NetworkParams
from deezel.rpc import RpcClient, RpcConfig

logger = logging.getLogger(__name__)

_TPUB = (
    "tpubDDYkZojQFQjht8Tm4jsS3iuEmKjTiEGjG6KnuFNKKJb5A6ZUCUZKdvLdSDWofKi4ToRCwb9poe1X"
    "dqfUnP4jaJjCB2Zwv11ZLgSbnZSNecE"
)
DEFAULT_EXTERNAL_DESCRIPTOR = f"wpkh([c258d2e4/84h/1h/0h]{_TPUB}/0/*)"
DEFAULT_INTERNAL_DESCRIPTOR = f"wpkh([c258d2e4/84h/1h/0h]{_TPUB}/1/*)"

_NETWORK_PARAMS = {
    Network.BITCOIN: NetworkParams.mainnet(),
    Network.TESTNET: NetworkParams.testnet(),
    Network.REGTEST: NetworkParams.regtest(),
}


@dataclass(frozen=True)
class WalletConfig:
    """Where the wallet lives and which endpoints it talks to."""

    wallet_path: str | os.PathLike[str]
    network: Network
    bitcoin_rpc_url: str
    metashrew_rpc_url: str
    external_descriptor: str = DEFAULT_EXTERNAL_DESCRIPTOR
    internal_descriptor: str = DEFAULT_INTERNAL_DESCRIPTOR


@dataclass(frozen=True)
class Balance:
    """Wallet balance in satoshis."""

    immature: int = 0
    trusted_pending: int = 0
    untrusted_pending: int = 0
    confirmed: int = 0

    @property
    def total(self) -> int:
        return self.immature + self.trusted_pending + self.untrusted_pending + self.confirmed


def _check_network(descriptor: WpkhDescriptor, network: Network) -> None:
    if descriptor.key.is_testnet == (network is Network.BITCOIN):
        raise KeyError_(f"Invalid network: key does not belong to {network.value}")


class WalletManager:
    """A descriptor wallet whose state is kept in a file."""

    def __init__(self, config: WalletConfig) -> None:
        logger.info("Initializing wallet manager")
        logger.debug("Wallet path: %s", config.wallet_path)
        logger.debug("Network: %s", config.network.value)
        self.config = config
        self.descriptor = WpkhDescriptor.parse(config.external_descriptor)
        self.change_descriptor = WpkhDescriptor.parse(config.internal_descriptor)
        _check_network(self.descriptor, config.network)
        _check_network(self.change_descriptor, config.network)
        self._hrp = _NETWORK_PARAMS[config.network].bech32_prefix
        self._path = Path(config.wallet_path)
        if self._path.exists():
            logger.info("Loading wallet from %s", self._path)
            self._next_index = self._load()
        else:
            logger.info("Creating new wallet")
            self._next_index = 0
        self._balance = Balance()
        self._lock = asyncio.Lock()
        self.rpc_client = RpcClient(
            RpcConfig(
                bitcoin_rpc_url=config.bitcoin_rpc_url,
                metashrew_rpc_url=config.metashrew_rpc_url,
            )
        )
        self.backend = SandshrewEsploraBackend(self.rpc_client)
        logger.info("Wallet initialized successfully")

    def _load(self) -> int:
        try:
            state = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid wallet file {self._path}: {exc}") from exc
        if not isinstance(state, dict):
            raise ValueError(f"Invalid wallet file {self._path}")
        if state.get("network") != self.config.network.value:
            raise ValueError(
                f"Wallet file {self._path} belongs to network {state.get('network')!r}"
            )
        next_index = state.get("next_index")
        if isinstance(next_index, bool) or not isinstance(next_index, int) or next_index < 0:
            raise ValueError(f"Invalid wallet file {self._path}: bad next_index")
        return next_index

    async def get_address(self) -> str:
        """Reveal and return the next unused receiving address."""
        async with self._lock:
            index = self._next_index
            self._next_index += 1
        return self.descriptor.address_at(index, self._hrp)

    async def sync(self) -> None:
        """Check the indexer is in step with the chain and report the balance."""
        logger.info("Syncing wallet with blockchain")
        bitcoin_height = await self.rpc_client.get_block_count()
        metashrew_height = await self.rpc_client.get_metashrew_height()
        if metashrew_height != bitcoin_height + 1:
            logger.warning(
                "Metashrew height (%d) is not Bitcoin height (%d) + 1",
                metashrew_height,
                bitcoin_height,
            )
        logger.info("Wallet sync completed")
        balance = await self.get_balance()
        logger.info(
            "Wallet balance: %d sats (confirmed: %d sats, unconfirmed: %d sats)",
            balance.confirmed + balance.trusted_pending + balance.untrusted_pending,
            balance.confirmed,
            balance.untrusted_pending,
        )

    async def save(self) -> None:
        """Write the wallet state to its file atomically."""
        logger.info("Saving wallet state to %s", self._path)
        async with self._lock:
            state = {"network": self.config.network.value, "next_index": self._next_index}
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, delete=False, suffix=".tmp"
        ) as handle:
            json.dump(state, handle)
            temp_name = handle.name
        os.replace(temp_name, self._path)
        logger.info("Wallet state saved successfully")

    async def get_balance(self) -> Balance:
        async with self._lock:
            return self._balance