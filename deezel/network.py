"""Address-encoding parameters for the supported Bitcoin networks."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

_HEX_BYTE = re.compile(r"\+?[0-9A-Fa-f]+")

MAINNET_RPC_URL = "https://mainnet.sandshrew.io/v2/lasereyes"
SIGNET_RPC_URL = "https://signet.sandshrew.io/v2/lasereyes"
LOCAL_RPC_URL = "http://localhost:18888"


class Network(enum.Enum):
    """Bitcoin network a wallet operates on."""

    BITCOIN = "bitcoin"
    TESTNET = "testnet"
    REGTEST = "regtest"


def _parse_prefix(text: str, name: str) -> int:
    if not _HEX_BYTE.fullmatch(text):
        raise ValueError(f"Invalid {name}: {text}")
    value = int(text, 16)
    if value > 0xFF:
        raise ValueError(f"Invalid {name}: {text}")
    return value


@dataclass(frozen=True)
class NetworkParams:
    """Prefixes used when encoding addresses for a network."""

    bech32_prefix: str
    p2pkh_prefix: int
    p2sh_prefix: int
    network: Network

    @classmethod
    def mainnet(cls) -> NetworkParams:
        return cls("bc", 0x00, 0x05, Network.BITCOIN)

    @classmethod
    def testnet(cls) -> NetworkParams:
        return cls("tb", 0x6F, 0xC4, Network.TESTNET)

    @classmethod
    def regtest(cls) -> NetworkParams:
        return cls("bcrt", 0x64, 0xC4, Network.REGTEST)

    @classmethod
    def from_magic(cls, magic: str) -> NetworkParams:
        """Parse ``"p2sh_prefix:p2pkh_prefix:bech32_prefix"`` (hex prefixes)."""
        parts = magic.split(":")
        if len(parts) != 3:
            raise ValueError(
                "Invalid magic format. Expected "
                f"'p2sh_prefix:p2pkh_prefix:bech32_prefix', got '{magic}'"
            )
        p2sh_text, p2pkh_text, bech32_prefix = parts
        p2sh_prefix = _parse_prefix(p2sh_text, "p2sh_prefix")
        p2pkh_prefix = _parse_prefix(p2pkh_text, "p2pkh_prefix")
        return cls(bech32_prefix, p2pkh_prefix, p2sh_prefix, Network.BITCOIN)

    @classmethod
    def from_provider(cls, provider: str) -> NetworkParams:
        """Return the parameters for a provider preset name."""
        if provider == "mainnet":
            return cls.mainnet()
        if provider in ("testnet", "signet"):
            return cls.testnet()
        if provider in ("regtest", "localhost"):
            return cls.regtest()
        raise ValueError(f"Unknown provider: {provider}")


def get_rpc_url(provider: str) -> str:
    """Return the RPC URL for a provider preset, or the URL itself."""
    if provider == "mainnet":
        return MAINNET_RPC_URL
    if provider in ("signet", "testnet"):
        return SIGNET_RPC_URL
    if provider in ("localhost", "regtest"):
        return LOCAL_RPC_URL
    if provider.startswith(("http://", "https://")):
        return provider
    return MAINNET_RPC_URL