"""JSON-RPC client for the Bitcoin and Metashrew endpoints."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
_BITCOIN_PREFIX = "btc_"


@dataclass(frozen=True)
class RpcConfig:
    """Endpoints the client talks to."""

    bitcoin_rpc_url: str
    metashrew_rpc_url: str


class RpcError(Exception):
    """Raised when an RPC request fails or returns an error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def _is_u64(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < 1 << 64
    )


def _parse_response(body: Any) -> Any:
    if not isinstance(body, dict) or not _is_u64(body.get("id")):
        raise RpcError("Failed to parse RPC response")
    error = body.get("error")
    if error is not None and not (
        isinstance(error, dict)
        and isinstance(error.get("code"), int)
        and not isinstance(error.get("code"), bool)
        and isinstance(error.get("message"), str)
    ):
        raise RpcError("Failed to parse RPC response")
    result = body.get("result")
    if result is not None:
        return result
    code, message = (-1, "Unknown error") if error is None else (error["code"], error["message"])
    raise RpcError(f"RPC error: {message} (code: {code})", code)


class RpcClient:
    """Asynchronous JSON-RPC client for Bitcoin and Metashrew."""

    def __init__(self, config: RpcConfig) -> None:
        self.config = config
        self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self._request_ids = itertools.count()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def call(self, method: str, params: Any = None) -> Any:
        """Call ``method``; ``btc_`` methods go to the Bitcoin endpoint."""
        logger.debug("Calling RPC method: %s", method)
        if method.startswith(_BITCOIN_PREFIX):
            url, version = self.config.bitcoin_rpc_url, "1.0"
        else:
            url, version = self.config.metashrew_rpc_url, "2.0"
        request = {
            "jsonrpc": version,
            "method": method,
            "params": [] if params is None else params,
            "id": next(self._request_ids),
        }
        try:
            response = await self._client.post(
                url, json=request, headers={"Content-Type": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise RpcError(f"Failed to send RPC request: {exc}") from exc
        if not response.is_success:
            raise RpcError(
                f"RPC request failed with status: "
                f"{response.status_code} {response.reason_phrase}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError("Failed to parse RPC response") from exc
        return _parse_response(body)

    async def _height(self, method: str) -> int:
        result = await self.call(method, [])
        if not _is_u64(result):
            raise RpcError("Invalid block height")
        logger.debug("Height from %s: %s", method, result)
        return result

    async def get_block_count(self) -> int:
        """Current block height reported by Bitcoin."""
        return await self._height("btc_getblockcount")

    async def get_metashrew_height(self) -> int:
        """Current block height reported by Metashrew."""
        return await self._height("metashrew_height")

    async def get_spendables_by_address(self, address: str) -> Any:
        return await self.call("spendablesbyaddress", [address])

    async def get_ord_address(self, address: str) -> Any:
        return await self.call("ord_address", [address])

    async def get_protorunes_by_address(self, address: str) -> Any:
        return await self.call("alkanes_protorunesbyaddress", [address])

    async def trace_transaction(self, txid: str, vout: int) -> Any:
        logger.debug("Tracing transaction: %s vout: %s", txid, vout)
        return await self.call("alkanes_trace", [txid, vout])

    async def get_protorunes_by_outpoint(self, txid: str, vout: int) -> Any:
        return await self.call("alkanes_protorunesbyoutpoint", [txid, vout])

    async def trace_block(self, height: int) -> Any:
        return await self.call("alkanes_traceblock", [height])

    async def simulate(self, block: str, tx: str, inputs: Sequence[str]) -> Any:
        """Simulate a contract execution with the given inputs."""
        return await self.call("alkanes_simulate", [block, tx, *inputs])

    async def get_contract_meta(self, block: str, tx: str) -> Any:
        return await self.call("alkanes_meta", [block, tx])

    async def get_bytecode(self, block: str, tx: str) -> str:
        """Bytecode of a contract as returned by the view function."""
        result = await self.call(
            "metashrew_view", [{"method": "getbytecode", "params": [block, tx]}]
        )
        if not isinstance(result, str):
            raise RpcError("Invalid bytecode response")
        return result

    async def get_transaction_hex(self, txid: str) -> str:
        result = await self.call("esplora_gettransaction", [txid])
        if not isinstance(result, str):
            raise RpcError("Invalid transaction hex response")
        return result