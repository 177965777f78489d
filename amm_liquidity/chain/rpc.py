from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any

import aiohttp
from solders.transaction import VersionedTransaction

from amm_liquidity.common import log_event


class RpcMethodError(RuntimeError):
    def __init__(
        self,
        *,
        method: str,
        message: str,
        status: int | None = None,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.status = status
        self.code = code
        self.data = data


def _error_payload_to_message(payload: Any) -> str:
    if isinstance(payload, dict):
        message = payload.get("message")
        if message:
            return str(message)
    return str(payload)


def _to_int(value: Any, default: int) -> int:
    try:
        if value is None or value == "":
            return default
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


class SolanaRpcClient:
    """Minimal JSON-RPC client covering the calls a liquidity operation needs."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc_url: str,
        timeout_seconds: float = 15.0,
        commitment: str = "confirmed",
    ) -> None:
        self._logger = logger
        self._rpc_url = rpc_url.strip()
        self._timeout_seconds = timeout_seconds
        self._commitment = commitment
        self._http_session: aiohttp.ClientSession | None = None
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def connect(self) -> None:
        if not self._rpc_url:
            raise ValueError("SOLANA_CLUSTER_URL is required.")
        if self._http_session is None:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._http_session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def __aenter__(self) -> "SolanaRpcClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _rpc_call(self, method: str, params: list[Any] | None = None) -> Any:
        if self._http_session is None:
            await self.connect()
        if self._http_session is None:
            raise RuntimeError("RPC HTTP session is not initialized.")

        self._request_id += 1
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            async with self._http_session.post(self._rpc_url, json=payload) as response:
                status = response.status
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as error:
            raise RpcMethodError(method=method, message=f"RPC transport error for {method}: {error}") from error

        if status >= 400:
            raise RpcMethodError(
                method=method,
                status=status,
                data=body,
                message=f"RPC call failed: method={method} status={status} body={str(body)[:240]!r}",
            )

        if not isinstance(body, dict):
            raise RpcMethodError(method=method, status=status, message=f"Invalid RPC response for {method}: {body}")

        error_payload = body.get("error")
        if error_payload:
            code = None
            data = None
            if isinstance(error_payload, dict):
                code = _to_int(error_payload.get("code"), 0) or None
                data = error_payload.get("data")
            raise RpcMethodError(
                method=method,
                status=status,
                code=code,
                data=data,
                message=f"RPC error for {method}: {_error_payload_to_message(error_payload)}",
            )

        return body.get("result")

    async def get_account_data(self, address: str) -> bytes | None:
        result = await self._rpc_call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        if not isinstance(result, dict):
            raise RuntimeError(f"Unexpected getAccountInfo response for {address}: {result}")

        value = result.get("value")
        if value is None:
            return None
        data = value.get("data") if isinstance(value, dict) else None
        if not isinstance(data, list) or not data:
            raise RuntimeError(f"Unexpected account data encoding for {address}: {value}")
        return base64.b64decode(data[0])

    async def get_latest_blockhash(self) -> tuple[str, int | None]:
        result = await self._rpc_call("getLatestBlockhash", [{"commitment": self._commitment}])
        if not isinstance(result, dict):
            raise RuntimeError(f"Unexpected getLatestBlockhash response: {result}")

        value = result.get("value")
        if not isinstance(value, dict):
            raise RuntimeError(f"Unexpected getLatestBlockhash payload: {result}")

        blockhash = str(value.get("blockhash") or "").strip()
        if not blockhash:
            raise RuntimeError(f"Missing blockhash in RPC response: {result}")
        last_valid_block_height = _to_int(value.get("lastValidBlockHeight"), -1)
        return blockhash, last_valid_block_height if last_valid_block_height >= 0 else None

    async def simulate_transaction(self, tx: VersionedTransaction) -> dict[str, Any]:
        result = await self._rpc_call(
            "simulateTransaction",
            [
                encode_transaction(tx),
                {
                    "encoding": "base64",
                    "sigVerify": False,
                    "commitment": self._commitment,
                },
            ],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict):
            raise RuntimeError(f"Unexpected simulateTransaction response: {result}")
        return value

    async def send_transaction(self, tx: VersionedTransaction, *, skip_preflight: bool = True) -> str:
        result = await self._rpc_call(
            "sendTransaction",
            [
                encode_transaction(tx),
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self._commitment,
                },
            ],
        )
        if not isinstance(result, str) or not result:
            raise RuntimeError(f"Unexpected sendTransaction response: {result}")
        log_event(
            self._logger,
            level="debug",
            event="rpc_transaction_sent",
            message="Transaction sent to RPC",
            tx_signature=result,
        )
        return result

    async def get_signature_status(self, tx_signature: str) -> dict[str, Any] | None:
        result = await self._rpc_call(
            "getSignatureStatuses",
            [[tx_signature], {"searchTransactionHistory": False}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, list) or not value:
            raise RuntimeError(f"Unexpected getSignatureStatuses response: {result}")
        status = value[0]
        return status if isinstance(status, dict) else None

    async def get_token_account_balance(self, address: str) -> int:
        result = await self._rpc_call(
            "getTokenAccountBalance",
            [address, {"commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict) or "amount" not in value:
            raise RuntimeError(f"Unexpected getTokenAccountBalance response for {address}: {result}")
        return int(str(value["amount"]))
