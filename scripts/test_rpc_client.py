from __future__ import annotations

import base64
import logging
import unittest
from typing import Any

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from amm_liquidity.chain import RpcMethodError, SolanaRpcClient


class _FakeResponse:
    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = body

    async def json(self, content_type: str | None = None) -> Any:
        return self._body

    async def __aenter__(self) -> "_FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, responses: list[_FakeResponse]) -> None:
        self._responses = responses
        self.payloads: list[dict[str, Any]] = []

    def post(self, url: str, *, json: dict[str, Any]) -> _FakeResponse:
        self.payloads.append(json)
        return self._responses.pop(0)

    async def close(self) -> None:
        return None


class SolanaRpcClientTests(unittest.IsolatedAsyncioTestCase):
    def _client(self, *responses: _FakeResponse) -> tuple[SolanaRpcClient, _FakeSession]:
        client = SolanaRpcClient(logger=logging.getLogger("test.rpc"), rpc_url="https://rpc.example.com")
        session = _FakeSession(list(responses))
        client._http_session = session  # type: ignore[assignment]
        return client, session

    async def test_account_data_is_base64_decoded(self) -> None:
        encoded = base64.b64encode(b"\x01\x02\x03").decode("ascii")
        client, session = self._client(
            _FakeResponse(200, {"jsonrpc": "2.0", "result": {"value": {"data": [encoded, "base64"]}}})
        )

        data = await client.get_account_data("Pool111")

        self.assertEqual(data, b"\x01\x02\x03")
        self.assertEqual(session.payloads[0]["method"], "getAccountInfo")
        self.assertEqual(session.payloads[0]["params"][0], "Pool111")

    async def test_missing_account_returns_none(self) -> None:
        client, _ = self._client(_FakeResponse(200, {"result": {"value": None}}))

        self.assertIsNone(await client.get_account_data("Pool111"))

    async def test_latest_blockhash_and_height(self) -> None:
        client, _ = self._client(
            _FakeResponse(200, {"result": {"value": {"blockhash": "abc", "lastValidBlockHeight": 99}}})
        )

        self.assertEqual(await client.get_latest_blockhash(), ("abc", 99))

    async def test_token_balance_is_integer_amount(self) -> None:
        client, _ = self._client(_FakeResponse(200, {"result": {"value": {"amount": "123456", "decimals": 6}}}))

        self.assertEqual(await client.get_token_account_balance("Vault111"), 123456)

    async def test_send_leaves_rebroadcast_to_the_node(self) -> None:
        client, session = self._client(_FakeResponse(200, {"result": "sig111"}))
        payer = Keypair()
        tx = VersionedTransaction(MessageV0.try_compile(payer.pubkey(), [], [], Hash.default()), [payer])

        self.assertEqual(await client.send_transaction(tx), "sig111")

        options = session.payloads[0]["params"][1]
        self.assertEqual(session.payloads[0]["method"], "sendTransaction")
        self.assertTrue(options["skipPreflight"])
        self.assertNotIn("maxRetries", options)

    async def test_json_rpc_error_raises_method_error(self) -> None:
        client, _ = self._client(
            _FakeResponse(200, {"error": {"code": -32002, "message": "Transaction simulation failed"}})
        )

        with self.assertRaises(RpcMethodError) as raised:
            await client.get_signature_status("sig")

        self.assertEqual(raised.exception.code, -32002)
        self.assertEqual(raised.exception.method, "getSignatureStatuses")

    async def test_http_error_status_raises_method_error(self) -> None:
        client, _ = self._client(_FakeResponse(503, {"message": "unavailable"}))

        with self.assertRaises(RpcMethodError) as raised:
            await client.get_latest_blockhash()

        self.assertEqual(raised.exception.status, 503)

    async def test_request_ids_increase(self) -> None:
        client, session = self._client(
            _FakeResponse(200, {"result": {"value": [None]}}),
            _FakeResponse(200, {"result": {"value": [{"err": None, "confirmationStatus": "confirmed"}]}}),
        )

        self.assertIsNone(await client.get_signature_status("sig"))
        status = await client.get_signature_status("sig")

        self.assertEqual(status["confirmationStatus"], "confirmed")
        self.assertEqual([payload["id"] for payload in session.payloads], [1, 2])

    async def test_connect_requires_url(self) -> None:
        client = SolanaRpcClient(logger=logging.getLogger("test.rpc"), rpc_url=" ")

        with self.assertRaises(ValueError):
            await client.connect()


if __name__ == "__main__":
    unittest.main()
