from __future__ import annotations

import logging
import unittest
from unittest.mock import AsyncMock

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from amm_liquidity.chain import (
    PipelineResult,
    TransactionBuildError,
    TransactionConfirmationError,
    TransactionPipeline,
)
from amm_liquidity.chain.rpc import RpcMethodError

TX_SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def _instruction() -> Instruction:
    return Instruction(
        Pubkey.new_unique(),
        b"\x01",
        [AccountMeta(Pubkey.new_unique(), is_signer=False, is_writable=True)],
    )


def _make_rpc() -> AsyncMock:
    rpc = AsyncMock()
    rpc.get_latest_blockhash.return_value = (str(Hash.default()), 1234)
    rpc.simulate_transaction.return_value = {"err": None, "logs": ["Program log: ok"], "unitsConsumed": 4200}
    rpc.send_transaction.return_value = TX_SIGNATURE
    rpc.get_signature_status.return_value = {"err": None, "confirmationStatus": "confirmed"}
    return rpc


class TransactionPipelineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.payer = Keypair()
        self.rpc = _make_rpc()
        self.pipeline = TransactionPipeline(
            logger=logging.getLogger("test.pipeline"),
            rpc=self.rpc,
            payer=self.payer,
            confirm_timeout_seconds=0.0,
            confirm_poll_interval_seconds=0.01,
        )

    async def test_build_produces_unsigned_transaction_for_payer(self) -> None:
        built = await self.pipeline.build([_instruction(), _instruction()])

        self.assertEqual(built.last_valid_block_height, 1234)
        self.assertEqual(built.unsigned_tx.message.account_keys[0], self.payer.pubkey())
        self.assertEqual(list(built.unsigned_tx.signatures), [Signature.default()])
        self.assertEqual(len(built.unsigned_tx.message.instructions), 2)

    async def test_build_rejects_empty_instruction_list(self) -> None:
        with self.assertRaises(TransactionBuildError):
            await self.pipeline.build([])

        self.rpc.get_latest_blockhash.assert_not_awaited()

    async def test_blockhash_failure_is_a_build_error(self) -> None:
        self.rpc.get_latest_blockhash.side_effect = RpcMethodError(method="getLatestBlockhash", message="down")

        with self.assertRaises(TransactionBuildError):
            await self.pipeline.process([_instruction()], dry_run=True)

        self.rpc.simulate_transaction.assert_not_awaited()

    async def test_sign_fills_payer_signature(self) -> None:
        built = await self.pipeline.build([_instruction()])

        signed = self.pipeline.sign(built.unsigned_tx)

        self.assertNotEqual(signed.signatures[0], Signature.default())
        self.assertEqual(signed.message, built.unsigned_tx.message)

    async def test_dry_run_simulates_and_never_sends(self) -> None:
        result = await self.pipeline.process([_instruction()], dry_run=True)

        self.assertIsInstance(result, PipelineResult)
        self.assertEqual(result.stage, "skipped_dry_run")
        self.assertTrue(result.dry_run)
        self.assertTrue(result.simulation_succeeded)
        self.assertEqual(result.simulation.units_consumed, 4200)
        self.assertIsNone(result.signature)
        self.rpc.simulate_transaction.assert_awaited_once()
        self.rpc.send_transaction.assert_not_awaited()

    async def test_simulation_error_does_not_block_submission(self) -> None:
        self.rpc.simulate_transaction.return_value = {"err": {"InstructionError": [0, "Custom"]}, "logs": []}

        result = await self.pipeline.process([_instruction()], dry_run=False)

        self.assertFalse(result.simulation_succeeded)
        self.assertEqual(result.signature, TX_SIGNATURE)
        self.rpc.send_transaction.assert_awaited_once()

    async def test_simulation_transport_failure_is_captured(self) -> None:
        self.rpc.simulate_transaction.side_effect = RpcMethodError(method="simulateTransaction", message="timeout")

        result = await self.pipeline.process([_instruction()], dry_run=True)

        self.assertIsNone(result.simulation)
        self.assertEqual(result.simulation_error, "timeout")
        self.assertIsNone(result.signature)

    async def test_submit_sends_signed_transaction_and_waits_for_confirmation(self) -> None:
        result = await self.pipeline.process([_instruction()], dry_run=False)

        self.assertEqual(result.stage, "submitted")
        self.assertTrue(result.submitted)
        self.assertEqual(result.signature, TX_SIGNATURE)
        sent_tx = self.rpc.send_transaction.await_args.args[0]
        self.assertNotEqual(sent_tx.signatures[0], Signature.default())
        self.rpc.get_signature_status.assert_awaited_with(TX_SIGNATURE)

    async def test_send_failure_leaves_signature_absent(self) -> None:
        self.rpc.send_transaction.side_effect = RpcMethodError(method="sendTransaction", message="blockhash expired")

        result = await self.pipeline.process([_instruction()], dry_run=False)

        self.assertEqual(result.stage, "submitted")
        self.assertIsNone(result.signature)
        self.assertEqual(result.submission_error, "blockhash expired")

    async def test_on_chain_failure_leaves_signature_absent(self) -> None:
        self.rpc.get_signature_status.return_value = {"err": {"InstructionError": [0, "Custom"]}}

        result = await self.pipeline.process([_instruction()], dry_run=False)

        self.assertIsNone(result.signature)
        self.assertIn("failed on-chain", result.submission_error or "")

    async def test_wait_for_confirmation_times_out(self) -> None:
        self.rpc.get_signature_status.return_value = None

        with self.assertRaises(TransactionConfirmationError) as raised:
            await self.pipeline.wait_for_confirmation(TX_SIGNATURE)

        self.assertEqual(raised.exception.tx_signature, TX_SIGNATURE)

    async def test_wait_for_confirmation_polls_until_confirmed(self) -> None:
        pipeline = TransactionPipeline(
            logger=logging.getLogger("test.pipeline"),
            rpc=self.rpc,
            payer=self.payer,
            confirm_timeout_seconds=5.0,
            confirm_poll_interval_seconds=0.01,
        )
        self.rpc.get_signature_status.side_effect = [
            None,
            {"err": None, "confirmationStatus": "processed"},
            {"err": None, "confirmationStatus": "finalized"},
        ]

        status = await pipeline.wait_for_confirmation(TX_SIGNATURE)

        self.assertEqual(status["confirmationStatus"], "finalized")
        self.assertEqual(self.rpc.get_signature_status.await_count, 3)

    async def test_extra_signers_are_deduplicated_after_payer(self) -> None:
        other = Keypair()
        pipeline = TransactionPipeline(
            logger=logging.getLogger("test.pipeline"),
            rpc=self.rpc,
            payer=self.payer,
            signers=[self.payer, other, other],
        )
        instruction = Instruction(
            Pubkey.new_unique(),
            b"\x02",
            [AccountMeta(other.pubkey(), is_signer=True, is_writable=False)],
        )

        built = await pipeline.build([instruction])
        signed = pipeline.sign(built.unsigned_tx)

        self.assertEqual(len(signed.signatures), 2)
        self.assertEqual(signed.message.account_keys[0], self.payer.pubkey())


if __name__ == "__main__":
    unittest.main()
