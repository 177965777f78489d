from __future__ import annotations

import logging
import unittest
from unittest.mock import AsyncMock

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from amm_liquidity.liquidity import (
    U64_MAX,
    AmountZeroError,
    ClusterConfig,
    DepositCommand,
    LiquidityInstructionAdapter,
    LiquidityIntent,
    MultiplicationOverflowError,
    NoInstructionsError,
    OperationComposer,
    WithdrawCommand,
)

POOL_ID = "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"


def _instruction(tag: int) -> Instruction:
    return Instruction(
        Pubkey.new_unique(),
        bytes([tag]),
        [AccountMeta(Pubkey.new_unique(), is_signer=False, is_writable=True)],
    )


class OperationComposerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        logger = logging.getLogger("test.composer")
        self.deposit_set = [_instruction(1), _instruction(2)]
        self.withdraw_set = [_instruction(3)]

        async def build(command, config):  # type: ignore[no-untyped-def]
            if isinstance(command, DepositCommand):
                return self.deposit_set
            return self.withdraw_set

        self.builder = AsyncMock()
        self.builder.build.side_effect = build
        adapter = LiquidityInstructionAdapter(
            logger=logger,
            builder=self.builder,
            config=ClusterConfig(cluster_url="http://localhost", websocket_url="ws://localhost", wallet="id.json"),
        )
        self.composer = OperationComposer(logger=logger, adapter=adapter)

    async def test_add_then_remove_keeps_set_order(self) -> None:
        composed = await self.composer.compose(
            decimals_multiplier=1_000,
            add_intent=LiquidityIntent.deposit(pool_id=POOL_ID, raw_amount=5, slippage=0.01),
            remove_intent=LiquidityIntent.withdraw(pool_id=POOL_ID, raw_amount=2, slippage=0.01),
        )

        self.assertEqual(list(composed.instructions), self.deposit_set + self.withdraw_set)
        self.assertEqual(composed.set_sizes, (2, 1))
        self.assertEqual(len(composed), 3)
        self.assertEqual([intent.kind for intent in composed.intents], ["deposit", "withdraw"])

        first, second = (call.args[0] for call in self.builder.build.await_args_list)
        self.assertIsInstance(first, DepositCommand)
        self.assertEqual(first.amount_specified, 5_000)
        self.assertIsInstance(second, WithdrawCommand)
        self.assertEqual(second.input_lp_amount, 2_000)

    async def test_single_intent_composes_alone(self) -> None:
        composed = await self.composer.compose(
            decimals_multiplier=10,
            remove_intent=LiquidityIntent.withdraw(pool_id=POOL_ID, raw_amount=1, slippage=0.0),
        )

        self.assertEqual(list(composed.instructions), self.withdraw_set)
        self.assertEqual(composed.set_sizes, (1,))

    async def test_no_intents_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            await self.composer.compose(decimals_multiplier=10)

    async def test_invalid_remove_amount_stops_before_any_build(self) -> None:
        with self.assertRaises(MultiplicationOverflowError):
            await self.composer.compose(
                decimals_multiplier=2,
                add_intent=LiquidityIntent.deposit(pool_id=POOL_ID, raw_amount=1, slippage=0.01),
                remove_intent=LiquidityIntent.withdraw(pool_id=POOL_ID, raw_amount=U64_MAX, slippage=0.01),
            )

        self.builder.build.assert_not_awaited()

    async def test_zero_add_amount_is_rejected(self) -> None:
        with self.assertRaises(AmountZeroError):
            await self.composer.compose(
                decimals_multiplier=2,
                add_intent=LiquidityIntent.deposit(pool_id=POOL_ID, raw_amount=0, slippage=0.01),
            )

        self.builder.build.assert_not_awaited()

    async def test_empty_withdraw_set_fails_whole_composition(self) -> None:
        self.withdraw_set = []

        with self.assertRaises(NoInstructionsError):
            await self.composer.compose(
                decimals_multiplier=1,
                add_intent=LiquidityIntent.deposit(pool_id=POOL_ID, raw_amount=1, slippage=0.01),
                remove_intent=LiquidityIntent.withdraw(pool_id=POOL_ID, raw_amount=1, slippage=0.01),
            )


if __name__ == "__main__":
    unittest.main()
