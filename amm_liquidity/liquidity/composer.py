from __future__ import annotations

import logging

from solders.instruction import Instruction

from amm_liquidity.common import log_event

from .builder import LiquidityInstructionAdapter
from .types import ComposedTransaction, LiquidityIntent, ScaledAmount
from .validator import validate_intent


class OperationComposer:
    """Joins independently built instruction sets into one transaction body."""

    def __init__(self, *, logger: logging.Logger, adapter: LiquidityInstructionAdapter) -> None:
        self._logger = logger
        self._adapter = adapter

    async def compose(
        self,
        *,
        decimals_multiplier: int,
        add_intent: LiquidityIntent | None = None,
        remove_intent: LiquidityIntent | None = None,
    ) -> ComposedTransaction:
        intents = tuple(intent for intent in (add_intent, remove_intent) if intent is not None)
        if not intents:
            raise ValueError("At least one liquidity intent is required to compose a transaction.")

        # Every intent is checked before the builder sees any of them.
        scaled: list[tuple[LiquidityIntent, ScaledAmount]] = [
            (intent, validate_intent(intent, decimals_multiplier)) for intent in intents
        ]

        instruction_sets: list[list[Instruction]] = []
        for intent, scaled_amount in scaled:
            instruction_sets.append(
                await self._adapter.build(intent.kind, intent.pool_id, scaled_amount, intent.slippage)
            )

        instructions = tuple(instruction for instruction_set in instruction_sets for instruction in instruction_set)
        composed = ComposedTransaction(
            intents=intents,
            instructions=instructions,
            set_sizes=tuple(len(instruction_set) for instruction_set in instruction_sets),
        )
        log_event(
            self._logger,
            level="info",
            event="liquidity_transaction_composed",
            message="Composed liquidity instructions into a single transaction",
            kinds=[intent.kind for intent in intents],
            set_sizes=list(composed.set_sizes),
            instruction_count=len(composed),
        )
        return composed
