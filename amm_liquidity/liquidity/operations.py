from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from solders.instruction import Instruction

from amm_liquidity.chain.inspector import AmmPoolInfo
from amm_liquidity.chain.pipeline import PipelineResult
from amm_liquidity.common import log_event

from .composer import OperationComposer
from .types import ComposedTransaction, LiquidityIntent
from .validator import validate_intent


class PoolInfoSource(Protocol):
    async def fetch_amm_info(self, pool_id: str) -> AmmPoolInfo:
        ...


class TransactionRunner(Protocol):
    async def process(self, instructions: Sequence[Instruction], *, dry_run: bool) -> PipelineResult:
        ...


@dataclass(slots=True, frozen=True)
class OperationReport:
    operation: str
    pool_id: str
    composed: ComposedTransaction
    result: PipelineResult

    @property
    def succeeded(self) -> bool:
        if self.result.dry_run:
            return self.result.simulation_succeeded
        return self.result.submitted

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "pool_id": self.pool_id,
            "succeeded": self.succeeded,
            "composed": self.composed.to_dict(),
            "result": self.result.to_dict(),
        }


class LiquidityOperations:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        pool_info_source: PoolInfoSource,
        composer: OperationComposer,
        pipeline: TransactionRunner,
    ) -> None:
        self._logger = logger
        self._pool_info_source = pool_info_source
        self._composer = composer
        self._pipeline = pipeline

    async def add_liquidity(self, *, pool_id: str, amount: int, slippage: float, dry_run: bool) -> OperationReport:
        return await self._run(
            operation="add_liquidity",
            pool_id=pool_id,
            add_intent=LiquidityIntent.deposit(pool_id=pool_id, raw_amount=amount, slippage=slippage),
            dry_run=dry_run,
        )

    async def remove_liquidity(self, *, pool_id: str, amount: int, slippage: float, dry_run: bool) -> OperationReport:
        return await self._run(
            operation="remove_liquidity",
            pool_id=pool_id,
            remove_intent=LiquidityIntent.withdraw(pool_id=pool_id, raw_amount=amount, slippage=slippage),
            dry_run=dry_run,
        )

    async def add_remove_liquidity(
        self,
        *,
        pool_id: str,
        add_amount: int,
        remove_amount: int,
        slippage: float,
        dry_run: bool,
    ) -> OperationReport:
        return await self._run(
            operation="add_remove_liquidity",
            pool_id=pool_id,
            add_intent=LiquidityIntent.deposit(pool_id=pool_id, raw_amount=add_amount, slippage=slippage),
            remove_intent=LiquidityIntent.withdraw(pool_id=pool_id, raw_amount=remove_amount, slippage=slippage),
            dry_run=dry_run,
        )

    async def _run(
        self,
        *,
        operation: str,
        pool_id: str,
        dry_run: bool,
        add_intent: LiquidityIntent | None = None,
        remove_intent: LiquidityIntent | None = None,
    ) -> OperationReport:
        # Amount and slippage are checked before the multiplier is read from chain.
        for intent in (add_intent, remove_intent):
            if intent is not None:
                validate_intent(intent, 1)

        pool_info = await self._pool_info_source.fetch_amm_info(pool_id)
        composed = await self._composer.compose(
            decimals_multiplier=pool_info.sys_decimal_value,
            add_intent=add_intent,
            remove_intent=remove_intent,
        )
        result = await self._pipeline.process(composed.instructions, dry_run=dry_run)
        report = OperationReport(operation=operation, pool_id=pool_id, composed=composed, result=result)

        log_event(
            self._logger,
            level="info" if report.succeeded else "warning",
            event=f"{operation}_completed" if report.succeeded else f"{operation}_incomplete",
            message=(
                f"{operation} finished"
                if report.succeeded
                else f"{operation} did not land; inspect simulation and submission errors"
            ),
            pool_id=pool_id,
            dry_run=dry_run,
            instruction_count=len(composed),
            tx_signature=result.signature,
            simulation_error=result.simulation_error,
            submission_error=result.submission_error,
        )
        return report
