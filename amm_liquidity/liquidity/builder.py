from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from typing import Any, Protocol, Sequence

from solders.instruction import Instruction

from amm_liquidity.common import log_event

from .types import (
    AmmCommand,
    ClusterConfig,
    DepositCommand,
    InstructionDelegationError,
    IntentKind,
    LiquidityIntent,
    NoInstructionsError,
    ScaledAmount,
    WithdrawCommand,
)
from .validator import validate_intent


class AmmInstructionBuilder(Protocol):
    async def build(
        self,
        command: AmmCommand,
        config: ClusterConfig,
    ) -> Sequence[Instruction] | None:
        ...


def load_instruction_builder(path: str) -> AmmInstructionBuilder:
    """Load a builder from ``package.module:attribute``.

    The attribute may be a builder instance or a zero-argument factory.
    """
    module_name, _, attribute = (path or "").strip().partition(":")
    if not module_name or not attribute:
        raise ValueError("AMM_INSTRUCTION_BUILDER must look like 'package.module:attribute'.")

    module = importlib.import_module(module_name)
    target: Any = getattr(module, attribute)
    if inspect.isclass(target) or not hasattr(target, "build"):
        target = target()
    if not callable(getattr(target, "build", None)):
        raise TypeError(f"{path} does not provide a build(command, config) method.")
    return target


def make_command(kind: IntentKind, *, pool_id: str, scaled_amount: ScaledAmount, slippage: float) -> AmmCommand:
    if kind == "deposit":
        # Token accounts fall back to the owner's associated accounts.
        return DepositCommand(
            pool_id=pool_id,
            amount_specified=scaled_amount.value,
            another_min_limit=False,
            base_coin=False,
        )
    if kind == "withdraw":
        # The collaborator only supports an on/off minimum-out guard.
        return WithdrawCommand(
            pool_id=pool_id,
            input_lp_amount=scaled_amount.value,
            slippage_limit=slippage > 0.0,
        )
    raise ValueError(f"Unsupported liquidity intent kind: {kind!r}")


class LiquidityInstructionAdapter:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        builder: AmmInstructionBuilder,
        config: ClusterConfig,
    ) -> None:
        self._logger = logger
        self._builder = builder
        self._config = config

    async def build(
        self,
        kind: IntentKind,
        pool_id: str,
        scaled_amount: ScaledAmount,
        slippage: float,
    ) -> list[Instruction]:
        command = make_command(kind, pool_id=pool_id, scaled_amount=scaled_amount, slippage=slippage)

        try:
            result = await self._builder.build(command, self._config)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            log_event(
                self._logger,
                level="error",
                event="instruction_build_failed",
                message="AMM instruction builder failed",
                kind=kind,
                pool_id=pool_id,
                error=str(error),
            )
            raise InstructionDelegationError(f"Failed to generate {kind} instructions: {error}") from error

        instructions = list(result or [])
        if not instructions:
            log_event(
                self._logger,
                level="error",
                event="instruction_build_empty",
                message="AMM instruction builder returned no instructions",
                kind=kind,
                pool_id=pool_id,
            )
            raise NoInstructionsError(kind, pool_id)

        log_event(
            self._logger,
            level="debug",
            event="instruction_build_completed",
            message="AMM instructions generated",
            kind=kind,
            pool_id=pool_id,
            amount=scaled_amount.value,
            instruction_count=len(instructions),
        )
        return instructions

    async def build_for_intent(self, intent: LiquidityIntent, decimals_multiplier: int) -> list[Instruction]:
        scaled_amount = validate_intent(intent, decimals_multiplier)
        return await self.build(intent.kind, intent.pool_id, scaled_amount, intent.slippage)
