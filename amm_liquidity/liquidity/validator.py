from __future__ import annotations

from .types import (
    U64_MAX,
    AmountZeroError,
    LiquidityIntent,
    MultiplicationOverflowError,
    ScaledAmount,
    SlippageOutOfRangeError,
)


def _require_unsigned(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} must fit an unsigned 64-bit integer, got {value}")


def scale_amount(raw_amount: int, slippage: float, decimals_multiplier: int) -> ScaledAmount:
    """Validate a user amount and scale it by the pool's decimals multiplier.

    Checks run in a fixed order: zero amount, slippage bounds, then overflow
    of ``raw_amount * decimals_multiplier`` past the u64 range.
    """
    _require_unsigned("raw_amount", raw_amount)
    _require_unsigned("decimals_multiplier", decimals_multiplier)

    if raw_amount == 0:
        raise AmountZeroError()

    # NaN fails both comparisons.
    if isinstance(slippage, bool) or not isinstance(slippage, (int, float)) or not 0.0 <= slippage <= 1.0:
        raise SlippageOutOfRangeError(slippage)

    value = raw_amount * decimals_multiplier
    if value > U64_MAX:
        raise MultiplicationOverflowError(raw_amount, decimals_multiplier)

    return ScaledAmount(raw_amount=raw_amount, decimals_multiplier=decimals_multiplier, value=value)


def validate_intent(intent: LiquidityIntent, decimals_multiplier: int) -> ScaledAmount:
    return scale_amount(intent.raw_amount, intent.slippage, decimals_multiplier)
