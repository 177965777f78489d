from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union

from solders.instruction import Instruction

IntentKind = Literal["deposit", "withdraw"]

U64_MAX = 2**64 - 1


class LiquidityError(RuntimeError):
    pass


class AmountZeroError(LiquidityError):
    def __init__(self) -> None:
        super().__init__("Amount must be greater than zero")


class SlippageOutOfRangeError(LiquidityError):
    def __init__(self, slippage: float) -> None:
        super().__init__(f"Slippage must be between 0 and 1, got {slippage}")
        self.slippage = slippage


class MultiplicationOverflowError(LiquidityError):
    def __init__(self, raw_amount: int, decimals_multiplier: int) -> None:
        super().__init__(
            "Multiplication overflow occurred: "
            f"{raw_amount} * {decimals_multiplier} exceeds {U64_MAX}"
        )
        self.raw_amount = raw_amount
        self.decimals_multiplier = decimals_multiplier


class InstructionDelegationError(LiquidityError):
    pass


class NoInstructionsError(LiquidityError):
    def __init__(self, kind: str, pool_id: str) -> None:
        super().__init__(f"No instructions generated for {kind} on pool {pool_id}")
        self.kind = kind
        self.pool_id = pool_id


@dataclass(slots=True, frozen=True)
class LiquidityIntent:
    kind: IntentKind
    pool_id: str
    raw_amount: int
    slippage: float

    @classmethod
    def deposit(cls, *, pool_id: str, raw_amount: int, slippage: float) -> "LiquidityIntent":
        return cls(kind="deposit", pool_id=pool_id, raw_amount=raw_amount, slippage=slippage)

    @classmethod
    def withdraw(cls, *, pool_id: str, raw_amount: int, slippage: float) -> "LiquidityIntent":
        return cls(kind="withdraw", pool_id=pool_id, raw_amount=raw_amount, slippage=slippage)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class ScaledAmount:
    raw_amount: int
    decimals_multiplier: int
    value: int


@dataclass(slots=True, frozen=True)
class ClusterConfig:
    cluster_url: str
    websocket_url: str
    wallet: str


@dataclass(slots=True, frozen=True)
class DepositCommand:
    pool_id: str
    amount_specified: int
    deposit_token_coin: str | None = None
    deposit_token_pc: str | None = None
    recipient_token_lp: str | None = None
    another_min_limit: bool = False
    base_coin: bool = False


@dataclass(slots=True, frozen=True)
class WithdrawCommand:
    pool_id: str
    input_lp_amount: int
    withdraw_token_lp: str | None = None
    recipient_token_coin: str | None = None
    recipient_token_pc: str | None = None
    slippage_limit: bool = False


AmmCommand = Union[DepositCommand, WithdrawCommand]


@dataclass(slots=True, frozen=True)
class ComposedTransaction:
    intents: tuple[LiquidityIntent, ...]
    instructions: tuple[Instruction, ...]
    set_sizes: tuple[int, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.instructions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "intents": [intent.to_dict() for intent in self.intents],
            "instruction_count": len(self.instructions),
            "set_sizes": list(self.set_sizes),
        }
