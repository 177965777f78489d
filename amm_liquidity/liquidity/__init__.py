from .builder import (
    AmmInstructionBuilder,
    LiquidityInstructionAdapter,
    load_instruction_builder,
    make_command,
)
from .composer import OperationComposer
from .operations import LiquidityOperations, OperationReport
from .types import (
    U64_MAX,
    AmmCommand,
    AmountZeroError,
    ClusterConfig,
    ComposedTransaction,
    DepositCommand,
    InstructionDelegationError,
    LiquidityError,
    LiquidityIntent,
    MultiplicationOverflowError,
    NoInstructionsError,
    ScaledAmount,
    SlippageOutOfRangeError,
    WithdrawCommand,
)
from .validator import scale_amount, validate_intent

__all__ = [
    "AmmCommand",
    "AmmInstructionBuilder",
    "AmountZeroError",
    "ClusterConfig",
    "ComposedTransaction",
    "DepositCommand",
    "InstructionDelegationError",
    "LiquidityError",
    "LiquidityInstructionAdapter",
    "LiquidityIntent",
    "LiquidityOperations",
    "MultiplicationOverflowError",
    "NoInstructionsError",
    "OperationComposer",
    "OperationReport",
    "ScaledAmount",
    "SlippageOutOfRangeError",
    "U64_MAX",
    "WithdrawCommand",
    "load_instruction_builder",
    "make_command",
    "scale_amount",
    "validate_intent",
]
