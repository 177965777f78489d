from .inspector import (
    AmmPoolInfo,
    PoolInspector,
    PoolState,
    PoolStateDelta,
    PoolStateNotFoundError,
    get_associated_token_address,
    minimum_expected_change,
)
from .pipeline import (
    PipelineResult,
    SimulationOutcome,
    TransactionBuildError,
    TransactionConfirmationError,
    TransactionPipeline,
)
from .rpc import RpcMethodError, SolanaRpcClient
from .signers import load_signer, parse_private_key, read_keypair_file

__all__ = [
    "AmmPoolInfo",
    "PipelineResult",
    "PoolInspector",
    "PoolState",
    "PoolStateDelta",
    "PoolStateNotFoundError",
    "RpcMethodError",
    "SimulationOutcome",
    "SolanaRpcClient",
    "TransactionBuildError",
    "TransactionConfirmationError",
    "TransactionPipeline",
    "get_associated_token_address",
    "load_signer",
    "minimum_expected_change",
    "parse_private_key",
    "read_keypair_file",
]
