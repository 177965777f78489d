from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Protocol, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from amm_liquidity.common import capture_call, log_event

PipelineStage = Literal["built", "simulated", "submitted", "skipped_dry_run"]

CONFIRMED_STATUSES = {"confirmed", "finalized"}


class TransactionBuildError(RuntimeError):
    pass


class TransactionConfirmationError(RuntimeError):
    def __init__(self, message: str, *, tx_signature: str) -> None:
        super().__init__(message)
        self.tx_signature = tx_signature


class ChainRpc(Protocol):
    async def get_latest_blockhash(self) -> tuple[str, int | None]:
        ...

    async def simulate_transaction(self, tx: VersionedTransaction) -> dict[str, Any]:
        ...

    async def send_transaction(self, tx: VersionedTransaction, *, skip_preflight: bool = True) -> str:
        ...

    async def get_signature_status(self, tx_signature: str) -> dict[str, Any] | None:
        ...


@dataclass(slots=True, frozen=True)
class SimulationOutcome:
    err: Any
    logs: list[str] = field(default_factory=list)
    units_consumed: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.err is None

    @classmethod
    def from_rpc_value(cls, value: dict[str, Any]) -> "SimulationOutcome":
        logs = value.get("logs")
        units = value.get("unitsConsumed")
        return cls(
            err=value.get("err"),
            logs=[str(line) for line in logs] if isinstance(logs, list) else [],
            units_consumed=int(units) if isinstance(units, int) else None,
        )


@dataclass(slots=True, frozen=True)
class PipelineResult:
    stage: PipelineStage
    dry_run: bool
    simulation: SimulationOutcome | None = None
    signature: str | None = None
    simulation_error: str | None = None
    submission_error: str | None = None

    @property
    def simulation_succeeded(self) -> bool:
        return self.simulation is not None and self.simulation.succeeded

    @property
    def submitted(self) -> bool:
        return self.signature is not None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.simulation is not None:
            payload["simulation"]["logs"] = self.simulation.logs[-20:]
        return payload


@dataclass(slots=True, frozen=True)
class BuiltTransaction:
    unsigned_tx: VersionedTransaction
    latest_blockhash: str
    last_valid_block_height: int | None


class TransactionPipeline:
    """Build, always simulate, then sign and submit unless running dry.

    Build failures raise ``TransactionBuildError``. Simulation and submission
    failures are captured on the returned ``PipelineResult``. Nothing is
    retried.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        rpc: ChainRpc,
        payer: Keypair,
        signers: Sequence[Keypair] | None = None,
        confirm_timeout_seconds: float = 60.0,
        confirm_poll_interval_seconds: float = 1.0,
    ) -> None:
        self._logger = logger
        self._rpc = rpc
        self._payer = payer
        ordered: list[Keypair] = [payer]
        for signer in signers or ():
            if signer.pubkey() not in {existing.pubkey() for existing in ordered}:
                ordered.append(signer)
        self._signers = tuple(ordered)
        self._confirm_timeout_seconds = max(0.0, confirm_timeout_seconds)
        self._confirm_poll_interval_seconds = max(0.01, confirm_poll_interval_seconds)

    async def build(self, instructions: Sequence[Instruction]) -> BuiltTransaction:
        if not instructions:
            raise TransactionBuildError("Cannot build a transaction without instructions.")

        try:
            latest_blockhash, last_valid_block_height = await self._rpc.get_latest_blockhash()
            message = MessageV0.try_compile(
                self._payer.pubkey(),
                list(instructions),
                [],
                Hash.from_string(latest_blockhash),
            )
            required_signatures = message.header.num_required_signatures
            unsigned_tx = VersionedTransaction.populate(message, [Signature.default()] * required_signatures)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            log_event(
                self._logger,
                level="error",
                event="transaction_build_failed",
                message="Failed to build transaction",
                instruction_count=len(instructions),
                error=str(error),
            )
            raise TransactionBuildError(f"Transaction build failed: {error}") from error

        log_event(
            self._logger,
            level="debug",
            event="transaction_built",
            message="Unsigned transaction built",
            instruction_count=len(instructions),
            latest_blockhash=latest_blockhash,
            required_signatures=required_signatures,
        )
        return BuiltTransaction(
            unsigned_tx=unsigned_tx,
            latest_blockhash=latest_blockhash,
            last_valid_block_height=last_valid_block_height,
        )

    def sign(self, unsigned_tx: VersionedTransaction) -> VersionedTransaction:
        return VersionedTransaction(unsigned_tx.message, list(self._signers))

    async def simulate(self, unsigned_tx: VersionedTransaction) -> SimulationOutcome:
        value = await self._rpc.simulate_transaction(unsigned_tx)
        return SimulationOutcome.from_rpc_value(value)

    async def submit(self, built: BuiltTransaction) -> str:
        signed_tx = self.sign(built.unsigned_tx)
        tx_signature = await self._rpc.send_transaction(signed_tx)
        log_event(
            self._logger,
            level="info",
            event="transaction_submitted",
            message="Transaction submitted; waiting for confirmation",
            tx_signature=tx_signature,
            last_valid_block_height=built.last_valid_block_height,
        )
        await self.wait_for_confirmation(tx_signature)
        return tx_signature

    async def wait_for_confirmation(self, tx_signature: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._confirm_timeout_seconds

        while True:
            status = await self._rpc.get_signature_status(tx_signature)
            if status is not None:
                if status.get("err") is not None:
                    raise TransactionConfirmationError(
                        f"Transaction {tx_signature} failed on-chain: {status.get('err')}",
                        tx_signature=tx_signature,
                    )
                if str(status.get("confirmationStatus") or "") in CONFIRMED_STATUSES:
                    return status

            if loop.time() >= deadline:
                raise TransactionConfirmationError(
                    f"Transaction {tx_signature} was not confirmed within {self._confirm_timeout_seconds}s",
                    tx_signature=tx_signature,
                )
            await asyncio.sleep(self._confirm_poll_interval_seconds)

    async def process(self, instructions: Sequence[Instruction], *, dry_run: bool) -> PipelineResult:
        built = await self.build(instructions)

        simulated = await capture_call(
            lambda: self.simulate(built.unsigned_tx),
            logger=self._logger,
            event="transaction_simulation_failed",
            message="Transaction simulation request failed",
            level="error",
        )
        simulation = simulated.value
        if simulation is not None:
            log_event(
                self._logger,
                level="debug" if simulation.succeeded else "warning",
                event="transaction_simulated",
                message=(
                    "Transaction simulation succeeded"
                    if simulation.succeeded
                    else "Transaction simulation reported an error"
                ),
                simulation_err=simulation.err,
                units_consumed=simulation.units_consumed,
                logs=simulation.logs[-20:],
            )

        if dry_run:
            log_event(
                self._logger,
                level="info",
                event="transaction_dry_run",
                message="Dry run enabled; transaction was not submitted",
                instruction_count=len(instructions),
                simulation_succeeded=simulation is not None and simulation.succeeded,
            )
            return PipelineResult(
                stage="skipped_dry_run",
                dry_run=True,
                simulation=simulation,
                simulation_error=simulated.error_message,
            )

        submitted = await capture_call(
            lambda: self.submit(built),
            logger=self._logger,
            event="transaction_submission_failed",
            message="Transaction submission failed",
            level="error",
        )
        tx_signature = submitted.value
        if tx_signature is not None:
            log_event(
                self._logger,
                level="info",
                event="transaction_confirmed",
                message="Transaction confirmed",
                tx_signature=tx_signature,
            )

        return PipelineResult(
            stage="submitted",
            dry_run=False,
            simulation=simulation,
            signature=tx_signature,
            simulation_error=simulated.error_message,
            submission_error=submitted.error_message,
        )
