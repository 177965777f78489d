from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from amm_liquidity.cache import CacheError, CacheResolver, PoolRecord
from amm_liquidity.chain import (
    PoolInspector,
    PoolState,
    PoolStateDelta,
    SolanaRpcClient,
    TransactionBuildError,
    TransactionPipeline,
    load_signer,
    minimum_expected_change,
)
from amm_liquidity.common import capture_call, log_event
from amm_liquidity.liquidity import (
    ClusterConfig,
    LiquidityError,
    LiquidityInstructionAdapter,
    LiquidityOperations,
    OperationComposer,
    OperationReport,
    load_instruction_builder,
)
from amm_liquidity.runtime import AppSettings, setup_logger

EXIT_OK = 0
EXIT_OPERATION_INCOMPLETE = 1
EXIT_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Add or remove liquidity on the cached AMM pool.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--slippage", type=float, default=0.01, help="Slippage fraction in [0, 1].")
        sub.add_argument(
            "--dry-run",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Simulate only. Defaults to DRY_RUN from the environment.",
        )
        sub.add_argument(
            "--verify",
            action="store_true",
            help="Wait for settlement and log pool and LP balance changes.",
        )

    add = subparsers.add_parser("add", help="Add liquidity.")
    add.add_argument("--amount", type=int, required=True, help="Amount without decimals.")
    add_common(add)

    remove = subparsers.add_parser("remove", help="Remove liquidity.")
    remove.add_argument("--amount", type=int, required=True, help="LP amount without decimals.")
    add_common(remove)

    add_remove = subparsers.add_parser("add-remove", help="Add then remove liquidity in one transaction.")
    add_remove.add_argument("--add-amount", type=int, required=True)
    add_remove.add_argument("--remove-amount", type=int, required=True)
    add_common(add_remove)

    subparsers.add_parser("inspect", help="Show pool vault balances and the wallet LP balance.")
    return parser


async def snapshot(
    *,
    inspector: PoolInspector,
    pool: PoolRecord,
    owner: str,
    logger: logging.Logger,
) -> tuple[PoolState | None, int | None]:
    state = await capture_call(
        lambda: inspector.fetch_pool_state(pool.amm_id),
        logger=logger,
        event="pool_snapshot_failed",
        message="Failed to fetch pool state",
        pool_id=pool.amm_id,
    )
    user_lp = await capture_call(
        lambda: inspector.fetch_token_balance(owner, pool.lp_mint),
        logger=logger,
        event="user_lp_snapshot_failed",
        message="Failed to fetch wallet LP balance",
        pool_id=pool.amm_id,
    )
    return state.value, user_lp.value


def expected_net_amount(args: argparse.Namespace) -> int:
    if args.command == "add-remove":
        return abs(args.add_amount - args.remove_amount)
    return args.amount


async def run_operation(
    *,
    args: argparse.Namespace,
    operations: LiquidityOperations,
    pool_id: str,
    dry_run: bool,
) -> OperationReport:
    if args.command == "add":
        return await operations.add_liquidity(pool_id=pool_id, amount=args.amount, slippage=args.slippage, dry_run=dry_run)
    if args.command == "remove":
        return await operations.remove_liquidity(
            pool_id=pool_id,
            amount=args.amount,
            slippage=args.slippage,
            dry_run=dry_run,
        )
    return await operations.add_remove_liquidity(
        pool_id=pool_id,
        add_amount=args.add_amount,
        remove_amount=args.remove_amount,
        slippage=args.slippage,
        dry_run=dry_run,
    )


async def run(args: argparse.Namespace, *, settings: AppSettings, logger: logging.Logger) -> int:
    resolver = CacheResolver(
        logger=logger,
        cache_dir=settings.resolved_cache_dir(),
        prefix=settings.cache_prefix,
    )
    market, pool = resolver.resolve()
    signer = load_signer(private_key=settings.private_key, wallet_path=settings.wallet_path)
    owner = str(signer.pubkey())

    rpc = SolanaRpcClient(
        logger=logger,
        rpc_url=settings.cluster_url,
        timeout_seconds=settings.rpc_timeout_seconds,
    )
    inspector = PoolInspector(logger=logger, rpc=rpc)

    async with rpc:
        if args.command == "inspect":
            state, user_lp = await snapshot(inspector=inspector, pool=pool, owner=owner, logger=logger)
            log_event(
                logger,
                level="info",
                event="pool_inspected",
                message="Pool state",
                market_id=market.market_id,
                pool=state.to_dict() if state is not None else None,
                user_lp_balance=user_lp,
            )
            return EXIT_OK if state is not None else EXIT_FAILED

        builder = load_instruction_builder(settings.instruction_builder)
        adapter = LiquidityInstructionAdapter(
            logger=logger,
            builder=builder,
            config=ClusterConfig(
                cluster_url=settings.cluster_url,
                websocket_url=settings.websocket_url,
                wallet=settings.wallet_path,
            ),
        )
        pipeline = TransactionPipeline(
            logger=logger,
            rpc=rpc,
            payer=signer,
            confirm_timeout_seconds=settings.confirm_timeout_seconds,
            confirm_poll_interval_seconds=settings.confirm_poll_interval_seconds,
        )
        operations = LiquidityOperations(
            logger=logger,
            pool_info_source=inspector,
            composer=OperationComposer(logger=logger, adapter=adapter),
            pipeline=pipeline,
        )
        dry_run = settings.dry_run if args.dry_run is None else args.dry_run

        before: tuple[PoolState | None, int | None] = (None, None)
        if args.verify:
            before = await snapshot(inspector=inspector, pool=pool, owner=owner, logger=logger)

        report = await run_operation(args=args, operations=operations, pool_id=pool.amm_id, dry_run=dry_run)
        log_event(logger, level="info", event="operation_report", message="Operation report", **report.to_dict())

        if args.verify and report.result.submitted:
            await inspector.wait_for_settlement(settings.settle_wait_seconds)
            after = await snapshot(inspector=inspector, pool=pool, owner=owner, logger=logger)
            log_verification(logger=logger, args=args, before=before, after=after)

        return EXIT_OK if report.succeeded else EXIT_OPERATION_INCOMPLETE


def log_verification(
    *,
    logger: logging.Logger,
    args: argparse.Namespace,
    before: tuple[PoolState | None, int | None],
    after: tuple[PoolState | None, int | None],
) -> None:
    before_state, user_lp_before = before
    after_state, user_lp_after = after
    if before_state is None or after_state is None:
        log_event(
            logger,
            level="warning",
            event="verification_skipped",
            message="Pool state was unavailable before or after the operation",
        )
        return

    delta = PoolStateDelta.between(
        before_state,
        after_state,
        user_lp_before=user_lp_before,
        user_lp_after=user_lp_after,
    )
    minimum = minimum_expected_change(expected_net_amount(args), args.slippage)
    details: dict[str, Any] = {
        "before": before_state.to_dict(),
        "after": after_state.to_dict(),
        "delta": delta.to_dict(),
        "minimum_expected_change": minimum,
        "user_lp_before": user_lp_before,
        "user_lp_after": user_lp_after,
    }
    if delta.meets_minimum(minimum):
        log_event(logger, level="info", event="verification_passed", message="Balances moved as expected", **details)
    else:
        log_event(
            logger,
            level="warning",
            event="verification_failed",
            message="Balances moved less than expected after slippage",
            **details,
        )


async def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        settings = AppSettings.from_env()
    except ValueError as error:
        log_event(
            setup_logger(),
            level="error",
            event="settings_invalid",
            message="Invalid configuration",
            error=str(error),
        )
        return EXIT_FAILED
    logger = setup_logger(settings.log_level)

    try:
        return await run(args, settings=settings, logger=logger)
    except (LiquidityError, CacheError, TransactionBuildError, ValueError, FileNotFoundError) as error:
        log_event(
            logger,
            level="error",
            event="operation_rejected",
            message="Liquidity operation failed before submission",
            command=args.command,
            error=str(error),
            error_type=type(error).__name__,
        )
        return EXIT_FAILED
    except Exception as error:
        log_event(
            logger,
            level="exception",
            event="operation_crashed",
            message="Liquidity operation crashed",
            command=args.command,
            error=str(error),
        )
        return EXIT_FAILED


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
