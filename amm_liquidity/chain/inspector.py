from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from amm_liquidity.common import log_event

# AMM v4 pool state, 752 bytes, little-endian.
AMM_INFO_SIZE = 752
AMM_INFO_U64_OFFSETS = {
    "status": 0,
    "coin_decimals": 32,
    "pc_decimals": 40,
    "sys_decimal_value": 120,
    "lp_amount": 720,
}
AMM_INFO_PUBKEY_OFFSETS = {
    "coin_vault": 336,
    "pc_vault": 368,
    "coin_mint": 400,
    "pc_mint": 432,
    "lp_mint": 464,
    "open_orders": 496,
    "market": 528,
    "market_program": 560,
    "target_orders": 592,
}


class PoolStateNotFoundError(RuntimeError):
    pass


class AccountReader(Protocol):
    async def get_account_data(self, address: str) -> bytes | None:
        ...

    async def get_token_account_balance(self, address: str) -> int:
        ...


def minimum_expected_change(amount: int, slippage: float) -> int:
    """Smallest balance movement still within ``slippage`` of ``amount``."""
    return int(amount * (1.0 - slippage))


@dataclass(slots=True, frozen=True)
class AmmPoolInfo:
    status: int
    coin_decimals: int
    pc_decimals: int
    sys_decimal_value: int
    lp_amount: int
    coin_vault: str
    pc_vault: str
    coin_mint: str
    pc_mint: str
    lp_mint: str
    open_orders: str
    market: str
    market_program: str
    target_orders: str

    @classmethod
    def from_bytes(cls, data: bytes) -> "AmmPoolInfo":
        if len(data) < AMM_INFO_SIZE:
            raise ValueError(f"AMM pool state is {len(data)} bytes, expected {AMM_INFO_SIZE}")

        values: dict[str, Any] = {
            name: struct.unpack_from("<Q", data, offset)[0] for name, offset in AMM_INFO_U64_OFFSETS.items()
        }
        values.update(
            {
                name: str(Pubkey.from_bytes(data[offset : offset + 32]))
                for name, offset in AMM_INFO_PUBKEY_OFFSETS.items()
            }
        )
        return cls(**values)


@dataclass(slots=True, frozen=True)
class PoolState:
    pool_id: str
    lp_total: int
    coin_vault_balance: int
    pc_vault_balance: int
    info: AmmPoolInfo

    def to_dict(self) -> dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "lp_total": self.lp_total,
            "coin_vault_balance": self.coin_vault_balance,
            "pc_vault_balance": self.pc_vault_balance,
        }


@dataclass(slots=True, frozen=True)
class PoolStateDelta:
    lp_total: int
    coin_vault_balance: int
    pc_vault_balance: int
    user_lp_balance: int | None = None

    @classmethod
    def between(
        cls,
        before: PoolState,
        after: PoolState,
        *,
        user_lp_before: int | None = None,
        user_lp_after: int | None = None,
    ) -> "PoolStateDelta":
        user_lp_delta = None
        if user_lp_before is not None and user_lp_after is not None:
            user_lp_delta = user_lp_after - user_lp_before
        return cls(
            lp_total=after.lp_total - before.lp_total,
            coin_vault_balance=after.coin_vault_balance - before.coin_vault_balance,
            pc_vault_balance=after.pc_vault_balance - before.pc_vault_balance,
            user_lp_balance=user_lp_delta,
        )

    def meets_minimum(self, minimum: int) -> bool:
        """True when every tracked balance moved by at least ``minimum`` in either direction."""
        changes = [self.lp_total, self.coin_vault_balance, self.pc_vault_balance]
        if self.user_lp_balance is not None:
            changes.append(self.user_lp_balance)
        return all(abs(change) >= minimum for change in changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PoolInspector:
    """Reads pool and token balances straight from chain on every call."""

    def __init__(self, *, logger: logging.Logger, rpc: AccountReader) -> None:
        self._logger = logger
        self._rpc = rpc

    async def fetch_amm_info(self, pool_id: str) -> AmmPoolInfo:
        data = await self._rpc.get_account_data(pool_id)
        if data is None:
            raise PoolStateNotFoundError(f"Pool state not found: {pool_id}")
        return AmmPoolInfo.from_bytes(data)

    async def fetch_token_account_balance(self, address: str) -> int:
        return await self._rpc.get_token_account_balance(address)

    async def fetch_pool_state(self, pool_id: str) -> PoolState:
        info = await self.fetch_amm_info(pool_id)
        coin_vault_balance = await self.fetch_token_account_balance(info.coin_vault)
        pc_vault_balance = await self.fetch_token_account_balance(info.pc_vault)

        log_event(
            self._logger,
            level="debug",
            event="pool_state_fetched",
            message="Fetched pool state",
            pool_id=pool_id,
            lp_total=info.lp_amount,
            coin_vault_balance=coin_vault_balance,
            pc_vault_balance=pc_vault_balance,
        )
        return PoolState(
            pool_id=pool_id,
            lp_total=info.lp_amount,
            coin_vault_balance=coin_vault_balance,
            pc_vault_balance=pc_vault_balance,
            info=info,
        )

    async def fetch_token_balance(self, owner: str, mint: str) -> int:
        ata = get_associated_token_address(Pubkey.from_string(owner), Pubkey.from_string(mint))
        return await self.fetch_token_account_balance(str(ata))

    async def wait_for_settlement(self, seconds: float) -> None:
        if seconds <= 0:
            return
        log_event(
            self._logger,
            level="info",
            event="settlement_wait",
            message="Waiting for accounts to settle before reading post-transaction state",
            wait_seconds=seconds,
        )
        await asyncio.sleep(seconds)
