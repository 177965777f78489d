from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any


def _camel_case(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.capitalize() for part in tail)


# The upstream market snapshot spells the quote mint key "quoteMin".
MARKET_KEY_OVERRIDES = {"quote_mint": "quoteMin"}


class RecordFieldError(ValueError):
    pass


def _read_fields(cls: type, payload: dict[str, Any], overrides: dict[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for item in fields(cls):
        key = overrides.get(item.name, _camel_case(item.name))
        raw = payload.get(key)
        if not isinstance(raw, str) or not raw.strip():
            raise RecordFieldError(f"field {key!r} is missing or not a non-empty string")
        values[item.name] = raw.strip()
    return values


@dataclass(slots=True, frozen=True)
class MarketRecord:
    market_id: str
    request_queue: str
    event_queue: str
    bids: str
    asks: str
    base_vault: str
    quote_vault: str
    base_mint: str
    quote_mint: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MarketRecord":
        return cls(**_read_fields(cls, payload, MARKET_KEY_OVERRIDES))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class PoolRecord:
    program_id: str
    amm_id: str
    amm_authority: str
    amm_open_orders: str
    lp_mint: str
    coin_mint: str
    pc_mint: str
    coin_vault: str
    pc_vault: str
    withdraw_queue: str
    amm_target_orders: str
    pool_temp_lp: str
    market_program_id: str
    market_id: str
    amm_config_id: str
    fee_destination_id: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PoolRecord":
        return cls(**_read_fields(cls, payload, {}))

    @property
    def pool_id(self) -> str:
        return self.amm_id

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
