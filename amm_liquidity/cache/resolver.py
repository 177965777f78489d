from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from amm_liquidity.common import log_event

from .records import MarketRecord, PoolRecord, RecordFieldError

R = TypeVar("R", MarketRecord, PoolRecord)

MARKET_FILE_NAME = "market.json"
POOL_FILE_NAME = "pool.json"


class CacheError(RuntimeError):
    pass


class CacheFileNotFoundError(CacheError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Cache file not found at path: {path}")
        self.path = path


class CacheReadError(CacheError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Unable to read cache file {path}: {reason}")
        self.path = path


class CacheMalformedError(CacheError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cache file {path} is malformed: {reason}")
        self.path = path


class CacheIdMismatchError(CacheError):
    def __init__(self, *, path: Path, expected_market_id: str, actual_market_id: str) -> None:
        super().__init__(
            "Pool cache market id does not match: "
            f"expected={expected_market_id} actual={actual_market_id} path={path}"
        )
        self.path = path
        self.expected_market_id = expected_market_id
        self.actual_market_id = actual_market_id


class CacheResolver:
    """Reads market and pool snapshots from ``cache_dir``.

    Every call goes back to disk so a replaced snapshot is picked up on the
    next operation.
    """

    def __init__(self, *, logger: logging.Logger, cache_dir: Path | str, prefix: str = "") -> None:
        self._logger = logger
        self._cache_dir = Path(cache_dir)
        self._prefix = prefix

    @property
    def market_path(self) -> Path:
        return self._cache_dir / f"{self._prefix}{MARKET_FILE_NAME}"

    @property
    def pool_path(self) -> Path:
        return self._cache_dir / f"{self._prefix}{POOL_FILE_NAME}"

    def resolve_market(self) -> MarketRecord:
        return self._load(self.market_path, MarketRecord.from_payload)

    def resolve_pool(self, expected_market_id: str) -> PoolRecord:
        path = self.pool_path
        pool = self._load(path, PoolRecord.from_payload)
        if pool.market_id != expected_market_id:
            log_event(
                self._logger,
                level="error",
                event="cache_market_id_mismatch",
                message="Pool cache references a different market",
                path=str(path),
                expected_market_id=expected_market_id,
                actual_market_id=pool.market_id,
            )
            raise CacheIdMismatchError(
                path=path,
                expected_market_id=expected_market_id,
                actual_market_id=pool.market_id,
            )
        return pool

    def resolve(self) -> tuple[MarketRecord, PoolRecord]:
        market = self.resolve_market()
        return market, self.resolve_pool(market.market_id)

    def _load(self, path: Path, parse: Callable[[dict[str, Any]], R]) -> R:
        if not path.exists():
            log_event(
                self._logger,
                level="error",
                event="cache_file_not_found",
                message="Cache file not found",
                path=str(path),
            )
            raise CacheFileNotFoundError(path)

        try:
            raw_text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            log_event(
                self._logger,
                level="error",
                event="cache_read_failed",
                message="Unable to read cache file",
                path=str(path),
                error=str(error),
            )
            raise CacheReadError(path, str(error)) from error

        try:
            document = json.loads(raw_text)
        except json.JSONDecodeError as error:
            raise self._malformed(path, f"invalid JSON: {error}") from error

        record_payload = document.get("address") if isinstance(document, dict) else None
        if not isinstance(record_payload, dict):
            raise self._malformed(path, "address field not found")

        try:
            record = parse(record_payload)
        except RecordFieldError as error:
            raise self._malformed(path, str(error)) from error

        log_event(
            self._logger,
            level="debug",
            event="cache_record_loaded",
            message="Loaded cache record",
            path=str(path),
            record_type=type(record).__name__,
        )
        return record

    def _malformed(self, path: Path, reason: str) -> CacheMalformedError:
        log_event(
            self._logger,
            level="error",
            event="cache_file_malformed",
            message="Cache file is malformed",
            path=str(path),
            reason=reason,
        )
        return CacheMalformedError(path, reason)
