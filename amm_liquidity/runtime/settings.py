from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CLUSTER_URL = "https://api.devnet.solana.com"
DEFAULT_WEBSOCKET_URL = "wss://api.devnet.solana.com"
DEFAULT_CACHE_DIR = "../cache/"
DEFAULT_SETTLE_WAIT_SECONDS = 15.0
DEVNET_CACHE_PREFIX = "devnet_"


def to_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def to_float(value: Any, default: float) -> float:
    try:
        if value is None or str(value).strip() == "":
            return default
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


KNOWN_NETWORKS = ("devnet", "testnet", "mainnet", "localnet")
NETWORK_ALIASES = {"mainnet-beta": "mainnet", "localhost": "localnet"}


def normalize_network(value: str | None) -> str:
    """Map a cluster name to one of ``KNOWN_NETWORKS``; unset means devnet."""
    network = (value or "").strip().lower()
    if not network:
        return "devnet"
    network = NETWORK_ALIASES.get(network, network)
    if network not in KNOWN_NETWORKS:
        raise ValueError(f"Unsupported SOLANA_NETWORK {value!r}; expected one of {', '.join(KNOWN_NETWORKS)}.")
    return network


def default_wallet_path() -> str:
    return str(Path.home() / ".config" / "solana" / "id.json")


def cache_prefix_for(network: str) -> str:
    return DEVNET_CACHE_PREFIX if network == "devnet" else ""


@dataclass(slots=True)
class AppSettings:
    cluster_url: str
    websocket_url: str
    network: str
    cache_dir: str
    cache_prefix: str
    private_key: str
    wallet_path: str
    dry_run: bool
    rpc_timeout_seconds: float
    confirm_timeout_seconds: float
    confirm_poll_interval_seconds: float
    settle_wait_seconds: float
    instruction_builder: str
    log_level: str

    @classmethod
    def from_env(cls) -> "AppSettings":
        network = normalize_network(os.getenv("SOLANA_NETWORK"))
        prefix_override = os.getenv("LIQUIDITY_CACHE_PREFIX")
        return cls(
            cluster_url=os.getenv("SOLANA_CLUSTER_URL", DEFAULT_CLUSTER_URL).strip() or DEFAULT_CLUSTER_URL,
            websocket_url=os.getenv("SOLANA_WEBSOCKET_URL", DEFAULT_WEBSOCKET_URL).strip() or DEFAULT_WEBSOCKET_URL,
            network=network,
            cache_dir=os.getenv("LIQUIDITY_CACHE_DIR", DEFAULT_CACHE_DIR).strip() or DEFAULT_CACHE_DIR,
            cache_prefix=(
                prefix_override.strip() if prefix_override is not None else cache_prefix_for(network)
            ),
            private_key=os.getenv("PRIVATE_KEY", ""),
            wallet_path=os.getenv("SOLANA_WALLET_PATH", "").strip() or default_wallet_path(),
            dry_run=to_bool(os.getenv("DRY_RUN"), True),
            rpc_timeout_seconds=max(1.0, to_float(os.getenv("RPC_TIMEOUT_SECONDS"), 15.0)),
            confirm_timeout_seconds=max(
                5.0,
                to_float(os.getenv("CONFIRM_TIMEOUT_SECONDS"), 60.0),
            ),
            confirm_poll_interval_seconds=max(
                0.25,
                to_float(os.getenv("CONFIRM_POLL_INTERVAL_SECONDS"), 1.0),
            ),
            settle_wait_seconds=max(
                0.0,
                to_float(os.getenv("SETTLE_WAIT_SECONDS"), DEFAULT_SETTLE_WAIT_SECONDS),
            ),
            instruction_builder=os.getenv("AMM_INSTRUCTION_BUILDER", "").strip(),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO",
        )

    def resolved_cache_dir(self, *, cwd: Path | None = None) -> Path:
        base = cwd if cwd is not None else Path.cwd()
        path = Path(self.cache_dir).expanduser()
        return path if path.is_absolute() else base / path
