from __future__ import annotations

import contextlib
import json
from pathlib import Path

from solders.keypair import Keypair


def parse_private_key(raw: str) -> Keypair:
    value = raw.strip()

    if value.startswith("["):
        arr = json.loads(value)
        if not isinstance(arr, list):
            raise ValueError("PRIVATE_KEY JSON must be an integer array.")
        return Keypair.from_bytes(bytes(arr))

    with contextlib.suppress(Exception):
        return Keypair.from_base58_string(value)

    raise ValueError("Unsupported PRIVATE_KEY format.")


def read_keypair_file(path: str | Path) -> Keypair:
    wallet_path = Path(path).expanduser()
    if not wallet_path.exists():
        raise FileNotFoundError(f"Wallet keypair file not found: {wallet_path}")
    return parse_private_key(wallet_path.read_text(encoding="utf-8"))


def load_signer(*, private_key: str, wallet_path: str) -> Keypair:
    """PRIVATE_KEY wins over the wallet file when both are configured."""
    if private_key.strip():
        return parse_private_key(private_key)
    return read_keypair_file(wallet_path)
