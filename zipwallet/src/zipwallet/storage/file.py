"""
Directory-backed storage.

Layout under ``data_dir``:
    wallet.key          master seed (mode 0600)
    wallet.json         wallet record
    registry.json       alias registry record
    users/<id>.json     user records
    utxos/<id>.json     cached spendable sets
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from loguru import logger

from zipwallet.storage.base import WalletStorage

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


class FileStorage(WalletStorage):
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        (self.data_dir / "users").mkdir(parents=True, exist_ok=True)
        (self.data_dir / "utxos").mkdir(parents=True, exist_ok=True)

    def _user_path(self, kind: str, user_id: str) -> Path:
        if not _USER_ID_RE.match(user_id) or user_id in (".", ".."):
            raise ValueError(f"Invalid user id: {user_id!r}")
        return self.data_dir / kind / f"{user_id}.json"

    @staticmethod
    def _read(path: Path) -> bytes | None:
        if not path.exists():
            return None
        return path.read_bytes()

    @staticmethod
    def _write(path: Path, data: bytes, mode: int | None = None) -> None:
        # Atomic replace
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)

    def get_private_key(self) -> bytes | None:
        return self._read(self.data_dir / "wallet.key")

    def store_private_key(self, key: bytes) -> None:
        path = self.data_dir / "wallet.key"
        self._write(path, key, mode=0o600)
        logger.info(f"Wallet key stored at {path}")

    def get_cached_utxos(self, user_id: str) -> bytes | None:
        return self._read(self._user_path("utxos", user_id))

    def cache_utxos(self, user_id: str, data: bytes) -> None:
        self._write(self._user_path("utxos", user_id), data)

    def delete_cached_utxos(self, user_id: str) -> None:
        self._user_path("utxos", user_id).unlink(missing_ok=True)

    def get_user_record(self, user_id: str) -> bytes | None:
        return self._read(self._user_path("users", user_id))

    def store_user_record(self, user_id: str, data: bytes) -> None:
        self._write(self._user_path("users", user_id), data)

    def get_wallet_record(self) -> bytes | None:
        return self._read(self.data_dir / "wallet.json")

    def store_wallet_record(self, data: bytes) -> None:
        self._write(self.data_dir / "wallet.json", data)

    def get_registry_record(self) -> bytes | None:
        return self._read(self.data_dir / "registry.json")

    def store_registry_record(self, data: bytes) -> None:
        self._write(self.data_dir / "registry.json", data)
