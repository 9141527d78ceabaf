"""
JSON user records shared by the alias registry and the orchestrator.

A record is a JSON object with independent sections ("aliases", "balance").
Callers hold ``lock`` across a load/store pair.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from zipwallet.storage.base import WalletStorage


class UserRecords:
    def __init__(self, storage: WalletStorage):
        self.storage = storage
        self.lock = asyncio.Lock()

    def load(self, user_id: str) -> dict[str, Any]:
        raw = self.storage.get_user_record(user_id)
        return json.loads(raw) if raw is not None else {}

    def store(self, user_id: str, record: dict[str, Any]) -> None:
        self.storage.store_user_record(user_id, json.dumps(record).encode("utf-8"))

    async def update_section(self, user_id: str, section: str, value: Any) -> None:
        async with self.lock:
            record = self.load(user_id)
            record[section] = value
            self.store(user_id, record)
