"""
Tests for storage collaborators.
"""

from __future__ import annotations

import stat
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from zipwallet.storage.file import FileStorage
from zipwallet.storage.memory import MemoryStorage
from zipwallet.storage.records import UserRecords


@pytest.fixture
def temp_data_dir() -> Generator[Path]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestFileStorage:
    def test_private_key_permissions(self, temp_data_dir: Path) -> None:
        storage = FileStorage(temp_data_dir)
        storage.store_private_key(b"\x01" * 32)

        assert storage.get_private_key() == b"\x01" * 32
        mode = stat.S_IMODE((temp_data_dir / "wallet.key").stat().st_mode)
        assert mode == 0o600

    def test_missing_values(self, temp_data_dir: Path) -> None:
        storage = FileStorage(temp_data_dir)
        assert storage.get_private_key() is None
        assert storage.get_wallet_record() is None
        assert storage.get_registry_record() is None
        assert storage.get_cached_utxos("alice") is None
        assert storage.get_user_record("alice") is None

    def test_user_values(self, temp_data_dir: Path) -> None:
        storage = FileStorage(temp_data_dir)
        storage.cache_utxos("alice", b"[]")
        storage.store_user_record("alice", b"{}")

        assert storage.get_cached_utxos("alice") == b"[]"
        assert storage.get_user_record("alice") == b"{}"

        storage.delete_cached_utxos("alice")
        storage.delete_cached_utxos("alice")
        assert storage.get_cached_utxos("alice") is None

    def test_persists_across_instances(self, temp_data_dir: Path) -> None:
        FileStorage(temp_data_dir).store_wallet_record(b'{"derivation_index": 3}')
        assert FileStorage(temp_data_dir).get_wallet_record() == b'{"derivation_index": 3}'

    def test_registry_record_persists(self, temp_data_dir: Path) -> None:
        FileStorage(temp_data_dir).store_registry_record(b'{"next_prefix": 104}')
        assert FileStorage(temp_data_dir).get_registry_record() == b'{"next_prefix": 104}'

    @pytest.mark.parametrize("user_id", ["../escape", "a/b", "", ".."])
    def test_rejects_unsafe_user_ids(self, temp_data_dir: Path, user_id: str) -> None:
        storage = FileStorage(temp_data_dir)
        with pytest.raises(ValueError, match="Invalid user id"):
            storage.store_user_record(user_id, b"{}")


class TestUserRecords:
    @pytest.mark.asyncio
    async def test_sections_are_independent(self) -> None:
        records = UserRecords(MemoryStorage())
        await records.update_section("alice", "aliases", [{"prefix": "101"}])
        await records.update_section("alice", "balance", {"satoshis": 5})

        assert records.load("alice") == {
            "aliases": [{"prefix": "101"}],
            "balance": {"satoshis": 5},
        }

    def test_missing_record_is_empty(self) -> None:
        assert UserRecords(MemoryStorage()).load("nobody") == {}
