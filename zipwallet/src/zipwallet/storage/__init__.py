"""
Storage collaborators.

Available implementations:
- MemoryStorage: in-process dictionaries
- FileStorage: one file per record under a data directory
"""

from zipwallet.storage.base import WalletStorage
from zipwallet.storage.file import FileStorage
from zipwallet.storage.memory import MemoryStorage
from zipwallet.storage.records import UserRecords

__all__ = [
    "FileStorage",
    "MemoryStorage",
    "UserRecords",
    "WalletStorage",
]
