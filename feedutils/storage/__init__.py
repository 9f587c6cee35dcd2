"""Storage layer for feedutils."""

from .database import (
    EntryStore,
    LockError,
    LockTimeoutError,
    MissingFieldError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    decode_entries,
    encode_entries,
    init_store,
    lock_path,
    read_entries,
    transact,
)

__all__ = [
    "EntryStore",
    "LockError",
    "LockTimeoutError",
    "MissingFieldError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "decode_entries",
    "encode_entries",
    "init_store",
    "lock_path",
    "read_entries",
    "transact",
]
