"""
Store - Durable byte-blob persistence for wallets, accounts and indexes.

Provides:
- Store: the storage contract wallets are built on
- ScratchStore: in-memory store (tests, ephemeral wallets)
- FilesystemStore: one directory per wallet under a base directory

FilesystemStore layout:
    <base>/<wallet id>/<wallet id>    wallet record
    <base>/<wallet id>/<account id>   account records
    <base>/<wallet id>/index          accounts index
"""

import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from .errors import AccountNotFoundError, NotFoundError, StorageError, WalletNotFoundError

logger = logging.getLogger(__name__)

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only
INDEX_FILENAME = "index"


def _set_secure_permissions(filepath: Path) -> None:
    """Set restrictive file permissions on Unix systems."""
    if os.name == 'posix':
        try:
            os.chmod(filepath, SECURE_FILE_MODE)
        except OSError:
            pass


class Store(ABC):
    """Storage contract consumed by wallets."""

    @abstractmethod
    def store_wallet(self, wallet_id: uuid.UUID, name: str, data: bytes) -> None:
        """Store (or overwrite) a wallet record."""

    @abstractmethod
    def retrieve_wallet(self, name: str) -> bytes:
        """Get a wallet record by name. Raises WalletNotFoundError."""

    @abstractmethod
    def retrieve_wallets(self) -> Iterator[bytes]:
        """Iterate over every wallet record."""

    @abstractmethod
    def store_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID, data: bytes) -> None:
        """Store (or overwrite) an account record."""

    @abstractmethod
    def retrieve_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID) -> bytes:
        """Get an account record. Raises AccountNotFoundError."""

    @abstractmethod
    def retrieve_accounts(self, wallet_id: uuid.UUID) -> Iterator[bytes]:
        """Iterate over every account record of a wallet."""

    @abstractmethod
    def store_accounts_index(self, wallet_id: uuid.UUID, data: bytes) -> None:
        """Store (or overwrite) a wallet's accounts index."""

    @abstractmethod
    def retrieve_accounts_index(self, wallet_id: uuid.UUID) -> bytes:
        """Get a wallet's accounts index. Raises NotFoundError."""


class ScratchStore(Store):
    """Keeps everything in memory. Safe for concurrent use."""

    def __init__(self):
        self._wallets: dict[uuid.UUID, tuple[str, bytes]] = {}         # id -> (name, data)
        self._accounts: dict[uuid.UUID, dict[uuid.UUID, bytes]] = {}   # wallet id -> id -> data
        self._indexes: dict[uuid.UUID, bytes] = {}
        self._lock = threading.Lock()

    def store_wallet(self, wallet_id: uuid.UUID, name: str, data: bytes) -> None:
        with self._lock:
            self._wallets[wallet_id] = (name, bytes(data))
            self._accounts.setdefault(wallet_id, {})

    def retrieve_wallet(self, name: str) -> bytes:
        with self._lock:
            for wallet_name, data in self._wallets.values():
                if wallet_name == name:
                    return data
        raise WalletNotFoundError(f"wallet {name!r} not found")

    def retrieve_wallets(self) -> Iterator[bytes]:
        with self._lock:
            snapshot = [data for _, data in self._wallets.values()]
        yield from snapshot

    def store_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID, data: bytes) -> None:
        with self._lock:
            if wallet_id not in self._wallets:
                raise WalletNotFoundError(f"wallet {wallet_id} not found")
            self._accounts[wallet_id][account_id] = bytes(data)

    def retrieve_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID) -> bytes:
        with self._lock:
            data = self._accounts.get(wallet_id, {}).get(account_id)
        if data is None:
            raise AccountNotFoundError(f"account {account_id} not found")
        return data

    def retrieve_accounts(self, wallet_id: uuid.UUID) -> Iterator[bytes]:
        with self._lock:
            snapshot = list(self._accounts.get(wallet_id, {}).values())
        yield from snapshot

    def store_accounts_index(self, wallet_id: uuid.UUID, data: bytes) -> None:
        with self._lock:
            self._indexes[wallet_id] = bytes(data)

    def retrieve_accounts_index(self, wallet_id: uuid.UUID) -> bytes:
        with self._lock:
            data = self._indexes.get(wallet_id)
        if data is None:
            raise NotFoundError(f"accounts index for wallet {wallet_id} not found")
        return data


class FilesystemStore(Store):
    """Stores each wallet in its own directory under base_dir."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _wallet_dir(self, wallet_id: uuid.UUID) -> Path:
        return self.base_dir / str(wallet_id)

    def _write(self, filepath: Path, data: bytes) -> None:
        """Write atomically via a temp file, then restrict permissions."""
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            temp_path = filepath.with_suffix('.tmp')
            with open(temp_path, 'wb') as f:
                f.write(data)
            temp_path.replace(filepath)
        except OSError as e:
            raise StorageError(f"failed to write {filepath.name}") from e
        _set_secure_permissions(filepath)

    def _read(self, filepath: Path) -> Optional[bytes]:
        """Read a file. Returns None if it does not exist."""
        try:
            with open(filepath, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"failed to read {filepath.name}") from e

    def _wallet_files(self) -> Iterator[Path]:
        for wallet_dir in sorted(self.base_dir.iterdir()):
            if wallet_dir.is_dir():
                filepath = wallet_dir / wallet_dir.name
                if filepath.is_file():
                    yield filepath

    def store_wallet(self, wallet_id: uuid.UUID, name: str, data: bytes) -> None:
        self._write(self._wallet_dir(wallet_id) / str(wallet_id), data)

    def retrieve_wallet(self, name: str) -> bytes:
        for filepath in self._wallet_files():
            data = self._read(filepath)
            if data is None:
                continue
            try:
                if json.loads(data).get("name") == name:
                    return data
            except (ValueError, AttributeError):
                logger.warning(f"Skipping unreadable wallet file {filepath}")
        raise WalletNotFoundError(f"wallet {name!r} not found")

    def retrieve_wallets(self) -> Iterator[bytes]:
        for filepath in self._wallet_files():
            data = self._read(filepath)
            if data is not None:
                yield data

    def store_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID, data: bytes) -> None:
        wallet_dir = self._wallet_dir(wallet_id)
        if not wallet_dir.is_dir():
            raise WalletNotFoundError(f"wallet {wallet_id} not found")
        self._write(wallet_dir / str(account_id), data)

    def retrieve_account(self, wallet_id: uuid.UUID, account_id: uuid.UUID) -> bytes:
        data = self._read(self._wallet_dir(wallet_id) / str(account_id))
        if data is None:
            raise AccountNotFoundError(f"account {account_id} not found")
        return data

    def retrieve_accounts(self, wallet_id: uuid.UUID) -> Iterator[bytes]:
        wallet_dir = self._wallet_dir(wallet_id)
        if not wallet_dir.is_dir():
            return
        skip = {str(wallet_id), INDEX_FILENAME}
        for filepath in sorted(wallet_dir.iterdir()):
            if filepath.name in skip or filepath.suffix == '.tmp' or not filepath.is_file():
                continue
            data = self._read(filepath)
            if data is not None:
                yield data

    def store_accounts_index(self, wallet_id: uuid.UUID, data: bytes) -> None:
        self._write(self._wallet_dir(wallet_id) / INDEX_FILENAME, data)

    def retrieve_accounts_index(self, wallet_id: uuid.UUID) -> bytes:
        data = self._read(self._wallet_dir(wallet_id) / INDEX_FILENAME)
        if data is None:
            raise NotFoundError(f"accounts index for wallet {wallet_id} not found")
        return data


def default_store(settings=None) -> FilesystemStore:
    """Build a FilesystemStore on the configured wallet directory."""
    from .utils import load_settings

    if settings is None:
        settings = load_settings()
    return FilesystemStore(settings.wallet_dir)
