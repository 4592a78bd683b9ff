"""
hdvault - Hierarchical deterministic key management.

Contains:
- Wallet: seed lifecycle, account creation and lookup, export/import
- Account: one derived key pair, encrypted at rest
- NameIndex: account name -> ID mapping
- Encryptor: Argon2id + AES-256-GCM encryption of secrets
- KeyDeriver: key pairs from a seed and a derivation path
- ScratchStore, FilesystemStore: storage backends
"""

from .account import Account
from .crypto import Encryptor, seal, unseal
from .derivation import KeyDeriver, ACCOUNT_PATH_TEMPLATE, account_path
from .errors import (
    WalletError,
    AlreadyExistsError,
    NotFoundError,
    WalletNotFoundError,
    AccountNotFoundError,
    InvalidInputError,
    LockedWalletError,
    AuthenticationError,
    CorruptStateError,
    StorageError,
)
from .index import NameIndex
from .records import WalletRecord, AccountRecord, WALLET_TYPE, WALLET_VERSION
from .store import Store, ScratchStore, FilesystemStore, default_store
from .stream import AccountStream
from .utils import Settings, load_settings
from .wallet import (
    Wallet,
    create_wallet,
    open_wallet,
    import_wallet,
    list_wallets,
)

__all__ = [
    # Wallet
    "Wallet",
    "create_wallet",
    "open_wallet",
    "import_wallet",
    "list_wallets",
    # Accounts
    "Account",
    "AccountStream",
    "NameIndex",
    # Records
    "WalletRecord",
    "AccountRecord",
    "WALLET_TYPE",
    "WALLET_VERSION",
    # Capabilities
    "Encryptor",
    "seal",
    "unseal",
    "KeyDeriver",
    "ACCOUNT_PATH_TEMPLATE",
    "account_path",
    "Store",
    "ScratchStore",
    "FilesystemStore",
    "default_store",
    # Configuration
    "Settings",
    "load_settings",
    # Errors
    "WalletError",
    "AlreadyExistsError",
    "NotFoundError",
    "WalletNotFoundError",
    "AccountNotFoundError",
    "InvalidInputError",
    "LockedWalletError",
    "AuthenticationError",
    "CorruptStateError",
    "StorageError",
]
