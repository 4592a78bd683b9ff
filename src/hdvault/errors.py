"""
Errors - Failure taxonomy for wallet and account operations.

Every failure surfaced by hdvault derives from WalletError so callers can
catch the whole family or a single condition.
"""


class WalletError(Exception):
    """Base class for all hdvault errors."""


class AlreadyExistsError(WalletError):
    """Raised when a wallet or account name is already taken."""


class NotFoundError(WalletError):
    """Raised when a lookup by name or identifier finds nothing."""


class WalletNotFoundError(NotFoundError):
    """Raised when the store holds no wallet with the requested name."""


class AccountNotFoundError(NotFoundError):
    """Raised when a wallet holds no account with the requested name or ID."""


class InvalidInputError(WalletError, ValueError):
    """Raised for malformed names, seeds or derivation paths."""


class LockedWalletError(WalletError):
    """Raised when a privileged operation is attempted while locked."""


class AuthenticationError(WalletError):
    """Raised when a passphrase does not open an encrypted payload.

    Wrong passphrases and corrupt ciphertexts are reported identically.
    """


class CorruptStateError(WalletError):
    """Raised when a stored wallet, index or account record fails to decode."""


class StorageError(WalletError):
    """Raised when the storage backend fails to read or write."""
