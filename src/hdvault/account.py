"""
Account - One derived key pair and its metadata.

An account's private key is stored encrypted under the passphrase chosen
when the account was created. Unlocking an account decrypts the key into
memory for signing; it does not require the wallet to be unlocked.
"""

import threading
import uuid
import weakref
from typing import TYPE_CHECKING, Optional

from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct
from eth_keys import keys

from .crypto import Encryptor, Passphrase
from .errors import AuthenticationError, LockedWalletError
from .records import AccountRecord

if TYPE_CHECKING:
    from .wallet import Wallet


class Account:
    """
    An account within a wallet.

    Accounts keep a weak reference to their wallet; the wallet is never
    modified through it.
    """

    def __init__(self, account_id: uuid.UUID, name: str, path: str,
                 public_key: bytes, crypto: dict, version: int,
                 encryptor: Encryptor, wallet: Optional["Wallet"] = None,
                 secret_key: Optional[bytes] = None):
        self._id = account_id
        self._name = name
        self._path = path
        self._public_key = public_key
        self._crypto = crypto
        self._version = version
        self._encryptor = encryptor
        self._wallet = weakref.ref(wallet) if wallet is not None else None
        self._secret_key = secret_key
        self._lock = threading.Lock()

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> str:
        """Full derivation path of this account's key."""
        return self._path

    @property
    def public_key(self) -> bytes:
        """Compressed secp256k1 public key (33 bytes)."""
        return self._public_key

    @property
    def crypto(self) -> dict:
        """Encrypted private key, as produced by the encryptor."""
        return self._crypto

    @property
    def version(self) -> int:
        """Version of the encryptor that protects the private key."""
        return self._version

    @property
    def encryptor_name(self) -> str:
        return self._encryptor.name

    @property
    def wallet(self) -> Optional["Wallet"]:
        """The owning wallet, if it is still alive."""
        return self._wallet() if self._wallet is not None else None

    @property
    def address(self) -> str:
        """Checksummed address of the public key."""
        return keys.PublicKey.from_compressed_bytes(self._public_key).to_checksum_address()

    # ============================================
    # Lock / Unlock
    # ============================================

    def unlock(self, passphrase: Passphrase) -> None:
        """Decrypt the private key into memory."""
        with self._lock:
            try:
                self._secret_key = self._encryptor.decrypt(self._crypto, passphrase)
            except AuthenticationError:
                raise AuthenticationError(f"incorrect passphrase for account {self._name!r}") from None

    def lock(self) -> None:
        """Discard the private key from memory."""
        with self._lock:
            self._secret_key = None

    def is_unlocked(self) -> bool:
        return self._secret_key is not None

    def private_key(self) -> bytes:
        """
        Get the raw private key.

        WARNING: Handle with extreme care! Only for signing.
        """
        secret_key = self._secret_key
        if secret_key is None:
            raise LockedWalletError(f"account {self._name!r} must be unlocked to provide its key")
        return secret_key

    def sign(self, message: bytes) -> bytes:
        """Sign a message (EIP-191 "Ethereum Signed Message" format)."""
        signer = EthAccount.from_key(self.private_key())
        signed = signer.sign_message(encode_defunct(primitive=message))
        return bytes(signed.signature)

    # ============================================
    # Serialization
    # ============================================

    def to_record(self) -> AccountRecord:
        return AccountRecord(
            uuid=self._id,
            name=self._name,
            path=self._path,
            public_key=self._public_key,
            crypto=self._crypto,
            encryptor=self._encryptor.name,
            version=self._version,
        )

    def to_dict(self) -> dict:
        return self.to_record().to_dict()

    def serialize(self) -> bytes:
        return self.to_record().to_bytes()

    @classmethod
    def from_record(cls, record: AccountRecord, encryptor: Encryptor,
                    wallet: Optional["Wallet"] = None) -> "Account":
        return cls(
            account_id=record.uuid,
            name=record.name,
            path=record.path,
            public_key=record.public_key,
            crypto=record.crypto,
            version=record.version,
            encryptor=encryptor,
            wallet=wallet,
        )

    @classmethod
    def deserialize(cls, data: bytes, encryptor: Encryptor,
                    wallet: Optional["Wallet"] = None) -> "Account":
        """Decode a stored account. Raises CorruptStateError."""
        return cls.from_record(AccountRecord.from_bytes(data), encryptor, wallet)

    def __repr__(self) -> str:
        return f"Account(id={self._id}, name={self._name!r}, path={self._path!r})"
