"""
Wallet - Hierarchical deterministic wallet over a pluggable store.

A wallet holds one encrypted 32-byte seed. Accounts are derived from it
along m/12381/3600/{wallet index}/{account counter}/0, with the counter
persisted before any key is derived so a path is never handed out twice.

Usage:
    # Create a wallet and an account
    wallet = Wallet.create("validators", "wallet passphrase", store, encryptor)
    wallet.unlock("wallet passphrase")
    account = wallet.create_account("validator-1", "account passphrase")

    # Reopen later
    wallet = Wallet.open("validators", store, encryptor)
    account = wallet.account_by_name("validator-1")

    # Move between stores
    blob = wallet.export("export passphrase")
    copy = Wallet.import_bundle(blob, "export passphrase", other_store, encryptor)
"""

import json
import logging
import secrets
import threading
import uuid
from typing import Optional

from mnemonic import Mnemonic

from .account import Account
from .crypto import Encryptor, Passphrase, seal, unseal
from .derivation import KeyDeriver, PATH_PREFIX, account_path
from .errors import (
    AccountNotFoundError,
    AlreadyExistsError,
    AuthenticationError,
    CorruptStateError,
    InvalidInputError,
    LockedWalletError,
    NotFoundError,
    StorageError,
    WalletNotFoundError,
)
from .index import NameIndex
from .records import AccountRecord, WALLET_TYPE, WALLET_VERSION, WalletRecord
from .store import Store
from .stream import AccountStream

logger = logging.getLogger(__name__)


SEED_SIZE = 32

# Account names may not start with this; it marks programmatic names
RESERVED_NAME_PREFIX = "_"


class Wallet:
    """
    An HD wallet.

    Wallets start locked. Unlocking decrypts the seed into memory, which
    is required to create accounts or derive programmatic ones. Seed,
    counter, index and lock state are guarded by a per-wallet lock.
    """

    def __init__(self, record: WalletRecord, store: Store, encryptor: Encryptor,
                 deriver: Optional[KeyDeriver] = None):
        """Initialize wallet (internal use - use create(), open() or import_bundle())."""
        self._id = record.uuid
        self._name = record.name
        self._version = record.version
        self._crypto = record.crypto
        self._wallet_index = record.wallet_index
        self._next_account = record.next_account
        self._store = store
        self._encryptor = encryptor
        self._deriver = deriver or KeyDeriver()
        self._seed: Optional[bytes] = None
        self._lock = threading.RLock()
        self.index = NameIndex()

    # ============================================
    # Properties
    # ============================================

    @property
    def id(self) -> uuid.UUID:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return WALLET_TYPE

    @property
    def version(self) -> int:
        return self._version

    @property
    def wallet_index(self) -> int:
        return self._wallet_index

    @property
    def next_account(self) -> int:
        """Counter value the next created account will use."""
        return self._next_account

    @property
    def store(self) -> Store:
        return self._store

    @property
    def encryptor(self) -> Encryptor:
        return self._encryptor

    def to_record(self) -> WalletRecord:
        return WalletRecord(
            uuid=self._id,
            name=self._name,
            crypto=self._crypto,
            wallet_index=self._wallet_index,
            next_account=self._next_account,
            version=self._version,
        )

    # ============================================
    # Creation
    # ============================================

    @staticmethod
    def _ensure_name_free(name: str, store: Store) -> None:
        try:
            store.retrieve_wallet(name)
        except WalletNotFoundError:
            return
        raise AlreadyExistsError(f"wallet {name!r} already exists")

    @classmethod
    def create(cls, name: str, passphrase: Passphrase, store: Store,
               encryptor: Encryptor, deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """Create a wallet with a fresh random seed."""
        return cls.create_from_seed(
            name, passphrase, store, encryptor, secrets.token_bytes(SEED_SIZE), deriver=deriver
        )

    @classmethod
    def create_from_seed(cls, name: str, passphrase: Passphrase, store: Store,
                         encryptor: Encryptor, seed: bytes, wallet_index: int = 0,
                         deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """
        Create a wallet from an existing seed.

        Raises:
            AlreadyExistsError: If the store already has a wallet with this name
            InvalidInputError: If the seed is not 32 bytes
        """
        cls._ensure_name_free(name, store)

        if seed is None or len(seed) != SEED_SIZE:
            raise InvalidInputError(f"seed must be {SEED_SIZE} bytes")
        if wallet_index < 0:
            raise InvalidInputError("wallet index must not be negative")

        record = WalletRecord(
            uuid=uuid.uuid4(),
            name=name,
            crypto=encryptor.encrypt(bytes(seed), passphrase),
            wallet_index=wallet_index,
            next_account=0,
            version=WALLET_VERSION,
        )
        wallet = cls(record, store, encryptor, deriver)
        wallet._store_index()
        wallet._store_wallet()
        logger.info(f"Created wallet {name!r} ({wallet.id})")
        return wallet

    @classmethod
    def create_from_mnemonic(cls, name: str, mnemonic: str, passphrase: Passphrase,
                             store: Store, encryptor: Encryptor, wallet_index: int = 0,
                             deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """
        Restore a wallet from the 24-word phrase returned by mnemonic().

        Raises: InvalidInputError if the phrase is invalid or not 24 words.
        """
        mnemo = Mnemonic("english")
        if not mnemo.check(mnemonic):
            raise InvalidInputError("invalid seed phrase")
        seed = bytes(mnemo.to_entropy(mnemonic))
        return cls.create_from_seed(
            name, passphrase, store, encryptor, seed, wallet_index=wallet_index, deriver=deriver
        )

    @classmethod
    def open(cls, name: str, store: Store, encryptor: Encryptor,
             deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """
        Open an existing wallet by name.

        Raises:
            WalletNotFoundError: If the wallet doesn't exist
            CorruptStateError: If the stored record is malformed
        """
        data = store.retrieve_wallet(name)
        return cls.deserialize(data, store, encryptor, deriver)

    @classmethod
    def deserialize(cls, data: bytes, store: Store, encryptor: Encryptor,
                    deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """Build a wallet from its stored record and load its index."""
        try:
            record = WalletRecord.from_bytes(data)
        except CorruptStateError as e:
            raise CorruptStateError(f"wallet corrupt: {e}") from e
        wallet = cls(record, store, encryptor, deriver)
        wallet._retrieve_accounts_index()
        return wallet

    # ============================================
    # Persistence
    # ============================================

    def _store_wallet(self) -> None:
        self._store.store_wallet(self._id, self._name, self.to_record().to_bytes())

    def _store_index(self) -> None:
        self._store.store_accounts_index(self._id, self.index.serialize())

    def _retrieve_accounts_index(self) -> None:
        """Load the persisted index, rebuilding it from the accounts if needed."""
        try:
            self.index = NameIndex.deserialize(self._store.retrieve_accounts_index(self._id))
            return
        except NotFoundError:
            logger.warning(f"Accounts index for wallet {self._name!r} missing, rebuilding")
        except CorruptStateError:
            logger.warning(f"Accounts index for wallet {self._name!r} corrupt, rebuilding")

        index = NameIndex()
        with self.accounts() as stream:
            for account in stream:
                index.add(account.id, account.name)
        if stream.skipped:
            logger.warning(
                f"Skipped {stream.skipped} undecodable account(s) while rebuilding "
                f"index for wallet {self._name!r}"
            )
        with self._lock:
            self.index = index
            self._store_index()
        logger.info(f"Rebuilt accounts index for wallet {self._name!r} ({len(index)} accounts)")

    # ============================================
    # Lock / Unlock
    # ============================================

    def unlock(self, passphrase: Passphrase) -> None:
        """
        Decrypt the seed into memory.

        Raises: AuthenticationError if the passphrase is wrong (the wallet
        stays locked).
        """
        with self._lock:
            try:
                seed = self._encryptor.decrypt(self._crypto, passphrase)
            except AuthenticationError:
                raise AuthenticationError("incorrect passphrase") from None
            self._seed = seed

    def lock(self) -> None:
        """Discard the seed from memory."""
        with self._lock:
            self._seed = None

    def is_unlocked(self) -> bool:
        return self._seed is not None

    def key(self) -> bytes:
        """
        Get the wallet's seed.

        WARNING: Handle with extreme care! Everything in the wallet derives from it.
        """
        seed = self._seed
        if seed is None:
            raise LockedWalletError("wallet must be unlocked to provide seed")
        return seed

    def mnemonic(self) -> str:
        """The seed as a 24-word phrase (sensitive - only show during backup!)."""
        return Mnemonic("english").to_mnemonic(self.key())

    # ============================================
    # Accounts
    # ============================================

    def create_account(self, name: str, passphrase: Passphrase) -> Account:
        """
        Create a new account, its private key encrypted under passphrase.

        Names must be non-empty and cannot start with an underscore (_) or
        with "m/", which addresses accounts by derivation path.

        Raises:
            InvalidInputError: If the name is empty or reserved
            LockedWalletError: If the wallet is locked
            AlreadyExistsError: If an account with this name exists
        """
        if not name:
            raise InvalidInputError("account name missing")
        if name.startswith(RESERVED_NAME_PREFIX) or name.startswith(PATH_PREFIX):
            raise InvalidInputError(f"invalid account name {name!r}")
        if not self.is_unlocked():
            raise LockedWalletError("wallet must be unlocked to create accounts")

        with self._lock:
            seed = self._seed
            if seed is None:
                raise LockedWalletError("wallet must be unlocked to create accounts")
            if name in self.index:
                raise AlreadyExistsError(f"account with name {name!r} already exists")

            # Reserve the counter durably before deriving anything
            account_num = self._next_account
            self._next_account += 1
            try:
                self._store_wallet()
            except StorageError as e:
                raise StorageError(f"failed to create account {name!r}: {e}") from e

            path = account_path(self._wallet_index, account_num)
            try:
                public_key, private_key = self._deriver.derive_key_pair(seed, path)
            except InvalidInputError as e:
                raise InvalidInputError(f"failed to create private key for account {name!r}") from e

            account = Account(
                account_id=uuid.uuid4(),
                name=name,
                path=path,
                public_key=public_key,
                crypto=self._encryptor.encrypt(private_key, passphrase),
                version=self._encryptor.version,
                encryptor=self._encryptor,
                wallet=self,
            )

            self.index.add(account.id, account.name)
            try:
                self._store.store_account(self._id, account.id, account.serialize())
            except Exception:
                self.index.remove(account.id)
                raise
            self._store_index()

        logger.info(f"Created account {name!r} at {path} in wallet {self._name!r}")
        return account

    def account_by_name(self, name: str) -> Account:
        """
        Get an account by name.

        Names starting with "m/" are treated as derivation paths and the
        account is derived on the fly (never stored, private key encrypted
        with an empty passphrase).

        Raises: AccountNotFoundError if no account has this name.
        """
        if name.startswith(PATH_PREFIX):
            return self._programmatic_account(name)
        account_id = self.index.id(name)
        if account_id is None:
            raise AccountNotFoundError(f"no account with name {name!r}")
        return self.account_by_id(account_id)

    def account_by_id(self, account_id: uuid.UUID | str) -> Account:
        """
        Get an account by ID, straight from the store.

        Raises:
            InvalidInputError: If account_id is not a valid UUID
            AccountNotFoundError: If the store has no such account
            CorruptStateError: If the stored record is malformed
        """
        if not isinstance(account_id, uuid.UUID):
            try:
                account_id = uuid.UUID(str(account_id))
            except ValueError as e:
                raise InvalidInputError(f"invalid account ID {account_id!r}") from e
        data = self._store.retrieve_account(self._id, account_id)
        try:
            return Account.deserialize(data, self._encryptor, wallet=self)
        except CorruptStateError as e:
            raise CorruptStateError(f"account {account_id} in wallet {self._name!r} corrupt: {e}") from e

    def accounts(self) -> AccountStream[Account]:
        """
        Stream every account in the wallet.

        Records that fail to decode are skipped; see AccountStream.skipped.
        Close the stream (or use it as a context manager) if you stop early.
        """
        return AccountStream(
            lambda: self._store.retrieve_accounts(self._id),
            lambda data: Account.deserialize(data, self._encryptor, wallet=self),
        )

    def _programmatic_account(self, path: str) -> Account:
        """Derive an account on the fly from its path."""
        seed = self._seed
        if seed is None:
            raise LockedWalletError("wallet must be unlocked to derive accounts")
        try:
            public_key, private_key = self._deriver.derive_key_pair(seed, path)
        except InvalidInputError as e:
            raise InvalidInputError(f"failed to create private key for path {path!r}") from e
        return Account(
            account_id=uuid.uuid4(),
            name=path,
            path=path,
            public_key=public_key,
            crypto=self._encryptor.encrypt(private_key, ""),
            version=self._encryptor.version,
            encryptor=self._encryptor,
            wallet=self,
            secret_key=private_key,
        )

    # ============================================
    # Export / Import
    # ============================================

    def export(self, passphrase: Passphrase) -> bytes:
        """Export the wallet and all of its accounts, sealed under passphrase."""
        with self.accounts() as stream:
            accounts = [account.to_dict() for account in stream]
        if stream.skipped:
            logger.warning(
                f"Export of wallet {self._name!r} skipped {stream.skipped} undecodable account(s)"
            )
        bundle = {"wallet": self.to_record().to_dict(), "accounts": accounts}
        data = json.dumps(bundle).encode("utf-8")
        return seal(
            data,
            passphrase,
            self._encryptor.time_cost,
            self._encryptor.memory_cost,
            self._encryptor.parallelism,
        )

    @classmethod
    def import_bundle(cls, blob: bytes, passphrase: Passphrase, store: Store,
                      encryptor: Encryptor, deriver: Optional[KeyDeriver] = None) -> "Wallet":
        """
        Import a wallet produced by export().

        Nothing is written if a wallet with the same name already exists.
        A failure partway through leaves what was already written in place.

        Raises:
            AuthenticationError: If the passphrase is wrong
            CorruptStateError: If the bundle contents are malformed
            AlreadyExistsError: If the store already has a wallet with this name
        """
        data = unseal(blob, passphrase)
        try:
            bundle = json.loads(data)
            record = WalletRecord.from_dict(bundle["wallet"])
            account_records = [AccountRecord.from_dict(a) for a in bundle["accounts"]]
        except CorruptStateError as e:
            raise CorruptStateError(f"export bundle corrupt: {e}") from e
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise CorruptStateError("export bundle corrupt") from e

        cls._ensure_name_free(record.name, store)

        wallet = cls(record, store, encryptor, deriver)
        try:
            wallet._store_wallet()
        except StorageError as e:
            raise StorageError(f"failed to store wallet {record.name!r}: {e}") from e

        for account_record in account_records:
            account = Account.from_record(account_record, encryptor, wallet=wallet)
            try:
                store.store_account(wallet.id, account.id, account.serialize())
            except StorageError as e:
                raise StorageError(f"failed to store account {account.name!r}: {e}") from e
            wallet.index.add(account.id, account.name)
        wallet._store_index()

        logger.info(f"Imported wallet {record.name!r} with {len(account_records)} account(s)")
        return wallet

    def __repr__(self) -> str:
        return f"Wallet(id={self._id}, name={self._name!r})"


# ============================================
# Convenience functions
# ============================================

def create_wallet(name: str, passphrase: Passphrase, store: Store, encryptor: Encryptor) -> Wallet:
    """Create a new wallet with a random seed."""
    return Wallet.create(name, passphrase, store, encryptor)


def open_wallet(name: str, store: Store, encryptor: Encryptor) -> Wallet:
    """Open an existing wallet by name."""
    return Wallet.open(name, store, encryptor)


def import_wallet(blob: bytes, passphrase: Passphrase, store: Store, encryptor: Encryptor) -> Wallet:
    """Import an exported wallet into a store."""
    return Wallet.import_bundle(blob, passphrase, store, encryptor)


def list_wallets(store: Store, encryptor: Encryptor) -> list[Wallet]:
    """Open every wallet in a store, skipping records that fail to decode."""
    wallets = []
    for data in store.retrieve_wallets():
        try:
            wallets.append(Wallet.deserialize(data, store, encryptor))
        except CorruptStateError as e:
            logger.warning(f"Skipping corrupt wallet record: {e}")
    return wallets
