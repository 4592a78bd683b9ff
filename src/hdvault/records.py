"""
Records - Serialized forms of wallets and accounts.

Each record is decoded in a single pass that reports the first missing or
invalid field as a CorruptStateError.

Schema migrations:
- "id" was the identifier field before "uuid"; records that carry only
  "id" are read as if it were "uuid".
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from .errors import CorruptStateError

logger = logging.getLogger(__name__)


WALLET_TYPE = "hierarchical deterministic"
WALLET_VERSION = 1


def _load_json(data: bytes, what: str) -> dict:
    """Parse a JSON object or raise CorruptStateError."""
    try:
        value = json.loads(data)
    except (TypeError, ValueError, UnicodeDecodeError) as e:
        raise CorruptStateError(f"{what} is not valid JSON") from e
    if not isinstance(value, dict):
        raise CorruptStateError(f"{what} is not a JSON object")
    return value


def _migrate_id(data: dict) -> dict:
    """Apply the legacy "id" -> "uuid" rename."""
    if "uuid" not in data and "id" in data:
        logger.debug("Migrating legacy 'id' field to 'uuid'")
        data = dict(data)
        data["uuid"] = data.pop("id")
    return data


def _field(data: dict, key: str, kind: type, what: str) -> Any:
    """Fetch a required field of the given JSON type."""
    if key not in data:
        raise CorruptStateError(f"{what} {key} missing")
    value = data[key]
    # bool is an int subclass; JSON true/false is never a count
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise CorruptStateError(f"{what} {key} invalid")
    if kind is int and value < 0:
        raise CorruptStateError(f"{what} {key} invalid")
    return value


def _uuid_field(data: dict, what: str) -> uuid.UUID:
    value = _field(data, "uuid", str, what)
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise CorruptStateError(f"{what} uuid invalid") from e


@dataclass
class WalletRecord:
    """Persisted form of a wallet (the seed is only ever stored encrypted)."""
    uuid: uuid.UUID
    name: str
    crypto: dict          # Encryptor output protecting the seed
    wallet_index: int     # Third path segment, fixed at creation
    next_account: int     # Next unused account counter
    version: int = WALLET_VERSION

    def to_dict(self) -> dict:
        return {
            "uuid": str(self.uuid),
            "name": self.name,
            "version": self.version,
            "type": WALLET_TYPE,
            "crypto": self.crypto,
            "walletIndex": self.wallet_index,
            "nextaccount": self.next_account,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> "WalletRecord":
        """Create from dictionary, validating every field."""
        what = "wallet"
        wallet_type = _field(data, "type", str, what)
        if wallet_type != WALLET_TYPE:
            raise CorruptStateError(f"wallet type {wallet_type!r} unexpected")
        data = _migrate_id(data)
        return cls(
            uuid=_uuid_field(data, what),
            name=_field(data, "name", str, what),
            crypto=_field(data, "crypto", dict, what),
            wallet_index=_field(data, "walletIndex", int, what),
            next_account=_field(data, "nextaccount", int, what),
            version=_field(data, "version", int, what),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "WalletRecord":
        return cls.from_dict(_load_json(data, "wallet"))


@dataclass
class AccountRecord:
    """Persisted form of an account."""
    uuid: uuid.UUID
    name: str
    path: str             # Full derivation path
    public_key: bytes
    crypto: dict          # Encryptor output protecting the private key
    encryptor: str        # Encryptor name
    version: int          # Encryptor version

    def to_dict(self) -> dict:
        return {
            "uuid": str(self.uuid),
            "name": self.name,
            "pubkey": self.public_key.hex(),
            "path": self.path,
            "crypto": self.crypto,
            "encryptor": self.encryptor,
            "version": self.version,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> "AccountRecord":
        """Create from dictionary, validating every field."""
        what = "account"
        data = _migrate_id(data)
        account_id = _uuid_field(data, what)
        name = _field(data, "name", str, what)
        pubkey = _field(data, "pubkey", str, what)
        try:
            public_key = bytes.fromhex(pubkey)
        except ValueError as e:
            raise CorruptStateError(f"account {name!r} pubkey invalid") from e
        return cls(
            uuid=account_id,
            name=name,
            path=_field(data, "path", str, what),
            public_key=public_key,
            crypto=_field(data, "crypto", dict, what),
            encryptor=_field(data, "encryptor", str, what),
            version=_field(data, "version", int, what),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "AccountRecord":
        return cls.from_dict(_load_json(data, "account"))
