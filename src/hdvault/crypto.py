"""
Crypto - Passphrase-based encryption of secret material.

Industry-standard security:
- Argon2id key derivation (memory-hard)
- AES-256-GCM authenticated encryption

Two formats are produced:
- Encryptor output: a JSON-compatible dict, embedded in wallet and account
  records to protect seeds and private keys.
- Sealed bundles: a self-describing binary blob used for wallet exports.
"""

import secrets
import struct
from typing import Union

from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw, Type
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationError


# ============================================
# Security Constants
# ============================================

# Argon2id parameters (OWASP recommendations for high-security)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4
ARGON2_HASH_LEN = 32  # 256 bits for AES-256

# AES-GCM constants
AES_IV_SIZE = 12  # 96 bits (recommended for GCM)
AES_TAG_SIZE = 16
SALT_SIZE = 16

ENCRYPTOR_NAME = "argon2id-aes256gcm"
ENCRYPTOR_VERSION = 1

# Sealed bundle header: magic, format version, time cost, memory cost,
# parallelism, salt, iv
BUNDLE_MAGIC = b"HDVX"
BUNDLE_VERSION = 1
_BUNDLE_HEADER = struct.Struct(f">4sBIIB{SALT_SIZE}s{AES_IV_SIZE}s")

Passphrase = Union[str, bytes]


# ============================================
# Key Derivation
# ============================================

def _secret(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode('utf-8')
    return bytes(passphrase)


def derive_key(passphrase: Passphrase, salt: bytes,
               time_cost: int = ARGON2_TIME_COST,
               memory_cost: int = ARGON2_MEMORY_COST,
               parallelism: int = ARGON2_PARALLELISM) -> bytes:
    """
    Derive an encryption key from a passphrase using Argon2id.

    With the default parameters each guess requires ~64MB RAM.
    """
    return hash_secret_raw(
        secret=_secret(passphrase),
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=ARGON2_HASH_LEN,
        type=Type.ID
    )


# ============================================
# Encryptor
# ============================================

class Encryptor:
    """
    Encrypts byte payloads under a passphrase.

    Usage:
        encryptor = Encryptor()
        crypto = encryptor.encrypt(seed, "passphrase")
        seed = encryptor.decrypt(crypto, "passphrase")

    The KDF parameters are recorded in every output, so payloads written
    with one parameter set can be read back by an Encryptor using another.
    """

    def __init__(self, time_cost: int = ARGON2_TIME_COST,
                 memory_cost: int = ARGON2_MEMORY_COST,
                 parallelism: int = ARGON2_PARALLELISM):
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism

    @classmethod
    def from_settings(cls, settings) -> "Encryptor":
        """Build an encryptor from the KDF parameters in Settings."""
        return cls(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )

    @property
    def name(self) -> str:
        return ENCRYPTOR_NAME

    @property
    def version(self) -> int:
        return ENCRYPTOR_VERSION

    def encrypt(self, data: bytes, passphrase: Passphrase) -> dict:
        """Encrypt data. Returns a JSON-compatible dict."""
        salt = secrets.token_bytes(SALT_SIZE)
        key = derive_key(passphrase, salt, self.time_cost, self.memory_cost, self.parallelism)
        iv = secrets.token_bytes(AES_IV_SIZE)

        aesgcm = AESGCM(key)
        ciphertext_and_tag = aesgcm.encrypt(iv, bytes(data), None)

        return {
            "kdf": {
                "algorithm": "argon2id",
                "salt": salt.hex(),
                "time_cost": self.time_cost,
                "memory_cost": self.memory_cost,
                "parallelism": self.parallelism
            },
            "cipher": "aes-256-gcm",
            "ciphertext": ciphertext_and_tag[:-AES_TAG_SIZE].hex(),
            "iv": iv.hex(),
            "tag": ciphertext_and_tag[-AES_TAG_SIZE:].hex(),
        }

    def decrypt(self, crypto: dict, passphrase: Passphrase) -> bytes:
        """
        Decrypt data produced by encrypt().

        Raises: AuthenticationError if the passphrase is wrong or the
        payload is malformed or tampered with.
        """
        try:
            kdf = crypto["kdf"]
            if kdf["algorithm"] != "argon2id" or crypto["cipher"] != "aes-256-gcm":
                raise ValueError("unsupported algorithm")
            key = derive_key(
                passphrase,
                bytes.fromhex(kdf["salt"]),
                int(kdf["time_cost"]),
                int(kdf["memory_cost"]),
                int(kdf["parallelism"]),
            )
            ciphertext_and_tag = bytes.fromhex(crypto["ciphertext"]) + bytes.fromhex(crypto["tag"])
            return AESGCM(key).decrypt(bytes.fromhex(crypto["iv"]), ciphertext_and_tag, None)
        except (InvalidTag, HashingError, KeyError, TypeError, ValueError):
            raise AuthenticationError("failed to decrypt") from None


# ============================================
# Sealed Bundles
# ============================================

def seal(data: bytes, passphrase: Passphrase,
         time_cost: int = ARGON2_TIME_COST,
         memory_cost: int = ARGON2_MEMORY_COST,
         parallelism: int = ARGON2_PARALLELISM) -> bytes:
    """Encrypt data into a single opaque blob."""
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(AES_IV_SIZE)
    key = derive_key(passphrase, salt, time_cost, memory_cost, parallelism)
    header = _BUNDLE_HEADER.pack(
        BUNDLE_MAGIC, BUNDLE_VERSION, time_cost, memory_cost, parallelism, salt, iv
    )
    # The header is authenticated as associated data
    return header + AESGCM(key).encrypt(iv, data, header)


def unseal(blob: bytes, passphrase: Passphrase) -> bytes:
    """
    Decrypt a blob produced by seal().

    Raises: AuthenticationError if the passphrase is wrong or the blob is
    malformed or tampered with.
    """
    try:
        header = blob[:_BUNDLE_HEADER.size]
        magic, version, time_cost, memory_cost, parallelism, salt, iv = _BUNDLE_HEADER.unpack(header)
        if magic != BUNDLE_MAGIC or version != BUNDLE_VERSION:
            raise ValueError("unknown bundle format")
        key = derive_key(passphrase, salt, time_cost, memory_cost, parallelism)
        return AESGCM(key).decrypt(iv, blob[_BUNDLE_HEADER.size:], header)
    except (InvalidTag, HashingError, struct.error, ValueError):
        raise AuthenticationError("failed to decrypt") from None
