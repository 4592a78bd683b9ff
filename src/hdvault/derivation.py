"""
Derivation - Deterministic key pairs from a seed and a path.
"""

from eth_account.hdaccount import key_from_seed
from eth_keys import keys
from eth_utils.exceptions import ValidationError

from .errors import InvalidInputError


# Account path: m/12381/3600/{wallet index}/{account counter}/0
ACCOUNT_PATH_TEMPLATE = "m/12381/3600/{}/{}/0"

# Names with this prefix are derivation paths, not stored account names
PATH_PREFIX = "m/"


def account_path(wallet_index: int, account_num: int) -> str:
    """Build the derivation path for an account."""
    return ACCOUNT_PATH_TEMPLATE.format(wallet_index, account_num)


class KeyDeriver:
    """Derives secp256k1 key pairs along BIP-32 paths."""

    def derive_key_pair(self, seed: bytes, path: str) -> tuple[bytes, bytes]:
        """
        Derive the key pair at a path.

        Returns: (compressed public key, private key)
        Raises: InvalidInputError if the path is malformed.
        """
        try:
            private_key = key_from_seed(seed, path)
        except (ValueError, ValidationError) as e:
            raise InvalidInputError(f"invalid derivation path {path!r}") from e
        public_key = keys.PrivateKey(private_key).public_key.to_compressed_bytes()
        return public_key, private_key
