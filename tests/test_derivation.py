import pytest
from eth_account import Account as EthAccount
from eth_keys import keys

from hdvault import InvalidInputError, KeyDeriver, account_path

from conftest import SEED


def test_account_path():
    assert account_path(0, 0) == "m/12381/3600/0/0/0"
    assert account_path(3, 17) == "m/12381/3600/3/17/0"


def test_derive_key_pair():
    public_key, private_key = KeyDeriver().derive_key_pair(SEED, "m/12381/3600/0/0/0")

    assert len(private_key) == 32
    assert public_key == keys.PrivateKey(private_key).public_key.to_compressed_bytes()
    assert EthAccount.from_key(private_key).address


def test_derive_key_pair_is_deterministic():
    deriver = KeyDeriver()

    assert deriver.derive_key_pair(SEED, "m/12381/3600/0/1/0") == deriver.derive_key_pair(SEED, "m/12381/3600/0/1/0")
    assert deriver.derive_key_pair(SEED, "m/12381/3600/0/1/0") != deriver.derive_key_pair(SEED, "m/12381/3600/0/2/0")


@pytest.mark.parametrize("path", [
    "m/",
    "m/1/",
    "m//1",
    "m/4294967296",
    "m/-1",
    "m/1''",
    "m/not/a/path",
])
def test_derive_key_pair_rejects_malformed_paths(path):
    with pytest.raises(InvalidInputError, match="invalid derivation path"):
        KeyDeriver().derive_key_pair(SEED, path)
