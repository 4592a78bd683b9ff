import json

import pytest

from hdvault import (
    AlreadyExistsError,
    AuthenticationError,
    CorruptStateError,
    ScratchStore,
    Wallet,
    WalletNotFoundError,
    seal,
)

from conftest import ACCOUNT_PASSPHRASE, SEED, WALLET_PASSPHRASE

EXPORT_PASSPHRASE = "export passphrase"


@pytest.fixture
def populated_wallet(unlocked_wallet):
    unlocked_wallet.create_account("alpha", ACCOUNT_PASSPHRASE)
    unlocked_wallet.create_account("beta", "beta passphrase")
    return unlocked_wallet


def test_export_import_round_trip(populated_wallet, encryptor):
    blob = populated_wallet.export(EXPORT_PASSPHRASE)

    target = ScratchStore()
    imported = Wallet.import_bundle(blob, EXPORT_PASSPHRASE, target, encryptor)

    assert imported.name == populated_wallet.name
    assert imported.id == populated_wallet.id
    assert imported.next_account == populated_wallet.next_account
    assert not imported.is_unlocked()

    imported.unlock(WALLET_PASSPHRASE)
    assert imported.key() == SEED

    passphrases = {"alpha": ACCOUNT_PASSPHRASE, "beta": "beta passphrase"}
    for name, passphrase in passphrases.items():
        original = populated_wallet.account_by_name(name)
        copy = imported.account_by_name(name)
        assert copy.id == original.id
        assert copy.public_key == original.public_key
        assert copy.path == original.path

        original.unlock(passphrase)
        copy.unlock(passphrase)
        assert copy.private_key() == original.private_key()

    # The index was persisted, so a fresh open finds the same accounts
    reopened = Wallet.open(populated_wallet.name, target, encryptor)
    assert reopened.index.items() == populated_wallet.index.items()


def test_import_wrong_passphrase(populated_wallet, encryptor):
    blob = populated_wallet.export(EXPORT_PASSPHRASE)
    target = ScratchStore()

    with pytest.raises(AuthenticationError):
        Wallet.import_bundle(blob, "wrong passphrase", target, encryptor)
    with pytest.raises(WalletNotFoundError):
        target.retrieve_wallet(populated_wallet.name)


def test_import_existing_name_writes_nothing(populated_wallet, store, encryptor):
    blob = populated_wallet.export(EXPORT_PASSPHRASE)
    wallet_before = store.retrieve_wallet(populated_wallet.name)
    index_before = store.retrieve_accounts_index(populated_wallet.id)
    accounts_before = sorted(store.retrieve_accounts(populated_wallet.id))

    with pytest.raises(AlreadyExistsError):
        Wallet.import_bundle(blob, EXPORT_PASSPHRASE, store, encryptor)

    assert store.retrieve_wallet(populated_wallet.name) == wallet_before
    assert store.retrieve_accounts_index(populated_wallet.id) == index_before
    assert sorted(store.retrieve_accounts(populated_wallet.id)) == accounts_before


def test_import_corrupt_bundle(encryptor):
    blob = seal(json.dumps({"wallet": {"name": "x"}, "accounts": []}).encode(), EXPORT_PASSPHRASE,
                time_cost=1, memory_cost=8, parallelism=1)

    with pytest.raises(CorruptStateError):
        Wallet.import_bundle(blob, EXPORT_PASSPHRASE, ScratchStore(), encryptor)


def test_import_non_json_bundle(encryptor):
    blob = seal(b"not json", EXPORT_PASSPHRASE, time_cost=1, memory_cost=8, parallelism=1)

    with pytest.raises(CorruptStateError):
        Wallet.import_bundle(blob, EXPORT_PASSPHRASE, ScratchStore(), encryptor)


def test_export_is_opaque(populated_wallet):
    blob = populated_wallet.export(EXPORT_PASSPHRASE)

    assert b"alpha" not in blob
    assert populated_wallet.name.encode() not in blob


def test_export_empty_wallet(wallet, encryptor):
    imported = Wallet.import_bundle(wallet.export(EXPORT_PASSPHRASE), EXPORT_PASSPHRASE,
                                    ScratchStore(), encryptor)

    assert imported.name == wallet.name
    assert len(imported.index) == 0
