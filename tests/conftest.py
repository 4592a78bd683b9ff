import pytest

from hdvault import Encryptor, ScratchStore, Wallet


WALLET_PASSPHRASE = "wallet passphrase"
ACCOUNT_PASSPHRASE = "account passphrase"

SEED = bytes([
    0x00, 0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08, 0x09, 0x0a, 0x0b, 0x0c, 0x0d, 0x0e, 0x0f,
    0x10, 0x11, 0x12, 0x13, 0x14, 0x15, 0x16, 0x17, 0x18, 0x19, 0x1a, 0x1b, 0x1c, 0x1d, 0x1e, 0x1f,
])


@pytest.fixture
def store() -> ScratchStore:
    return ScratchStore()


@pytest.fixture
def encryptor() -> Encryptor:
    # Minimal Argon2id cost keeps the suite fast
    return Encryptor(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def wallet(store, encryptor) -> Wallet:
    return Wallet.create_from_seed("test wallet", WALLET_PASSPHRASE, store, encryptor, SEED)


@pytest.fixture
def unlocked_wallet(wallet) -> Wallet:
    wallet.unlock(WALLET_PASSPHRASE)
    return wallet
