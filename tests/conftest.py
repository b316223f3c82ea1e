"""
Test configuration for hotwallet tests.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from hotwallet.models import AddressType, NetworkType, UnspentOutput
from hotwallet.wallet.address import script_for_public_key
from hotwallet.wallet.keys import Keypair

# Secret scalar 1: public key is the generator point G
SECRET_ONE = (1).to_bytes(32, "big")


@pytest.fixture
def keypair() -> Keypair:
    """Deterministic mainnet keypair (secret = 1, not for production use!)."""
    return Keypair.from_raw(SECRET_ONE, NetworkType.MAINNET)


@pytest.fixture
def testnet_keypair() -> Keypair:
    """Deterministic testnet keypair."""
    return Keypair.from_raw(bytes.fromhex("11" * 32), NetworkType.TESTNET)


@pytest.fixture
def make_utxo() -> Callable[..., UnspentOutput]:
    """Factory for unspent outputs with a unique txid per call."""
    counter = iter(range(1, 10_000))

    def _make(amount: int, script_pubkey: str = "", vout: int = 0, **kwargs) -> UnspentOutput:
        txid = f"{next(counter):064x}"
        return UnspentOutput(
            txid=txid, vout=vout, amount=amount, script_pubkey=script_pubkey, **kwargs
        )

    return _make


@pytest.fixture
def owned_utxo(make_utxo) -> Callable[[Keypair, AddressType, int], UnspentOutput]:
    """Factory for outputs locked to a keypair's own script in a family."""

    def _make(kp: Keypair, address_type: AddressType, amount: int) -> UnspentOutput:
        script = script_for_public_key(kp.public_key, address_type).hex()
        return make_utxo(amount, script_pubkey=script, confirmations=6)

    return _make
