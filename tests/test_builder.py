"""
Tests for the transaction builder.
"""

from __future__ import annotations

import pytest

from hotwallet.constants import MAX_MONEY
from hotwallet.crypto import hash160, verify_raw_ecdsa, verify_schnorr
from hotwallet.errors import (
    InsufficientFundsError,
    InvalidAddressError,
    TransactionFailedError,
    ValidationError,
)
from hotwallet.models import AddressType, NetworkType, SelectionStrategy, UnspentOutput
from hotwallet.wallet.address import (
    address_to_scriptpubkey,
    derive_address,
    p2pkh_script,
    script_for_public_key,
    taproot_output_key,
)
from hotwallet.wallet.builder import TransactionBuilder, build_transaction
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.selection import estimate_fee, select_utxos
from hotwallet.wallet.signing import legacy_sighash, segwit_v0_sighash, taproot_key_path_sighash
from hotwallet.wallet.transaction import TxOutput, parse_transaction

RECIPIENT = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
TESTNET_RECIPIENT = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"


class TestBuild:
    def test_single_input_with_change(self, keypair: Keypair, owned_utxo) -> None:
        """100k output, 50k payment at 1 sat/vB: one input, recipient and change."""
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 100_000)]
        selection = select_utxos(utxos, 50_000, 1, SelectionStrategy.LARGEST_FIRST)
        signed = build_transaction(
            keypair, selection.utxos, RECIPIENT, 50_000, selection.fee, AddressType.SEGWIT
        )

        tx = parse_transaction(signed.raw)
        assert len(tx.inputs) == 1
        assert len(tx.outputs) == 2
        assert 0 < signed.fee < 10_000
        assert tx.outputs[0].value == 50_000
        assert tx.outputs[0].script_pubkey == address_to_scriptpubkey(RECIPIENT)
        assert tx.outputs[1].script_pubkey == script_for_public_key(
            keypair.public_key, AddressType.SEGWIT
        )
        assert signed.change_value == tx.outputs[1].value
        assert signed.hex == signed.raw.hex()
        assert signed.txid == tx.txid

    @pytest.mark.parametrize("address_type", list(AddressType))
    def test_value_conservation(self, keypair: Keypair, owned_utxo, address_type) -> None:
        utxos = [
            owned_utxo(keypair, address_type, 30_000),
            owned_utxo(keypair, address_type, 45_000),
        ]
        signed = build_transaction(keypair, utxos, RECIPIENT, 60_000, 1_500, address_type)
        tx = parse_transaction(signed.raw)

        assert signed.input_total == 75_000
        assert sum(o.value for o in tx.outputs) == signed.output_total
        assert signed.output_total + signed.fee == signed.input_total
        assert signed.fee == 1_500
        assert signed.change_value == 75_000 - 60_000 - 1_500

    def test_dust_change_absorbed(self, keypair: Keypair, owned_utxo) -> None:
        fee = estimate_fee(1, 1)
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 50_000 + fee + 500)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, fee, AddressType.SEGWIT)

        tx = parse_transaction(signed.raw)
        assert len(tx.outputs) == 1
        assert tx.outputs[0].value == 50_000
        assert signed.fee == fee + 500
        assert signed.change_value == 0

    def test_change_at_dust_threshold_is_kept(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 50_000 + 1_000 + 546)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)
        assert len(signed.transaction.outputs) == 2
        assert signed.change_value == 546

    def test_custom_dust_threshold(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 52_000)]
        builder = TransactionBuilder(NetworkType.MAINNET, dust_threshold=5_000)
        signed = builder.build(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)
        assert len(signed.transaction.outputs) == 1
        assert signed.fee == 2_000

    def test_exact_spend_has_no_change(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.LEGACY, 51_000)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.LEGACY)
        assert len(signed.transaction.outputs) == 1
        assert signed.fee == 1_000

    def test_zero_fee_allowed(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 50_000)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 0, AddressType.SEGWIT)
        assert signed.fee == 0

    @pytest.mark.parametrize("address_type", list(AddressType))
    def test_deterministic(self, keypair: Keypair, owned_utxo, address_type) -> None:
        utxos = [owned_utxo(keypair, address_type, 80_000)]
        a = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, address_type)
        b = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, address_type)
        assert a.raw == b.raw

    def test_testnet(self, testnet_keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(testnet_keypair, AddressType.TAPROOT, 90_000)]
        signed = build_transaction(
            testnet_keypair, utxos, TESTNET_RECIPIENT, 40_000, 500, AddressType.TAPROOT
        )
        change_address = derive_address(
            testnet_keypair.public_key, AddressType.TAPROOT, NetworkType.TESTNET
        )
        assert signed.transaction.outputs[1].script_pubkey == address_to_scriptpubkey(
            change_address, NetworkType.TESTNET
        )


class TestWitnessShapes:
    def test_legacy(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.LEGACY, 80_000)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.LEGACY)
        tx = parse_transaction(signed.raw)

        assert tx.version == 1
        assert signed.raw[4] != 0x00  # no segwit marker
        inp = tx.inputs[0]
        assert inp.witness == []
        assert inp.sequence == 0xFFFFFFFF
        sig_len = inp.script_sig[0]
        signature = inp.script_sig[1 : 1 + sig_len]
        script = bytes.fromhex(utxos[0].script_pubkey)
        digest = legacy_sighash(tx, 0, script)
        assert verify_raw_ecdsa(digest, signature[:-1], keypair.public_key_bytes())

    def test_segwit(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 80_000)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)
        tx = parse_transaction(signed.raw)

        assert tx.version == 2
        assert signed.raw[4:6] == b"\x00\x01"
        inp = tx.inputs[0]
        assert inp.script_sig == b""
        assert len(inp.witness) == 2
        assert inp.witness[1] == keypair.public_key_bytes()
        code = p2pkh_script(hash160(keypair.public_key_bytes()))
        digest = segwit_v0_sighash(tx, 0, code, 80_000)
        assert verify_raw_ecdsa(digest, inp.witness[0][:-1], keypair.public_key_bytes())
        assert signed.vsize < len(signed.raw)

    def test_taproot(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.TAPROOT, 80_000)]
        signed = build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.TAPROOT)
        tx = parse_transaction(signed.raw)

        assert tx.version == 2
        inp = tx.inputs[0]
        assert inp.script_sig == b""
        assert len(inp.witness) == 1
        assert len(inp.witness[0]) == 64
        prevouts = [TxOutput(80_000, bytes.fromhex(utxos[0].script_pubkey))]
        digest = taproot_key_path_sighash(tx, 0, prevouts)
        assert verify_schnorr(digest, inp.witness[0], taproot_output_key(keypair.public_key))


class TestValidation:
    @pytest.mark.parametrize("amount", [0, -1, MAX_MONEY + 1])
    def test_bad_amount(self, keypair: Keypair, owned_utxo, amount: int) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 80_000)]
        with pytest.raises(ValidationError):
            build_transaction(keypair, utxos, RECIPIENT, amount, 1_000, AddressType.SEGWIT)

    def test_negative_fee(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 80_000)]
        with pytest.raises(ValidationError):
            build_transaction(keypair, utxos, RECIPIENT, 50_000, -1, AddressType.SEGWIT)

    def test_no_inputs(self, keypair: Keypair) -> None:
        with pytest.raises(ValidationError):
            build_transaction(keypair, [], RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)

    def test_network_mismatch(self, testnet_keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(testnet_keypair, AddressType.SEGWIT, 80_000)]
        builder = TransactionBuilder(NetworkType.MAINNET)
        with pytest.raises(ValidationError):
            builder.build(testnet_keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)

    def test_recipient_on_wrong_network(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 80_000)]
        with pytest.raises(InvalidAddressError):
            build_transaction(
                keypair, utxos, TESTNET_RECIPIENT, 50_000, 1_000, AddressType.SEGWIT
            )

    def test_recipient_garbage(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 80_000)]
        with pytest.raises(InvalidAddressError):
            build_transaction(keypair, utxos, "bc1qnotvalid", 50_000, 1_000, AddressType.SEGWIT)

    def test_insufficient_funds(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [owned_utxo(keypair, AddressType.SEGWIT, 50_500)]
        with pytest.raises(InsufficientFundsError) as exc_info:
            build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)
        assert exc_info.value.required == 51_000
        assert exc_info.value.available == 50_500

    @pytest.mark.parametrize("txid", ["abc", "zz" * 32, "ab" * 33, "ab" * 32 + "\n"])
    def test_bad_txid(self, keypair: Keypair, txid: str) -> None:
        script = script_for_public_key(keypair.public_key, AddressType.SEGWIT).hex()
        utxos = [UnspentOutput(txid=txid, vout=0, amount=80_000, script_pubkey=script)]
        with pytest.raises(TransactionFailedError):
            build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)

    @pytest.mark.parametrize("script", ["", "zz", "0014" + "00" * 19, "5120" + "00" * 32])
    def test_bad_script_pubkey(self, keypair: Keypair, make_utxo, script: str) -> None:
        utxos = [make_utxo(80_000, script_pubkey=script)]
        with pytest.raises(TransactionFailedError):
            build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)

    def test_input_total_over_max_money(self, keypair: Keypair, owned_utxo) -> None:
        utxos = [
            owned_utxo(keypair, AddressType.SEGWIT, MAX_MONEY),
            owned_utxo(keypair, AddressType.SEGWIT, 1),
        ]
        with pytest.raises(ValidationError):
            build_transaction(keypair, utxos, RECIPIENT, 50_000, 1_000, AddressType.SEGWIT)
