"""
Transaction builder: turns selected outputs into a fully signed transaction.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from hotwallet.constants import MAX_MONEY, STANDARD_DUST_LIMIT
from hotwallet.errors import (
    AddressGenerationError,
    InsufficientFundsError,
    InvalidAddressError,
    TransactionFailedError,
    ValidationError,
)
from hotwallet.models import AddressType, NetworkType, UnspentOutput
from hotwallet.wallet.address import address_to_scriptpubkey, derive_address
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.signing import signer_for
from hotwallet.wallet.transaction import Transaction, TxInput, TxOutput

TXID_RE = re.compile(r"[0-9a-fA-F]{64}")


@dataclass
class SignedTransaction:
    """A signed transaction ready for broadcast."""

    transaction: Transaction
    raw: bytes
    txid: str
    fee: int  # actual fee, including any change folded in as dust
    input_total: int
    output_total: int
    address_type: AddressType
    change_value: int  # 0 when no change output was created

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def vsize(self) -> int:
        return self.transaction.vsize


class TransactionBuilder:
    """
    Builds and signs single-recipient spends from one keypair.

    Output 0 pays the recipient. Output 1, present only when the change is at
    least the dust threshold, pays the keypair's own address of the same
    family. Smaller change is left to the miner.
    """

    def __init__(
        self,
        network: NetworkType | str = NetworkType.MAINNET,
        dust_threshold: int = STANDARD_DUST_LIMIT,
    ):
        self.network = NetworkType(network)
        self.dust_threshold = dust_threshold

    def build(
        self,
        keypair: Keypair,
        utxos: Sequence[UnspentOutput],
        to_address: str,
        amount: int,
        fee: int,
        address_type: AddressType | str,
    ) -> SignedTransaction:
        """
        Build and sign a transaction.

        Args:
            keypair: Keypair controlling every input
            utxos: Outputs to spend, in input order
            to_address: Recipient address on this builder's network
            amount: Amount to pay in satoshis
            fee: Fee in satoshis
            address_type: Family of the inputs and of the change output

        Returns:
            SignedTransaction

        Raises:
            ValidationError: Bad amount, fee, empty input set or network mismatch
            InvalidAddressError: Recipient does not decode on this network
            TransactionFailedError: Malformed outpoint or locking script
            InsufficientFundsError: Inputs do not cover amount plus fee
            SigningError: Signing failed
        """
        address_type = AddressType(address_type)

        if not 0 < amount <= MAX_MONEY:
            raise ValidationError(f"Amount must be in (0, {MAX_MONEY}], got {amount}")
        if fee < 0 or fee > MAX_MONEY:
            raise ValidationError(f"Fee must be in [0, {MAX_MONEY}], got {fee}")
        if not utxos:
            raise ValidationError("No inputs to spend")
        if keypair.network != self.network:
            raise ValidationError(
                f"Keypair is for {keypair.network.value}, builder is for {self.network.value}"
            )

        recipient_script = address_to_scriptpubkey(to_address, self.network)
        signer = signer_for(address_type, keypair)
        prevouts = self._prevouts(utxos)
        signer.check_prevouts(prevouts)

        input_total = sum(p.value for p in prevouts)
        if input_total > MAX_MONEY:
            raise ValidationError(f"Input total {input_total} exceeds {MAX_MONEY}")

        required = amount + fee
        if input_total < required:
            raise InsufficientFundsError(
                f"Insufficient funds: need {required} sat, have {input_total} sat",
                required=required,
                available=input_total,
            )

        outputs = [TxOutput(value=amount, script_pubkey=recipient_script)]
        change = input_total - required
        if change >= self.dust_threshold:
            change_script = self._change_script(keypair, address_type)
            outputs.append(TxOutput(value=change, script_pubkey=change_script))
        else:
            if change > 0:
                logger.debug(f"Change {change} sat below dust threshold, adding to fee")
            change = 0

        tx = Transaction(
            version=signer.tx_version,
            inputs=[TxInput(txid=u.txid, vout=u.vout) for u in utxos],
            outputs=outputs,
        )
        signer.sign(tx, prevouts)

        output_total = sum(o.value for o in outputs)
        raw = tx.serialize()
        signed = SignedTransaction(
            transaction=tx,
            raw=raw,
            txid=tx.txid,
            fee=input_total - output_total,
            input_total=input_total,
            output_total=output_total,
            address_type=address_type,
            change_value=change,
        )
        logger.info(
            f"Built {address_type.value} transaction {signed.txid}: "
            f"{len(tx.inputs)} inputs, {len(outputs)} outputs, fee {signed.fee} sat"
        )
        return signed

    def _prevouts(self, utxos: Sequence[UnspentOutput]) -> list[TxOutput]:
        prevouts = []
        for utxo in utxos:
            if not TXID_RE.fullmatch(utxo.txid):
                raise TransactionFailedError(f"Invalid txid: {utxo.txid!r}")
            if not 0 <= utxo.vout <= 0xFFFFFFFF:
                raise TransactionFailedError(f"Invalid vout {utxo.vout} for {utxo.txid}")
            try:
                script = bytes.fromhex(utxo.script_pubkey)
            except ValueError as e:
                raise TransactionFailedError(
                    f"Invalid script_pubkey hex for {utxo.outpoint}: {e}"
                ) from e
            prevouts.append(TxOutput(value=utxo.amount, script_pubkey=script))
        return prevouts

    def _change_script(self, keypair: Keypair, address_type: AddressType) -> bytes:
        change_address = derive_address(keypair.public_key, address_type, self.network)
        try:
            return address_to_scriptpubkey(change_address, self.network)
        except InvalidAddressError as e:
            raise AddressGenerationError(f"Change address {change_address} is unusable: {e}") from e


def build_transaction(
    keypair: Keypair,
    utxos: Sequence[UnspentOutput],
    to_address: str,
    amount: int,
    fee: int,
    address_type: AddressType | str,
    network: NetworkType | str | None = None,
    dust_threshold: int = STANDARD_DUST_LIMIT,
) -> SignedTransaction:
    """
    Convenience function to build a signed transaction.

    The network defaults to the keypair's own network.
    """
    builder = TransactionBuilder(
        network=network if network is not None else keypair.network,
        dust_threshold=dust_threshold,
    )
    return builder.build(keypair, utxos, to_address, amount, fee, address_type)
