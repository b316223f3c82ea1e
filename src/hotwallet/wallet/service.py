"""
Single-key wallet service: select, build and broadcast against a backend.
"""

from __future__ import annotations

from loguru import logger

from hotwallet.backends.base import BlockchainBackend
from hotwallet.config import Settings
from hotwallet.models import AddressType, SelectionStrategy, UnspentOutput
from hotwallet.wallet.address import derive_address
from hotwallet.wallet.builder import SignedTransaction, TransactionBuilder
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.selection import select_utxos


class WalletService:
    """
    Hot wallet for one keypair and one address family.

    The keypair's network is authoritative; settings supply fee, selection
    and dust policy.
    """

    def __init__(
        self,
        keypair: Keypair,
        backend: BlockchainBackend,
        address_type: AddressType | str | None = None,
        settings: Settings | None = None,
    ):
        self.keypair = keypair
        self.backend = backend
        self.settings = settings if settings is not None else Settings()
        self.address_type = AddressType(
            address_type if address_type is not None else self.settings.address_type
        )
        self.network = keypair.network
        self.builder = TransactionBuilder(self.network, self.settings.dust_threshold)

        self.address = derive_address(keypair.public_key, self.address_type, self.network)
        logger.info(f"Initialized {self.address_type.value} wallet on {self.network.value}")

    async def get_utxos(self) -> list[UnspentOutput]:
        utxos = await self.backend.get_utxos([self.address])
        logger.debug(f"Found {len(utxos)} UTXOs for {self.address}")
        return utxos

    async def get_balance(self) -> int:
        """Sum of spendable outputs in satoshis"""
        utxos = await self.get_utxos()
        return sum(u.amount for u in utxos if u.confirmations >= self.settings.min_confirmations)

    async def get_fee_rate(self) -> int:
        """
        Fee rate in sat/vB for the configured confirmation target.

        Falls back to the configured default when the backend cannot estimate,
        and never returns less than 1.
        """
        try:
            rate = await self.backend.estimate_fee(self.settings.fee_target_blocks)
        except Exception as e:
            logger.warning(
                f"Fee estimation failed, using default {self.settings.default_fee_rate}: {e}"
            )
            return self.settings.default_fee_rate
        return max(1, int(rate))

    async def create_transaction(
        self,
        to_address: str,
        amount: int,
        strategy: SelectionStrategy | str | None = None,
        fee_rate: int | None = None,
    ) -> SignedTransaction:
        """
        Select outputs and build a signed transaction without broadcasting it.

        Args:
            to_address: Recipient address
            amount: Amount in satoshis
            strategy: Selection strategy (default from settings)
            fee_rate: Fee rate in sat/vB (default: backend estimate)
        """
        utxos = await self.get_utxos()
        if fee_rate is None:
            fee_rate = await self.get_fee_rate()
        if strategy is None:
            strategy = self.settings.selection_strategy

        selection = select_utxos(
            utxos,
            amount,
            fee_rate,
            strategy,
            min_confirmations=self.settings.min_confirmations,
        )
        return self.builder.build(
            self.keypair, selection.utxos, to_address, amount, selection.fee, self.address_type
        )

    async def send(
        self,
        to_address: str,
        amount: int,
        strategy: SelectionStrategy | str | None = None,
        fee_rate: int | None = None,
    ) -> str:
        """Build, sign and broadcast a payment. Returns the txid."""
        signed = await self.create_transaction(to_address, amount, strategy, fee_rate)
        txid = await self.backend.broadcast_transaction(signed.hex)
        logger.info(f"Broadcast {txid}: {amount} sat to {to_address}, fee {signed.fee} sat")
        return txid

    async def close(self) -> None:
        await self.backend.close()
