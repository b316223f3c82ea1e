"""
Base blockchain backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from hotwallet.models import UnspentOutput


class BlockchainBackend(ABC):
    """
    Abstract blockchain backend interface.

    Implementations talk to a node or indexer. The wallet service only needs
    unspent outputs, a fee estimate and a way to broadcast.
    """

    @abstractmethod
    async def get_utxos(self, addresses: list[str]) -> list[UnspentOutput]:
        """Get unspent outputs for given addresses"""

    @abstractmethod
    async def estimate_fee(self, target_blocks: int) -> int:
        """Estimate fee in sat/vbyte for target confirmation blocks"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
