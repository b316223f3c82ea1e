"""
Core data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


class AddressType(str, Enum):
    """Output script family of an address."""

    LEGACY = "legacy"  # P2PKH, Base58Check
    SEGWIT = "segwit"  # P2WPKH, Bech32 witness v0
    TAPROOT = "taproot"  # P2TR key path, Bech32m witness v1


class SelectionStrategy(str, Enum):
    LARGEST_FIRST = "largest_first"
    SMALLEST_FIRST = "smallest_first"
    BEST_FIT = "best_fit"
    RANDOM = "random"


class UnspentOutput(BaseModel):
    """
    A spendable output as reported by a full node.

    Accepts both our field names and the node's JSON names
    (value, scriptPubKey) so listunspent/scantxoutset entries can be
    validated directly.
    """

    model_config = {"frozen": True}

    txid: str = Field(..., min_length=1)
    vout: int = Field(..., ge=0, le=0xFFFFFFFF)
    amount: int = Field(..., ge=0, validation_alias=AliasChoices("amount", "value"))
    script_pubkey: str = Field(
        default="",
        validation_alias=AliasChoices("script_pubkey", "scriptPubKey", "scriptpubkey"),
    )
    confirmations: int = Field(default=0, ge=0)
    address: str | None = None

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"
