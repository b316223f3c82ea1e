"""
hotwallet - Bitcoin hot wallet transaction engine

Key generation, address derivation, unspent output selection and signed
transaction construction for legacy, SegWit v0 and Taproot key path spends.
"""

__version__ = "0.1.0"

from hotwallet.constants import MAX_MONEY, STANDARD_DUST_LIMIT
from hotwallet.errors import (
    AddressGenerationError,
    InsufficientFundsError,
    InvalidAddressError,
    InvalidPrivateKeyError,
    KeyGenerationError,
    SigningError,
    TransactionError,
    TransactionFailedError,
    ValidationError,
    WalletError,
)
from hotwallet.models import AddressType, NetworkType, SelectionStrategy, UnspentOutput
from hotwallet.wallet.address import (
    DecodedAddress,
    classify_address,
    decode_address,
    derive_address,
    validate_address,
)
from hotwallet.wallet.builder import SignedTransaction, TransactionBuilder, build_transaction
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.selection import SelectionResult, estimate_fee, select_utxos

__all__ = [
    "AddressGenerationError",
    "AddressType",
    "DecodedAddress",
    "InsufficientFundsError",
    "InvalidAddressError",
    "InvalidPrivateKeyError",
    "KeyGenerationError",
    "Keypair",
    "MAX_MONEY",
    "NetworkType",
    "STANDARD_DUST_LIMIT",
    "SelectionResult",
    "SelectionStrategy",
    "SignedTransaction",
    "SigningError",
    "TransactionBuilder",
    "TransactionError",
    "TransactionFailedError",
    "UnspentOutput",
    "ValidationError",
    "WalletError",
    "build_transaction",
    "classify_address",
    "decode_address",
    "derive_address",
    "estimate_fee",
    "select_utxos",
    "validate_address",
]
