"""
Bitcoin protocol constants used by the transaction engine.
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core. Change below this is folded into the fee.
STANDARD_DUST_LIMIT = 546  # satoshis

SATS_PER_BTC = 100_000_000
MAX_MONEY = 21_000_000 * SATS_PER_BTC

SIGHASH_DEFAULT = 0x00  # taproot only
SIGHASH_ALL = 0x01

SEQUENCE_FINAL = 0xFFFFFFFF
LOCKTIME_NONE = 0

LEGACY_TX_VERSION = 1
SEGWIT_TX_VERSION = 2

# Size heuristic for fee estimation (bytes). Conservative: every input is
# costed as a legacy P2PKH input and every transaction is assumed to have a
# recipient and a change output, whatever the address family.
FEE_INPUT_SIZE = 148
FEE_OUTPUT_SIZE = 34
FEE_OUTPUT_COUNT = 2
FEE_OVERHEAD_SIZE = 10

DEFAULT_FEE_RATE = 10  # sat/vB, used when the backend cannot estimate
