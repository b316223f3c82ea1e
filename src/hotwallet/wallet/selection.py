"""
Unspent output selection.

The fee model here is a fixed size heuristic, not a weight calculation:

    fee(n) = (148*n + 34*2 + 10) * fee_rate

Every input is costed like a legacy P2PKH input and two outputs (recipient and
change) are always assumed, whatever the address family. It overestimates for
SegWit and Taproot spends. Callers that agree fee rates with counterparties
rely on this exact formula, so keep it as is.
"""

from __future__ import annotations

import random
import secrets
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from loguru import logger

from hotwallet.constants import (
    FEE_INPUT_SIZE,
    FEE_OUTPUT_COUNT,
    FEE_OUTPUT_SIZE,
    FEE_OVERHEAD_SIZE,
)
from hotwallet.errors import InsufficientFundsError, ValidationError
from hotwallet.models import SelectionStrategy, UnspentOutput


@dataclass
class SelectionResult:
    """Result of coin selection"""

    utxos: list[UnspentOutput]
    fee: int
    target: int

    @property
    def total_value(self) -> int:
        return sum(u.amount for u in self.utxos)

    @property
    def change_value(self) -> int:
        return self.total_value - self.target - self.fee


def estimate_fee(input_count: int, fee_rate: int) -> int:
    """Heuristic fee in satoshis for a spend of input_count inputs."""
    size = FEE_INPUT_SIZE * input_count + FEE_OUTPUT_SIZE * FEE_OUTPUT_COUNT + FEE_OVERHEAD_SIZE
    return size * fee_rate


def _accumulate(
    ordered: Sequence[UnspentOutput], target: int, fee_rate: int
) -> SelectionResult | None:
    selected: list[UnspentOutput] = []
    total = 0
    for utxo in ordered:
        selected.append(utxo)
        total += utxo.amount
        fee = estimate_fee(len(selected), fee_rate)
        if total >= target + fee:
            return SelectionResult(utxos=selected, fee=fee, target=target)
    return None


def _best_fit(
    utxos: Sequence[UnspentOutput], target: int, fee_rate: int
) -> SelectionResult | None:
    required = target + estimate_fee(1, fee_rate)
    best: UnspentOutput | None = None
    for utxo in utxos:
        if utxo.amount < required:
            continue
        # Strict comparison keeps the first candidate on ties
        if best is None or utxo.amount - required < best.amount - required:
            best = utxo

    if best is None:
        return None
    return SelectionResult(utxos=[best], fee=estimate_fee(1, fee_rate), target=target)


def select_utxos(
    utxos: Iterable[UnspentOutput],
    target: int,
    fee_rate: int,
    strategy: SelectionStrategy | str = SelectionStrategy.LARGEST_FIRST,
    rng: random.Random | None = None,
    min_confirmations: int = 0,
) -> SelectionResult:
    """
    Select unspent outputs covering target plus the heuristic fee.

    Args:
        utxos: Candidate outputs, not modified
        target: Amount to pay in satoshis
        fee_rate: Fee rate in sat/vB
        strategy: Selection policy
        rng: Shuffle source for the random strategy (default: OS CSPRNG)
        min_confirmations: Outputs with fewer confirmations are skipped

    Returns:
        SelectionResult with the chosen outputs and the heuristic fee

    Raises:
        ValidationError: Non-positive target, negative fee_rate or unknown strategy
        InsufficientFundsError: If the strategy finds no covering subset
    """
    if target <= 0:
        raise ValidationError(f"Target must be positive, got {target}")
    if fee_rate < 0:
        raise ValidationError(f"Fee rate must not be negative, got {fee_rate}")

    try:
        strategy = SelectionStrategy(strategy)
    except ValueError as e:
        raise ValidationError(f"Unknown selection strategy: {strategy!r}") from e

    eligible = [u for u in utxos if u.confirmations >= min_confirmations]
    available = sum(u.amount for u in eligible)

    if not eligible:
        raise InsufficientFundsError(
            "No spendable outputs", required=target + estimate_fee(1, fee_rate), available=0
        )

    if strategy == SelectionStrategy.LARGEST_FIRST:
        ordered = sorted(eligible, key=lambda u: u.amount, reverse=True)
        result = _accumulate(ordered, target, fee_rate)
    elif strategy == SelectionStrategy.SMALLEST_FIRST:
        result = _accumulate(sorted(eligible, key=lambda u: u.amount), target, fee_rate)
    elif strategy == SelectionStrategy.BEST_FIT:
        result = _best_fit(eligible, target, fee_rate)
        if result is None:
            logger.debug("No single output covers target, falling back to smallest-first")
            result = _accumulate(sorted(eligible, key=lambda u: u.amount), target, fee_rate)
    else:
        shuffled = list(eligible)
        (rng if rng is not None else secrets.SystemRandom()).shuffle(shuffled)
        result = _accumulate(shuffled, target, fee_rate)

    if result is None:
        required = target + estimate_fee(len(eligible), fee_rate)
        raise InsufficientFundsError(
            f"Insufficient funds: need {required}, have {available}",
            required=required,
            available=available,
        )

    logger.debug(
        f"Selected {len(result.utxos)}/{len(eligible)} outputs ({strategy.value}): "
        f"total={result.total_value}, fee={result.fee}, change={result.change_value}"
    )
    return result
