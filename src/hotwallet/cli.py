"""
Hot wallet CLI - generate keys, derive and inspect addresses, select coins and sign.
"""

from __future__ import annotations

import json
import sys
from enum import Enum
from pathlib import Path
from typing import TypeVar

import typer
from loguru import logger
from pydantic import TypeAdapter
from pydantic import ValidationError as ModelValidationError

from hotwallet.config import get_settings
from hotwallet.errors import InvalidAddressError, WalletError
from hotwallet.models import AddressType, NetworkType, SelectionStrategy, UnspentOutput
from hotwallet.wallet.address import classify_address, decode_address, derive_address
from hotwallet.wallet.builder import TransactionBuilder
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.selection import select_utxos

E = TypeVar("E", bound=Enum)

app = typer.Typer(
    name="hotwallet",
    help="Bitcoin hot wallet transaction engine",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _echo_json(data: dict) -> None:
    typer.echo(json.dumps(data, indent=2))


def _parse_option(enum_type: type[E], value: str, option: str) -> E:
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_type)
        logger.error(f"Invalid {option} {value!r}, expected one of: {choices}")
        raise typer.Exit(1)


def _load_keypair(secret_key: str | None, network: NetworkType) -> Keypair:
    if not secret_key:
        logger.error("Secret key required. Use --secret-key or HOTWALLET_SECRET_KEY env var")
        raise typer.Exit(1)
    try:
        return Keypair.from_raw(bytes.fromhex(secret_key), network)
    except (ValueError, WalletError) as e:
        logger.error(f"Invalid secret key: {e}")
        raise typer.Exit(1)


def _load_utxos(utxo_file: Path) -> list[UnspentOutput]:
    if not utxo_file.exists():
        logger.error(f"UTXO file not found: {utxo_file}")
        raise typer.Exit(1)
    try:
        return TypeAdapter(list[UnspentOutput]).validate_json(utxo_file.read_text())
    except ModelValidationError as e:
        logger.error(f"Invalid UTXO file {utxo_file}: {e}")
        raise typer.Exit(1)


@app.command()
def generate(
    network: str | None = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    address_type: str | None = typer.Option(
        None, "--address-type", "-t", help="legacy | segwit | taproot"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Generate a new keypair and print its secret key and address."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    net = _parse_option(NetworkType, network or settings.network, "--network")
    family = _parse_option(
        AddressType, address_type or settings.address_type, "--address-type"
    )
    with Keypair.generate(net) as keypair:
        _echo_json(
            {
                "network": net.value,
                "address_type": family.value,
                "secret_key": keypair.to_raw().hex(),
                "public_key": keypair.public_key_hex,
                "address": derive_address(keypair.public_key, family, net),
            }
        )
    logger.warning("The secret key above controls the funds. Store it securely.")


@app.command()
def address(
    secret_key: str | None = typer.Option(
        None, "--secret-key", "-k", envvar="HOTWALLET_SECRET_KEY", help="32-byte hex secret"
    ),
    network: str | None = typer.Option(None, "--network", "-n"),
    address_type: str | None = typer.Option(None, "--address-type", "-t"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Print the address of a secret key."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    net = _parse_option(NetworkType, network or settings.network, "--network")
    family = _parse_option(
        AddressType, address_type or settings.address_type, "--address-type"
    )
    with _load_keypair(secret_key, net) as keypair:
        typer.echo(derive_address(keypair.public_key, family, net))


@app.command()
def validate(
    addr: str = typer.Argument(..., help="Address to check"),
    network: str | None = typer.Option(None, "--network", "-n"),
) -> None:
    """Check that an address is valid on a network."""
    settings = get_settings()
    setup_logging(settings.log_level)

    net = _parse_option(NetworkType, network or settings.network, "--network")
    try:
        decoded = decode_address(addr, net)
    except InvalidAddressError as e:
        typer.echo(f"invalid: {e}")
        raise typer.Exit(1)

    typer.echo(f"valid {decoded.kind} address on {net.value}")


@app.command()
def classify(addr: str = typer.Argument(..., help="Address to classify")) -> None:
    """Print the output script family (legacy, segwit, taproot) of an address."""
    setup_logging(get_settings().log_level)

    try:
        family = classify_address(addr)
    except InvalidAddressError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    typer.echo(family.value)


@app.command()
def select(
    utxo_file: Path = typer.Argument(..., help="JSON file with a list of unspent outputs"),
    target: int = typer.Option(..., "--target", help="Amount to pay in satoshis"),
    fee_rate: int | None = typer.Option(None, "--fee-rate", help="Fee rate in sat/vB"),
    strategy: str | None = typer.Option(
        None, "--strategy", "-s", help="largest_first | smallest_first | best_fit | random"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Run coin selection over a set of unspent outputs."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    policy = _parse_option(
        SelectionStrategy, strategy or settings.selection_strategy, "--strategy"
    )
    utxos = _load_utxos(utxo_file)
    try:
        result = select_utxos(
            utxos,
            target,
            fee_rate if fee_rate is not None else settings.default_fee_rate,
            policy,
            min_confirmations=settings.min_confirmations,
        )
    except WalletError as e:
        logger.error(f"Selection failed: {e}")
        raise typer.Exit(1)

    _echo_json(
        {
            "inputs": [u.outpoint for u in result.utxos],
            "total_value": result.total_value,
            "fee": result.fee,
            "change_value": result.change_value,
        }
    )


@app.command()
def sign(
    utxo_file: Path = typer.Argument(..., help="JSON file with a list of unspent outputs"),
    to_address: str = typer.Option(..., "--to", help="Recipient address"),
    amount: int = typer.Option(..., "--amount", help="Amount to pay in satoshis"),
    secret_key: str | None = typer.Option(
        None, "--secret-key", "-k", envvar="HOTWALLET_SECRET_KEY", help="32-byte hex secret"
    ),
    fee_rate: int | None = typer.Option(None, "--fee-rate", help="Fee rate in sat/vB"),
    strategy: str | None = typer.Option(None, "--strategy", "-s"),
    network: str | None = typer.Option(None, "--network", "-n"),
    address_type: str | None = typer.Option(None, "--address-type", "-t"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Select outputs and print a signed transaction (not broadcast)."""
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    net = _parse_option(NetworkType, network or settings.network, "--network")
    family = _parse_option(
        AddressType, address_type or settings.address_type, "--address-type"
    )
    policy = _parse_option(
        SelectionStrategy, strategy or settings.selection_strategy, "--strategy"
    )
    utxos = _load_utxos(utxo_file)

    with _load_keypair(secret_key, net) as keypair:
        try:
            selection = select_utxos(
                utxos,
                amount,
                fee_rate if fee_rate is not None else settings.default_fee_rate,
                policy,
                min_confirmations=settings.min_confirmations,
            )
            builder = TransactionBuilder(net, settings.dust_threshold)
            signed = builder.build(
                keypair, selection.utxos, to_address, amount, selection.fee, family
            )
        except WalletError as e:
            logger.error(f"Failed to build transaction: {e}")
            raise typer.Exit(1)

    _echo_json(
        {
            "txid": signed.txid,
            "hex": signed.hex,
            "fee": signed.fee,
            "vsize": signed.vsize,
            "change_value": signed.change_value,
        }
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
