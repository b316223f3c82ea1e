"""
secp256k1 keypairs for signing transaction inputs.

The secret scalar is held in a mutable buffer owned by the Keypair. It is
borrowed for the duration of a single signing call and zeroed by erase(),
when a ``with`` block exits, or when the object is collected.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from coincurve import PrivateKey, PublicKey
from loguru import logger

from hotwallet.crypto import SECP256K1_N, is_valid_secret
from hotwallet.errors import InvalidPrivateKeyError, KeyGenerationError, SigningError
from hotwallet.models import NetworkType

KEY_LENGTH = 32
DIGEST_LENGTH = 32


class RandomSource(Protocol):
    """Anything that can produce random bits (random.Random, secrets.SystemRandom)."""

    def getrandbits(self, k: int) -> int: ...


def _zero(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


def _check_digest(digest: bytes) -> None:
    if len(digest) != DIGEST_LENGTH:
        raise SigningError(f"Digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")


class Keypair:
    """
    A secp256k1 private/public keypair bound to a network.

    Construct with Keypair.generate() or Keypair.from_raw(). Signing only
    reads the secret, so one instance may be shared by concurrent callers.
    """

    def __init__(self, secret: bytes | bytearray, network: NetworkType = NetworkType.MAINNET):
        if len(secret) != KEY_LENGTH:
            raise InvalidPrivateKeyError(
                f"Private key must be {KEY_LENGTH} bytes, got {len(secret)}"
            )
        if not is_valid_secret(secret):
            raise InvalidPrivateKeyError("Private key is out of valid secp256k1 range")

        self._secret = bytearray(secret)
        self._erased = False
        self._public_key: PublicKey = PrivateKey(bytes(self._secret)).public_key
        self.network = NetworkType(network)

    @classmethod
    def generate(
        cls, network: NetworkType = NetworkType.MAINNET, rng: RandomSource | None = None
    ) -> Keypair:
        """
        Generate a new keypair from 256 random bits.

        Args:
            network: Network the keypair is used on
            rng: Random source, defaults to the OS CSPRNG

        Raises:
            KeyGenerationError: If the drawn scalar is zero or >= n
        """
        source = rng if rng is not None else secrets.SystemRandom()
        candidate = bytearray(source.getrandbits(KEY_LENGTH * 8).to_bytes(KEY_LENGTH, "big"))
        try:
            if not is_valid_secret(candidate):
                raise KeyGenerationError("Generated scalar is outside the secp256k1 order")
            keypair = cls(candidate, network)
        finally:
            _zero(candidate)

        logger.debug(f"Generated new keypair for {keypair.network.value}")
        return keypair

    @classmethod
    def from_raw(
        cls, raw: bytes | bytearray, network: NetworkType = NetworkType.MAINNET
    ) -> Keypair:
        """Rebuild a keypair from exactly 32 secret bytes."""
        return cls(raw, network)

    def __enter__(self) -> Keypair:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.erase()

    def __del__(self) -> None:
        if hasattr(self, "_secret"):
            self.erase()

    def __repr__(self) -> str:
        state = "erased" if self._erased else self.public_key_hex
        return f"Keypair(network={self.network.value}, public_key={state})"

    def erase(self) -> None:
        """Overwrite the secret with zeros. The keypair can no longer sign."""
        _zero(self._secret)
        self._erased = True

    @property
    def is_erased(self) -> bool:
        return self._erased

    @property
    def public_key(self) -> PublicKey:
        """Return the coincurve PublicKey instance."""
        return self._public_key

    def public_key_bytes(self, compressed: bool = True) -> bytes:
        return self._public_key.format(compressed=compressed)

    @property
    def public_key_hex(self) -> str:
        """Public key as hex string (compressed, 33 bytes)."""
        return self.public_key_bytes().hex()

    @property
    def x_only_public_key(self) -> bytes:
        return self.public_key_bytes()[1:]

    @property
    def has_odd_y(self) -> bool:
        return self.public_key_bytes()[0] == 0x03

    def to_raw(self) -> bytes:
        """Return the 32 secret bytes. Callers own the returned copy."""
        if self._erased:
            raise InvalidPrivateKeyError("Keypair has been erased")
        return bytes(self._secret)

    @contextmanager
    def _borrow(self) -> Iterator[PrivateKey]:
        if self._erased:
            raise SigningError("Keypair has been erased")
        yield PrivateKey(bytes(self._secret))

    def sign_ecdsa(self, digest: bytes) -> bytes:
        """
        Sign a 32-byte digest with ECDSA.

        Nonces follow RFC 6979, so the same key and digest always give the
        same signature. The digest is not hashed again.

        Returns:
            DER-encoded signature (low-S), without sighash byte
        """
        _check_digest(digest)
        with self._borrow() as key:
            try:
                return key.sign(digest, hasher=None)
            except ValueError as e:
                raise SigningError(f"ECDSA signing failed: {e}") from e

    def sign_schnorr(self, digest: bytes, aux_randomness: bytes | None = None) -> bytes:
        """
        Sign a 32-byte digest with BIP-340 Schnorr.

        For taproot spends call this on the keypair returned by
        taproot_tweaked(), not on the internal keypair.

        Args:
            digest: Message digest
            aux_randomness: Optional 32 bytes of auxiliary randomness; without
                it the signature is deterministic

        Returns:
            64-byte signature
        """
        _check_digest(digest)
        if aux_randomness is not None and len(aux_randomness) != 32:
            raise SigningError("Auxiliary randomness must be 32 bytes")

        with self._borrow() as key:
            try:
                signature = key.sign_schnorr(digest, aux_randomness)
            except ValueError as e:
                raise SigningError(f"Schnorr signing failed: {e}") from e

        if len(signature) != 64:
            raise SigningError(f"Unexpected Schnorr signature length {len(signature)}")
        return signature

    def taproot_tweaked(self, tweak: bytes) -> Keypair:
        """
        Return a new keypair holding the BIP-341 tweaked secret.

        The internal secret is negated first when its public key has an odd
        y coordinate, so the result matches the x-only output key
        lift_x(P) + t*G. Use it as a context manager so it is erased promptly.

        Args:
            tweak: 32-byte tweak scalar (see address.taproot_tweak)
        """
        if len(tweak) != 32:
            raise SigningError(f"Taproot tweak must be 32 bytes, got {len(tweak)}")
        tweak_int = int.from_bytes(tweak, "big")
        if tweak_int >= SECP256K1_N:
            raise SigningError("Taproot tweak exceeds the curve order")
        if self._erased:
            raise SigningError("Keypair has been erased")

        secret_int = int.from_bytes(self._secret, "big")
        if self.has_odd_y:
            secret_int = SECP256K1_N - secret_int

        tweaked_int = (secret_int + tweak_int) % SECP256K1_N
        if tweaked_int == 0:
            raise SigningError("Tweaked secret is zero")

        buf = bytearray(tweaked_int.to_bytes(KEY_LENGTH, "big"))
        try:
            return Keypair(buf, self.network)
        finally:
            _zero(buf)
