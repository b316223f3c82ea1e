"""
Hash functions and raw signature verification helpers.
"""

from __future__ import annotations

import hashlib

from coincurve import PublicKey, PublicKeyXOnly

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """SHA256(SHA256(data))"""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP-340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || data)."""
    tag_digest = hashlib.sha256(tag.encode("utf-8")).digest()
    return hashlib.sha256(tag_digest + tag_digest + data).digest()


def is_valid_secret(secret: bytes | bytearray) -> bool:
    """Check that 32 bytes encode a scalar in [1, n-1]."""
    if len(secret) != 32:
        return False
    return 0 < int.from_bytes(secret, "big") < SECP256K1_N


def verify_raw_ecdsa(message_hash: bytes, signature_der: bytes, pubkey_bytes: bytes) -> bool:
    """
    Verify a DER ECDSA signature over a 32-byte digest (no extra hashing).

    Args:
        message_hash: The digest that was signed
        signature_der: DER-encoded signature, without sighash byte
        pubkey_bytes: SEC-encoded public key

    Returns:
        True if signature is valid
    """
    try:
        return PublicKey(pubkey_bytes).verify(signature_der, message_hash, hasher=None)
    except Exception:
        return False


def verify_schnorr(message_hash: bytes, signature: bytes, xonly_pubkey: bytes) -> bool:
    """Verify a BIP-340 signature against a 32-byte x-only public key."""
    try:
        return PublicKeyXOnly(xonly_pubkey).verify(signature, message_hash)
    except Exception:
        return False
