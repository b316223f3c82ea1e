"""
Bitcoin address derivation, decoding and classification.

Legacy addresses are Base58Check, SegWit v0 addresses Bech32 and Taproot
(and future witness versions) Bech32m, following BIP-173/BIP-350.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58
import bech32
from coincurve import PublicKey

from hotwallet.crypto import hash160, tagged_hash
from hotwallet.errors import AddressGenerationError, InvalidAddressError
from hotwallet.models import AddressType, NetworkType


@dataclass(frozen=True)
class NetworkParams:
    p2pkh_version: int
    p2sh_version: int
    hrp: str


NETWORK_PARAMS: dict[NetworkType, NetworkParams] = {
    NetworkType.MAINNET: NetworkParams(p2pkh_version=0x00, p2sh_version=0x05, hrp="bc"),
    NetworkType.TESTNET: NetworkParams(p2pkh_version=0x6F, p2sh_version=0xC4, hrp="tb"),
    NetworkType.SIGNET: NetworkParams(p2pkh_version=0x6F, p2sh_version=0xC4, hrp="tb"),
    NetworkType.REGTEST: NetworkParams(p2pkh_version=0x6F, p2sh_version=0xC4, hrp="bcrt"),
}


def get_network_params(network: NetworkType | str) -> NetworkParams:
    return NETWORK_PARAMS[NetworkType(network)]


def get_hrp(network: NetworkType | str) -> str:
    """Get bech32 human-readable part for network."""
    return get_network_params(network).hrp


@dataclass(frozen=True)
class DecodedAddress:
    """A decoded destination: its network, payload and locking script."""

    address: str
    network: NetworkType
    witness_version: int | None
    program: bytes
    script_pubkey: bytes
    kind: str  # p2pkh, p2sh, p2wpkh, p2wsh, p2tr or witness_unknown


# Locking script templates


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    # OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG
    return bytes([0x76, 0xA9, 0x14]) + pubkey_hash + bytes([0x88, 0xAC])


def p2sh_script(script_hash: bytes) -> bytes:
    # OP_HASH160 <20> OP_EQUAL
    return bytes([0xA9, 0x14]) + script_hash + bytes([0x87])


def witness_script(version: int, program: bytes) -> bytes:
    """OP_n <program>, with OP_0 for version 0 and OP_1..OP_16 as 0x51..0x60."""
    opcode = 0x00 if version == 0 else 0x50 + version
    return bytes([opcode, len(program)]) + program


def _to_public_key(public_key: PublicKey | bytes) -> PublicKey:
    if isinstance(public_key, PublicKey):
        return public_key
    try:
        return PublicKey(bytes(public_key))
    except (ValueError, TypeError) as e:
        raise AddressGenerationError(f"Invalid public key: {e}") from e


def _compressed(public_key: PublicKey | bytes) -> bytes:
    return _to_public_key(public_key).format(compressed=True)


def taproot_tweak(public_key: PublicKey | bytes) -> bytes:
    """
    BIP-341 key-path-only tweak t = hashTapTweak(x(P)).

    Returns:
        32-byte big-endian scalar
    """
    return tagged_hash("TapTweak", _compressed(public_key)[1:])


def taproot_output_key(public_key: PublicKey | bytes) -> bytes:
    """
    Compute the x-only output key Q = lift_x(x(P)) + t*G.

    lift_x picks the even-y point, so the parity of the input key does not
    matter here; the signer compensates by negating the secret.
    """
    xonly = _compressed(public_key)[1:]
    tweak = tagged_hash("TapTweak", xonly)
    try:
        output_point = PublicKey(b"\x02" + xonly).add(tweak)
    except ValueError as e:
        raise AddressGenerationError(f"Taproot tweak failed: {e}") from e
    return output_point.format(compressed=True)[1:]


def _encode_witness(hrp: str, version: int, program: bytes) -> str:
    encoded = bech32.encode(hrp, version, program)
    if encoded is None:
        raise AddressGenerationError(f"Cannot encode witness v{version} program for {hrp}")
    return encoded


def pubkey_to_p2pkh_address(
    public_key: PublicKey | bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    params = get_network_params(network)
    payload = bytes([params.p2pkh_version]) + hash160(_compressed(public_key))
    return base58.b58encode_check(payload).decode("ascii")


def pubkey_to_p2wpkh_address(
    public_key: PublicKey | bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """
    Convert public key to P2WPKH (native SegWit) address.

    Args:
        public_key: 33-byte compressed public key or coincurve PublicKey
        network: Network type

    Returns:
        Bech32 encoded address
    """
    return _encode_witness(get_hrp(network), 0, hash160(_compressed(public_key)))


def pubkey_to_p2tr_address(
    public_key: PublicKey | bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """Key-path-only P2TR address (BIP-86 style, no script tree)."""
    return _encode_witness(get_hrp(network), 1, taproot_output_key(public_key))


def derive_address(
    public_key: PublicKey | bytes,
    address_type: AddressType | str,
    network: NetworkType | str = NetworkType.MAINNET,
) -> str:
    """
    Derive the address of a public key for one output script family.

    Raises:
        AddressGenerationError: If the key is invalid or encoding fails
    """
    address_type = AddressType(address_type)
    if address_type == AddressType.LEGACY:
        return pubkey_to_p2pkh_address(public_key, network)
    if address_type == AddressType.SEGWIT:
        return pubkey_to_p2wpkh_address(public_key, network)
    return pubkey_to_p2tr_address(public_key, network)


def script_for_public_key(public_key: PublicKey | bytes, address_type: AddressType | str) -> bytes:
    """Locking script paying to a public key in the given family."""
    address_type = AddressType(address_type)
    if address_type == AddressType.LEGACY:
        return p2pkh_script(hash160(_compressed(public_key)))
    if address_type == AddressType.SEGWIT:
        return witness_script(0, hash160(_compressed(public_key)))
    return witness_script(1, taproot_output_key(public_key))


def _decode_segwit(address: str, network: NetworkType, hrp: str) -> DecodedAddress:
    version, data = bech32.decode(hrp, address)
    if version is None or data is None:
        raise InvalidAddressError(f"Invalid bech32 address: {address}")

    program = bytes(data)
    if version == 0:
        kind = "p2wpkh" if len(program) == 20 else "p2wsh"
    elif version == 1 and len(program) == 32:
        kind = "p2tr"
    else:
        kind = "witness_unknown"

    return DecodedAddress(
        address=address,
        network=network,
        witness_version=version,
        program=program,
        script_pubkey=witness_script(version, program),
        kind=kind,
    )


def _decode_base58(address: str, network: NetworkType, params: NetworkParams) -> DecodedAddress:
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid base58 address: {address}") from e

    if len(decoded) != 21:
        raise InvalidAddressError(f"Invalid base58 payload length: {len(decoded)}")

    version = decoded[0]
    payload = decoded[1:]
    if version == params.p2pkh_version:
        return DecodedAddress(address, network, None, payload, p2pkh_script(payload), "p2pkh")
    if version == params.p2sh_version:
        return DecodedAddress(address, network, None, payload, p2sh_script(payload), "p2sh")

    raise InvalidAddressError(f"Address version {version:#04x} does not belong to {network.value}")


def decode_address(
    address: str, network: NetworkType | str = NetworkType.MAINNET
) -> DecodedAddress:
    """
    Decode an address for a specific network.

    Supports:
    - P2PKH and P2SH (Base58Check)
    - P2WPKH and P2WSH (bech32, witness v0)
    - P2TR and future witness versions (bech32m, witness v1..v16)

    Raises:
        InvalidAddressError: If the string is malformed or belongs to another network
    """
    network = NetworkType(network)
    params = NETWORK_PARAMS[network]
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("Empty address")

    if address.lower().startswith(params.hrp + "1"):
        return _decode_segwit(address, network, params.hrp)
    return _decode_base58(address, network, params)


def address_to_scriptpubkey(
    address: str, network: NetworkType | str = NetworkType.MAINNET
) -> bytes:
    """Convert an address to its scriptPubKey, checking that it belongs to network."""
    return decode_address(address, network).script_pubkey


def scriptpubkey_to_address(
    scriptpubkey: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    """
    Convert scriptPubKey to address.

    Raises:
        InvalidAddressError: If the script is not a standard destination template
    """
    params = get_network_params(network)

    # P2PKH
    if (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == bytes([0x76, 0xA9, 0x14])
        and scriptpubkey[23:] == bytes([0x88, 0xAC])
    ):
        payload = bytes([params.p2pkh_version]) + scriptpubkey[3:23]
        return base58.b58encode_check(payload).decode("ascii")

    # P2SH
    if (
        len(scriptpubkey) == 23
        and scriptpubkey[:2] == bytes([0xA9, 0x14])
        and scriptpubkey[22] == 0x87
    ):
        payload = bytes([params.p2sh_version]) + scriptpubkey[2:22]
        return base58.b58encode_check(payload).decode("ascii")

    # Witness programs
    if 4 <= len(scriptpubkey) <= 42 and scriptpubkey[1] == len(scriptpubkey) - 2:
        opcode = scriptpubkey[0]
        if opcode == 0x00:
            version = 0
        elif 0x51 <= opcode <= 0x60:
            version = opcode - 0x50
        else:
            version = -1
        if version >= 0:
            encoded = bech32.encode(params.hrp, version, scriptpubkey[2:])
            if encoded is not None:
                return encoded

    raise InvalidAddressError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")


def validate_address(address: str, network: NetworkType | str = NetworkType.MAINNET) -> bool:
    """Return True if address decodes for network. Never raises."""
    try:
        decode_address(address, network)
    except (InvalidAddressError, ValueError):
        return False
    return True


def classify_address(address: str) -> AddressType:
    """
    Determine the output script family of an address on any network.

    Raises:
        InvalidAddressError: For P2SH, witness versions 2 to 16 and undecodable
            strings
    """
    for network in NetworkType:
        try:
            decoded = decode_address(address, network)
        except InvalidAddressError:
            continue

        if decoded.kind == "p2pkh":
            return AddressType.LEGACY
        if decoded.witness_version == 0:
            return AddressType.SEGWIT
        if decoded.witness_version == 1:
            return AddressType.TAPROOT
        raise InvalidAddressError(f"Unsupported address kind {decoded.kind}: {address}")

    raise InvalidAddressError(f"Cannot decode address: {address}")
