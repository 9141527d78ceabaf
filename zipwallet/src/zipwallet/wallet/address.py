"""
P2PKH address and script utilities.
"""

from __future__ import annotations

import hashlib

import base58

from zipwallet.constants import P2PKH_VERSION_BYTES

OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def pubkey_hash_to_address(pubkey_hash: bytes, network: str = "mainnet") -> str:
    """Base58Check-encode a 20-byte public key hash"""
    if len(pubkey_hash) != 20:
        raise ValueError(f"Invalid pubkey hash length: {len(pubkey_hash)}")
    try:
        version = P2PKH_VERSION_BYTES[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}") from None
    return base58.b58encode_check(bytes([version]) + pubkey_hash).decode("ascii")


def pubkey_to_p2pkh_address(pubkey: bytes, network: str = "mainnet") -> str:
    """
    Convert a compressed public key to a P2PKH address.
    """
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return pubkey_hash_to_address(hash160(pubkey), network)


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-hash> OP_EQUALVERIFY OP_CHECKSIG"""
    if len(pubkey_hash) != 20:
        raise ValueError(f"Invalid pubkey hash length: {len(pubkey_hash)}")
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def pubkey_to_p2pkh_script(pubkey: bytes) -> bytes:
    return p2pkh_script(hash160(pubkey))


def address_to_pubkey_hash(address: str, network: str | None = None) -> bytes:
    """
    Decode a P2PKH address.

    If ``network`` is given, the version byte must match it.
    """
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid address checksum: {address}") from e

    if len(decoded) != 21:
        raise ValueError(f"Invalid address length: {address}")

    version = decoded[0]
    if network is not None:
        if version != P2PKH_VERSION_BYTES[network]:
            raise ValueError(f"Address {address} is not a {network} P2PKH address")
    elif version not in P2PKH_VERSION_BYTES.values():
        raise ValueError(f"Unknown address version: {version}")

    return decoded[1:]


def address_to_script(address: str, network: str | None = None) -> bytes:
    return p2pkh_script(address_to_pubkey_hash(address, network))


def script_to_pubkey_hash(script: bytes) -> bytes | None:
    """Return the pubkey hash of a P2PKH locking script, None for anything else"""
    if (
        len(script) == 25
        and script[0] == OP_DUP
        and script[1] == OP_HASH160
        and script[2] == 0x14
        and script[23] == OP_EQUALVERIFY
        and script[24] == OP_CHECKSIG
    ):
        return script[3:23]
    return None


def script_to_address(script: bytes, network: str = "mainnet") -> str:
    pubkey_hash = script_to_pubkey_hash(script)
    if pubkey_hash is None:
        raise ValueError(f"Unsupported locking script: {script.hex()}")
    return pubkey_hash_to_address(pubkey_hash, network)
