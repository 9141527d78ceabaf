"""
BIP32 private-key derivation.

Only private derivation is needed: the wallet holds its own master seed and
derives the signing key for every path it hands out.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey

from zipwallet.constants import HARDENED_OFFSET

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

MASTER_HMAC_KEY = b"Bitcoin seed"


def parse_path_segment(segment: str) -> int:
    """Child index for one path segment; ``'`` or ``h`` marks hardened."""
    hardened = segment[-1:] in ("'", "h")
    digits = segment[:-1] if hardened else segment
    if not digits.isdigit():
        raise ValueError(f"Invalid path segment: {segment!r}")

    index = int(digits)
    if index >= HARDENED_OFFSET:
        raise ValueError(f"Child index out of range: {segment}")
    return index + HARDENED_OFFSET if hardened else index


def _scalar(data: bytes) -> int:
    return int.from_bytes(data, "big")


class HDKey:
    """Extended private key: a secp256k1 key plus its chain code."""

    def __init__(self, private_key: PrivateKey, chain_code: bytes, depth: int = 0):
        self._key = private_key
        self.chain_code = chain_code
        self.depth = depth

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        if not 16 <= len(seed) <= 64:
            raise ValueError(f"Seed must be 16-64 bytes, got {len(seed)}")

        digest = hmac.new(MASTER_HMAC_KEY, seed, hashlib.sha512).digest()
        secret, chain_code = digest[:32], digest[32:]
        if not 0 < _scalar(secret) < SECP256K1_N:
            raise ValueError("Seed produces an invalid master key")

        return cls(PrivateKey(secret), chain_code)

    def derive(self, path: str) -> HDKey:
        """
        Derive along a path such as ``m/44'/236'/0'/0/7``.

        The path is relative to this key, whatever its depth.
        """
        head, _, rest = path.partition("/")
        if head != "m":
            raise ValueError("Path must start with 'm'")

        key = self
        for segment in filter(None, rest.split("/")):
            key = key.derive_child(parse_path_segment(segment))
        return key

    def derive_child(self, index: int) -> HDKey:
        """
        CKDpriv.

        Raises ValueError for the (astronomically rare) indices that yield
        an invalid key; callers move on to the next index.
        """
        if index >= HARDENED_OFFSET:
            payload = b"\x00" + self._key.secret
        else:
            payload = self.get_public_key_bytes()

        digest = hmac.new(self.chain_code, payload + index.to_bytes(4, "big"), hashlib.sha512).digest()
        tweak = _scalar(digest[:32])
        child = (_scalar(self._key.secret) + tweak) % SECP256K1_N
        if tweak >= SECP256K1_N or child == 0:
            raise ValueError(f"Invalid child key at index {index}")

        return HDKey(PrivateKey(child.to_bytes(32, "big")), digest[32:], depth=self.depth + 1)

    def get_private_key_bytes(self) -> bytes:
        return self._key.secret

    def get_public_key_bytes(self, compressed: bool = True) -> bytes:
        return self._key.public_key.format(compressed=compressed)

    def get_address(self, network: str = "mainnet") -> str:
        """P2PKH address of the compressed public key"""
        from zipwallet.wallet.address import pubkey_to_p2pkh_address

        return pubkey_to_p2pkh_address(self.get_public_key_bytes(), network)

    def sign_digest(self, digest: bytes) -> bytes:
        """DER-encoded low-S ECDSA signature (RFC 6979) over a 32-byte digest."""
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
        return self._key.sign(digest, hasher=None)
