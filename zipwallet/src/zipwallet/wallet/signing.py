"""
Transaction serialization and signing for P2PKH inputs.

Signature hashes use the fork-id algorithm: the BIP143 digest layout,
committing to the spent amount, with SIGHASH_FORKID set in the type.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from loguru import logger

from zipwallet.constants import SIGHASH_ALL_FORKID, SIGHASH_FORKID
from zipwallet.errors import SigningFailure
from zipwallet.wallet.address import hash160, script_to_pubkey_hash
from zipwallet.wallet.derivation import KeyChain
from zipwallet.wallet.models import SignedTransaction, TxInput, TxOutput, UnsignedTransaction


@dataclass
class ParsedInput:
    txid: str
    vout: int
    script_sig: bytes
    sequence: int


@dataclass
class ParsedTransaction:
    version: int
    inputs: list[ParsedInput]
    outputs: list[TxOutput]
    locktime: int


def hash256(data: bytes) -> bytes:
    """Double SHA-256"""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


# CompactSize prefix byte -> width of the little-endian integer that follows
_VARINT_WIDTHS = {0xFD: 2, 0xFE: 4, 0xFF: 8}


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Decode a CompactSize integer, returning ``(value, next_offset)``."""
    prefix = data[offset]
    width = _VARINT_WIDTHS.get(prefix)
    if width is None:
        return prefix, offset + 1

    start = offset + 1
    if start + width > len(data):
        raise ValueError("Truncated varint")
    return int.from_bytes(data[start : start + width], "little"), start + width


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    for prefix, width in _VARINT_WIDTHS.items():
        if value < 1 << (8 * width):
            return bytes([prefix]) + value.to_bytes(width, "little")
    raise ValueError(f"Varint too large: {value}")


def push_data(data: bytes) -> bytes:
    """Minimal script push for data up to 0xFFFF bytes"""
    length = len(data)
    if length < 0x4C:
        return bytes([length]) + data
    if length <= 0xFF:
        return b"\x4c" + bytes([length]) + data
    if length <= 0xFFFF:
        return b"\x4d" + length.to_bytes(2, "little") + data
    raise ValueError(f"Push too large: {length} bytes")


def serialize_outpoint(txid: str, vout: int) -> bytes:
    # txid is displayed big-endian, serialized little-endian
    return bytes.fromhex(txid)[::-1] + vout.to_bytes(4, "little")


def serialize_output(out: TxOutput) -> bytes:
    return out.value.to_bytes(8, "little") + encode_varint(len(out.script)) + out.script


def serialize_transaction(
    version: int, inputs: list[TxInput], outputs: list[TxOutput], locktime: int
) -> bytes:
    result = version.to_bytes(4, "little")

    result += encode_varint(len(inputs))
    for inp in inputs:
        result += serialize_outpoint(inp.txid, inp.vout)
        result += encode_varint(len(inp.script_sig)) + inp.script_sig
        result += inp.sequence.to_bytes(4, "little")

    result += encode_varint(len(outputs))
    for out in outputs:
        result += serialize_output(out)

    result += locktime.to_bytes(4, "little")
    return result


def txid_of(raw: bytes) -> str:
    return hash256(raw)[::-1].hex()


class _Reader:
    """Cursor over raw transaction bytes; short reads raise ValueError."""

    def __init__(self, raw: bytes):
        self.raw = raw
        self.pos = 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.raw):
            raise ValueError(f"Need {size} bytes at offset {self.pos}")
        chunk = self.raw[self.pos : end]
        self.pos = end
        return chunk

    def uint(self, size: int) -> int:
        return int.from_bytes(self.take(size), "little")

    def varint(self) -> int:
        value, self.pos = read_varint(self.raw, self.pos)
        return value

    def script(self) -> bytes:
        return self.take(self.varint())


def deserialize_transaction(tx_bytes: bytes) -> ParsedTransaction:
    """Parse a legacy-serialized transaction; any malformation is a SigningFailure."""
    reader = _Reader(tx_bytes)
    try:
        version = reader.uint(4)
        inputs = [
            ParsedInput(
                txid=reader.take(32)[::-1].hex(),
                vout=reader.uint(4),
                script_sig=reader.script(),
                sequence=reader.uint(4),
            )
            for _ in range(reader.varint())
        ]
        outputs = [TxOutput(reader.uint(8), reader.script()) for _ in range(reader.varint())]
        locktime = reader.uint(4)
        if reader.pos != len(tx_bytes):
            raise ValueError(f"{len(tx_bytes) - reader.pos} trailing bytes")
    except (ValueError, IndexError) as e:
        raise SigningFailure("Failed to parse transaction", cause=str(e)) from e

    return ParsedTransaction(version, inputs, outputs, locktime)


def compute_sighash_forkid(
    tx: UnsignedTransaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """
    Signature hash for one input (SIGHASH_ALL with fork id).

    Preimage: version | hashPrevouts | hashSequence | outpoint | scriptCode |
    value | sequence | hashOutputs | locktime | sighash type
    """
    try:
        if input_index >= len(tx.inputs):
            raise SigningFailure("Input index out of range")
        if not sighash_type & SIGHASH_FORKID:
            raise SigningFailure(f"Sighash type {sighash_type:#x} lacks the fork id flag")

        hash_prevouts = hash256(b"".join(serialize_outpoint(i.txid, i.vout) for i in tx.inputs))
        hash_sequence = hash256(b"".join(i.sequence.to_bytes(4, "little") for i in tx.inputs))
        hash_outputs = hash256(b"".join(serialize_output(o) for o in tx.outputs))

        target = tx.inputs[input_index]

        preimage = (
            tx.version.to_bytes(4, "little")
            + hash_prevouts
            + hash_sequence
            + serialize_outpoint(target.txid, target.vout)
            + encode_varint(len(script_code))
            + script_code
            + value.to_bytes(8, "little")
            + target.sequence.to_bytes(4, "little")
            + hash_outputs
            + tx.locktime.to_bytes(4, "little")
            + sighash_type.to_bytes(4, "little")
        )

        return hash256(preimage)

    except SigningFailure:
        raise
    except Exception as e:
        raise SigningFailure("Failed to compute sighash", cause=str(e)) from e


def create_unlocking_script(signature: bytes, pubkey_bytes: bytes) -> bytes:
    """<sig||hashtype> <pubkey>"""
    return push_data(signature) + push_data(pubkey_bytes)


class TransactionSigner:
    """
    Signs every input of an unsigned transaction with the wallet's keys.

    All-or-nothing: a failure on any input raises SigningFailure and the
    unsigned transaction is left untouched.
    """

    def __init__(self, sighash_type: int = SIGHASH_ALL_FORKID):
        self.sighash_type = sighash_type

    def sign(self, unsigned: UnsignedTransaction, keychain: KeyChain) -> SignedTransaction:
        if not unsigned.inputs:
            raise SigningFailure("Transaction has no inputs")

        try:
            script_sigs = [
                self._sign_input(unsigned, n, keychain) for n in range(len(unsigned.inputs))
            ]
        except SigningFailure:
            raise
        except Exception as e:
            raise SigningFailure("Signing aborted", cause=str(e)) from e

        inputs = [
            TxInput(
                txid=inp.txid,
                vout=inp.vout,
                value=inp.value,
                prev_script=inp.prev_script,
                path=inp.path,
                script_sig=script_sig,
                sequence=inp.sequence,
            )
            for inp, script_sig in zip(unsigned.inputs, script_sigs, strict=True)
        ]
        outputs = [TxOutput(o.value, o.script, o.path) for o in unsigned.outputs]
        raw = serialize_transaction(unsigned.version, inputs, outputs, unsigned.locktime)
        txid = txid_of(raw)

        logger.info(f"Signed transaction {txid} ({len(inputs)} inputs, {len(outputs)} outputs)")
        return SignedTransaction(
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            version=unsigned.version,
            locktime=unsigned.locktime,
            raw=raw,
            txid=txid,
            change_index=unsigned.change_index,
        )

    def _sign_input(self, tx: UnsignedTransaction, index: int, keychain: KeyChain) -> bytes:
        inp = tx.inputs[index]
        if not inp.path:
            raise SigningFailure(f"Input {index} ({inp.txid}:{inp.vout}) has no derivation path")

        key = keychain.key_for_path(inp.path)
        pubkey = key.get_public_key_bytes(compressed=True)

        expected_hash = script_to_pubkey_hash(inp.prev_script)
        if expected_hash is None:
            raise SigningFailure(f"Input {index} does not spend a P2PKH output")
        if expected_hash != hash160(pubkey):
            raise SigningFailure(f"Key at {inp.path} does not control input {index}")

        # The previous locking script is the script code
        sighash = compute_sighash_forkid(tx, index, inp.prev_script, inp.value, self.sighash_type)
        signature = key.sign_digest(sighash) + bytes([self.sighash_type & 0xFF])

        return create_unlocking_script(signature, pubkey)
