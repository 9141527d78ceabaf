"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from zipwallet.constants import DEFAULT_USER_ID, SEQUENCE_FINAL, TX_LOCKTIME, TX_VERSION


@dataclass(frozen=True)
class UnspentOutput:
    """A spendable output observed on chain"""

    txid: str
    vout: int
    value: int
    script: bytes
    path: str = ""  # Derivation path of the controlling key, empty if unknown

    @property
    def outpoint(self) -> tuple[str, int]:
        return self.txid, self.vout

    def to_dict(self) -> dict:
        return {
            "txid": self.txid,
            "vout": self.vout,
            "value": self.value,
            "script": self.script.hex(),
            "path": self.path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> UnspentOutput:
        return cls(
            txid=data["txid"],
            vout=int(data["vout"]),
            value=int(data["value"]),
            script=bytes.fromhex(data["script"]),
            path=data.get("path", ""),
        )


@dataclass(frozen=True)
class DerivedAddress:
    """
    A receive or change address handed out once.

    ``owner`` is the user whose spendable set the address funds.
    """

    address: str
    path: str
    index: int
    owner: str = DEFAULT_USER_ID

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "path": self.path,
            "index": self.index,
            "owner": self.owner,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DerivedAddress:
        return cls(
            address=data["address"],
            path=data["path"],
            index=int(data["index"]),
            owner=data.get("owner", DEFAULT_USER_ID),
        )


@dataclass
class TxInput:
    txid: str
    vout: int
    value: int
    prev_script: bytes
    path: str = ""
    script_sig: bytes = b""  # Placeholder until signed
    sequence: int = SEQUENCE_FINAL

    @classmethod
    def from_utxo(cls, utxo: UnspentOutput) -> TxInput:
        return cls(
            txid=utxo.txid,
            vout=utxo.vout,
            value=utxo.value,
            prev_script=utxo.script,
            path=utxo.path,
        )


@dataclass
class TxOutput:
    value: int
    script: bytes
    path: str = ""  # Set when the output pays back to this wallet


@dataclass
class UnsignedTransaction:
    """Transaction skeleton produced by the builder; unusable until signed"""

    inputs: list[TxInput]
    outputs: list[TxOutput]
    version: int = TX_VERSION
    locktime: int = TX_LOCKTIME
    change_index: int | None = None

    @property
    def input_total(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def output_total(self) -> int:
        return sum(out.value for out in self.outputs)

    @property
    def fee(self) -> int:
        return self.input_total - self.output_total

    @property
    def change(self) -> TxOutput | None:
        if self.change_index is None:
            return None
        return self.outputs[self.change_index]


@dataclass(frozen=True)
class SignedTransaction:
    """Fully signed transaction, every input carries its unlocking script"""

    inputs: tuple[TxInput, ...]
    outputs: tuple[TxOutput, ...]
    version: int
    locktime: int
    raw: bytes
    txid: str
    change_index: int | None = None

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def fee(self) -> int:
        return sum(i.value for i in self.inputs) - sum(o.value for o in self.outputs)

    def wallet_outputs(self) -> list[UnspentOutput]:
        """Outputs paying back to this wallet, as new spendable entries"""
        return [
            UnspentOutput(txid=self.txid, vout=n, value=out.value, script=out.script, path=out.path)
            for n, out in enumerate(self.outputs)
            if out.path
        ]


class AliasStatus(str, Enum):
    RESERVED = "reserved"
    CONFIRMED = "confirmed"


@dataclass
class Alias:
    prefix: str
    domain: str
    price: Decimal
    status: AliasStatus = AliasStatus.RESERVED

    @property
    def handle(self) -> str:
        return f"{self.prefix}@{self.domain}"

    def to_dict(self) -> dict:
        return {
            "prefix": self.prefix,
            "domain": self.domain,
            "price": str(self.price),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Alias:
        return cls(
            prefix=data["prefix"],
            domain=data["domain"],
            price=Decimal(data["price"]),
            status=AliasStatus(data["status"]),
        )


@dataclass
class BalanceSnapshot:
    """Last balance reported to the user"""

    satoshis: int
    currency: str
    converted: Decimal
    addresses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "satoshis": self.satoshis,
            "currency": self.currency,
            "converted": str(self.converted),
            "addresses": list(self.addresses),
        }
