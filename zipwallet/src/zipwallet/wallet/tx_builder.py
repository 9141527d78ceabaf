"""
Coin selection and unsigned transaction assembly.

Two shapes are built:
- payments: smallest-first selection, one destination output plus change
- splits: store-order selection, ``count`` equal outputs to fresh wallet
  addresses plus change, pre-fragmenting a balance for rapid payments

Nothing here signs or broadcasts.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from zipwallet.constants import (
    DEFAULT_DUST_THRESHOLD,
    P2PKH_INPUT_SIZE,
    P2PKH_OUTPUT_SIZE,
    TX_OVERHEAD_SIZE,
)
from zipwallet.errors import InsufficientFunds, InvalidAmount
from zipwallet.wallet.derivation import KeyChain
from zipwallet.wallet.models import TxInput, TxOutput, UnsignedTransaction, UnspentOutput
from zipwallet.wallet.utxo_store import UtxoStore


def estimate_tx_size(n_inputs: int, n_outputs: int) -> int:
    """Serialized size of a P2PKH transaction in bytes"""
    return TX_OVERHEAD_SIZE + n_inputs * P2PKH_INPUT_SIZE + n_outputs * P2PKH_OUTPUT_SIZE


def estimate_fee(n_inputs: int, n_outputs: int, sat_per_kb: int) -> int:
    """Fee for a P2PKH transaction at the given rate, rounded up, at least 1 sat"""
    size = estimate_tx_size(n_inputs, n_outputs)
    return max(1, -(-size * sat_per_kb // 1000))


def select_smallest_first(utxos: Sequence[UnspentOutput], target: int) -> list[UnspentOutput]:
    """
    Accumulate outputs in ascending value order until ``target`` is covered.

    The sort is stable, so equal values keep store order. The result is the
    shortest prefix of the sorted set whose sum reaches the target.
    """
    return select_in_order(sorted(utxos, key=lambda u: u.value), target)


def select_in_order(utxos: Sequence[UnspentOutput], target: int) -> list[UnspentOutput]:
    """Accumulate outputs in the given order until ``target`` is covered."""
    selected: list[UnspentOutput] = []
    total = 0

    for utxo in utxos:
        if total >= target:
            break
        selected.append(utxo)
        total += utxo.value

    if total < target:
        raise InsufficientFunds(required=target, available=total)

    return selected


class TransactionBuilder:
    """
    Builds unsigned transactions from a user's spendable set.

    Change and split outputs always go to freshly derived addresses,
    never back to a spent output's script.
    """

    def __init__(
        self,
        utxo_store: UtxoStore,
        keychain: KeyChain,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
    ):
        self.utxo_store = utxo_store
        self.keychain = keychain
        self.dust_threshold = dust_threshold

    def _wallet_output(self, user_id: str, value: int) -> TxOutput:
        derived = self.keychain.derive_next_address(user_id)
        return TxOutput(value=value, script=self.keychain.script_for(derived), path=derived.path)

    def _change_output(self, user_id: str, change: int) -> TxOutput | None:
        if change <= 0:
            return None
        if change < self.dust_threshold:
            logger.info(f"Dropping {change} sat dust change into the fee")
            return None
        return self._wallet_output(user_id, change)

    async def build_payment(
        self,
        user_id: str,
        destination_script: bytes,
        amount: int,
        fee: int,
    ) -> UnsignedTransaction:
        """
        Build a payment of ``amount`` to ``destination_script``.

        Raises:
            InvalidAmount: non-positive amount, negative fee, empty script or dust amount
            InsufficientFunds: the spendable set cannot cover amount + fee
        """
        if amount <= 0:
            raise InvalidAmount(f"Payment amount must be positive, got {amount}")
        if amount < self.dust_threshold:
            raise InvalidAmount(f"Payment amount {amount} is below dust threshold")
        if fee < 0:
            raise InvalidAmount(f"Fee must not be negative, got {fee}")
        if not destination_script:
            raise InvalidAmount("Destination script is empty")

        utxos = await self.utxo_store.get_spendable_set(user_id)
        target = amount + fee
        try:
            selected = select_smallest_first(utxos, target)
        except InsufficientFunds:
            raise InsufficientFunds(required=target, available=sum(u.value for u in utxos)) from None

        input_total = sum(u.value for u in selected)
        outputs = [TxOutput(value=amount, script=destination_script)]

        change_index = None
        change = self._change_output(user_id, input_total - target)
        if change is not None:
            change_index = len(outputs)
            outputs.append(change)

        logger.debug(
            f"Payment for {user_id}: {len(selected)} inputs ({input_total} sat), "
            f"amount {amount}, fee {fee}, change {change.value if change else 0}"
        )
        return UnsignedTransaction(
            inputs=[TxInput.from_utxo(u) for u in selected],
            outputs=outputs,
            change_index=change_index,
        )

    async def split_utxos(
        self,
        user_id: str,
        count: int,
        per_output_value: int,
        fee: int = 0,
    ) -> UnsignedTransaction:
        """
        Build a transaction fragmenting the balance into ``count`` outputs of
        ``per_output_value`` each, plus at most one change output.

        Raises:
            InvalidAmount: non-positive count or value, negative fee, dust value
            InsufficientFunds: balance below count * per_output_value + fee
        """
        if count <= 0:
            raise InvalidAmount(f"Output count must be positive, got {count}")
        if per_output_value <= 0 or per_output_value < self.dust_threshold:
            raise InvalidAmount(f"Output value {per_output_value} is below dust threshold")
        if fee < 0:
            raise InvalidAmount(f"Fee must not be negative, got {fee}")

        utxos = await self.utxo_store.get_spendable_set(user_id)
        target = count * per_output_value + fee

        balance = sum(u.value for u in utxos)
        if balance < target:
            raise InsufficientFunds(required=target, available=balance)

        selected = select_in_order(utxos, target)
        input_total = sum(u.value for u in selected)

        outputs = [self._wallet_output(user_id, per_output_value) for _ in range(count)]

        change_index = None
        change = self._change_output(user_id, input_total - target)
        if change is not None:
            change_index = len(outputs)
            outputs.append(change)

        logger.info(
            f"Split for {user_id}: {len(selected)} inputs into {count} x {per_output_value} sat"
        )
        return UnsignedTransaction(
            inputs=[TxInput.from_utxo(u) for u in selected],
            outputs=outputs,
            change_index=change_index,
        )
