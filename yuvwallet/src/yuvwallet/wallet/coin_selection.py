"""
Coin selection for fee-paying satoshis and per-chroma pixel amounts.

Both selectors are pure: they read a snapshot of candidate UTXOs and return
the chosen subset, taking candidates from the end of the list. Removing the
chosen UTXOs from the wallet's pools is up to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from yuvcore.constants import PIXEL_OUTPUT_SATOSHIS
from yuvwallet.wallet.models import Utxo, YuvUtxo

# Approximate vbyte costs of a P2WPKH transaction
TX_OVERHEAD_VBYTES = 11
INPUT_VBYTES = 68
OUTPUT_VBYTES = 31
# Satoshis attached to every output, covered by the selection
OUTPUT_SATOSHIS = PIXEL_OUTPUT_SATOSHIS


class InsufficientBtcBalanceError(Exception):
    pass


class InsufficientAssetBalanceError(Exception):
    def __init__(self, chroma: str, needed: int, available: int):
        self.chroma = chroma
        self.needed = needed
        self.available = available
        super().__init__(
            f"Not enough YUV UTXO balance for chroma {chroma}: "
            f"need {needed}, have {available}"
        )


def _to_decimal(fee_rate: float | int | Decimal) -> Decimal:
    return fee_rate if isinstance(fee_rate, Decimal) else Decimal(str(fee_rate))


def estimate_selection_fee(
    num_inputs: int,
    num_pixel_inputs: int,
    num_outputs: int,
    fee_rate: float | int | Decimal,
) -> Decimal:
    """Initial satoshi threshold the selected UTXOs must cover."""
    vbytes = (
        TX_OVERHEAD_VBYTES
        + INPUT_VBYTES * num_inputs
        + (OUTPUT_VBYTES + OUTPUT_SATOSHIS) * num_outputs
        - OUTPUT_SATOSHIS * num_pixel_inputs
    )
    return vbytes * _to_decimal(fee_rate)


def select_btc_utxos(
    utxos: Sequence[Utxo],
    num_inputs: int,
    num_pixel_inputs: int,
    num_outputs: int,
    fee_rate: float | int | Decimal,
    only_btc: bool = False,
    extra_satoshis: int = 0,
) -> list[Utxo]:
    """
    Select UTXOs whose satoshis cover the estimated fee and output values.

    Every taken input raises the threshold by one input's cost at
    ``fee_rate``. With ``only_btc`` set, colored candidates are skipped.
    ``extra_satoshis`` covers output values above the per-output template.

    Raises:
        InsufficientBtcBalanceError: the candidates run out first
    """
    rate = _to_decimal(fee_rate)
    threshold = estimate_selection_fee(num_inputs, num_pixel_inputs, num_outputs, rate)
    threshold += extra_satoshis

    selected: list[Utxo] = []
    covered = 0
    for utxo in reversed(utxos):
        if covered >= threshold:
            break
        if only_btc and isinstance(utxo, YuvUtxo):
            continue
        selected.append(utxo)
        covered += utxo.satoshis
        threshold += INPUT_VBYTES * rate

    if covered < threshold:
        raise InsufficientBtcBalanceError(
            f"Not enough bitcoin UTXO balance: need {threshold} sats, have {covered}"
        )

    return selected


def _aggregate_demands(demands: Iterable[tuple[str, int]]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for chroma, amount in demands:
        totals[chroma] = totals.get(chroma, 0) + amount
    return totals


def select_yuv_utxos(
    utxos: Sequence[YuvUtxo],
    demands: Iterable[tuple[str, int]],
) -> list[YuvUtxo]:
    """
    Select colored UTXOs covering each ``(chroma_hex, amount)`` demand.

    Demands on the same chroma are summed first. Selections for different
    chromas are independent and concatenated in demand order.

    Raises:
        InsufficientAssetBalanceError: a chroma's UTXOs run out first
    """
    selected: list[YuvUtxo] = []

    for chroma, needed in _aggregate_demands(demands).items():
        candidates = [utxo for utxo in utxos if utxo.chroma == chroma]

        total = 0
        for utxo in reversed(candidates):
            if total >= needed:
                break
            selected.append(utxo)
            total += utxo.amount

        if total < needed:
            raise InsufficientAssetBalanceError(chroma, needed, total)

    return selected
