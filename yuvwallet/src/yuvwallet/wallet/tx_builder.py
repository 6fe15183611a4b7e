"""
Transaction builder for YUV transactions.

Assembles plain and pixel inputs and outputs into a signed segwit
transaction. The change output is sized by a two-pass fee estimate:

1. Build and sign the transaction with the change output at its template
   value and measure its virtual size.
2. fee = ceil((vsize + num_inputs) * fee_rate);
   change = inputs - outputs - template - fee.
3. Rebuild with the change output raised by ``change`` and sign again.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from coincurve import PrivateKey
from loguru import logger

from yuvcore.bitcoin import (
    BitcoinTransaction,
    TransactionParseError,
    TxIn,
    TxOut,
    op_return_script,
    p2wpkh_script,
)
from yuvcore.crypto import derive_spending_key, pixel_public_key
from yuvcore.pixel import Pixel
from yuvcore.proofs import EmptyPixelProof, PixelProof, SigPixelProof
from yuvcore.transaction import (
    ChromaAnnouncement,
    FreezeNotImplementedError,
    IssueAnnouncement,
)
from yuvwallet.wallet.address import address_to_scriptpubkey
from yuvwallet.wallet.signing import sign_p2wpkh_input


class TransactionBuildError(Exception):
    pass


class InsufficientFundsError(TransactionBuildError):
    """Inputs do not cover outputs, change template and fee."""


class UnknownOutputKindError(TransactionBuildError):
    pass


class PrevoutMismatchError(TransactionBuildError):
    """An input's declared value disagrees with its previous transaction."""


@dataclass
class BitcoinInput:
    txid: str
    vout: int
    satoshis: int
    prev_tx_hex: str | None = None

    @property
    def pixel(self) -> Pixel | None:
        return None


@dataclass
class PixelInput:
    txid: str
    vout: int
    satoshis: int
    pixel: Pixel
    inner_key: str
    prev_tx_hex: str | None = None

    def to_proof(self) -> SigPixelProof:
        return SigPixelProof(self.pixel, self.inner_key)


TxInput = BitcoinInput | PixelInput


@dataclass
class BitcoinOutput:
    """Plain output; without an explicit script it pays the wallet's base key."""

    satoshis: int
    script_pubkey: bytes | None = None

    @classmethod
    def from_address(cls, address: str, satoshis: int) -> BitcoinOutput:
        return cls(satoshis, address_to_scriptpubkey(address))


@dataclass
class PixelOutput:
    receiver_key: bytes
    satoshis: int
    pixel: Pixel

    def to_proof(self) -> PixelProof:
        if self.pixel.is_empty():
            return EmptyPixelProof(self.receiver_key.hex())
        return SigPixelProof(self.pixel, self.receiver_key.hex())


@dataclass
class OpReturnOutput:
    data: list[bytes] = field(default_factory=list)
    satoshis: int = 0


TxOutput = BitcoinOutput | PixelOutput | OpReturnOutput


@dataclass
class BuiltTransaction:
    tx: BitcoinTransaction
    outputs: list[TxOutput]
    fee: int

    @property
    def change_output(self) -> TxOutput:
        return self.outputs[-1]


def build_announcement_output(announcement: ChromaAnnouncement) -> OpReturnOutput:
    """OP_RETURN carrying the tag and the announcement body as two pushes."""
    return OpReturnOutput([announcement.tag, announcement.payload()])


def build_issuance_output(outputs: Sequence[TxOutput]) -> OpReturnOutput:
    """
    OP_RETURN announcing the total issued by the pixel outputs.

    Raises:
        MixedChromaError: pixel outputs carry more than one chroma
    """
    pixels = [output.pixel for output in outputs if isinstance(output, PixelOutput)]
    announcement = IssueAnnouncement.from_outputs(pixels)
    return OpReturnOutput([announcement.to_bytes()])


def build_freeze_output() -> OpReturnOutput:
    raise FreezeNotImplementedError("Freeze announcements are not implemented")


def _sum_satoshis(items: Sequence[TxInput] | Sequence[TxOutput]) -> int:
    return sum(item.satoshis for item in items)


class TransactionBuilder:
    """Builds and signs transactions spending the wallet's UTXOs."""

    def __init__(self, private_key: PrivateKey):
        self.private_key = private_key
        self.pubkey = private_key.public_key.format(compressed=True)

    def output_script(self, output: TxOutput) -> bytes:
        if isinstance(output, BitcoinOutput):
            if output.script_pubkey is not None:
                return output.script_pubkey
            return p2wpkh_script(self.pubkey)
        if isinstance(output, PixelOutput):
            return p2wpkh_script(pixel_public_key(output.receiver_key, output.pixel))
        if isinstance(output, OpReturnOutput):
            return op_return_script(*output.data)
        raise UnknownOutputKindError(f"Output type is unknown: {type(output).__name__}")

    def _check_prevout(self, tx_input: TxInput) -> None:
        if tx_input.prev_tx_hex is None:
            return
        try:
            prev_tx = BitcoinTransaction.from_hex(tx_input.prev_tx_hex)
        except (TransactionParseError, ValueError) as e:
            raise PrevoutMismatchError(f"Invalid previous tx for {tx_input.txid}: {e}") from e

        if prev_tx.txid != tx_input.txid:
            raise PrevoutMismatchError(
                f"Previous tx hashes to {prev_tx.txid}, expected {tx_input.txid}"
            )
        if tx_input.vout >= len(prev_tx.outputs):
            raise PrevoutMismatchError(f"Output {tx_input.txid}:{tx_input.vout} does not exist")
        value = prev_tx.outputs[tx_input.vout].value
        if value != tx_input.satoshis:
            raise PrevoutMismatchError(
                f"Output {tx_input.txid}:{tx_input.vout} holds {value} sats, "
                f"input declares {tx_input.satoshis}"
            )

    def build_signed(
        self, inputs: Sequence[TxInput], outputs: Sequence[TxOutput]
    ) -> BitcoinTransaction:
        tx = BitcoinTransaction(
            version=2,
            inputs=[TxIn(inp.txid, inp.vout) for inp in inputs],
            outputs=[TxOut(out.satoshis, self.output_script(out)) for out in outputs],
            locktime=0,
        )

        for index, tx_input in enumerate(inputs):
            # Derived per input, plain inputs sign with the base key
            key = derive_spending_key(self.private_key, tx_input.pixel)
            tx.inputs[index].witness = sign_p2wpkh_input(tx, index, tx_input.satoshis, key)

        return tx

    def build_and_sign(
        self,
        inputs: Sequence[TxInput],
        outputs: Sequence[TxOutput],
        change_output: TxOutput,
        fee_rate: float | int | Decimal,
    ) -> BuiltTransaction:
        """
        Build a signed transaction whose last output is the adjusted change.

        Raises:
            InsufficientFundsError: change would be negative
            UnknownOutputKindError: an output cannot be mapped to a script
        """
        if not inputs:
            raise InsufficientFundsError("No inputs to fund the transaction")

        for tx_input in inputs:
            self._check_prevout(tx_input)

        rate = fee_rate if isinstance(fee_rate, Decimal) else Decimal(str(fee_rate))

        provisional = self.build_signed(inputs, [*outputs, change_output])
        fee = math.ceil((provisional.vsize + len(inputs)) * rate)

        change = (
            _sum_satoshis(inputs) - _sum_satoshis(outputs) - change_output.satoshis - fee
        )
        if change < 0:
            raise InsufficientFundsError(
                f"Not enough satoshis to pay fees: short by {-change} sats (fee {fee})"
            )

        final_change = replace(change_output, satoshis=change_output.satoshis + change)
        final_outputs = [*outputs, final_change]
        tx = self.build_signed(inputs, final_outputs)

        logger.debug(
            f"Built tx {tx.txid}: {len(inputs)} inputs, {len(final_outputs)} outputs, "
            f"vsize {tx.vsize}, fee {fee} sats, change {final_change.satoshis} sats"
        )
        return BuiltTransaction(tx=tx, outputs=final_outputs, fee=fee)
