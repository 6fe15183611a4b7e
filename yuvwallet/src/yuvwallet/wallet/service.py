"""
YUV wallet service.

Ties the reconciliation state, coin selection and transaction builder to the
wallet's two collaborators: the Esplora explorer for plain Bitcoin data and
the YUV node for assets and colored transaction history.

A wallet controls a single key. It receives plain satoshis on the P2WPKH
address of that key and pixels on its YUV address, the witness v1 encoding
of the even-parity inner key.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from loguru import logger

from yuvcore.constants import PIXEL_OUTPUT_SATOSHIS
from yuvcore.crypto import inner_key_for, load_private_key
from yuvcore.pixel import Chroma, Pixel
from yuvcore.proofs import PixelProof, SigPixelProof
from yuvcore.transaction import (
    AnnouncementData,
    ChromaAnnouncement,
    ChromaInfo,
    IssueAnnouncement,
    IssueData,
    TransferData,
    YuvTransaction,
)
from yuvwallet.backends.base import AssetNode, RawYuvTransaction, UtxoSource
from yuvwallet.backends.esplora import EsploraBackend
from yuvwallet.backends.yuv_node import YuvNodeBackend
from yuvwallet.config import WalletSettings
from yuvwallet.wallet.address import (
    p2tr_address_to_inner_key,
    pubkey_to_p2tr_address,
    pubkey_to_p2wpkh_address,
)
from yuvwallet.wallet.coin_selection import select_btc_utxos, select_yuv_utxos
from yuvwallet.wallet.models import (
    AssetBalance,
    AssetInfo,
    BtcMetadata,
    Payment,
    Utxo,
    YuvUtxo,
)
from yuvwallet.wallet.state import WalletSnapshot, WalletState
from yuvwallet.wallet.tx_builder import (
    BitcoinInput,
    BitcoinOutput,
    PixelInput,
    PixelOutput,
    TransactionBuilder,
    TxInput,
    TxOutput,
    build_announcement_output,
    build_issuance_output,
)

FeeRate = float | int | Decimal


def _short_chroma(chroma: str) -> str:
    return f"{chroma[:3]}...{chroma[-3:]}"


def _check_payments(payments: Sequence[Payment], action: str) -> None:
    if not payments:
        raise ValueError(f"{action} requires at least one payment")
    for payment in payments:
        if payment.amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {payment.amount}")


def _demands(payments: Sequence[Payment]) -> list[tuple[str, int]]:
    return [(Chroma.from_hex(p.chroma).hex(), p.amount) for p in payments]


def input_proofs(inputs: Sequence[TxInput]) -> dict[int, PixelProof]:
    return {
        index: tx_input.to_proof()
        for index, tx_input in enumerate(inputs)
        if isinstance(tx_input, PixelInput)
    }


def output_proofs(outputs: Sequence[TxOutput]) -> dict[int, PixelProof]:
    """Proofs for pixel outputs, keyed by their position in the transaction."""
    return {
        index: output.to_proof()
        for index, output in enumerate(outputs)
        if isinstance(output, PixelOutput)
    }


class YuvWallet:
    def __init__(
        self,
        private_key_hex: str,
        node: AssetNode,
        explorer: UtxoSource,
        network: str = "testnet",
        fee_rate: FeeRate = 1.0,
        state: WalletState | None = None,
    ):
        self.private_key = load_private_key(private_key_hex)
        self.node = node
        self.explorer = explorer
        self.network = network
        self.fee_rate = fee_rate

        self.pubkey = self.private_key.public_key.format(compressed=True)
        self.inner_key = inner_key_for(self.private_key)
        self.p2wpkh_address = pubkey_to_p2wpkh_address(self.pubkey, network)
        self.p2tr_address = pubkey_to_p2tr_address(self.inner_key, network)

        self.builder = TransactionBuilder(self.private_key)
        self.state = state or WalletState()
        self._chroma_info: dict[str, ChromaInfo] = {}

        logger.info(f"Initialized YUV wallet on {network}: {self.p2tr_address}")

    @classmethod
    def from_settings(cls, settings: WalletSettings) -> YuvWallet:
        if settings.private_key is None:
            raise ValueError("Private key required. Set YUV_PRIVATE_KEY or pass --private-key")

        password = settings.node_password.get_secret_value() if settings.node_password else None
        explorer = EsploraBackend(settings.get_esplora_url(), timeout=settings.request_timeout)
        node = YuvNodeBackend(
            settings.get_node_url(),
            rpc_user=settings.node_user,
            rpc_password=password,
            timeout=settings.request_timeout,
        )
        return cls(
            settings.private_key.get_secret_value(),
            node,
            explorer,
            network=settings.network,
            fee_rate=settings.fee_rate,
        )

    @property
    def inner_key_hex(self) -> str:
        return self.inner_key.hex()

    @property
    def chroma(self) -> Chroma:
        """Chroma of assets issued by this wallet."""
        return Chroma(self.inner_key)

    async def sync(self) -> WalletSnapshot:
        """Reconcile the wallet's UTXO pools with the node and the explorer."""
        return await self.state.sync(
            self.node, self.explorer, self.inner_key_hex, self.p2wpkh_address
        )

    async def get_btc_balance(self) -> int:
        """Satoshis spendable for fees: plain UTXOs plus empty colored ones."""
        snapshot = await self.state.snapshot()
        return sum(utxo.satoshis for utxo in snapshot.btc_utxos)

    async def get_chroma_info(self, chroma: str) -> ChromaInfo | None:
        info = await self.node.get_chroma_info(chroma)
        if info is not None:
            self._chroma_info[chroma] = info
        return info

    async def _cached_chroma_info(self, chroma: str) -> ChromaInfo | None:
        if chroma in self._chroma_info:
            return self._chroma_info[chroma]
        return await self.get_chroma_info(chroma)

    async def get_yuv_balances(self) -> list[AssetBalance]:
        snapshot = await self.state.snapshot()

        totals: dict[str, int] = {}
        for utxo in snapshot.unspent_colored:
            totals[utxo.chroma] = totals.get(utxo.chroma, 0) + utxo.amount

        infos = await asyncio.gather(*(self._cached_chroma_info(c) for c in totals))

        balances = []
        for (chroma, balance), info in zip(totals.items(), infos, strict=True):
            announcement = info.announcement if info else None
            balances.append(
                AssetBalance(
                    chroma=chroma,
                    balance=balance,
                    name=announcement.name if announcement else _short_chroma(chroma),
                    symbol=announcement.symbol if announcement else chroma[:3],
                )
            )
        return balances

    async def get_chroma_info_for_wallet(self, chroma: str) -> AssetInfo:
        """Wallet balance of ``chroma`` with its announced parameters."""
        snapshot = await self.state.snapshot()
        balance = sum(u.amount for u in snapshot.unspent_colored if u.chroma == chroma)

        info = await self._cached_chroma_info(chroma)
        announcement = info.announcement if info else None

        return AssetInfo(
            chroma=chroma,
            balance=balance,
            name=announcement.name if announcement else _short_chroma(chroma),
            symbol=announcement.symbol if announcement else chroma[:3],
            decimals=announcement.decimal if announcement else 0,
            max_supply=announcement.max_supply if announcement else 0,
            total_supply=info.total_supply if info else 0,
        )

    def create_announcement(
        self,
        name: str,
        symbol: str,
        decimal: int = 0,
        max_supply: int = 0,
        is_freezable: bool = False,
    ) -> ChromaAnnouncement:
        return ChromaAnnouncement(
            chroma=self.chroma,
            name=name,
            symbol=symbol,
            decimal=decimal,
            max_supply=max_supply,
            is_freezable=is_freezable,
        )

    async def _inputs_from_utxos(self, utxos: Sequence[Utxo]) -> list[TxInput]:
        raw_txs = await asyncio.gather(*(self.explorer.get_raw_tx_hex(u.txid) for u in utxos))

        inputs: list[TxInput] = []
        for utxo, prev_tx_hex in zip(utxos, raw_txs, strict=True):
            if isinstance(utxo, YuvUtxo):
                inputs.append(
                    PixelInput(
                        txid=utxo.txid,
                        vout=utxo.vout,
                        satoshis=utxo.satoshis,
                        pixel=utxo.pixel_value,
                        inner_key=utxo.inner_key,
                        prev_tx_hex=prev_tx_hex,
                    )
                )
            else:
                inputs.append(BitcoinInput(utxo.txid, utxo.vout, utxo.satoshis, prev_tx_hex))
        return inputs

    def _empty_change_output(self) -> PixelOutput:
        return PixelOutput(self.inner_key, PIXEL_OUTPUT_SATOSHIS, Pixel.empty())

    async def prepare_announcement(
        self, announcement: ChromaAnnouncement, fee_rate: FeeRate | None = None
    ) -> YuvTransaction:
        """Signed transaction announcing a new chroma, funded by plain UTXOs."""
        rate = self.fee_rate if fee_rate is None else fee_rate
        snapshot = await self.state.snapshot()

        selected = select_btc_utxos(snapshot.btc_utxos, 0, 0, 2, rate, only_btc=True)
        inputs = await self._inputs_from_utxos(selected)

        built = self.builder.build_and_sign(
            inputs,
            [build_announcement_output(announcement)],
            BitcoinOutput(PIXEL_OUTPUT_SATOSHIS),
            rate,
        )
        logger.info(f"Prepared announcement of {announcement.symbol}: {built.tx.txid}")
        return YuvTransaction(built.tx, AnnouncementData(announcement))

    async def prepare_announcement_with_fee(
        self,
        announcement: ChromaAnnouncement,
        btc_address: str,
        btc_amount: int,
        fee_rate: FeeRate | None = None,
    ) -> YuvTransaction:
        """Announcement that also pays ``btc_amount`` sats to ``btc_address``."""
        rate = self.fee_rate if fee_rate is None else fee_rate
        snapshot = await self.state.snapshot()

        selected = select_btc_utxos(
            snapshot.btc_utxos,
            0,
            0,
            3,
            rate,
            only_btc=True,
            extra_satoshis=max(btc_amount - PIXEL_OUTPUT_SATOSHIS, 0),
        )
        inputs = await self._inputs_from_utxos(selected)

        outputs: list[TxOutput] = [
            build_announcement_output(announcement),
            BitcoinOutput.from_address(btc_address, btc_amount),
        ]
        built = self.builder.build_and_sign(
            inputs, outputs, BitcoinOutput(PIXEL_OUTPUT_SATOSHIS), rate
        )
        logger.info(
            f"Prepared announcement of {announcement.symbol} paying {btc_amount} sats "
            f"to {btc_address}: {built.tx.txid}"
        )
        return YuvTransaction(built.tx, AnnouncementData(announcement))

    def _pixel_outputs(self, payments: Sequence[Payment]) -> list[PixelOutput]:
        return [
            PixelOutput(
                receiver_key=p2tr_address_to_inner_key(payment.recipient),
                satoshis=PIXEL_OUTPUT_SATOSHIS,
                pixel=Pixel.create(payment.amount, payment.chroma),
            )
            for payment in payments
        ]

    async def prepare_issuance(
        self, payments: Sequence[Payment], fee_rate: FeeRate | None = None
    ) -> YuvTransaction:
        """
        Signed transaction issuing new units to ``payments``.

        Raises:
            MixedChromaError: payments carry more than one chroma
            ValueError: a payment amount is not positive or the total exceeds 128 bits
            InsufficientBtcBalanceError: not enough satoshis for outputs and fee
        """
        _check_payments(payments, "Issuance")

        rate = self.fee_rate if fee_rate is None else fee_rate
        pixel_outputs = self._pixel_outputs(payments)
        issuance = build_issuance_output(pixel_outputs)

        snapshot = await self.state.snapshot()
        selected = select_btc_utxos(snapshot.btc_utxos, 0, 0, len(payments) + 2, rate)
        inputs = await self._inputs_from_utxos(selected)

        built = self.builder.build_and_sign(
            inputs, [issuance, *pixel_outputs], self._empty_change_output(), rate
        )

        issue_data = IssueData(
            announcement=IssueAnnouncement.from_outputs(o.pixel for o in pixel_outputs),
            input_proofs=input_proofs(inputs),
            output_proofs=output_proofs(built.outputs),
        )
        logger.info(
            f"Prepared issuance of {issue_data.announcement.amount} "
            f"{issue_data.announcement.chroma.hex()}: {built.tx.txid}"
        )
        return YuvTransaction(built.tx, issue_data)

    def _yuv_change_outputs(
        self, selected: Sequence[YuvUtxo], payments: Sequence[Payment]
    ) -> list[PixelOutput]:
        remaining: dict[str, int] = {}
        for utxo in selected:
            remaining[utxo.chroma] = remaining.get(utxo.chroma, 0) + utxo.amount
        for chroma, amount in _demands(payments):
            remaining[chroma] -= amount

        return [
            PixelOutput(self.inner_key, PIXEL_OUTPUT_SATOSHIS, Pixel.create(amount, chroma))
            for chroma, amount in remaining.items()
            if amount > 0
        ]

    async def prepare_transfer(
        self, payments: Sequence[Payment], fee_rate: FeeRate | None = None
    ) -> YuvTransaction:
        """
        Signed transaction moving pixels to ``payments``.

        Pixel change goes back to the wallet per chroma; leftover satoshis
        come back as an empty pixel output.

        Raises:
            InsufficientAssetBalanceError: a chroma's balance is too low
            InsufficientBtcBalanceError: not enough satoshis for outputs and fee
        """
        _check_payments(payments, "Transfer")

        rate = self.fee_rate if fee_rate is None else fee_rate
        snapshot = await self.state.snapshot()

        # Multisig and lightning outputs need cosigners and are never selected
        spendable = [u for u in snapshot.unspent_colored if isinstance(u.pixel, SigPixelProof)]
        yuv_selected = select_yuv_utxos(spendable, _demands(payments))

        pixel_outputs = self._pixel_outputs(payments)
        change_outputs = self._yuv_change_outputs(yuv_selected, payments)

        btc_selected = select_btc_utxos(
            snapshot.btc_utxos,
            0,
            len(yuv_selected),
            len(pixel_outputs) + len(change_outputs) + 1,
            rate,
        )
        inputs = await self._inputs_from_utxos([*btc_selected, *yuv_selected])

        built = self.builder.build_and_sign(
            inputs, [*pixel_outputs, *change_outputs], self._empty_change_output(), rate
        )

        transfer_data = TransferData(
            input_proofs=input_proofs(inputs),
            output_proofs=output_proofs(built.outputs),
        )
        logger.info(
            f"Prepared transfer to {len(payments)} recipient(s) spending "
            f"{len(yuv_selected)} colored input(s): {built.tx.txid}"
        )
        return YuvTransaction(built.tx, transfer_data)

    async def broadcast(self, tx: YuvTransaction | dict[str, Any] | str) -> bool:
        """
        Submit a transaction to the YUV node.

        Issue and announcement submissions carry a max-burn guard equal to
        the first output's value. Node and transport errors propagate.
        """
        if isinstance(tx, str):
            tx = json.loads(tx)
        if isinstance(tx, dict):
            tx = YuvTransaction.from_dto(tx)

        if isinstance(tx.tx_type, TransferData):
            accepted = await self.node.send_raw_yuv_transaction(tx)
        else:
            max_burn = tx.bitcoin_tx.outputs[0].value
            accepted = await self.node.send_raw_yuv_transaction(tx, max_burn)

        if accepted:
            await self.state.mark_spent((i.txid, i.vout) for i in tx.bitcoin_tx.inputs)
            logger.info(f"Broadcast {tx.tx_type.type.value} transaction {tx.txid}")
        else:
            logger.warning(f"Node did not accept transaction {tx.txid}")
        return accepted

    async def get_transaction_status(self, txid: str) -> RawYuvTransaction:
        """Node's view of a submitted transaction; status NONE when unknown."""
        raw = await self.node.get_raw_yuv_transaction(txid)
        logger.debug(f"Transaction {txid} status: {raw.status.value}")
        return raw

    async def to_btc_metadata(self, tx: YuvTransaction) -> BtcMetadata:
        """Fees paid and spent outpoints split into plain and colored ones."""
        bitcoin_tx = tx.bitcoin_tx
        values = await asyncio.gather(
            *(self.explorer.get_output_value(i.txid, i.vout) for i in bitcoin_tx.inputs)
        )

        proofs: dict[int, PixelProof] = {}
        if isinstance(tx.tx_type, (IssueData, TransferData)):
            proofs = tx.tx_type.input_proofs

        btc_spent: list[tuple[str, int, int]] = []
        yuv_spent: list[tuple[str, int, int]] = []
        for index, (tx_input, value) in enumerate(zip(bitcoin_tx.inputs, values, strict=True)):
            proof = proofs.get(index)
            spent = (tx_input.txid, tx_input.vout, value)
            if proof is not None and not proof.pixel.is_empty():
                yuv_spent.append(spent)
            else:
                btc_spent.append(spent)

        fees_paid = sum(values) - sum(output.value for output in bitcoin_tx.outputs)
        return BtcMetadata(
            txid=tx.txid, fees_paid=fees_paid, btc_spent=btc_spent, yuv_spent=yuv_spent
        )

    async def close(self) -> None:
        """Close backend connections"""
        await self.node.close()
        await self.explorer.close()
