"""
Shared fixtures for yuvwallet tests.
"""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock

import pytest
from coincurve import PrivateKey

from yuvcore.bitcoin import BitcoinTransaction, TxIn, TxOut, p2wpkh_script
from yuvcore.crypto import inner_key_for, pixel_public_key
from yuvcore.pixel import Pixel
from yuvcore.proofs import PixelProof, SigPixelProof
from yuvcore.transaction import TransferData, YuvTransaction
from yuvwallet.backends.base import AssetNode, UtxoSource
from yuvwallet.wallet.address import pubkey_to_p2tr_address
from yuvwallet.wallet.models import BitcoinUtxo
from yuvwallet.wallet.service import YuvWallet

WALLET_KEY_HEX = "11" * 32
RECIPIENT_KEY_HEX = "22" * 32
CHROMA_HEX = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
OTHER_CHROMA_HEX = "c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"


class FakeExplorer(UtxoSource):
    """In-memory explorer holding every funding transaction created by a test."""

    def __init__(self) -> None:
        self.transactions: dict[str, BitcoinTransaction] = {}
        self.plain_utxos: list[BitcoinUtxo] = []
        self.spent: set[tuple[str, int]] = set()
        self._nonce = itertools.count(1)

    def fund(self, outputs: list[tuple[bytes, int]]) -> BitcoinTransaction:
        tx = BitcoinTransaction(
            inputs=[TxIn(f"{next(self._nonce):064x}", 0)],
            outputs=[TxOut(value, script) for script, value in outputs],
        )
        self.transactions[tx.txid] = tx
        return tx

    async def list_utxos(self, address: str) -> list[BitcoinUtxo]:
        return list(self.plain_utxos)

    async def get_spend_status(self, txid: str, vout: int) -> bool:
        return (txid, vout) in self.spent

    async def get_raw_tx_hex(self, txid: str) -> str:
        return self.transactions[txid].to_hex()

    async def get_output_value(self, txid: str, vout: int) -> int:
        return self.transactions[txid].outputs[vout].value


@pytest.fixture
def recipient_key() -> PrivateKey:
    return PrivateKey(bytes.fromhex(RECIPIENT_KEY_HEX))


@pytest.fixture
def recipient_address(recipient_key) -> str:
    return pubkey_to_p2tr_address(inner_key_for(recipient_key), "regtest")


@pytest.fixture
def explorer() -> FakeExplorer:
    return FakeExplorer()


@pytest.fixture
def node():
    node = AsyncMock(spec=AssetNode)
    node.list_transactions_page.return_value = []
    node.get_chroma_info.return_value = None
    node.send_raw_yuv_transaction.return_value = True
    return node


@pytest.fixture
def wallet(node, explorer) -> YuvWallet:
    return YuvWallet(WALLET_KEY_HEX, node, explorer, network="regtest")


@pytest.fixture
def fund_plain(wallet, explorer):
    """Create a plain UTXO paying the wallet's P2WPKH address."""

    def _fund(value: int) -> BitcoinUtxo:
        tx = explorer.fund([(p2wpkh_script(wallet.pubkey), value)])
        utxo = BitcoinUtxo(tx.txid, 0, value)
        explorer.plain_utxos.append(utxo)
        return utxo

    return _fund


@pytest.fixture
def colored_tx(wallet, explorer):
    """
    Create a transfer paying pixels to the wallet and return its node DTO.

    Each entry is a pixel, or a ready-made proof for outputs owned some
    other way. Every output holds 1000 sats.
    """

    def _make(entries: list[Pixel | PixelProof]) -> dict:
        proofs: dict[int, PixelProof] = {}
        outputs = []
        for index, entry in enumerate(entries):
            proof = entry if not isinstance(entry, Pixel) else None
            if proof is None:
                proof = SigPixelProof(entry, wallet.inner_key_hex)
            key = pixel_public_key(wallet.inner_key, proof.pixel)
            outputs.append((p2wpkh_script(key), 1000))
            proofs[index] = proof

        tx = explorer.fund(outputs)
        return YuvTransaction(tx, TransferData(output_proofs=proofs)).to_dto()

    return _make
