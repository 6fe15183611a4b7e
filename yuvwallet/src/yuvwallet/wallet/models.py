"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass

from yuvcore.pixel import Pixel
from yuvcore.proofs import PixelProof

Outpoint = tuple[str, int]


@dataclass(frozen=True)
class BitcoinUtxo:
    """Plain UTXO paying to the wallet's P2WPKH address"""

    txid: str
    vout: int
    satoshis: int
    confirmed: bool = True

    @property
    def outpoint(self) -> Outpoint:
        return (self.txid, self.vout)


@dataclass(frozen=True)
class YuvUtxo:
    """UTXO carrying a pixel owned by the wallet's inner key"""

    txid: str
    vout: int
    satoshis: int
    pixel: PixelProof
    inner_key: str
    confirmed: bool = True

    @property
    def outpoint(self) -> Outpoint:
        return (self.txid, self.vout)

    @property
    def pixel_value(self) -> Pixel:
        return self.pixel.pixel

    @property
    def chroma(self) -> str:
        return self.pixel.pixel.chroma.hex()

    @property
    def amount(self) -> int:
        return self.pixel.pixel.amount

    def is_empty(self) -> bool:
        """Zero-amount placeholder, spendable only for its satoshis."""
        return self.amount == 0


Utxo = BitcoinUtxo | YuvUtxo


@dataclass
class BtcMetadata:
    """Bitcoin-level summary of a prepared YUV transaction"""

    txid: str
    fees_paid: int
    btc_spent: list[tuple[str, int, int]]
    yuv_spent: list[tuple[str, int, int]]


@dataclass(frozen=True)
class Payment:
    """Pixel payment to a YUV address"""

    recipient: str
    amount: int
    chroma: str


@dataclass
class AssetBalance:
    chroma: str
    balance: int
    name: str
    symbol: str


@dataclass
class AssetInfo:
    """Wallet balance of a chroma together with its announcement"""

    chroma: str
    balance: int
    name: str
    symbol: str
    decimals: int
    max_supply: int
    total_supply: int
