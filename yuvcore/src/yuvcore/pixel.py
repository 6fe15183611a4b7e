"""
Pixel value objects: luma (amount), chroma (asset id) and their pairing.

All three are immutable. Amounts are Python integers end to end and are
never converted through float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from yuvcore.constants import (
    BLINDING_FACTOR_SIZE,
    CHROMA_SIZE,
    EMPTY_CHROMA_BYTES,
    LUMA_SIZE,
    MAX_LUMA_AMOUNT,
)
from yuvcore.wire import Amount, ByteValue, ChromaHex, WireModel

ZERO_BLINDING_FACTOR = bytes(BLINDING_FACTOR_SIZE)


@dataclass(frozen=True)
class Luma:
    """Blinded amount of a colored asset."""

    amount: int
    blinding_factor: bytes = ZERO_BLINDING_FACTOR

    def __post_init__(self) -> None:
        if not 0 <= self.amount <= MAX_LUMA_AMOUNT:
            raise ValueError(f"Luma amount out of range: {self.amount}")
        if len(self.blinding_factor) != BLINDING_FACTOR_SIZE:
            raise ValueError(
                f"Blinding factor must be {BLINDING_FACTOR_SIZE} bytes, "
                f"got {len(self.blinding_factor)}"
            )

    def to_bytes(self) -> bytes:
        # The blinding factor is not part of the commitment input; existing
        # chain data depends on this layout.
        return self.amount.to_bytes(BLINDING_FACTOR_SIZE, "big").ljust(LUMA_SIZE, b"\x00")

    def to_dict(self) -> dict[str, Any]:
        return LumaModel.from_luma(self).model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Luma:
        return LumaModel.model_validate(data).to_luma()


@dataclass(frozen=True)
class Chroma:
    """Asset identifier: a 32-byte x-only public key."""

    xonly: bytes = EMPTY_CHROMA_BYTES

    def __post_init__(self) -> None:
        if len(self.xonly) == CHROMA_SIZE + 1:
            object.__setattr__(self, "xonly", bytes(self.xonly[1:]))
        if len(self.xonly) != CHROMA_SIZE:
            raise ValueError(f"Chroma must be {CHROMA_SIZE} bytes, got {len(self.xonly)}")

    @classmethod
    def empty(cls) -> Chroma:
        return cls(EMPTY_CHROMA_BYTES)

    @classmethod
    def from_hex(cls, value: str) -> Chroma:
        return cls(bytes.fromhex(value))

    def hex(self) -> str:
        return self.xonly.hex()

    def is_empty(self) -> bool:
        return self.xonly == EMPTY_CHROMA_BYTES


@dataclass(frozen=True)
class Pixel:
    """Asset and amount riding on a Bitcoin output."""

    luma: Luma
    chroma: Chroma = field(default_factory=Chroma.empty)

    @classmethod
    def empty(cls) -> Pixel:
        return cls(Luma(0), Chroma.empty())

    @classmethod
    def create(cls, amount: int, chroma: str | bytes | Chroma) -> Pixel:
        """Build a pixel from an amount and a chroma in any accepted form."""
        if isinstance(chroma, str):
            chroma = Chroma.from_hex(chroma)
        elif isinstance(chroma, bytes):
            chroma = Chroma(chroma)
        return cls(Luma(amount), chroma)

    @property
    def amount(self) -> int:
        return self.luma.amount

    def is_empty(self) -> bool:
        return self.chroma.is_empty()

    def to_dict(self) -> dict[str, Any]:
        return PixelModel.from_pixel(self).model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pixel:
        return PixelModel.model_validate(data).to_pixel()


class LumaModel(WireModel):
    amount: Amount
    blinding_factor: list[ByteValue] | None = None

    @classmethod
    def from_luma(cls, luma: Luma) -> LumaModel:
        return cls(amount=luma.amount, blinding_factor=list(luma.blinding_factor))

    def to_luma(self) -> Luma:
        blinding_factor = self.blinding_factor or ZERO_BLINDING_FACTOR
        return Luma(self.amount, bytes(blinding_factor))


class PixelModel(WireModel):
    luma: LumaModel
    chroma: ChromaHex

    @classmethod
    def from_pixel(cls, pixel: Pixel) -> PixelModel:
        return cls(luma=LumaModel.from_luma(pixel.luma), chroma=pixel.chroma.hex())

    def to_pixel(self) -> Pixel:
        return Pixel(self.luma.to_luma(), Chroma.from_hex(self.chroma))
