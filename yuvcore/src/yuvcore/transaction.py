"""
YUV transaction types and announcements.

A YUV transaction is a Bitcoin transaction plus a tagged type describing
what it does: announce a chroma, issue supply, or transfer pixels. The
issue and transfer variants carry proof maps keyed by input/output ordinal.

Announcements are embedded in an OP_RETURN output, each prefixed by the
protocol tag ``"yuv" || version || kind``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, assert_never

from pydantic import (
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    model_validator,
)

from yuvcore.bitcoin import BitcoinTransaction
from yuvcore.constants import (
    ANNOUNCEMENT_KIND_CHROMA,
    ANNOUNCEMENT_KIND_ISSUE,
    ISSUE_AMOUNT_SIZE,
    MAX_LUMA_AMOUNT,
    PROTOCOL_TAG,
    PROTOCOL_VERSION,
)
from yuvcore.pixel import Chroma, Pixel
from yuvcore.proofs import PixelProof, ProofMapModel, proofs_from_models, proofs_to_models
from yuvcore.wire import Amount, ByteValue, ChromaHex, WireModel


class MixedChromaError(ValueError):
    """Issuance outputs carry more than one chroma."""


class FreezeNotImplementedError(NotImplementedError):
    """Freeze announcements cannot be encoded or built."""


def announcement_tag(kind: int) -> bytes:
    return PROTOCOL_TAG + bytes([PROTOCOL_VERSION, kind])


def _encode_max_supply(value: int) -> bytes:
    # Hex digits decoded pairwise; an odd trailing nibble is dropped, so
    # 1_000_000 (f4240) is written as f424 and values below 16 as nothing.
    if value < 0:
        raise ValueError(f"max_supply must be non-negative: {value}")
    hex_value = format(value, "x")
    return bytes.fromhex(hex_value[: len(hex_value) - len(hex_value) % 2])


class AnnouncementType(str, Enum):
    CHROMA = "Chroma"
    ISSUE = "Issue"
    FREEZE = "Freeze"


@dataclass(frozen=True)
class ChromaAnnouncement:
    chroma: Chroma
    name: str
    symbol: str
    decimal: int
    max_supply: int
    is_freezable: bool

    type: ClassVar[AnnouncementType] = AnnouncementType.CHROMA

    def __post_init__(self) -> None:
        if not 0 <= self.decimal <= 0xFF:
            raise ValueError(f"decimal must fit in one byte: {self.decimal}")

    @property
    def tag(self) -> bytes:
        return announcement_tag(ANNOUNCEMENT_KIND_CHROMA)

    def payload(self) -> bytes:
        """Announcement body following the protocol tag."""
        return b"".join(
            [
                self.chroma.xonly,
                self.name.encode("utf-8"),
                self.symbol.encode("utf-8"),
                bytes([self.decimal]),
                _encode_max_supply(self.max_supply),
                bytes([1 if self.is_freezable else 0]),
            ]
        )

    def to_bytes(self) -> bytes:
        return self.tag + self.payload()

    def to_dict(self) -> dict[str, Any]:
        return ChromaAnnouncementModel.from_announcement(self).model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChromaAnnouncement:
        return ChromaAnnouncementModel.model_validate(data).to_announcement()


@dataclass(frozen=True)
class IssueAnnouncement:
    chroma: Chroma
    amount: int

    type: ClassVar[AnnouncementType] = AnnouncementType.ISSUE

    def __post_init__(self) -> None:
        if not 0 <= self.amount <= MAX_LUMA_AMOUNT:
            raise ValueError(f"Issued amount does not fit in 128 bits: {self.amount}")

    @property
    def tag(self) -> bytes:
        return announcement_tag(ANNOUNCEMENT_KIND_ISSUE)

    def payload(self) -> bytes:
        return self.chroma.xonly + self.amount.to_bytes(ISSUE_AMOUNT_SIZE, "little")

    def to_bytes(self) -> bytes:
        return self.tag + self.payload()

    @classmethod
    def from_outputs(cls, pixels: Iterable[Pixel]) -> IssueAnnouncement:
        """Total issued amount of a set of pixel outputs sharing one chroma."""
        pixels = list(pixels)
        if not pixels:
            raise ValueError("Issuance requires at least one pixel output")

        chromas = {pixel.chroma for pixel in pixels}
        if len(chromas) > 1:
            raise MixedChromaError(
                f"Issuance outputs carry {len(chromas)} different chromas: "
                f"{', '.join(sorted(c.hex() for c in chromas))}"
            )

        return cls(pixels[0].chroma, sum(pixel.amount for pixel in pixels))

    def to_dict(self) -> dict[str, Any]:
        return IssueAnnouncementModel.from_announcement(self).model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IssueAnnouncement:
        return IssueAnnouncementModel.model_validate(data).to_announcement()


@dataclass(frozen=True)
class FreezeAnnouncement:
    txid: str
    vout: int

    type: ClassVar[AnnouncementType] = AnnouncementType.FREEZE

    def to_bytes(self) -> bytes:
        raise FreezeNotImplementedError("Freeze announcements are not implemented")

    def to_dict(self) -> dict[str, Any]:
        return FreezeAnnouncementModel.from_announcement(self).model_dump()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FreezeAnnouncement:
        return FreezeAnnouncementModel.model_validate(data).to_announcement()


Announcement = ChromaAnnouncement | IssueAnnouncement | FreezeAnnouncement


@dataclass(frozen=True)
class ChromaInfo:
    announcement: ChromaAnnouncement | None
    total_supply: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChromaInfo:
        model = ChromaInfoModel.model_validate(data)
        announcement = model.announcement.to_announcement() if model.announcement else None
        return cls(announcement=announcement, total_supply=model.total_supply)


class YuvTransactionType(str, Enum):
    ANNOUNCEMENT = "Announcement"
    ISSUE = "Issue"
    TRANSFER = "Transfer"


@dataclass(frozen=True)
class AnnouncementData:
    announcement: Announcement

    type: ClassVar[YuvTransactionType] = YuvTransactionType.ANNOUNCEMENT


@dataclass(frozen=True)
class IssueData:
    announcement: IssueAnnouncement
    input_proofs: dict[int, PixelProof] = field(default_factory=dict)
    output_proofs: dict[int, PixelProof] = field(default_factory=dict)

    type: ClassVar[YuvTransactionType] = YuvTransactionType.ISSUE


@dataclass(frozen=True)
class TransferData:
    input_proofs: dict[int, PixelProof] = field(default_factory=dict)
    output_proofs: dict[int, PixelProof] = field(default_factory=dict)

    type: ClassVar[YuvTransactionType] = YuvTransactionType.TRANSFER


TxTypeData = AnnouncementData | IssueData | TransferData


# Wire models. Announcements are externally tagged ({"Chroma": {...}});
# transaction types use {"type": ..., "data": ...}.


class ChromaAnnouncementModel(WireModel):
    chroma: ChromaHex
    name: StrictStr
    symbol: StrictStr
    decimal: ByteValue
    max_supply: Amount
    is_freezable: StrictBool

    @classmethod
    def from_announcement(cls, announcement: ChromaAnnouncement) -> ChromaAnnouncementModel:
        return cls(
            chroma=announcement.chroma.hex(),
            name=announcement.name,
            symbol=announcement.symbol,
            decimal=announcement.decimal,
            max_supply=announcement.max_supply,
            is_freezable=announcement.is_freezable,
        )

    def to_announcement(self) -> ChromaAnnouncement:
        return ChromaAnnouncement(
            chroma=Chroma.from_hex(self.chroma),
            name=self.name,
            symbol=self.symbol,
            decimal=self.decimal,
            max_supply=self.max_supply,
            is_freezable=self.is_freezable,
        )


class IssueAnnouncementModel(WireModel):
    chroma: ChromaHex
    amount: Amount

    @classmethod
    def from_announcement(cls, announcement: IssueAnnouncement) -> IssueAnnouncementModel:
        return cls(chroma=announcement.chroma.hex(), amount=announcement.amount)

    def to_announcement(self) -> IssueAnnouncement:
        return IssueAnnouncement(Chroma.from_hex(self.chroma), self.amount)


class FreezeAnnouncementModel(WireModel):
    txid: Annotated[StrictStr, Field(pattern=r"^[0-9a-fA-F]{64}$")]
    vout: Annotated[StrictInt, Field(ge=0)]

    @classmethod
    def from_announcement(cls, announcement: FreezeAnnouncement) -> FreezeAnnouncementModel:
        return cls(txid=announcement.txid, vout=announcement.vout)

    def to_announcement(self) -> FreezeAnnouncement:
        return FreezeAnnouncement(self.txid, self.vout)


class AnnouncementModel(WireModel):
    model_config = ConfigDict(populate_by_name=True)

    chroma: ChromaAnnouncementModel | None = Field(default=None, alias="Chroma")
    issue: IssueAnnouncementModel | None = Field(default=None, alias="Issue")
    freeze: FreezeAnnouncementModel | None = Field(default=None, alias="Freeze")

    @model_validator(mode="after")
    def check_single_variant(self) -> AnnouncementModel:
        present = [v for v in (self.chroma, self.issue, self.freeze) if v is not None]
        if len(present) != 1:
            raise ValueError(f"Announcement must have exactly one variant, got {len(present)}")
        return self

    @classmethod
    def from_announcement(cls, announcement: Announcement) -> AnnouncementModel:
        if isinstance(announcement, ChromaAnnouncement):
            return cls(chroma=ChromaAnnouncementModel.from_announcement(announcement))
        if isinstance(announcement, IssueAnnouncement):
            return cls(issue=IssueAnnouncementModel.from_announcement(announcement))
        if isinstance(announcement, FreezeAnnouncement):
            return cls(freeze=FreezeAnnouncementModel.from_announcement(announcement))
        assert_never(announcement)

    def to_announcement(self) -> Announcement:
        variant = self.chroma or self.issue or self.freeze
        assert variant is not None
        return variant.to_announcement()


class ChromaInfoModel(WireModel):
    announcement: ChromaAnnouncementModel | None = None
    total_supply: Amount = 0


class AnnouncementTxModel(WireModel):
    type: Literal["Announcement"] = "Announcement"
    data: AnnouncementModel


class IssueTxDataModel(WireModel):
    announcement: IssueAnnouncementModel
    input_proofs: ProofMapModel | None = None
    output_proofs: ProofMapModel | None = None


class IssueTxModel(WireModel):
    type: Literal["Issue"] = "Issue"
    data: IssueTxDataModel


class TransferTxDataModel(WireModel):
    input_proofs: ProofMapModel | None = None
    output_proofs: ProofMapModel | None = None


class TransferTxModel(WireModel):
    type: Literal["Transfer"] = "Transfer"
    data: TransferTxDataModel


TxTypeModel = Annotated[
    AnnouncementTxModel | IssueTxModel | TransferTxModel, Field(discriminator="type")
]

_tx_type_adapter: TypeAdapter[Any] = TypeAdapter(TxTypeModel)


def _tx_type_to_model(tx_type: TxTypeData) -> Any:
    if isinstance(tx_type, AnnouncementData):
        return AnnouncementTxModel(data=AnnouncementModel.from_announcement(tx_type.announcement))
    if isinstance(tx_type, IssueData):
        return IssueTxModel(
            data=IssueTxDataModel(
                announcement=IssueAnnouncementModel.from_announcement(tx_type.announcement),
                input_proofs=proofs_to_models(tx_type.input_proofs),
                output_proofs=proofs_to_models(tx_type.output_proofs),
            )
        )
    if isinstance(tx_type, TransferData):
        return TransferTxModel(
            data=TransferTxDataModel(
                input_proofs=proofs_to_models(tx_type.input_proofs),
                output_proofs=proofs_to_models(tx_type.output_proofs),
            )
        )
    assert_never(tx_type)


def tx_type_to_dto(tx_type: TxTypeData) -> dict[str, Any]:
    return _tx_type_to_model(tx_type).model_dump(by_alias=True, exclude_none=True)


def tx_type_from_dto(dto: dict[str, Any]) -> TxTypeData:
    model = _tx_type_adapter.validate_python(dto)
    data = model.data

    if isinstance(model, AnnouncementTxModel):
        return AnnouncementData(data.to_announcement())
    if isinstance(model, IssueTxModel):
        return IssueData(
            announcement=data.announcement.to_announcement(),
            input_proofs=proofs_from_models(data.input_proofs or {}),
            output_proofs=proofs_from_models(data.output_proofs or {}),
        )
    return TransferData(
        input_proofs=proofs_from_models(data.input_proofs or {}),
        output_proofs=proofs_from_models(data.output_proofs or {}),
    )


@dataclass
class YuvTransaction:
    bitcoin_tx: BitcoinTransaction
    tx_type: TxTypeData

    @property
    def txid(self) -> str:
        return self.bitcoin_tx.txid

    def output_proofs(self) -> dict[int, PixelProof]:
        """Proofs attached to outputs; announcements carry none."""
        if isinstance(self.tx_type, (IssueData, TransferData)):
            return self.tx_type.output_proofs
        return {}

    def to_dto(self) -> dict[str, Any]:
        return {
            "bitcoin_tx": self.bitcoin_tx.to_dict(),
            "tx_type": tx_type_to_dto(self.tx_type),
        }

    @classmethod
    def from_dto(cls, dto: dict[str, Any]) -> YuvTransaction:
        return cls(
            bitcoin_tx=BitcoinTransaction.from_dict(dto["bitcoin_tx"]),
            tx_type=tx_type_from_dto(dto["tx_type"]),
        )
