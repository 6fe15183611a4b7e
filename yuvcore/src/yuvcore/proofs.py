"""
Pixel proofs: who owns the pixel attached to a transaction input or output.

The proof variants form a closed union. Their wire form is
``{"type": <PixelProofType>, "data": {...}}`` with snake_case keys, matching
what the YUV node produces and accepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, assert_never

from pydantic import Field, StrictInt, TypeAdapter

from yuvcore.pixel import Pixel, PixelModel
from yuvcore.wire import HexStr, Ordinal, WireModel


class PixelProofType(str, Enum):
    EMPTY_PIXEL = "EmptyPixel"
    SIG = "Sig"
    MULTISIG = "Multisig"
    LIGHTNING = "Lightning"
    LIGHTNING_HTLC = "LightningHtlc"


def _check_asset_pixel(pixel: Pixel) -> None:
    if pixel.is_empty() and pixel.amount != 0:
        raise ValueError("Empty chroma cannot carry a nonzero amount")


@dataclass(frozen=True)
class EmptyPixelProof:
    inner_key: str

    type: ClassVar[PixelProofType] = PixelProofType.EMPTY_PIXEL

    @property
    def pixel(self) -> Pixel:
        return Pixel.empty()


@dataclass(frozen=True)
class SigPixelProof:
    pixel: Pixel
    inner_key: str

    type: ClassVar[PixelProofType] = PixelProofType.SIG

    def __post_init__(self) -> None:
        _check_asset_pixel(self.pixel)


@dataclass(frozen=True)
class MultisigPixelProof:
    pixel: Pixel
    inner_keys: tuple[str, ...]
    m: int

    type: ClassVar[PixelProofType] = PixelProofType.MULTISIG

    def __post_init__(self) -> None:
        _check_asset_pixel(self.pixel)
        object.__setattr__(self, "inner_keys", tuple(self.inner_keys))
        if not 0 < self.m <= len(self.inner_keys):
            raise ValueError(f"Invalid multisig threshold {self.m} of {len(self.inner_keys)}")


@dataclass(frozen=True)
class LightningCommitmentProof:
    pixel: Pixel
    revocation_pubkey: str
    to_self_delay: int
    local_delayed_pubkey: str

    type: ClassVar[PixelProofType] = PixelProofType.LIGHTNING


@dataclass(frozen=True)
class ReceivedHtlc:
    cltv_expiry: int


HtlcScriptKind = Literal["offered"] | ReceivedHtlc


@dataclass(frozen=True)
class LightningHtlcData:
    revocation_key_hash: str
    remote_htlc_key: str
    local_htlc_key: str
    payment_hash: str
    kind: HtlcScriptKind


@dataclass(frozen=True)
class LightningHtlcProof:
    pixel: Pixel
    data: LightningHtlcData

    type: ClassVar[PixelProofType] = PixelProofType.LIGHTNING_HTLC


PixelProof = (
    EmptyPixelProof
    | SigPixelProof
    | MultisigPixelProof
    | LightningCommitmentProof
    | LightningHtlcProof
)


def owns_proof(proof: PixelProof, inner_key: str) -> bool:
    """True when ``inner_key`` is the Sig owner or one of the Multisig owners."""
    if isinstance(proof, SigPixelProof):
        return proof.inner_key == inner_key
    if isinstance(proof, MultisigPixelProof):
        return inner_key in proof.inner_keys
    return False


class ReceivedHtlcModel(WireModel):
    cltv_expiry: Annotated[StrictInt, Field(ge=0)]


class HtlcScriptModel(WireModel):
    revocation_key_hash: HexStr
    remote_htlc_key: HexStr
    local_htlc_key: HexStr
    payment_hash: HexStr
    kind: Literal["offered"] | ReceivedHtlcModel


class EmptyPixelData(WireModel):
    inner_key: HexStr


class SigData(WireModel):
    pixel: PixelModel
    inner_key: HexStr


class MultisigData(WireModel):
    pixel: PixelModel
    inner_keys: list[HexStr]
    m: Annotated[StrictInt, Field(ge=1)]


class LightningData(WireModel):
    pixel: PixelModel
    revocation_pubkey: HexStr
    to_self_delay: Annotated[StrictInt, Field(ge=0)]
    local_delayed_pubkey: HexStr


class LightningHtlcDataModel(WireModel):
    pixel: PixelModel
    data: HtlcScriptModel


class EmptyPixelProofModel(WireModel):
    type: Literal["EmptyPixel"] = "EmptyPixel"
    data: EmptyPixelData


class SigPixelProofModel(WireModel):
    type: Literal["Sig"] = "Sig"
    data: SigData


class MultisigPixelProofModel(WireModel):
    type: Literal["Multisig"] = "Multisig"
    data: MultisigData


class LightningProofModel(WireModel):
    type: Literal["Lightning"] = "Lightning"
    data: LightningData


class LightningHtlcProofModel(WireModel):
    type: Literal["LightningHtlc"] = "LightningHtlc"
    data: LightningHtlcDataModel


ProofModel = Annotated[
    EmptyPixelProofModel
    | SigPixelProofModel
    | MultisigPixelProofModel
    | LightningProofModel
    | LightningHtlcProofModel,
    Field(discriminator="type"),
]
ProofMapModel = dict[Ordinal, ProofModel]

_proof_adapter: TypeAdapter[Any] = TypeAdapter(ProofModel)
_proof_map_adapter: TypeAdapter[dict[str, Any]] = TypeAdapter(ProofMapModel)


def proof_to_model(proof: PixelProof) -> Any:
    if isinstance(proof, EmptyPixelProof):
        return EmptyPixelProofModel(data=EmptyPixelData(inner_key=proof.inner_key))

    pixel = PixelModel.from_pixel(proof.pixel)
    if isinstance(proof, SigPixelProof):
        return SigPixelProofModel(data=SigData(pixel=pixel, inner_key=proof.inner_key))
    if isinstance(proof, MultisigPixelProof):
        return MultisigPixelProofModel(
            data=MultisigData(pixel=pixel, inner_keys=list(proof.inner_keys), m=proof.m)
        )
    if isinstance(proof, LightningCommitmentProof):
        return LightningProofModel(
            data=LightningData(
                pixel=pixel,
                revocation_pubkey=proof.revocation_pubkey,
                to_self_delay=proof.to_self_delay,
                local_delayed_pubkey=proof.local_delayed_pubkey,
            )
        )
    if isinstance(proof, LightningHtlcProof):
        htlc = proof.data
        kind: Literal["offered"] | ReceivedHtlcModel = "offered"
        if isinstance(htlc.kind, ReceivedHtlc):
            kind = ReceivedHtlcModel(cltv_expiry=htlc.kind.cltv_expiry)
        script = HtlcScriptModel(
            revocation_key_hash=htlc.revocation_key_hash,
            remote_htlc_key=htlc.remote_htlc_key,
            local_htlc_key=htlc.local_htlc_key,
            payment_hash=htlc.payment_hash,
            kind=kind,
        )
        return LightningHtlcProofModel(data=LightningHtlcDataModel(pixel=pixel, data=script))
    assert_never(proof)


def proof_from_model(model: Any) -> PixelProof:
    data = model.data
    if isinstance(model, EmptyPixelProofModel):
        return EmptyPixelProof(inner_key=data.inner_key)
    if isinstance(model, SigPixelProofModel):
        return SigPixelProof(pixel=data.pixel.to_pixel(), inner_key=data.inner_key)
    if isinstance(model, MultisigPixelProofModel):
        return MultisigPixelProof(
            pixel=data.pixel.to_pixel(), inner_keys=tuple(data.inner_keys), m=data.m
        )
    if isinstance(model, LightningProofModel):
        return LightningCommitmentProof(
            pixel=data.pixel.to_pixel(),
            revocation_pubkey=data.revocation_pubkey,
            to_self_delay=data.to_self_delay,
            local_delayed_pubkey=data.local_delayed_pubkey,
        )
    if isinstance(model, LightningHtlcProofModel):
        script = data.data
        kind: HtlcScriptKind = "offered"
        if isinstance(script.kind, ReceivedHtlcModel):
            kind = ReceivedHtlc(script.kind.cltv_expiry)
        return LightningHtlcProof(
            pixel=data.pixel.to_pixel(),
            data=LightningHtlcData(
                revocation_key_hash=script.revocation_key_hash,
                remote_htlc_key=script.remote_htlc_key,
                local_htlc_key=script.local_htlc_key,
                payment_hash=script.payment_hash,
                kind=kind,
            ),
        )
    raise ValueError(f"Unknown proof model: {type(model).__name__}")


def proof_to_dto(proof: PixelProof) -> dict[str, Any]:
    return proof_to_model(proof).model_dump()


def proof_from_dto(dto: dict[str, Any]) -> PixelProof:
    return proof_from_model(_proof_adapter.validate_python(dto))


def proofs_to_models(proofs: dict[int, PixelProof]) -> dict[str, Any]:
    return {str(index): proof_to_model(proof) for index, proof in sorted(proofs.items())}


def proofs_from_models(models: dict[str, Any]) -> dict[int, PixelProof]:
    return {int(index): proof_from_model(model) for index, model in models.items()}


def proofs_to_dto(proofs: dict[int, PixelProof]) -> dict[str, dict[str, Any]]:
    return {index: model.model_dump() for index, model in proofs_to_models(proofs).items()}


def proofs_from_dto(dto: dict[str, Any] | None) -> dict[int, PixelProof]:
    if not dto:
        return {}
    return proofs_from_models(_proof_map_adapter.validate_python(dto))
