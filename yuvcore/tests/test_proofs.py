"""
Tests for yuvcore.proofs
"""

import json

import pytest

from yuvcore.pixel import Pixel
from yuvcore.proofs import (
    EmptyPixelProof,
    LightningCommitmentProof,
    LightningHtlcData,
    LightningHtlcProof,
    MultisigPixelProof,
    PixelProofType,
    ReceivedHtlc,
    SigPixelProof,
    owns_proof,
    proof_from_dto,
    proof_to_dto,
    proofs_from_dto,
    proofs_to_dto,
)

CHROMA_HEX = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
KEY_A = "02" + "aa" * 32
KEY_B = "02" + "bb" * 32


@pytest.fixture
def pixel():
    return Pixel.create(2**90 + 7, CHROMA_HEX)


def _all_proofs(pixel):
    return [
        EmptyPixelProof(KEY_A),
        SigPixelProof(pixel, KEY_A),
        MultisigPixelProof(pixel, (KEY_A, KEY_B), 2),
        LightningCommitmentProof(pixel, KEY_A, 144, KEY_B),
        LightningHtlcProof(
            pixel,
            LightningHtlcData("11" * 20, KEY_A, KEY_B, "22" * 32, "offered"),
        ),
        LightningHtlcProof(
            pixel,
            LightningHtlcData("11" * 20, KEY_A, KEY_B, "22" * 32, ReceivedHtlc(800_000)),
        ),
    ]


class TestOwnership:
    def test_multisig_membership(self):
        proof = MultisigPixelProof(Pixel.create(5, CHROMA_HEX), ("A", "B", "C"), 2)
        assert owns_proof(proof, "B")
        assert not owns_proof(proof, "D")

    def test_sig_owner(self, pixel):
        proof = SigPixelProof(pixel, KEY_A)
        assert owns_proof(proof, KEY_A)
        assert not owns_proof(proof, KEY_B)

    def test_other_variants_never_owned(self, pixel):
        assert not owns_proof(EmptyPixelProof(KEY_A), KEY_A)
        assert not owns_proof(LightningCommitmentProof(pixel, KEY_A, 10, KEY_A), KEY_A)


class TestValidation:
    def test_sentinel_chroma_with_amount_rejected(self):
        with pytest.raises(ValueError):
            SigPixelProof(Pixel.create(5, bytes([2] * 32)), KEY_A)
        with pytest.raises(ValueError):
            MultisigPixelProof(Pixel.create(5, bytes([2] * 32)), (KEY_A,), 1)

    def test_empty_sig_proof_allowed(self):
        proof = SigPixelProof(Pixel.empty(), KEY_A)
        assert proof.pixel.is_empty()

    @pytest.mark.parametrize("m", [0, 3])
    def test_bad_threshold(self, pixel, m):
        with pytest.raises(ValueError):
            MultisigPixelProof(pixel, (KEY_A, KEY_B), m)


class TestDto:
    def test_every_variant_roundtrips(self, pixel):
        for proof in _all_proofs(pixel):
            dto = json.loads(json.dumps(proof_to_dto(proof)))
            assert proof_from_dto(dto) == proof

    def test_sig_wire_shape(self, pixel):
        dto = proof_to_dto(SigPixelProof(pixel, KEY_A))
        assert dto == {
            "type": "Sig",
            "data": {
                "pixel": {
                    "luma": {"amount": 2**90 + 7, "blinding_factor": [0] * 16},
                    "chroma": CHROMA_HEX,
                },
                "inner_key": KEY_A,
            },
        }

    def test_empty_pixel_wire_shape(self):
        dto = proof_to_dto(EmptyPixelProof(KEY_A))
        assert dto == {"type": "EmptyPixel", "data": {"inner_key": KEY_A}}
        assert proof_from_dto(dto).pixel == Pixel.empty()

    def test_amount_as_string(self):
        dto = {
            "type": "Sig",
            "data": {
                "pixel": {"luma": {"amount": "1000n"}, "chroma": CHROMA_HEX},
                "inner_key": KEY_A,
            },
        }
        assert proof_from_dto(dto).pixel.amount == 1000

    def test_float_amount_rejected(self):
        dto = {
            "type": "Sig",
            "data": {"pixel": {"luma": {"amount": 10.0}, "chroma": CHROMA_HEX}, "inner_key": KEY_A},
        }
        with pytest.raises(ValueError):
            proof_from_dto(dto)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            proof_from_dto({"type": "Taproot", "data": {}})

    def test_proof_map_with_gaps(self, pixel):
        proofs = {
            0: SigPixelProof(pixel, KEY_A),
            3: EmptyPixelProof(KEY_B),
            17: EmptyPixelProof(KEY_A),
        }
        dto = proofs_to_dto(proofs)

        assert list(dto) == ["0", "3", "17"]
        assert proofs_from_dto(json.loads(json.dumps(dto))) == proofs

    def test_missing_proof_map(self):
        assert proofs_from_dto(None) == {}

    def test_type_tags(self):
        assert [t.value for t in PixelProofType] == [
            "EmptyPixel",
            "Sig",
            "Multisig",
            "Lightning",
            "LightningHtlc",
        ]
