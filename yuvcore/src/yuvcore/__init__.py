"""
yuvcore - Core library for the YUV colored-coin protocol

Provides pixel types, the pixel commitment engine, proofs, transaction
types and the Bitcoin transaction skeleton they ride on.
"""

__version__ = "0.1.0"

from yuvcore.bitcoin import BitcoinTransaction, TransactionParseError, TxIn, TxOut
from yuvcore.crypto import (
    CryptoError,
    InvalidKeyError,
    InvalidScalarError,
    derive_spending_key,
    pixel_hash,
    pixel_private_key,
    pixel_public_key,
)
from yuvcore.pixel import Chroma, Luma, Pixel
from yuvcore.proofs import (
    EmptyPixelProof,
    LightningCommitmentProof,
    LightningHtlcData,
    LightningHtlcProof,
    MultisigPixelProof,
    PixelProof,
    PixelProofType,
    SigPixelProof,
    owns_proof,
)
from yuvcore.transaction import (
    AnnouncementData,
    ChromaAnnouncement,
    ChromaInfo,
    FreezeAnnouncement,
    FreezeNotImplementedError,
    IssueAnnouncement,
    IssueData,
    MixedChromaError,
    TransferData,
    YuvTransaction,
    YuvTransactionType,
)

__all__ = [
    "AnnouncementData",
    "BitcoinTransaction",
    "Chroma",
    "ChromaAnnouncement",
    "ChromaInfo",
    "CryptoError",
    "EmptyPixelProof",
    "FreezeAnnouncement",
    "FreezeNotImplementedError",
    "InvalidKeyError",
    "InvalidScalarError",
    "IssueAnnouncement",
    "IssueData",
    "LightningCommitmentProof",
    "LightningHtlcData",
    "LightningHtlcProof",
    "Luma",
    "MixedChromaError",
    "MultisigPixelProof",
    "Pixel",
    "PixelProof",
    "PixelProofType",
    "SigPixelProof",
    "TransactionParseError",
    "TransferData",
    "TxIn",
    "TxOut",
    "YuvTransaction",
    "YuvTransactionType",
    "derive_spending_key",
    "owns_proof",
    "pixel_hash",
    "pixel_private_key",
    "pixel_public_key",
]
