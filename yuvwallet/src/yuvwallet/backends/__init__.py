"""
Backend implementations.

Available backends:
- EsploraBackend: Esplora REST API for plain UTXOs and spend status
- YuvNodeBackend: YUV node JSON-RPC for assets and colored transactions
"""

from yuvwallet.backends.base import (
    AssetNode,
    BackendError,
    HttpError,
    RawYuvTransaction,
    RpcError,
    UtxoSource,
    YuvTransactionStatus,
)
from yuvwallet.backends.esplora import EsploraBackend
from yuvwallet.backends.yuv_node import YuvNodeBackend

__all__ = [
    "AssetNode",
    "BackendError",
    "EsploraBackend",
    "HttpError",
    "RawYuvTransaction",
    "RpcError",
    "UtxoSource",
    "YuvNodeBackend",
    "YuvTransactionStatus",
]
