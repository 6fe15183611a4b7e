"""
Base interfaces for the wallet's external collaborators.

A UTXO source (block explorer) answers plain Bitcoin questions; an asset
node keeps the YUV transaction history and accepts YUV transactions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from yuvcore.transaction import ChromaInfo, YuvTransaction
from yuvwallet.wallet.models import BitcoinUtxo


class BackendError(Exception):
    pass


class HttpError(BackendError):
    """Non-2xx response from a backend."""

    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"API http call failed: {status} for {url}")


class RpcError(BackendError):
    """JSON-RPC error object returned by the node, kept verbatim."""

    def __init__(self, method: str, payload: Any):
        self.method = method
        self.payload = payload
        super().__init__(f"RPC error in {method}: {payload!r}")


class YuvTransactionStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    CHECKED = "checked"
    ATTACHED = "attached"


@dataclass
class RawYuvTransaction:
    status: YuvTransactionStatus
    transaction: YuvTransaction | None = None


class UtxoSource(ABC):
    """Address-indexed view of the Bitcoin chain (Esplora-style)."""

    @abstractmethod
    async def list_utxos(self, address: str) -> list[BitcoinUtxo]:
        """Unspent outputs paying to ``address``"""

    @abstractmethod
    async def get_spend_status(self, txid: str, vout: int) -> bool:
        """True when the output has been spent"""

    @abstractmethod
    async def get_raw_tx_hex(self, txid: str) -> str:
        """Raw transaction hex"""

    @abstractmethod
    async def get_output_value(self, txid: str, vout: int) -> int:
        """Value of a transaction output in satoshis"""

    async def close(self) -> None:
        """Close backend connection"""
        pass


class AssetNode(ABC):
    """YUV node: asset registry and colored transaction history."""

    @abstractmethod
    async def get_chroma_info(self, chroma: str) -> ChromaInfo | None:
        """Announcement and total supply of a chroma, None if unknown"""

    @abstractmethod
    async def list_transactions_page(self, page: int) -> list[dict[str, Any]]:
        """One page of transaction DTOs (page size 100)"""

    @abstractmethod
    async def get_raw_yuv_transaction(self, txid: str) -> RawYuvTransaction:
        """Status and content of a YUV transaction"""

    @abstractmethod
    async def send_raw_yuv_transaction(
        self, tx: YuvTransaction, max_burn_amount: int | None = None
    ) -> bool:
        """Submit a YUV transaction"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
