"""
YUV node JSON-RPC backend.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from yuvcore.transaction import ChromaInfo, YuvTransaction
from yuvwallet.backends.base import (
    AssetNode,
    HttpError,
    RawYuvTransaction,
    RpcError,
    YuvTransactionStatus,
)

DEFAULT_RPC_TIMEOUT = 30.0


class YuvNodeBackend(AssetNode):
    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18333",
        rpc_user: str | None = None,
        rpc_password: str | None = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        auth = (rpc_user, rpc_password or "") if rpc_user else None
        self.client = httpx.AsyncClient(timeout=timeout, auth=auth, transport=transport)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make a JSON-RPC call to the YUV node.

        Raises:
            HttpError: On non-2xx responses
            RpcError: When the node returns an error object
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

        if not response.is_success:
            raise HttpError(response.status_code, self.rpc_url, response.text)

        data = response.json()
        if data.get("error"):
            raise RpcError(method, data["error"])

        return data.get("result")

    async def get_chroma_info(self, chroma: str) -> ChromaInfo | None:
        result = await self._rpc_call("getchromainfo", [chroma])
        if result is None:
            return None
        return ChromaInfo.from_dict(result)

    async def list_transactions_page(self, page: int) -> list[dict[str, Any]]:
        result = await self._rpc_call("listyuvtransactions", [page])
        return result or []

    async def get_raw_yuv_transaction(self, txid: str) -> RawYuvTransaction:
        result = await self._rpc_call("getrawyuvtransaction", [txid])
        if result is None:
            return RawYuvTransaction(status=YuvTransactionStatus.NONE)

        status = YuvTransactionStatus(result.get("status", "none"))
        data = result.get("data")
        return RawYuvTransaction(
            status=status,
            transaction=YuvTransaction.from_dto(data) if data else None,
        )

    async def send_raw_yuv_transaction(
        self, tx: YuvTransaction, max_burn_amount: int | None = None
    ) -> bool:
        params: list[Any] = [tx.to_dto()]
        if max_burn_amount is not None:
            params.append(max_burn_amount)

        result = await self._rpc_call("sendrawyuvtransaction", params)
        logger.info(f"Submitted YUV transaction {tx.txid}")
        return bool(result)

    async def close(self) -> None:
        await self.client.aclose()
