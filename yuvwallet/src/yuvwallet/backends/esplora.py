"""
Esplora REST backend (blockstream.info, mempool.space, mutinynet).
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from yuvwallet.backends.base import HttpError, UtxoSource
from yuvwallet.wallet.models import BitcoinUtxo

DEFAULT_TIMEOUT = 30.0


class EsploraTxStatus(BaseModel):
    confirmed: bool = False
    block_height: int | None = None
    block_hash: str | None = None
    block_time: int | None = None


class EsploraUtxo(BaseModel):
    txid: str
    vout: int
    value: int
    status: EsploraTxStatus = EsploraTxStatus()

    def to_utxo(self) -> BitcoinUtxo:
        return BitcoinUtxo(
            txid=self.txid,
            vout=self.vout,
            satoshis=self.value,
            confirmed=self.status.confirmed,
        )


class EsploraOutspend(BaseModel):
    spent: bool
    txid: str | None = None
    vin: int | None = None


class EsploraBackend(UtxoSource):
    def __init__(
        self,
        base_url: str = "https://blockstream.info/api",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _get(self, endpoint: str) -> httpx.Response:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Esplora call failed: {endpoint} - {e}")
            raise

        if not response.is_success:
            raise HttpError(response.status_code, url, response.text)
        return response

    async def _get_json(self, endpoint: str) -> Any:
        response = await self._get(endpoint)
        return response.json()

    async def list_utxos(self, address: str) -> list[BitcoinUtxo]:
        data = await self._get_json(f"address/{address}/utxo")
        utxos = [EsploraUtxo.model_validate(item).to_utxo() for item in data]
        logger.debug(f"Found {len(utxos)} UTXOs for {address}")
        return utxos

    async def get_spend_status(self, txid: str, vout: int) -> bool:
        data = await self._get_json(f"tx/{txid}/outspend/{vout}")
        return EsploraOutspend.model_validate(data).spent

    async def get_raw_tx_hex(self, txid: str) -> str:
        response = await self._get(f"tx/{txid}/hex")
        return response.text.strip()

    async def get_output_value(self, txid: str, vout: int) -> int:
        data = await self._get_json(f"tx/{txid}")
        outputs = data.get("vout", [])
        if vout >= len(outputs):
            raise ValueError(f"Transaction {txid} has no output {vout}")
        return int(outputs[vout]["value"])

    async def close(self) -> None:
        await self.client.aclose()
