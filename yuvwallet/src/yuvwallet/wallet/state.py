"""
Wallet reconciliation state.

Owns the wallet's UTXO pools and is advanced only by ``sync`` (plus
``mark_spent`` after a successful broadcast):

- unspent_colored: owned outputs carrying a nonzero pixel amount
- empty_colored: owned outputs with a zero amount, spendable for satoshis
- plain_btc: plain outputs paying the wallet's P2WPKH address
- spent: outpoints observed spent

The pools and the spent set are pairwise disjoint by outpoint. A sync
computes the next pools off to the side and commits them in one step, so
readers never observe a half-updated state and a failed sync changes
nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from yuvcore.bitcoin import BitcoinTransaction
from yuvcore.constants import TRANSACTIONS_PAGE_SIZE
from yuvcore.pixel import Pixel
from yuvcore.proofs import EmptyPixelProof, SigPixelProof, owns_proof, proof_from_dto
from yuvcore.transaction import YuvTransactionType
from yuvwallet.backends.base import AssetNode, UtxoSource
from yuvwallet.wallet.models import BitcoinUtxo, Outpoint, Utxo, YuvUtxo


@dataclass(frozen=True)
class WalletSnapshot:
    unspent_colored: tuple[YuvUtxo, ...] = ()
    empty_colored: tuple[YuvUtxo, ...] = ()
    plain_btc: tuple[BitcoinUtxo, ...] = ()
    spent: frozenset[Outpoint] = field(default_factory=frozenset)

    @property
    def btc_utxos(self) -> list[Utxo]:
        """Candidates for paying fees: plain UTXOs and empty colored ones."""
        return [*self.plain_btc, *self.empty_colored]


def classify_transaction(
    tx_dto: dict[str, Any], inner_key: str
) -> tuple[list[YuvUtxo], list[YuvUtxo]]:
    """
    Split a transaction's outputs owned by ``inner_key`` into colored and
    empty candidates.

    Owned zero-amount ``Sig`` outputs and ``EmptyPixel`` outputs addressed
    to the wallet become empty candidates, the latter re-wrapped as ``Sig``
    proofs, so they can be spent as plain inputs. Zero-amount multisig
    outputs are left out. A malformed output proof is logged and skipped
    without affecting the other outputs.
    """
    tx_type = tx_dto.get("tx_type") or {}
    supported = (YuvTransactionType.ISSUE.value, YuvTransactionType.TRANSFER.value)
    if tx_type.get("type") not in supported:
        return [], []

    bitcoin_tx = BitcoinTransaction.from_dict(tx_dto["bitcoin_tx"])
    txid = bitcoin_tx.txid
    output_proofs = (tx_type.get("data") or {}).get("output_proofs") or {}

    colored: list[YuvUtxo] = []
    empty: list[YuvUtxo] = []

    for key, raw_proof in output_proofs.items():
        try:
            vout = int(key)
            proof = proof_from_dto(raw_proof)
            satoshis = bitcoin_tx.outputs[vout].value
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed output proof {txid}:{key}: {e}")
            continue

        if isinstance(proof, EmptyPixelProof):
            if proof.inner_key == inner_key:
                rewrapped = SigPixelProof(Pixel.empty(), inner_key)
                empty.append(YuvUtxo(txid, vout, satoshis, rewrapped, inner_key))
            continue

        if not owns_proof(proof, inner_key):
            continue

        utxo = YuvUtxo(txid, vout, satoshis, proof, inner_key)
        if not utxo.is_empty():
            colored.append(utxo)
        elif isinstance(proof, SigPixelProof):
            empty.append(utxo)
        else:
            logger.debug(f"Ignoring empty multisig output {txid}:{vout}")

    return colored, empty


def _dedupe(utxos: Iterable[Utxo], known: set[Outpoint]) -> list[Any]:
    """Keep the first occurrence of each outpoint not already in ``known``."""
    result = []
    for utxo in utxos:
        if utxo.outpoint in known:
            continue
        known.add(utxo.outpoint)
        result.append(utxo)
    return result


class WalletState:
    def __init__(self) -> None:
        self._unspent_colored: list[YuvUtxo] = []
        self._empty_colored: list[YuvUtxo] = []
        self._plain_btc: list[BitcoinUtxo] = []
        self._spent: set[Outpoint] = set()
        self.last_page = 0

        # Guards the pools; held only while committing or copying
        self._lock = asyncio.Lock()
        # Serializes whole sync passes
        self._sync_lock = asyncio.Lock()

    async def snapshot(self) -> WalletSnapshot:
        async with self._lock:
            return WalletSnapshot(
                unspent_colored=tuple(self._unspent_colored),
                empty_colored=tuple(self._empty_colored),
                plain_btc=tuple(self._plain_btc),
                spent=frozenset(self._spent),
            )

    async def _fetch_transactions(self, node: AssetNode) -> tuple[list[dict[str, Any]], int]:
        """Fetch pages from ``last_page`` while each page comes back full."""
        page = self.last_page
        records = await node.list_transactions_page(page)
        transactions = list(records)

        while len(records) == TRANSACTIONS_PAGE_SIZE:
            page += 1
            records = await node.list_transactions_page(page)
            transactions.extend(records)

        logger.debug(f"Fetched {len(transactions)} YUV transactions up to page {page}")
        return transactions, page

    async def sync(
        self,
        node: AssetNode,
        explorer: UtxoSource,
        inner_key: str,
        address: str,
    ) -> WalletSnapshot:
        async with self._sync_lock:
            current = await self.snapshot()
            transactions, last_page = await self._fetch_transactions(node)

            new_colored: list[YuvUtxo] = []
            new_empty: list[YuvUtxo] = []
            for tx_dto in transactions:
                try:
                    colored, empty = classify_transaction(tx_dto, inner_key)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed YUV transaction: {e}")
                    continue
                new_colored.extend(colored)
                new_empty.extend(empty)

            known: set[Outpoint] = set(current.spent)
            colored_candidates = _dedupe([*current.unspent_colored, *new_colored], known)
            empty_candidates = _dedupe([*current.empty_colored, *new_empty], known)

            plain_listing = await explorer.list_utxos(address)
            plain_candidates = _dedupe(plain_listing, known)

            candidates: list[Utxo] = [*colored_candidates, *empty_candidates, *plain_candidates]
            statuses = await asyncio.gather(
                *(explorer.get_spend_status(utxo.txid, utxo.vout) for utxo in candidates)
            )
            newly_spent = {
                utxo.outpoint for utxo, spent in zip(candidates, statuses, strict=True) if spent
            }

            async with self._lock:
                # Includes outpoints marked spent while this pass was running
                self._spent |= newly_spent
                spent = self._spent
                self._unspent_colored = [u for u in colored_candidates if u.outpoint not in spent]
                self._empty_colored = [u for u in empty_candidates if u.outpoint not in spent]
                self._plain_btc = [u for u in plain_candidates if u.outpoint not in spent]
                self.last_page = last_page

            logger.info(
                f"Synced wallet: {len(self._unspent_colored)} colored, "
                f"{len(self._empty_colored)} empty colored, {len(self._plain_btc)} plain UTXOs "
                f"({len(newly_spent)} newly spent)"
            )
            return await self.snapshot()

    async def mark_spent(self, outpoints: Iterable[Outpoint]) -> None:
        """Move outpoints consumed by a broadcast transaction to the spent set."""
        spent = set(outpoints)
        async with self._lock:
            self._unspent_colored = [u for u in self._unspent_colored if u.outpoint not in spent]
            self._empty_colored = [u for u in self._empty_colored if u.outpoint not in spent]
            self._plain_btc = [u for u in self._plain_btc if u.outpoint not in spent]
            self._spent |= spent
