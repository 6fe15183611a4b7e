"""
Tests for the YUV wallet service.
"""

import pytest
from coincurve import PublicKey

from yuvcore.bitcoin import op_return_script, p2wpkh_script
from yuvcore.crypto import inner_key_for, pixel_public_key
from yuvcore.pixel import Chroma, Pixel
from yuvcore.proofs import EmptyPixelProof, MultisigPixelProof, SigPixelProof
from yuvcore.transaction import (
    AnnouncementData,
    ChromaAnnouncement,
    ChromaInfo,
    IssueData,
    MixedChromaError,
    TransferData,
)
from yuvwallet.backends.base import RawYuvTransaction, RpcError, YuvTransactionStatus
from yuvwallet.config import WalletSettings
from yuvwallet.wallet.address import pubkey_to_p2wpkh_address
from yuvwallet.wallet.coin_selection import (
    InsufficientAssetBalanceError,
    InsufficientBtcBalanceError,
)
from yuvwallet.wallet.models import Payment
from yuvwallet.wallet.service import YuvWallet
from yuvwallet.wallet.signing import compute_sighash_segwit, create_p2wpkh_script_code

CHROMA_HEX = "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
OTHER_CHROMA_HEX = "c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"


def _assert_signed(tx, values):
    for index, tx_input in enumerate(tx.inputs):
        signature, pubkey = tx_input.witness
        script_code = create_p2wpkh_script_code(pubkey)
        sighash = compute_sighash_segwit(tx, index, script_code, values[index])
        assert PublicKey(pubkey).verify(signature[:-1], sighash, hasher=None)


class TestAddresses:
    def test_keys_and_addresses(self, wallet):
        assert wallet.inner_key[0] == 0x02
        assert wallet.p2wpkh_address.startswith("bcrt1q")
        assert wallet.p2tr_address.startswith("bcrt1p")
        assert wallet.chroma.xonly == wallet.inner_key[1:]

    def test_from_settings_requires_key(self):
        with pytest.raises(ValueError, match="Private key required"):
            YuvWallet.from_settings(WalletSettings(private_key=None))


class TestBalances:
    @pytest.mark.asyncio
    async def test_sync_splits_pools(self, wallet, node, fund_plain, colored_tx):
        fund_plain(50_000)
        node.list_transactions_page.return_value = [
            colored_tx([Pixel.create(500, CHROMA_HEX), Pixel.empty()])
        ]

        snapshot = await wallet.sync()

        assert len(snapshot.unspent_colored) == 1
        assert len(snapshot.empty_colored) == 1
        assert len(snapshot.plain_btc) == 1
        assert await wallet.get_btc_balance() == 51_000

    @pytest.mark.asyncio
    async def test_yuv_balances_use_announcement(self, wallet, node, colored_tx):
        node.list_transactions_page.return_value = [
            colored_tx([Pixel.create(500, CHROMA_HEX), Pixel.create(250, CHROMA_HEX)])
        ]
        announcement = ChromaAnnouncement(
            Chroma.from_hex(CHROMA_HEX), "Token", "TKN", 2, 1_000_000, False
        )
        node.get_chroma_info.return_value = ChromaInfo(announcement, 750)
        await wallet.sync()

        balances = await wallet.get_yuv_balances()
        await wallet.get_yuv_balances()

        assert len(balances) == 1
        assert balances[0].balance == 750
        assert balances[0].symbol == "TKN"
        node.get_chroma_info.assert_awaited_once_with(CHROMA_HEX)

    @pytest.mark.asyncio
    async def test_unknown_chroma_falls_back_to_short_name(self, wallet, node, colored_tx):
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(9, CHROMA_HEX)])]
        await wallet.sync()

        info = await wallet.get_chroma_info_for_wallet(CHROMA_HEX)

        assert info.balance == 9
        assert info.name == "79b...798"
        assert info.symbol == "79b"
        assert info.decimals == 0
        assert info.total_supply == 0


class TestAnnouncement:
    @pytest.mark.asyncio
    async def test_prepare_announcement(self, wallet, fund_plain):
        utxo = fund_plain(100_000)
        await wallet.sync()
        announcement = wallet.create_announcement("Token", "TKN", 8, 21_000_000)

        tx = await wallet.prepare_announcement(announcement)

        assert isinstance(tx.tx_type, AnnouncementData)
        outputs = tx.bitcoin_tx.outputs
        assert outputs[0].script_pubkey == op_return_script(
            announcement.tag, announcement.payload()
        )
        assert outputs[0].value == 0
        assert outputs[1].script_pubkey == p2wpkh_script(wallet.pubkey)
        fee = utxo.satoshis - sum(out.value for out in outputs)
        assert 0 < fee < 1000
        _assert_signed(tx.bitcoin_tx, [utxo.satoshis])

    @pytest.mark.asyncio
    async def test_announcement_skips_empty_colored(self, wallet, node, colored_tx):
        node.list_transactions_page.return_value = [colored_tx([Pixel.empty()] * 3)]
        await wallet.sync()

        with pytest.raises(InsufficientBtcBalanceError):
            await wallet.prepare_announcement(wallet.create_announcement("Token", "TKN"))

    @pytest.mark.asyncio
    async def test_announcement_with_fee_pays_address(
        self, wallet, fund_plain, recipient_key
    ):
        fund_plain(100_000)
        await wallet.sync()
        pay_to = pubkey_to_p2wpkh_address(
            recipient_key.public_key.format(compressed=True), "regtest"
        )

        tx = await wallet.prepare_announcement_with_fee(
            wallet.create_announcement("Token", "TKN"), pay_to, 20_000
        )

        outputs = tx.bitcoin_tx.outputs
        assert len(outputs) == 3
        assert outputs[1].value == 20_000
        assert outputs[1].script_pubkey == p2wpkh_script(
            recipient_key.public_key.format(compressed=True)
        )
        assert outputs[2].script_pubkey == p2wpkh_script(wallet.pubkey)


class TestIssuance:
    @pytest.mark.asyncio
    async def test_prepare_issuance(self, wallet, fund_plain, recipient_key, recipient_address):
        utxo = fund_plain(100_000)
        await wallet.sync()
        chroma = wallet.chroma.hex()

        tx = await wallet.prepare_issuance([Payment(recipient_address, 1_000, chroma)])

        assert isinstance(tx.tx_type, IssueData)
        assert tx.tx_type.announcement.amount == 1_000
        outputs = tx.bitcoin_tx.outputs
        assert outputs[0].script_pubkey == op_return_script(tx.tx_type.announcement.to_bytes())

        pixel = Pixel.create(1_000, chroma)
        receiver = inner_key_for(recipient_key)
        assert outputs[1].script_pubkey == p2wpkh_script(pixel_public_key(receiver, pixel))
        assert outputs[1].value == 1000
        assert outputs[2].script_pubkey == p2wpkh_script(
            pixel_public_key(wallet.inner_key, Pixel.empty())
        )

        proofs = tx.tx_type.output_proofs
        assert set(proofs) == {1, 2}
        assert proofs[1] == SigPixelProof(pixel, receiver.hex())
        assert proofs[2] == EmptyPixelProof(wallet.inner_key_hex)
        assert tx.tx_type.input_proofs == {}
        _assert_signed(tx.bitcoin_tx, [utxo.satoshis])

    @pytest.mark.asyncio
    async def test_issuance_spends_empty_colored_as_pixel_input(
        self, wallet, node, colored_tx, recipient_address
    ):
        node.list_transactions_page.return_value = [colored_tx([Pixel.empty()] * 5)]
        await wallet.sync()

        tx = await wallet.prepare_issuance(
            [Payment(recipient_address, 10, wallet.chroma.hex())]
        )

        input_proofs = tx.tx_type.input_proofs
        assert len(input_proofs) == len(tx.bitcoin_tx.inputs)
        empty_key = pixel_public_key(wallet.inner_key, Pixel.empty())
        for tx_input in tx.bitcoin_tx.inputs:
            assert tx_input.witness[1] == empty_key
        _assert_signed(tx.bitcoin_tx, [1000] * len(tx.bitcoin_tx.inputs))

    @pytest.mark.asyncio
    async def test_mixed_chroma_rejected(self, wallet, fund_plain, recipient_address):
        fund_plain(100_000)
        await wallet.sync()

        with pytest.raises(MixedChromaError):
            await wallet.prepare_issuance(
                [
                    Payment(recipient_address, 1, CHROMA_HEX),
                    Payment(recipient_address, 1, OTHER_CHROMA_HEX),
                ]
            )

    @pytest.mark.asyncio
    async def test_issued_total_must_fit_128_bits(self, wallet, fund_plain, recipient_address):
        fund_plain(100_000)
        await wallet.sync()
        payment = Payment(recipient_address, 2**127 + 1, wallet.chroma.hex())

        with pytest.raises(ValueError, match="128 bits"):
            await wallet.prepare_issuance([payment, payment])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount_rejected(self, wallet, recipient_address, amount):
        payment = Payment(recipient_address, amount, wallet.chroma.hex())
        with pytest.raises(ValueError, match="positive"):
            await wallet.prepare_issuance([payment])


class TestTransfer:
    @pytest.mark.asyncio
    async def test_prepare_transfer_with_change(
        self, wallet, node, fund_plain, colored_tx, recipient_key, recipient_address
    ):
        plain = fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(500, CHROMA_HEX)])]
        await wallet.sync()

        tx = await wallet.prepare_transfer([Payment(recipient_address, 200, CHROMA_HEX)])

        assert isinstance(tx.tx_type, TransferData)
        inputs = tx.bitcoin_tx.inputs
        assert (inputs[0].txid, inputs[0].vout) == plain.outpoint
        assert len(inputs) == 2

        proofs = tx.tx_type.output_proofs
        receiver = inner_key_for(recipient_key).hex()
        assert proofs[0] == SigPixelProof(Pixel.create(200, CHROMA_HEX), receiver)
        assert proofs[1] == SigPixelProof(Pixel.create(300, CHROMA_HEX), wallet.inner_key_hex)
        assert proofs[2] == EmptyPixelProof(wallet.inner_key_hex)
        assert set(tx.tx_type.input_proofs) == {1}

        colored_key = pixel_public_key(wallet.inner_key, Pixel.create(500, CHROMA_HEX))
        assert inputs[1].witness[1] == colored_key
        _assert_signed(tx.bitcoin_tx, [100_000, 1000])

    @pytest.mark.asyncio
    async def test_exact_amount_has_no_pixel_change(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(500, CHROMA_HEX)])]
        await wallet.sync()

        tx = await wallet.prepare_transfer([Payment(recipient_address, 500, CHROMA_HEX)])

        assert len(tx.bitcoin_tx.outputs) == 2
        assert set(tx.tx_type.output_proofs) == {0, 1}

    @pytest.mark.asyncio
    async def test_insufficient_asset_balance(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(100, CHROMA_HEX)])]
        await wallet.sync()

        with pytest.raises(InsufficientAssetBalanceError) as exc_info:
            await wallet.prepare_transfer([Payment(recipient_address, 101, CHROMA_HEX)])
        assert exc_info.value.chroma == CHROMA_HEX

    @pytest.mark.asyncio
    async def test_multisig_outputs_not_spent(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        fund_plain(100_000)
        proof = MultisigPixelProof(
            Pixel.create(100, CHROMA_HEX), (wallet.inner_key_hex, "03" + "aa" * 32), 2
        )
        node.list_transactions_page.return_value = [colored_tx([proof])]
        await wallet.sync()

        assert (await wallet.get_yuv_balances())[0].balance == 100
        with pytest.raises(InsufficientAssetBalanceError):
            await wallet.prepare_transfer([Payment(recipient_address, 50, CHROMA_HEX)])

    @pytest.mark.asyncio
    async def test_empty_multisig_outputs_never_pay_fees(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        plain = fund_plain(100_000)
        proof = MultisigPixelProof(
            Pixel.create(0, CHROMA_HEX), (wallet.inner_key_hex, "03" + "aa" * 32), 2
        )
        node.list_transactions_page.return_value = [colored_tx([proof])]
        snapshot = await wallet.sync()

        assert snapshot.empty_colored == ()
        tx = await wallet.prepare_issuance(
            [Payment(recipient_address, 10, wallet.chroma.hex())]
        )
        assert {(i.txid, i.vout) for i in tx.bitcoin_tx.inputs} == {plain.outpoint}

    @pytest.mark.asyncio
    async def test_zero_amount_rejected(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(500, CHROMA_HEX)])]
        await wallet.sync()

        with pytest.raises(ValueError, match="positive"):
            await wallet.prepare_transfer(
                [
                    Payment(recipient_address, 100, CHROMA_HEX),
                    Payment(recipient_address, 0, OTHER_CHROMA_HEX),
                ]
            )


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_transfer_has_no_burn_guard(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(500, CHROMA_HEX)])]
        await wallet.sync()
        tx = await wallet.prepare_transfer([Payment(recipient_address, 200, CHROMA_HEX)])

        assert await wallet.broadcast(tx) is True

        node.send_raw_yuv_transaction.assert_awaited_once_with(tx)
        snapshot = await wallet.state.snapshot()
        assert snapshot.unspent_colored == ()
        assert snapshot.plain_btc == ()

    @pytest.mark.asyncio
    async def test_issuance_guarded_by_first_output(
        self, wallet, node, fund_plain, recipient_address
    ):
        fund_plain(100_000)
        await wallet.sync()
        tx = await wallet.prepare_issuance(
            [Payment(recipient_address, 10, wallet.chroma.hex())]
        )

        await wallet.broadcast(tx.to_dto())

        sent_tx, max_burn = node.send_raw_yuv_transaction.await_args.args
        assert sent_tx.txid == tx.txid
        assert max_burn == tx.bitcoin_tx.outputs[0].value == 0

    @pytest.mark.asyncio
    async def test_rpc_error_propagates(self, wallet, node, fund_plain):
        fund_plain(100_000)
        await wallet.sync()
        tx = await wallet.prepare_announcement(wallet.create_announcement("Token", "TKN"))
        node.send_raw_yuv_transaction.side_effect = RpcError(
            "sendrawyuvtransaction", {"code": -25, "message": "bad-txns"}
        )

        with pytest.raises(RpcError) as exc_info:
            await wallet.broadcast(tx)

        assert exc_info.value.payload == {"code": -25, "message": "bad-txns"}
        assert len((await wallet.state.snapshot()).plain_btc) == 1

    @pytest.mark.asyncio
    async def test_rejected_transaction_keeps_pools(self, wallet, node, fund_plain):
        fund_plain(100_000)
        await wallet.sync()
        tx = await wallet.prepare_announcement(wallet.create_announcement("Token", "TKN"))
        node.send_raw_yuv_transaction.return_value = False

        assert await wallet.broadcast(tx) is False
        assert len((await wallet.state.snapshot()).plain_btc) == 1

    @pytest.mark.asyncio
    async def test_transaction_status(self, wallet, node):
        node.get_raw_yuv_transaction.return_value = RawYuvTransaction(
            YuvTransactionStatus.PENDING
        )

        raw = await wallet.get_transaction_status("ab" * 32)

        assert raw.status is YuvTransactionStatus.PENDING
        node.get_raw_yuv_transaction.assert_awaited_once_with("ab" * 32)


class TestBtcMetadata:
    @pytest.mark.asyncio
    async def test_splits_spent_outputs(
        self, wallet, node, fund_plain, colored_tx, recipient_address
    ):
        plain = fund_plain(100_000)
        node.list_transactions_page.return_value = [colored_tx([Pixel.create(500, CHROMA_HEX)])]
        snapshot = await wallet.sync()
        colored = snapshot.unspent_colored[0]
        tx = await wallet.prepare_transfer([Payment(recipient_address, 200, CHROMA_HEX)])

        metadata = await wallet.to_btc_metadata(tx)

        assert metadata.txid == tx.txid
        assert metadata.btc_spent == [(plain.txid, plain.vout, 100_000)]
        assert metadata.yuv_spent == [(colored.txid, colored.vout, 1000)]
        outputs_total = sum(out.value for out in tx.bitcoin_tx.outputs)
        assert metadata.fees_paid == 101_000 - outputs_total
        assert metadata.fees_paid > 0
