"""
Bitcoin address utilities.

P2WPKH addresses hold the wallet's plain satoshis. The wallet's YUV address
is a witness v1 (bech32m) address whose program is the untweaked x-only
inner key, so senders can recover the key that pixel outputs are derived
from.

Witness v0 goes through the ``bech32`` package directly. It only knows the
original bech32 constant, so witness v1 reuses its polymod with the BIP350
constant.
"""

from __future__ import annotations

import base58
import bech32

from yuvcore.bitcoin import hash160

BECH32M_CONST = 0x2BC830A3

# Legacy version byte -> (script prefix, script suffix)
LEGACY_SCRIPTS = {
    0x00: (b"\x76\xa9\x14", b"\x88\xac"),
    0x6F: (b"\x76\xa9\x14", b"\x88\xac"),
    0x05: (b"\xa9\x14", b"\x87"),
    0xC4: (b"\xa9\x14", b"\x87"),
}


def network_hrp(network: str) -> str:
    return "bc" if network == "mainnet" else "bcrt" if network == "regtest" else "tb"


def _bech32m_encode(hrp: str, witver: int, program: bytes) -> str:
    data = [witver] + bech32.convertbits(program, 8, 5)
    polymod = bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data + [0] * 6)
    polymod ^= BECH32M_CONST
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(bech32.CHARSET[d] for d in data + checksum)


def _bech32m_decode(hrp: str, address: str) -> tuple[int, bytes]:
    """Split a bech32m address into witness version and program."""
    address = address.lower()
    separator = address.rfind("1")
    if address[:separator] != hrp or separator + 7 > len(address):
        raise ValueError(f"Invalid bech32m address: {address}")

    try:
        data = [bech32.CHARSET.index(c) for c in address[separator + 1 :]]
    except ValueError as e:
        raise ValueError(f"Invalid bech32m character in {address}") from e

    if bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + data) != BECH32M_CONST:
        raise ValueError(f"Invalid bech32m checksum: {address}")

    program = bech32.convertbits(data[1:-6], 5, 8, False)
    if program is None or not 2 <= len(program) <= 40:
        raise ValueError(f"Invalid witness program in {address}")
    return data[0], bytes(program)


def _address_hrp(address: str) -> str:
    lowered = address.lower()
    if lowered.startswith("bcrt1"):
        return "bcrt"
    if lowered.startswith(("bc1", "tb1")):
        return lowered[:2]
    raise ValueError(f"Not a segwit address: {address}")


def _is_bech32m(hrp: str, address: str) -> bool:
    # Witness version 0 is encoded as "q"
    return address[len(hrp) + 1].lower() != "q"


def pubkey_to_p2wpkh_address(pubkey: bytes, network: str = "mainnet") -> str:
    """
    Convert compressed public key to P2WPKH (native segwit) address.
    BIP173 bech32 encoding.
    """
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return bech32.encode(network_hrp(network), 0, hash160(pubkey))


def pubkey_to_p2tr_address(pubkey: bytes, network: str = "mainnet") -> str:
    """Witness v1 address carrying the x-only key without a taproot tweak."""
    if len(pubkey) == 33:
        pubkey = pubkey[1:]
    if len(pubkey) != 32:
        raise ValueError(f"Invalid x-only pubkey length: {len(pubkey)}")
    return _bech32m_encode(network_hrp(network), 1, pubkey)


def p2tr_address_to_inner_key(address: str) -> bytes:
    """Recover the receiver's even-parity inner key from a YUV address."""
    hrp = _address_hrp(address)
    if not _is_bech32m(hrp, address):
        raise ValueError(f"Expected witness version 1 address: {address}")
    witver, program = _bech32m_decode(hrp, address)
    if witver != 1 or len(program) != 32:
        raise ValueError(f"Invalid witness v1 program in {address}")
    return b"\x02" + program


def address_to_scriptpubkey(address: str) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Supports P2WPKH, P2WSH, P2TR, P2PKH and P2SH on every network.
    """
    try:
        hrp = _address_hrp(address)
    except ValueError:
        return _legacy_scriptpubkey(address)

    if _is_bech32m(hrp, address):
        witver, program = _bech32m_decode(hrp, address)
        if witver != 1 or len(program) != 32:
            raise ValueError(f"Unsupported witness version: {witver}")
        # OP_1 <32-byte-key>
        return bytes([0x51, len(program)]) + program

    witver, program_data = bech32.decode(hrp, address)
    if witver != 0 or program_data is None:
        raise ValueError(f"Invalid bech32 address: {address}")
    # OP_0 <20-byte-pubkeyhash or 32-byte-scripthash>
    return bytes([0x00, len(program_data)]) + bytes(program_data)


def _legacy_scriptpubkey(address: str) -> bytes:
    decoded = base58.b58decode_check(address)
    if len(decoded) != 21 or decoded[0] not in LEGACY_SCRIPTS:
        raise ValueError(f"Unknown address version: {decoded[:1].hex()}")
    prefix, suffix = LEGACY_SCRIPTS[decoded[0]]
    return prefix + decoded[1:] + suffix
