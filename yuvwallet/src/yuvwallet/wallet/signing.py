"""
Bitcoin transaction signing utilities for P2WPKH inputs.

Both plain and pixel inputs are P2WPKH: a pixel input is paid to the
pixel-tweaked public key and is signed with the matching tweaked secret.
"""

from __future__ import annotations

import struct

from coincurve import PrivateKey

from yuvcore.bitcoin import BitcoinTransaction, hash160, hash256

SIGHASH_ALL = 1


class TransactionSigningError(Exception):
    pass


def compute_sighash_segwit(
    tx: BitcoinTransaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash for a segwit v0 input."""
    if input_index >= len(tx.inputs):
        raise TransactionSigningError(f"Input index {input_index} out of range")

    hash_prevouts = hash256(b"".join(inp.serialize_outpoint() for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + target_input.serialize_outpoint()
        + bytes([len(script_code)])
        + script_code
        + value.to_bytes(8, "little")
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + sighash_type.to_bytes(4, "little")
    )

    return hash256(preimage)


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """Create the scriptCode for P2WPKH signing (BIP 143).

    For P2WPKH, the scriptCode is the P2PKH script:
    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return b"\x76\xa9\x14" + hash160(pubkey_bytes) + b"\x88\xac"


def sign_p2wpkh_input(
    tx: BitcoinTransaction,
    input_index: int,
    value: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> list[bytes]:
    """Sign a P2WPKH input using coincurve.

    Args:
        tx: The transaction to sign
        input_index: Index of the input to sign
        value: The value of the input being spent (in satoshis)
        private_key: coincurve PrivateKey that owns the spent output
        sighash_type: Sighash type (default SIGHASH_ALL = 1)

    Returns:
        Witness stack: DER signature with sighash byte, compressed pubkey
    """
    pubkey = private_key.public_key.format(compressed=True)
    script_code = create_p2wpkh_script_code(pubkey)
    sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)

    # coincurve's sign() with hasher=None skips hashing, sighash is already SHA256d
    signature = private_key.sign(sighash, hasher=None)

    return [signature + bytes([sighash_type]), pubkey]
