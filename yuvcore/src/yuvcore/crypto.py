"""
Pixel commitment engine.

A pixel output is paid to a key derived from the receiver's inner key and
the pixel itself:

    t = sha256(pixel_hash(P) || K)
    pixel_public_key(K, P) = t*G + K
    pixel_private_key(d, P) = d + t mod n

Keys are always normalized to even parity first (negating the secret when
the public key is odd), so the spending key for a colored UTXO is a pure
function of the wallet's base key and the pixel it carries.
"""

from __future__ import annotations

import hashlib

from coincurve import PrivateKey, PublicKey

from yuvcore.constants import EVEN_PARITY, ODD_PARITY, SECP256K1_N
from yuvcore.pixel import Pixel


class CryptoError(Exception):
    pass


class InvalidKeyError(CryptoError):
    """Key bytes do not encode a valid secp256k1 point or secret."""


class InvalidScalarError(CryptoError):
    """A derived scalar is zero or not below the curve order."""


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def to_x_only(pubkey: bytes) -> bytes:
    """Strip the parity byte from a compressed key; x-only keys pass through."""
    if len(pubkey) == 32:
        return pubkey
    if len(pubkey) == 33:
        return pubkey[1:]
    raise InvalidKeyError(f"Invalid public key length: {len(pubkey)}")


def with_even_parity(pubkey: bytes) -> bytes:
    """Return the 33-byte compressed key sharing ``pubkey``'s x coordinate with even y."""
    return EVEN_PARITY + to_x_only(pubkey)


def load_public_key(pubkey: bytes) -> PublicKey:
    try:
        return PublicKey(pubkey)
    except (ValueError, TypeError) as e:
        raise InvalidKeyError(f"Invalid public key {pubkey.hex()}: {e}") from e


def load_private_key(secret: bytes | str) -> PrivateKey:
    if isinstance(secret, str):
        try:
            secret = bytes.fromhex(secret)
        except ValueError as e:
            raise InvalidKeyError(f"Private key is not valid hex: {e}") from e
    if len(secret) != 32:
        raise InvalidKeyError(f"Private key must be 32 bytes, got {len(secret)}")
    _check_scalar(int.from_bytes(secret, "big"))
    return PrivateKey(secret)


def inner_key_for(private_key: PrivateKey) -> bytes:
    """Inner key announced to senders: the even-parity form of the public key."""
    return with_even_parity(private_key.public_key.format(compressed=True))


def _check_scalar(value: int) -> int:
    if value == 0 or value >= SECP256K1_N:
        raise InvalidScalarError("Scalar is zero or exceeds the curve order")
    return value


def pixel_hash(pixel: Pixel) -> bytes:
    """hash(hash(Y) || UV)"""
    luma_hash = sha256(pixel.luma.to_bytes())
    return sha256(luma_hash + pixel.chroma.xonly)


def _tweak(pixel: Pixel, even_key: bytes) -> int:
    return _check_scalar(int.from_bytes(sha256(pixel_hash(pixel) + even_key), "big"))


def pixel_private_key(private_key: PrivateKey, pixel: Pixel) -> PrivateKey:
    """Derive the secret that spends an output carrying ``pixel``."""
    pubkey = private_key.public_key.format(compressed=True)
    secret = int.from_bytes(private_key.secret, "big")

    if pubkey[:1] == ODD_PARITY:
        secret = SECP256K1_N - secret
    even_key = with_even_parity(pubkey)

    tweaked = (secret + _tweak(pixel, even_key)) % SECP256K1_N
    _check_scalar(tweaked)
    return PrivateKey(tweaked.to_bytes(32, "big"))


def pixel_public_key(inner_key: bytes, pixel: Pixel) -> bytes:
    """Derive the compressed public key an output carrying ``pixel`` pays to."""
    even_key = with_even_parity(inner_key)
    point = load_public_key(even_key)
    tweak = _tweak(pixel, even_key)

    try:
        tweak_point = PublicKey.from_secret(tweak.to_bytes(32, "big"))
        result = PublicKey.combine_keys([tweak_point, point])
    except ValueError as e:
        # t*G == -K, the sum is the point at infinity
        raise InvalidScalarError(f"Pixel key derivation failed: {e}") from e
    return result.format(compressed=True)


def derive_spending_key(private_key: PrivateKey, pixel: Pixel | None) -> PrivateKey:
    """
    Key that signs an input.

    Plain inputs are signed with the base key, colored inputs with the key
    tweaked by their pixel. The result is derived on every call and never
    cached across pixels.
    """
    if pixel is None:
        return private_key
    return pixel_private_key(private_key, pixel)
