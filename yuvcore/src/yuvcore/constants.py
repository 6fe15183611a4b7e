"""
YUV protocol and Bitcoin constants.

The protocol tag prefixes every announcement embedded in an OP_RETURN output:
the ASCII bytes "yuv", a version byte and the announcement kind.
"""

from __future__ import annotations

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

# Even-parity prefix of a compressed public key
EVEN_PARITY = b"\x02"
ODD_PARITY = b"\x03"

# Luma encoding: 16-byte big-endian amount padded to 32 bytes
LUMA_SIZE = 32
BLINDING_FACTOR_SIZE = 16
MAX_LUMA_AMOUNT = (1 << 128) - 1

CHROMA_SIZE = 32
# "No asset" chroma carried by plain-BTC outputs
EMPTY_CHROMA_BYTES = bytes([0x02] * CHROMA_SIZE)

PROTOCOL_TAG = b"yuv"
PROTOCOL_VERSION = 0x00
ANNOUNCEMENT_KIND_CHROMA = 0x00
ANNOUNCEMENT_KIND_ISSUE = 0x02

# Fixed-width issue amount in the issue announcement (little-endian u128)
ISSUE_AMOUNT_SIZE = 16

# Satoshis attached to pixel outputs and to the change output template
PIXEL_OUTPUT_SATOSHIS = 1000

# Records per page returned by the node's transaction listing
TRANSACTIONS_PAGE_SIZE = 100
