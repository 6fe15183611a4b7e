"""
Shared pieces of the JSON wire models exchanged with the YUV node.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictInt, StrictStr


def parse_amount(value: Any) -> int:
    """
    Parse an integer amount received over the wire.

    Accepts JSON integers, decimal strings and decimal strings with a
    trailing ``n`` (bigint notation). Floats and booleans are rejected so
    that no amount ever loses precision.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("n"):
            text = text[:-1]
        if text and (text.isdigit() or (text[0] == "-" and text[1:].isdigit())):
            return int(text)
    raise ValueError(f"Invalid amount: {value!r}")


Amount = Annotated[int, BeforeValidator(parse_amount), Field(ge=0)]
HexStr = Annotated[StrictStr, Field(pattern=r"^(?:[0-9a-fA-F]{2})+$")]
ChromaHex = Annotated[StrictStr, Field(pattern=r"^[0-9a-fA-F]{64}(?:[0-9a-fA-F]{2})?$")]
ByteValue = Annotated[StrictInt, Field(ge=0, le=0xFF)]
# Proof maps are keyed by the input/output ordinal as a decimal string
Ordinal = Annotated[StrictStr, Field(pattern=r"^[0-9]+$")]


class WireModel(BaseModel):
    """Base of the node DTOs: immutable, unknown keys ignored."""

    model_config = ConfigDict(frozen=True)
