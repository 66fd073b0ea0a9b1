"""
Text decoding for staged file content.

Transforms operate on text, but the staged copy must be written back with the
same encoding it was read with. A byte order mark selects the encoding and is
kept so the rewritten file starts with the same bytes; otherwise the default
encoding is used. Undecodable bytes survive a decode/encode cycle through the
surrogateescape error handler.
"""

import codecs
from typing import NamedTuple

from .constants import DEFAULT_ENCODING

# Longer marks first: the UTF-32 LE mark starts with the UTF-16 LE mark
_BYTE_ORDER_MARKS = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

_ERRORS = "surrogateescape"


class DecodedText(NamedTuple):
    """Text content together with the encoding details needed to write it back."""
    text: str
    encoding: str
    bom: bytes = b""

    def encode(self, text: str) -> bytes:
        """Encode new text with the same encoding and byte order mark."""
        return encode_text(text, self.encoding, self.bom)


def decode_text(data: bytes, default_encoding: str = DEFAULT_ENCODING) -> DecodedText:
    """
    Decode file content, detecting the encoding from a byte order mark.

    Args:
        data: Raw file bytes
        default_encoding: Encoding used when no byte order mark is present

    Returns:
        DecodedText with the text, the encoding, and the mark that was stripped
    """
    for bom, encoding in _BYTE_ORDER_MARKS:
        if data.startswith(bom):
            return DecodedText(data[len(bom):].decode(encoding, _ERRORS), encoding, bom)
    return DecodedText(data.decode(default_encoding, _ERRORS), default_encoding)


def encode_text(text: str, encoding: str, bom: bytes = b"") -> bytes:
    """Encode text, prefixing the given byte order mark."""
    return bom + text.encode(encoding, _ERRORS)
