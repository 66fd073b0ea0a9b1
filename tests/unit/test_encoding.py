# tests/unit/test_encoding.py

import codecs

import pytest

from fileoverlay.io.encoding import decode_text, encode_text


def test_plain_utf8_uses_default_encoding():
    decoded = decode_text("héllo".encode("utf-8"))
    assert decoded.text == "héllo"
    assert decoded.encoding == "utf-8"
    assert decoded.bom == b""


def test_default_encoding_is_configurable():
    decoded = decode_text("café".encode("latin-1"), default_encoding="latin-1")
    assert decoded.text == "café"
    assert decoded.encode(decoded.text) == "café".encode("latin-1")


@pytest.mark.parametrize("bom, encoding", [
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
])
def test_byte_order_mark_selects_encoding_and_is_kept(bom, encoding):
    data = bom + "<p>text</p>".encode(encoding)
    decoded = decode_text(data)

    assert decoded.text == "<p>text</p>"
    assert decoded.encoding == encoding
    assert decoded.encode("<p>new</p>") == bom + "<p>new</p>".encode(encoding)


def test_undecodable_bytes_survive_rewrite():
    data = b"abc\xff\xfedef"
    decoded = decode_text(data)
    assert encode_text(decoded.text, decoded.encoding, decoded.bom) == data
