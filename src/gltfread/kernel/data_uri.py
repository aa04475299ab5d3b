"""Decoding of ``data:`` URIs (RFC 2397), base64 or percent-encoded."""

import base64
import binascii
from typing import NamedTuple
from urllib.parse import unquote_to_bytes

DATA_URI_PREFIX = "data:"


class DataUriError(ValueError):
    """Raised when a data URI cannot be decoded."""
    pass


class DataUri(NamedTuple):
    mime_type: str
    data: bytes


def is_data_uri(uri: str) -> bool:
    return uri[:len(DATA_URI_PREFIX)].lower() == DATA_URI_PREFIX


def decode_data_uri(uri: str) -> DataUri:
    """Decode a data URI into its media type and payload bytes.

    ``data:[<mediatype>][;base64],<data>``; the media type defaults to
    ``text/plain`` when absent.

    Raises:
        DataUriError: If ``uri`` is not a data URI or its payload is invalid
    """
    if not is_data_uri(uri):
        raise DataUriError("Not a data URI.")

    header, separator, payload = uri[len(DATA_URI_PREFIX):].partition(",")
    if not separator:
        raise DataUriError("Data URI has no ',' separating the header from the data.")

    params = header.split(";")
    mime_type = params[0].strip().lower() or "text/plain"
    is_base64 = any(p.strip().lower() == "base64" for p in params[1:])

    if not is_base64:
        return DataUri(mime_type, unquote_to_bytes(payload))

    # Whitespace and percent-escapes are tolerated inside base64 payloads
    encoded = unquote_to_bytes(payload).translate(None, b" \t\r\n")
    encoded += b"=" * (-len(encoded) % 4)
    try:
        return DataUri(mime_type, base64.b64decode(encoded, validate=True))
    except (binascii.Error, ValueError) as e:
        raise DataUriError(f"Invalid base64 data in data URI: {e}")
