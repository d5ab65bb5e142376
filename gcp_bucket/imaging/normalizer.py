"""
Buffer normalization.

Turns any supported file-data representation into bytes:

- bytes pass through unchanged (bytearray/memoryview are copied)
- str is decoded as base64
- blob-like objects (anything with read(), sync or async) are read fully
"""

import base64
import binascii
import inspect
from typing import Any

from gcp_bucket.errors import BlobReadError, InvalidInputKind
from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)


def _is_blob_like(source: Any) -> bool:
    return callable(getattr(source, "read", None))


async def _read_blob(source: Any) -> bytes:
    try:
        data = source.read()
        if inspect.isawaitable(data):
            data = await data
    except Exception as e:
        logger.error(f"Blob read failed: {e}", exc_info=True)
        raise BlobReadError(str(e)) from e

    if isinstance(data, (bytearray, memoryview)):
        data = bytes(data)
    if not isinstance(data, bytes):
        raise BlobReadError(f"read() returned {type(data).__name__}, expected bytes")
    return data


async def normalize(source: Any) -> bytes:
    """
    Convert file data into a bytes buffer.

    Args:
        source: bytes, bytearray, memoryview, base64 str, or blob-like

    Returns:
        The data as bytes

    Raises:
        InvalidInputKind: If source is none of the supported shapes, or is
            malformed base64
        BlobReadError: If reading a blob-like source fails
    """
    if isinstance(source, bytes):
        return source

    if isinstance(source, (bytearray, memoryview)):
        return bytes(source)

    if isinstance(source, str):
        try:
            return base64.b64decode(source)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputKind(f"Invalid base64 file data: {e}") from e

    if _is_blob_like(source):
        data = await _read_blob(source)
        logger.debug(f"Read {len(data)} bytes from {type(source).__name__}")
        return data

    raise InvalidInputKind(
        f"Invalid file data type {type(source).__name__}. Provide bytes, base64 text, or a blob."
    )
