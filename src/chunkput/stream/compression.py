"""Optional compression stage for upload streams.

Formats mirror the web ``CompressionStream`` identifiers, so the value can
be sent verbatim as ``content-encoding``:

* ``"gzip"`` -- gzip container (RFC 1952).
* ``"deflate"`` -- zlib container (RFC 1950).
* ``"deflate-raw"`` -- raw DEFLATE (RFC 1951).
"""

from __future__ import annotations

import zlib
from collections.abc import AsyncIterable, AsyncIterator

from chunkput.config import SUPPORTED_COMPRESSION_FORMATS
from chunkput.errors import UnsupportedCompressionError

_WBITS: dict[str, int] = {
    "gzip": 16 + zlib.MAX_WBITS,
    "deflate": zlib.MAX_WBITS,
    "deflate-raw": -zlib.MAX_WBITS,
}


def compressor(fmt: str) -> zlib._Compress:
    """Return a fresh streaming compressor for *fmt*."""
    try:
        wbits = _WBITS[fmt]
    except KeyError:
        raise UnsupportedCompressionError(
            message=f"Unsupported compression format: {fmt!r}",
            context={"format": fmt, "supported": list(SUPPORTED_COMPRESSION_FORMATS)},
        ) from None
    return zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, wbits)


async def compress_blocks(
    blocks: AsyncIterable[bytes],
    fmt: str,
) -> AsyncIterator[bytes]:
    """Wrap *blocks* so that it yields the compressed stream.

    Empty compressor outputs are skipped; the trailer is yielded after the
    input is exhausted.
    """
    comp = compressor(fmt)
    iterator = blocks.__aiter__()
    try:
        async for block in iterator:
            out = comp.compress(block)
            if out:
                yield out
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
    tail = comp.flush()
    if tail:
        yield tail


def compress_bytes(data: bytes, fmt: str) -> bytes:
    """Compress a whole buffer in one go."""
    comp = compressor(fmt)
    return comp.compress(data) + comp.flush()
