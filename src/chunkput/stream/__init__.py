"""chunkput.stream -- read, compress and chunk upload sources.

The stages compose as async iterators::

    reader = SourceReader(source, block_size)
    blocks = compress_blocks(reader, "gzip")   # optional
    acc = ChunkAccumulator(chunk_size)
"""

from __future__ import annotations

from .chunker import ChunkAccumulator
from .compression import compress_blocks, compress_bytes, compressor
from .source import SourceReader, as_bytes, read_all, source_name, source_size

__all__ = [
    "ChunkAccumulator",
    "SourceReader",
    "as_bytes",
    "compress_blocks",
    "compress_bytes",
    "compressor",
    "read_all",
    "source_name",
    "source_size",
]
