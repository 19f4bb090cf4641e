"""
End-to-end Huffman compression.

In memory: ``compress`` turns a str/bytes value into a CompressionResult and
``decompress`` turns a tree plus bits back into the original value.

On disk: ``compress_file`` reads the input twice (frequencies, then codes),
writes the bits to a bit file and hands back the tree, which is the only key
needed by ``decompress_file``. The bit file does not carry the tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import huffman as huff
from bitio import (DEFAULT_ENCODING, BitBuffer, BitFileReader, BitFileWriter, ListSymbolSink,
                   SymbolFileReader, SymbolFileWriter, as_bit_source)

logger = logging.getLogger(__name__)


@dataclass
class CompressionResult:
    tree: Optional[huff.HuffmanNode]
    codes: huff.CodeTable
    frequencies: huff.FrequencyTable
    bits: BitBuffer
    binary: bool

    @property
    def bit_length(self) -> int:
        return len(self.bits)

    def packed(self) -> Tuple[bytes, int]:
        return self.bits.to_bytes()


def _build(frequencies: huff.FrequencyTable) -> Tuple[Optional[huff.HuffmanNode], huff.CodeTable]:
    if not frequencies:
        return None, huff.CodeTable()
    root = huff.build_huffman_tree(frequencies)
    return root, huff.generate_huffman_codes(root)


def compress(data: Union[str, bytes]) -> CompressionResult:
    binary = isinstance(data, (bytes, bytearray))
    frequencies = huff.frequency_table(data)
    root, codes = _build(frequencies)
    bits = huff.huffman_encode(codes, data)
    logger.debug("compressed %d symbols (%d distinct) into %d bits",
                 len(data), len(frequencies), len(bits))
    return CompressionResult(root, codes, frequencies, bits, binary)


def decompress(tree, bits, binary: bool = False) -> Union[str, bytes]:
    if isinstance(bits, CompressionResult):
        binary = bits.binary
        bits = bits.bits
    symbols = huff.huffman_decode(tree, as_bit_source(bits))
    return bytes(symbols) if binary else "".join(symbols)


def compress_file(src, dst, binary: bool = False, encoding: str = DEFAULT_ENCODING):
    """Compress ``src`` into the bit file ``dst`` and return the Huffman tree (None when src is empty)."""
    try:
        with SymbolFileReader(src, binary=binary, encoding=encoding) as source:
            frequencies = huff.frequency_table(source)
            root, codes = _build(frequencies)
            logger.debug("%s: %d symbols, %d distinct", src, frequencies.total, len(frequencies))
            with BitFileWriter(dst) as sink:
                huff.huffman_encode(codes, source, sink)
    except huff.IOFailure as exc:
        logger.error("compression of %s failed: %s", src, exc)
        raise
    return root


def decompress_file(tree, src, dst, binary: bool = False, encoding: str = DEFAULT_ENCODING) -> int:
    """Decode the bit file ``src`` with ``tree`` into ``dst``; returns the number of symbols written."""
    sink = ListSymbolSink()
    try:
        with BitFileReader(src) as source:
            huff.huffman_decode(tree, source, sink)
        with SymbolFileWriter(dst, binary=binary, encoding=encoding) as out:
            for symbol in sink.symbols:
                out.write(symbol)
    except huff.IOFailure as exc:
        logger.error("decompression of %s failed: %s", src, exc)
        raise
    logger.debug("%s: wrote %d symbols to %s", src, len(sink.symbols), dst)
    return len(sink.symbols)
