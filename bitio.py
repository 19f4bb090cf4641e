"""
Bit and symbol streams used around the Huffman core.

The core only needs four small capabilities: a symbol source, a symbol sink,
a bit sink and a bit source. This module defines them and provides an
in-memory bit buffer plus file-backed versions of each.

Bits are packed most significant bit first. A bit file ends with one extra
byte holding the number of valid bits in the last data byte, so trailing
padding is never mistaken for code bits.
"""

from __future__ import annotations

import codecs
import logging
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from errors import CorruptStreamError, StreamOpenFailure, StreamReadFailure, StreamWriteFailure

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

Symbol = Union[str, int]


# Capability contracts

class _Closing:
    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self.close()


class SymbolSource(_Closing, ABC):
    @abstractmethod
    def __iter__(self) -> Iterator[Symbol]:
        raise NotImplementedError


class SymbolSink(_Closing, ABC):
    @abstractmethod
    def write(self, symbol: Symbol) -> None:
        raise NotImplementedError


class BitSink(_Closing, ABC):
    @abstractmethod
    def write_bit(self, bit: int) -> None:
        raise NotImplementedError

    def write_bits(self, bits: Iterable[int]) -> None:
        for bit in bits:
            self.write_bit(bit)


class BitSource(_Closing, ABC):
    @abstractmethod
    def has_next(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def read_bit(self) -> int:
        raise NotImplementedError

    def __iter__(self) -> Iterator[int]:
        while self.has_next():
            yield self.read_bit()


def _check_bit(bit) -> int:
    if bit not in (0, 1):
        raise CorruptStreamError(f"Got unexpected bit: {bit!r}")
    return int(bit)


# In-memory

class BitBuffer(BitSink, BitSource):
    """Growable bit sequence that can be written, then read back from the start."""

    def __init__(self, bits: Iterable[int] = ()):
        self._bits: List[int] = [_check_bit(b) for b in bits]
        self._pos = 0

    @classmethod
    def from_bytes(cls, packed: bytes, pad_bits: int = 0) -> "BitBuffer":
        if not 0 <= pad_bits < 8 or (pad_bits and not packed):
            raise CorruptStreamError(f"invalid pad bit count {pad_bits}")
        total_bits = len(packed) * 8 - pad_bits
        buf = cls()
        buf._bits = [(byte >> i) & 1 for byte in packed for i in range(7, -1, -1)][:total_bits]
        return buf

    def write_bit(self, bit: int) -> None:
        self._bits.append(_check_bit(bit))

    def has_next(self) -> bool:
        return self._pos < len(self._bits)

    def read_bit(self) -> int:
        if self._pos >= len(self._bits):
            raise EOFError("no more bits")
        bit = self._bits[self._pos]
        self._pos += 1
        return bit

    def rewind(self) -> None:
        self._pos = 0

    def __iter__(self) -> Iterator[int]:
        # independent of the read_bit cursor, so the same buffer can be decoded again
        return iter(self._bits)

    def to_bytes(self) -> Tuple[bytes, int]:
        """
        Pack the bits into bytes
        Returns (packed_bytes, pad_bits) where pad_bits is number of 0 bits added at the end
        """
        out = bytearray()
        acc = 0
        acc_bits = 0
        for bit in self._bits:
            acc = (acc << 1) | bit
            acc_bits += 1
            if acc_bits == 8:
                out.append(acc)
                acc = 0
                acc_bits = 0

        pad_bits = 0
        if acc_bits != 0:
            pad_bits = 8 - acc_bits
            out.append((acc << pad_bits) & 0xFF)
        return bytes(out), pad_bits

    @property
    def bits(self) -> str:
        return "".join("1" if b else "0" for b in self._bits)

    def truncated(self, n_bits: int) -> "BitBuffer":
        return BitBuffer(self._bits[:n_bits])

    def __len__(self) -> int:
        return len(self._bits)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BitBuffer):
            return NotImplemented
        return self._bits == other._bits

    def __repr__(self) -> str:
        return f"BitBuffer('{self.bits}')"


# Files

def _open(path, mode: str, **kwargs):
    try:
        return open(path, mode, **kwargs)
    except OSError as exc:
        logger.error("Cannot open %s: %s", path, exc)
        raise StreamOpenFailure(f"cannot open {path}: {exc}") from exc


class BitFileWriter(BitSink):
    def __init__(self, path):
        self.path = path
        self._out = _open(path, "wb")
        self._current_byte = 0
        self._bits_in_byte = 0
        self._bytes_written = 0

    def write_bit(self, bit: int) -> None:
        if self._out is None:
            raise StreamWriteFailure(f"{self.path} is closed")
        # Push the bit onto the byte buffer, writing a full byte at a time
        self._current_byte = (self._current_byte << 1) | _check_bit(bit)
        self._bits_in_byte += 1
        if self._bits_in_byte == 8:
            self._write(bytes([self._current_byte]))
            self._current_byte = 0
            self._bits_in_byte = 0

    def _write(self, chunk: bytes) -> None:
        try:
            self._out.write(chunk)
        except OSError as exc:
            raise StreamWriteFailure(f"write to {self.path} failed: {exc}") from exc
        self._bytes_written += len(chunk)

    def close(self) -> None:
        if self._out is None:
            return
        try:
            if self._bits_in_byte:
                valid = self._bits_in_byte
                self._write(bytes([(self._current_byte << (8 - valid)) & 0xFF]))
            else:
                valid = 8 if self._bytes_written else 0
            self._write(bytes([valid]))
        finally:
            out, self._out = self._out, None
            try:
                out.close()
            except OSError as exc:
                raise StreamWriteFailure(f"cannot close {self.path}: {exc}") from exc


class BitFileReader(BitSource):
    def __init__(self, path):
        self.path = path
        self._in = _open(path, "rb")
        try:
            data = self._in.read()
        except OSError as exc:
            self._in.close()
            raise StreamReadFailure(f"read from {path} failed: {exc}") from exc

        if not data:
            self._in.close()
            raise CorruptStreamError(f"{path} is missing its trailing bit count")
        valid_in_last = data[-1]
        payload = data[:-1]
        if valid_in_last > 8 or (payload and valid_in_last == 0) or (not payload and valid_in_last):
            self._in.close()
            raise CorruptStreamError(f"{path} has a bad trailing bit count {valid_in_last}")

        self._total_bits = len(payload) * 8 - (8 - valid_in_last) if payload else 0
        self._payload = payload
        self._pos = 0

    def has_next(self) -> bool:
        return self._pos < self._total_bits

    def read_bit(self) -> int:
        if self._pos >= self._total_bits:
            raise EOFError("no more bits")
        byte = self._payload[self._pos >> 3]
        bit = (byte >> (7 - (self._pos & 7))) & 1
        self._pos += 1
        return bit

    def close(self) -> None:
        if self._in is not None:
            self._in.close()
            self._in = None


class SymbolFileReader(SymbolSource):
    """Characters (text mode) or byte values (binary mode) of a file, one at a time.

    Text is decoded incrementally, so when a bad byte turns up every character
    before it has already been yielded.
    """

    def __init__(self, path, binary: bool = False, encoding: str = DEFAULT_ENCODING):
        self.path = path
        self.binary = binary
        self.encoding = encoding
        self._in = _open(path, "rb")

    @property
    def closed(self) -> bool:
        return self._in is None

    def __iter__(self) -> Iterator[Symbol]:
        if self._in is None:
            raise StreamReadFailure(f"{self.path} is closed")
        self._in.seek(0)
        decoder = None if self.binary else codecs.getincrementaldecoder(self.encoding)()
        while True:
            try:
                chunk = self._in.read(65536)
            except OSError as exc:
                raise StreamReadFailure(f"read from {self.path} failed: {exc}") from exc
            if decoder is None:
                if not chunk:
                    return
                yield from chunk # bytes iterate as ints
                continue

            try:
                text = decoder.decode(chunk, final=not chunk)
            except UnicodeDecodeError as exc:
                yield from exc.object[:exc.start].decode(self.encoding)
                raise StreamReadFailure(f"cannot decode {self.path}: {exc}") from exc
            yield from text
            if not chunk:
                return

    def close(self) -> None:
        if self._in is not None:
            self._in.close()
            self._in = None


class SymbolFileWriter(SymbolSink):
    def __init__(self, path, binary: bool = False, encoding: str = DEFAULT_ENCODING):
        self.path = path
        self.binary = binary
        if binary:
            self._out = _open(path, "wb")
        else:
            self._out = _open(path, "w", encoding=encoding, newline="")

    def write(self, symbol: Symbol) -> None:
        if self._out is None:
            raise StreamWriteFailure(f"{self.path} is closed")
        try:
            self._out.write(bytes([symbol]) if self.binary else symbol)
        except (OSError, UnicodeEncodeError) as exc:
            raise StreamWriteFailure(f"write to {self.path} failed: {exc}") from exc

    def close(self) -> None:
        if self._out is None:
            return
        out, self._out = self._out, None
        try:
            out.close()
        except OSError as exc:
            raise StreamWriteFailure(f"cannot close {self.path}: {exc}") from exc


class ListSymbolSink(SymbolSink):
    def __init__(self):
        self.symbols: List[Symbol] = []

    def write(self, symbol: Symbol) -> None:
        self.symbols.append(symbol)


def as_bit_source(bits: Union[BitSource, Iterable[int], str, None]) -> Optional[BitSource]:
    if bits is None or isinstance(bits, BitSource):
        return bits
    if isinstance(bits, str):
        return BitBuffer(int(ch) for ch in bits)
    return BitBuffer(bits)
