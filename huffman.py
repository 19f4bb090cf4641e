import heapq
from collections.abc import Mapping
from itertools import count

from bitio import DEFAULT_ENCODING, BitBuffer, SymbolFileReader
from errors import (HuffmanError, IOFailure, StreamOpenFailure, StreamReadFailure, StreamWriteFailure,
                    MissingCodeError, CorruptStreamError, EmptyInputResult)


# Read-only tables

class _FrozenTable(Mapping):
    __slots__ = ("_data",)

    def __init__(self, data=()):
        self._data = dict(data)

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f"{type(self).__name__}({self._data!r})"


class FrequencyTable(_FrozenTable): # symbol -> count (>= 1)
    @property
    def total(self):
        return sum(self._data.values())


class CodeTable(_FrozenTable): # symbol -> bit string such as "0110"
    pass


class HuffmanNode: # Node for Huffman tree
    __slots__ = ("symbol", "frequency", "left", "right")

    def __init__(self, symbol, frequency, left=None, right=None):
        self.symbol = symbol    # character, byte or None for internal nodes
        self.frequency = frequency # weight
        self.left = left
        self.right = right

    @property
    def is_leaf(self):
        return self.left is None and self.right is None

    def __repr__(self):
        if self.symbol is not None:
            return f"HuffmanNode({self.symbol!r}, {self.frequency})"
        return f"HuffmanNode(None, {self.frequency}, ...)"


# Frequency analysis

def frequency_table(stream) -> FrequencyTable: # stream: any iterable of symbols
    counts = {}
    try:
        for symbol in stream:
            counts[symbol] = counts.get(symbol, 0) + 1
    except IOFailure as exc:
        if isinstance(exc, StreamReadFailure) and exc.partial is None:
            exc.partial = FrequencyTable(counts)
        raise
    except OSError as exc:
        raise StreamReadFailure(f"read failed after {sum(counts.values())} symbols: {exc}",
                                partial=FrequencyTable(counts)) from exc
    return FrequencyTable(counts)


def frequency_table_from_file(path, binary=False, encoding=None) -> FrequencyTable:
    with SymbolFileReader(path, binary=binary, encoding=encoding or DEFAULT_ENCODING) as source:
        return frequency_table(source)


# Tree construction

def build_huffman_tree(frequency_table) -> HuffmanNode: # frequency_table: mapping of symbol -> frequency
    if not frequency_table:
        raise EmptyInputResult("cannot build a Huffman tree from an empty frequency table")

    # Ties on weight fall back to push order; leaves are pushed in sorted symbol order
    sequence = count()
    priority_queue = [(frequency, next(sequence), HuffmanNode(symbol, frequency))
                      for symbol, frequency in sorted(frequency_table.items())]
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        merged_node = HuffmanNode(None, left.frequency + right.frequency, left, right)
        heapq.heappush(priority_queue, (merged_node.frequency, next(sequence), merged_node))

    return priority_queue[0][2] # root of the tree


def iter_nodes(root):
    """Pre-order walk over every node without recursion."""
    stack = [root] if root is not None else []
    while stack:
        node = stack.pop()
        yield node
        if node.right is not None:
            stack.append(node.right)
        if node.left is not None:
            stack.append(node.left)


def generate_huffman_codes(root) -> CodeTable: # root: root of the Huffman tree
    if root is None:
        return CodeTable()
    if root.is_leaf:
        # Lone symbol would get the empty code, force it to "0" so it can be written and walked
        return CodeTable({root.symbol: "0"})

    codes = {}
    stack = [(root, "")]
    while stack:
        node, current_code = stack.pop()
        if node.is_leaf:
            codes[node.symbol] = current_code
            continue
        stack.append((node.right, current_code + "1"))
        stack.append((node.left, current_code + "0"))
    return CodeTable(codes)


def encoded_bit_length(frequency_table, code_map) -> int:
    return sum(frequency * len(code_map[symbol]) for symbol, frequency in frequency_table.items())


# Encoding / decoding

def huffman_encode(code_map, stream, sink=None):
    """Append the code of every symbol in ``stream`` to ``sink``.

    ``sink`` is any BitSink; a fresh ``BitBuffer`` is used when omitted.
    Raises MissingCodeError for a symbol the table does not know.
    """
    if sink is None:
        sink = BitBuffer()

    try:
        for symbol in stream:
            try:
                code = code_map[symbol]
            except KeyError:
                raise MissingCodeError(symbol) from None
            for ch in code:
                sink.write_bit(1 if ch == "1" else 0)
    except IOFailure:
        raise
    except OSError as exc:
        raise StreamReadFailure(f"encode aborted: {exc}") from exc
    return sink


def _bits_of(source):
    for bit in source:
        if bit in (0, "0", False):
            yield 0
        elif bit in (1, "1", True):
            yield 1
        else:
            raise CorruptStreamError(f"not a bit: {bit!r}")


def huffman_decode(root, source, sink=None):
    """Walk ``root`` bit by bit, emitting a symbol at every leaf.

    ``source`` is a BitSource or any iterable of bits. Decoded symbols go to
    ``sink`` (anything with ``write``); without one they are returned as a list.
    """
    decoded = [] if sink is None else None
    emit = decoded.append if sink is None else sink.write

    if root is None:
        for _ in _bits_of(source):
            raise CorruptStreamError("bits present but the tree is empty")
        return decoded if sink is None else sink

    if root.is_leaf:
        # Single-symbol alphabet: every symbol was written as one 0 bit
        for bit in _bits_of(source):
            if bit != 0:
                raise CorruptStreamError("unexpected 1 bit for a single-symbol tree")
            emit(root.symbol)
        return decoded if sink is None else sink

    node = root
    depth = 0
    for bit in _bits_of(source):
        node = node.right if bit == 1 else node.left
        depth += 1
        if node is None:
            raise CorruptStreamError("bit sequence leaves the tree")

        # Leaf
        if node.symbol is not None:
            emit(node.symbol)
            node = root
            depth = 0

    if node is not root:
        raise CorruptStreamError(f"stream ended {depth} bits into a code")
    return decoded if sink is None else sink
