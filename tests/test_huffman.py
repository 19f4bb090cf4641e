from fractions import Fraction
from itertools import permutations

import pytest

import huffman as huff
from bitio import BitBuffer


def _build(data):
    ft = huff.frequency_table(data)
    root = huff.build_huffman_tree(ft)
    return ft, root, huff.generate_huffman_codes(root)


# Frequency analysis

def test_frequency_counts():
    ft = huff.frequency_table("abracadabra")
    assert ft == {"a": 5, "b": 2, "r": 2, "c": 1, "d": 1}
    assert ft.total == 11


def test_frequency_empty_stream():
    ft = huff.frequency_table("")
    assert len(ft) == 0
    assert ft.total == 0


def test_frequency_is_idempotent_and_order_independent():
    data = "mississippi river"
    assert huff.frequency_table(data) == huff.frequency_table(data)
    assert huff.frequency_table(data) == huff.frequency_table(sorted(data))


def test_frequency_table_is_read_only():
    ft = huff.frequency_table("aab")
    with pytest.raises(TypeError):
        ft["a"] = 10


def test_frequency_bytes_are_ints():
    ft = huff.frequency_table(b"\x00\x00\x01")
    assert ft == {0: 2, 1: 1}


def test_frequency_read_failure_keeps_partial_table():
    def flaky():
        yield "a"
        yield "b"
        yield "a"
        raise OSError("disk went away")

    with pytest.raises(huff.StreamReadFailure) as info:
        huff.frequency_table(flaky())
    assert info.value.partial == {"a": 2, "b": 1}


def test_frequency_from_missing_file(tmp_path):
    with pytest.raises(huff.StreamOpenFailure):
        huff.frequency_table_from_file(tmp_path / "nope.txt")


def test_frequency_from_file(tmp_path):
    path = tmp_path / "in.txt"
    path.write_text("hello", encoding="utf-8")
    assert huff.frequency_table_from_file(path) == {"h": 1, "e": 1, "l": 2, "o": 1}


# Tree construction

def test_empty_table_is_rejected():
    with pytest.raises(huff.EmptyInputResult):
        huff.build_huffman_tree({})


def test_single_symbol_tree_is_a_leaf():
    root = huff.build_huffman_tree(huff.frequency_table("aaaa"))
    assert root.is_leaf
    assert root.symbol == "a"
    assert root.frequency == 4


def test_two_symbols():
    ft, root, codes = _build("aabb")
    assert ft == {"a": 2, "b": 2}
    assert not root.is_leaf
    assert root.left.is_leaf and root.right.is_leaf
    assert sorted(codes.values()) == ["0", "1"]
    assert len(huff.huffman_encode(codes, "aabb")) == 4


def test_ties_are_broken_deterministically():
    # equal weights: lower symbol and earlier pushes end up on the left
    _, _, codes = _build("aabb")
    assert codes == {"a": "0", "b": "1"}
    data = "the quick brown fox jumps over the lazy dog"
    assert _build(data)[2] == _build(data)[2]


def test_weight_invariant():
    ft, root, _ = _build("it was the best of times, it was the worst of times")
    assert root.frequency == ft.total
    for node in huff.iter_nodes(root):
        if node.is_leaf:
            assert node.symbol is not None
            assert node.frequency == ft[node.symbol]
        else:
            assert node.symbol is None
            assert node.left is not None and node.right is not None
            assert node.frequency == node.left.frequency + node.right.frequency


def test_null_symbol_is_a_leaf():
    ft, root, codes = _build(b"\x00\x00\x00\x01")
    assert set(codes) == {0, 1}
    assert huff.huffman_decode(root, huff.huffman_encode(codes, b"\x00\x01\x00")) == [0, 1, 0]


# Code tables

def test_codes_are_prefix_free():
    _, _, codes = _build("she sells sea shells by the sea shore")
    for a, b in permutations(codes, 2):
        assert not codes[b].startswith(codes[a])


def test_kraft_equality():
    _, _, codes = _build("abracadabra alakazam")
    assert sum(Fraction(1, 2 ** len(c)) for c in codes.values()) == 1


def test_single_symbol_gets_one_bit_code():
    _, _, codes = _build("aaaa")
    assert codes == {"a": "0"}


def test_known_optimal_cost():
    ft = huff.FrequencyTable({"a": 45, "b": 13, "c": 12, "d": 16, "e": 9, "f": 5})
    root = huff.build_huffman_tree(ft)
    codes = huff.generate_huffman_codes(root)
    assert huff.encoded_bit_length(ft, codes) == 224
    assert len(codes["a"]) == 1


def test_encoded_length_matches_internal_weights():
    # sum of f * depth equals the sum of the weights of all internal nodes
    ft, root, codes = _build("a man a plan a canal panama")
    internal = sum(n.frequency for n in huff.iter_nodes(root) if not n.is_leaf)
    assert huff.encoded_bit_length(ft, codes) == internal


def test_empty_tree_has_no_codes():
    assert huff.generate_huffman_codes(None) == {}


def test_deep_tree_does_not_recurse():
    ft = huff.FrequencyTable({i: 2 ** i for i in range(1500)})
    root = huff.build_huffman_tree(ft)
    codes = huff.generate_huffman_codes(root)
    assert max(len(c) for c in codes.values()) == 1499
    data = [0, 1499, 7, 0, 3]
    assert huff.huffman_decode(root, huff.huffman_encode(codes, data)) == data


# Encode / decode

@pytest.mark.parametrize("data", [
    "abracadabra",
    "aaaa",
    "a",
    "aabb",
    "The rain in Spain stays mainly in the plain.\n\tü€",
    b"\x00\xff\x10\x10\x00",
])
def test_round_trip(data):
    _, root, codes = _build(data)
    bits = huff.huffman_encode(codes, data)
    decoded = huff.huffman_decode(root, bits)
    assert decoded == list(data)


def test_encode_writes_concatenated_codes():
    _, _, codes = _build("aabb")
    bits = huff.huffman_encode(codes, "abba")
    assert bits.bits == "0110"


def test_encode_into_given_sink():
    _, _, codes = _build("aabb")
    sink = BitBuffer()
    assert huff.huffman_encode(codes, "ba", sink) is sink
    assert sink.bits == "10"


def test_encode_missing_code():
    codes = huff.CodeTable({"a": "0", "b": "1"})
    with pytest.raises(huff.MissingCodeError) as info:
        huff.huffman_encode(codes, "abc")
    assert info.value.symbol == "c"
    assert isinstance(info.value, KeyError)


def test_decode_accepts_bit_strings():
    _, root, _ = _build("aabb")
    assert huff.huffman_decode(root, "0110") == ["a", "b", "b", "a"]


def test_decode_into_sink():
    class Collect:
        def __init__(self):
            self.out = []

        def write(self, symbol):
            self.out.append(symbol)

    _, root, _ = _build("aabb")
    sink = huff.huffman_decode(root, [1, 0], Collect())
    assert sink.out == ["b", "a"]


def test_truncated_stream_is_corrupt():
    data = "aaaaabbc"
    _, root, codes = _build(data)
    assert len(codes["c"]) >= 2
    bits = huff.huffman_encode(codes, data)
    with pytest.raises(huff.CorruptStreamError):
        huff.huffman_decode(root, bits.truncated(len(bits) - 1))


def test_single_symbol_rejects_one_bits():
    _, root, _ = _build("aaaa")
    assert huff.huffman_decode(root, "000") == ["a", "a", "a"]
    with pytest.raises(huff.CorruptStreamError):
        huff.huffman_decode(root, "01")


def test_decode_rejects_non_bits():
    _, root, _ = _build("aabb")
    with pytest.raises(huff.CorruptStreamError):
        huff.huffman_decode(root, [0, 2])


def test_decode_without_tree():
    assert huff.huffman_decode(None, []) == []
    with pytest.raises(huff.CorruptStreamError):
        huff.huffman_decode(None, [0])


def test_same_buffer_decodes_twice():
    data = "abracadabra"
    _, root, codes = _build(data)
    bits = huff.huffman_encode(codes, data)
    first = huff.huffman_decode(root, bits)
    second = huff.huffman_decode(root, bits)
    assert first == second == list(data)


# Errors

def test_stream_failures_are_os_errors():
    for cls in (huff.StreamOpenFailure, huff.StreamReadFailure, huff.StreamWriteFailure):
        assert issubclass(cls, OSError)
        assert issubclass(cls, huff.HuffmanError)
    with pytest.raises(OSError):
        huff.frequency_table_from_file("/nonexistent/dir/input.txt")


def test_sink_write_failure_is_not_rewrapped():
    class FullSink(BitBuffer):
        def write_bit(self, bit):
            raise huff.StreamWriteFailure("disk full")

    _, _, codes = _build("aabb")
    with pytest.raises(huff.StreamWriteFailure):
        huff.huffman_encode(codes, "ab", FullSink())


def test_sink_os_error_is_reported():
    class BrokenSink(BitBuffer):
        def write_bit(self, bit):
            raise OSError("device gone")

    _, _, codes = _build("aabb")
    with pytest.raises(huff.IOFailure):
        huff.huffman_encode(codes, "ab", BrokenSink())
