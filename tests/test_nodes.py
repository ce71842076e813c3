import pytest

from alephbft.codec import CodecError, Reader, encode_bytes
from alephbft.nodes import BoolNodeMap, NodeCount, NodeIndex, NodeMap


def test_decoding_node_index_works():
    for i in range(1000):
        node_index = NodeIndex(i)
        decoded = NodeIndex.decode(node_index.encode())
        assert decoded == node_index


def test_node_index_encoding_is_little_endian_u64():
    assert NodeIndex(1).encode() == b"\x01" + bytes(7)


def test_node_index_decode_truncated():
    with pytest.raises(CodecError):
        NodeIndex.decode(b"\x01\x02\x03")


def test_node_index_rejects_negative():
    with pytest.raises(ValueError):
        NodeIndex(-1)


def test_node_index_decode_from_shared_reader():
    reader = Reader(NodeIndex(5).encode() + NodeIndex(9).encode())
    assert [NodeIndex.decode(reader), NodeIndex.decode(reader)] == [5, 9]
    assert reader.remaining() == 0


def test_bool_node_map_decoding_works():
    for length in range(12):
        for mask in range(1 << length):
            bnm = BoolNodeMap.with_capacity(length)
            for i in range(length):
                if (1 << i) & mask:
                    bnm.set(NodeIndex(i))
            decoded = BoolNodeMap.decode(bnm.encode())
            assert decoded == bnm


def test_bool_node_map_decoding_deals_with_trailing_zeros():
    encoded = bytes([1, 0, 0, 0]) + encode_bytes(bytes([128]))
    decoded = BoolNodeMap.decode(encoded)
    assert decoded == BoolNodeMap.from_bools([True])

    encoded = bytes([1, 0, 0, 0]) + encode_bytes(bytes([129]))
    with pytest.raises(CodecError):
        BoolNodeMap.decode(encoded)


def test_bool_node_map_decoding_deals_with_too_long_bitvec():
    encoded = bytes([1, 0, 0, 0]) + encode_bytes(bytes([128, 0]))
    with pytest.raises(CodecError):
        BoolNodeMap.decode(encoded)


def test_decoding_bool_node_map_works():
    bool_node_map = BoolNodeMap.from_bools([True, False, True, True, True])
    decoded = BoolNodeMap.decode(bool_node_map.encode())
    assert decoded == bool_node_map


def test_bool_node_map_has_efficient_encoding():
    bnm = BoolNodeMap.with_capacity(100)
    for i in range(50):
        bnm.set(NodeIndex(i))
    assert len(bnm.encode()) < 20


def test_bool_node_map_true_indices_and_lookup():
    bnm = BoolNodeMap.from_bools([False, True, False, True])
    assert list(bnm.true_indices()) == [NodeIndex(1), NodeIndex(3)]
    assert bnm[NodeIndex(1)] is True
    assert bnm[NodeIndex(2)] is False
    assert bnm.capacity() == 4


def test_bool_node_map_set_out_of_range():
    with pytest.raises(IndexError):
        BoolNodeMap.with_capacity(3).set(NodeIndex(3))


def test_node_count_threshold_arithmetic():
    threshold = (NodeCount(7) * 2) // 3 + NodeCount(1)
    assert threshold == NodeCount(5)
    assert isinstance(threshold, NodeCount)


def test_node_count_sum_and_underflow():
    total = sum([NodeCount(1), NodeCount(2)])
    assert total == NodeCount(3)
    assert isinstance(total, NodeCount)
    with pytest.raises(ValueError):
        NodeCount(1) - NodeCount(2)


def test_node_count_indices():
    assert list(NodeCount(3).indices()) == [NodeIndex(0), NodeIndex(1), NodeIndex(2)]
    assert list(NodeCount(0).indices()) == []


def test_node_map_new_with_len_and_assignment():
    node_map = NodeMap.new_with_len(NodeCount(3))
    assert list(node_map) == [None, None, None]
    node_map[NodeIndex(1)] = b"hash"
    assert node_map[NodeIndex(1)] == b"hash"
    assert list(node_map.enumerate()) == [
        (NodeIndex(0), None),
        (NodeIndex(1), b"hash"),
        (NodeIndex(2), None),
    ]
    assert [v for v in node_map if v is not None] == [b"hash"]


def test_node_map_copy_is_independent():
    original = NodeMap.new_with_len(2)
    duplicate = original.copy()
    duplicate[NodeIndex(0)] = "x"
    assert original[NodeIndex(0)] is None
    assert duplicate != original


def test_node_map_out_of_range():
    node_map = NodeMap.new_with_len(2)
    with pytest.raises(IndexError):
        node_map[NodeIndex(2)]
    with pytest.raises(IndexError):
        node_map[-1] = 1