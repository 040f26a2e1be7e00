import pytest

from kipstore.errors import KernelError
from kipstore.iterator import Seek
from kipstore.mem_map import (
    InternalKey,
    MemMap,
    MemMapIter,
    bytes_to_data,
    data_to_bytes,
)


def test_mem_map_iter():
    mem_map = MemMap()
    key_1_1 = InternalKey(b"1")
    key_1_2 = InternalKey(b"1")
    key_2_1 = InternalKey(b"2")
    key_2_2 = InternalKey(b"2")
    key_4_1 = InternalKey(b"4")
    key_4_2 = InternalKey(b"4")

    mem_map[key_1_1] = b""
    mem_map[key_1_2] = None
    mem_map[key_2_1] = b""
    mem_map[key_2_2] = None
    mem_map[key_4_1] = b""
    mem_map[key_4_2] = None

    it = MemMapIter(mem_map)
    assert it.try_next() == (key_1_2.key, None)
    assert it.try_next() == (key_2_2.key, None)
    assert it.try_next() == (key_4_2.key, None)

    it.seek(Seek.first())
    assert it.try_next() == (key_1_2.key, None)

    it.seek(Seek.last())
    assert it.try_next() is None

    it.seek(Seek.backward(b"3"))
    assert it.try_next() == (key_4_2.key, None)


def test_mem_map_iter_exhausts():
    mem_map = MemMap()
    mem_map[InternalKey(b"a", 1)] = b"x"
    mem_map[InternalKey(b"a", 2)] = b"y"
    it = MemMapIter(mem_map)
    assert list(it) == [(b"a", b"y")]
    assert it.try_next() is None


def test_internal_key_ordering():
    keys = [InternalKey(b"b", 1), InternalKey(b"a", 5), InternalKey(b"a", 2)]
    assert sorted(keys) == [InternalKey(b"a", 2), InternalKey(b"a", 5), InternalKey(b"b", 1)]


def test_internal_key_auto_sequence_increases():
    first = InternalKey(b"k")
    second = InternalKey(b"k")
    assert first.seq_id < second.seq_id


@pytest.mark.parametrize("pair", [(b"key", b"value"), (b"key", None), (b"", b""), (b"k", b"\x00" * 300)])
def test_data_round_trip(pair):
    assert bytes_to_data(data_to_bytes(pair)) == [pair]


def test_batch_round_trip():
    pairs = [(b"k1", b"v1"), (b"k2", None), (b"k3", b"v3")]
    raw = b"".join(data_to_bytes(pair) for pair in pairs)
    assert bytes_to_data(raw) == pairs


def test_truncated_entry_raises():
    raw = data_to_bytes((b"key", b"value"))
    with pytest.raises(KernelError):
        bytes_to_data(raw[:-1])
    with pytest.raises(KernelError):
        bytes_to_data(raw[:3])