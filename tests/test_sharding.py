import random

import pytest

from kipstore.sharding import data_sharding, key_value_bytes_len


def _kv(key: bytes, value):
    return (key, value)


def test_key_value_bytes_len_with_value():
    key, value = b"apple", b"banana"
    assert key_value_bytes_len((key, value)) == len(key) + len(value)


def test_key_value_bytes_len_removed_value():
    key = b"apple"
    assert key_value_bytes_len((key, None)) == len(key)


def test_empty_input_gives_no_shards():
    assert data_sharding([], 100) == []


def test_non_positive_file_size_rejected():
    with pytest.raises(ValueError):
        data_sharding([(b"k", b"v")], 0)


def test_small_data_fits_one_shard():
    data = [(b"1", b"1"), (b"2", b"2"), (b"3", None)]
    shards = data_sharding(data, 1024)
    assert len(shards) == 1
    assert shards[0][1] == data


def test_worked_example_overflow_item_moves_to_next_shard():
    a = (b"aaaaa", b"AAAAA")
    b = (b"bbbbb", b"BBBBB")
    c = (b"ccccc", b"CCCCC")
    d = (b"ddddd", b"DDDDD")
    shards = data_sharding([a, b, c, d], key_value_bytes_len(a) * 2)
    assert [items for _, items in shards] == [[a], [b, c, d]]


def test_shards_keep_order_and_content():
    rng = random.Random(7)
    data = [
        (f"key_{i:05d}".encode(), bytes(rng.randrange(256) for _ in range(rng.randrange(1, 64))))
        for i in range(300)
    ]
    shards = data_sharding(data, 512)
    flattened = [item for _, items in shards for item in items]
    assert flattened == data
    assert all(items for _, items in shards)


def test_non_last_shards_stay_under_file_size():
    rng = random.Random(11)
    data = [
        (f"k{i:04d}".encode(), None if i % 5 == 0 else bytes(rng.randrange(1, 40)))
        for i in range(200)
    ]
    file_size = 256
    shards = data_sharding(data, file_size)
    assert len(shards) > 1
    for _, items in shards[:-1]:
        assert sum(key_value_bytes_len(item) for item in items) < file_size + max(
            key_value_bytes_len(item) for item in items
        )


def test_shard_gens_are_distinct_and_increasing():
    data = [(f"k{i:03d}".encode(), b"x" * 30) for i in range(50)]
    shards = data_sharding(data, 100)
    gens = [gen for gen, _ in shards]
    assert len(set(gens)) == len(gens)
    assert gens == sorted(gens)


def test_accepts_any_iterable():
    data = [(b"a", b"1"), (b"b", b"2")]
    shards = data_sharding(iter(data), 1024)
    assert [item for _, items in shards for item in items] == data