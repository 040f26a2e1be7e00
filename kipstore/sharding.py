"""Splitting ordered key/value data into file-sized shards."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from kipstore.sequence import next_gen

KeyValue = tuple[bytes, "bytes | None"]


def key_value_bytes_len(key_value: KeyValue) -> int:
    """Bytes taken by a key and its value; a removed value counts as empty."""
    key, value = key_value
    return len(key) + (len(value) if value is not None else 0)


def data_sharding(data: Iterable[KeyValue], file_size: int) -> list[tuple[int, list[KeyValue]]]:
    """Split ``data`` into shards of roughly ``file_size`` bytes each.

    The order of ``data`` is kept: concatenating the shards gives the input
    back.  Each shard gets a fresh generation number; empty shards are
    dropped.  The last shard takes whatever is left, so it may overflow.
    """
    if file_size <= 0:
        raise ValueError("file_size must be positive")

    pending = deque(data)
    total = sum(key_value_bytes_len(item) for item in pending)
    part_count = -(-total // file_size)

    shards: list[tuple[int, list[KeyValue]]] = [(0, []) for _ in range(part_count)]

    for index in range(part_count):
        gen = next_gen()
        shards[index] = (gen, shards[index][1])
        is_last = index == part_count - 1
        data_len = 0
        while pending:
            item = pending.popleft()
            data_len += key_value_bytes_len(item)
            if data_len >= file_size and not is_last:
                shards[index + 1][1].append(item)
                break
            shards[index][1].append(item)

    return [(gen, items) for gen, items in shards if items]