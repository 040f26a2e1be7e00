"""Versioned in-memory map keyed by user key and sequence id."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass, field

from sortedcontainers import SortedDict

from kipstore.errors import KernelError
from kipstore.iterator import Seek, SeekIter, SeekKind
from kipstore.sequence import next_sequence

KeyValue = tuple[bytes, "bytes | None"]

# Sorted map of InternalKey -> value (None marks a removal).
MemMap = SortedDict

_ENTRY_HEADER = struct.Struct("<IBI")


@dataclass(frozen=True, order=True)
class InternalKey:
    """A user key paired with the sequence id of the write; ordered by both."""

    key: bytes
    seq_id: int = field(default_factory=next_sequence)


class MemMapIter(SeekIter):
    """Iterates a mem map yielding the newest value of each key."""

    def __init__(self, mem_map: SortedDict) -> None:
        self._mem_map = mem_map
        self._prev: KeyValue | None = None
        self._iter: Iterator[InternalKey] | None = iter(mem_map.keys())

    def try_next(self) -> KeyValue | None:
        if self._iter is None:
            return None
        for internal_key in self._iter:
            item = (internal_key.key, self._mem_map[internal_key])
            prev = self._prev
            self._prev = item
            if prev is not None and prev[0] != internal_key.key:
                return prev
        prev, self._prev = self._prev, None
        return prev

    def is_valid(self) -> bool:
        return True

    def seek(self, seek: Seek) -> None:
        self._prev = None
        if seek.kind is SeekKind.LAST:
            self._iter = None
        elif seek.kind is SeekKind.FIRST:
            self._iter = iter(self._mem_map.keys())
        else:
            self._iter = self._mem_map.irange(minimum=InternalKey(seek.key, 0))


def data_to_bytes(data: KeyValue) -> bytes:
    """Encode one key/value pair as a log entry."""
    key, value = data
    has_value = value is not None
    payload = value if has_value else b""
    return _ENTRY_HEADER.pack(len(key), int(has_value), len(payload)) + key + payload


def bytes_to_data(raw: bytes) -> list[KeyValue]:
    """Decode every entry of a buffer written by :func:`data_to_bytes`."""
    entries: list[KeyValue] = []
    view = memoryview(raw)
    pos = 0
    while pos < len(view):
        if pos + _ENTRY_HEADER.size > len(view):
            raise KernelError("Truncated entry header")
        key_len, flag, value_len = _ENTRY_HEADER.unpack_from(view, pos)
        pos += _ENTRY_HEADER.size
        end = pos + key_len + value_len
        if end > len(view) or flag not in (0, 1):
            raise KernelError("Malformed entry")
        key = bytes(view[pos:pos + key_len])
        value = bytes(view[pos + key_len:end]) if flag else None
        entries.append((key, value))
        pos = end
    return entries