"""In-memory table of recent writes, backed by a write-ahead log."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path

from sortedcontainers import SortedDict

from kipstore.io import FileWriter, IoType
from kipstore.iterator import Bound
from kipstore.log import LogLoader, LogWriter
from kipstore.mem_map import InternalKey, KeyValue, bytes_to_data, data_to_bytes
from kipstore.sharding import key_value_bytes_len

DEFAULT_WAL_PATH = "wal"
DEFAULT_SIZE_THRESHOLD = 2 * 1024 * 1024

SEQ_MIN = -(2**63)
SEQ_MAX = 2**63 - 1


@dataclass
class _Threshold:
    """Tracks how much was written since the last swap."""

    size_limit: int | None
    count_limit: int | None
    size: int = 0
    count: int = 0

    def process(self, item: KeyValue) -> None:
        self.size += key_value_bytes_len(item)
        self.count += 1

    def is_exceeded(self) -> bool:
        return (self.size_limit is not None and self.size >= self.size_limit) or (
            self.count_limit is not None and self.count >= self.count_limit
        )

    def reset(self) -> None:
        self.size = 0
        self.count = 0


@dataclass
class _Wal:
    writer: LogWriter
    file: FileWriter
    gen: int = field(default=0)


class MemTable:
    """Mutable map of the newest writes plus the map being flushed to disk.

    Every key keeps all of its versions, ordered by sequence id.  Writes are
    first appended to the write-ahead log; on opening, the newest log is read
    back so that writes not yet flushed survive a crash.
    """

    def __init__(
        self,
        dir_path: str | os.PathLike[str],
        *,
        wal_io_type: IoType = IoType.BUF,
        size_threshold: int | None = DEFAULT_SIZE_THRESHOLD,
        count_threshold: int | None = None,
    ) -> None:
        self.dir_path = Path(dir_path)
        self.log_loader, gen, records = LogLoader.reload(
            self.dir_path, DEFAULT_WAL_PATH, None, wal_io_type
        )
        self._lock = threading.Lock()
        # Recovered entries get sequence 0: no version exists yet that could
        # be read in an order they would disturb.
        self._mem: SortedDict = SortedDict()
        for record in records:
            for key, value in bytes_to_data(record):
                self._mem[InternalKey(key, 0)] = value
        self._immut: SortedDict | None = None
        self._wal = self._open_wal(gen)
        self._threshold = _Threshold(size_threshold, count_threshold)
        self.tx_count = 0

    def _open_wal(self, gen: int) -> _Wal:
        file_writer = self.log_loader.factory.writer(gen, self.log_loader.io_type)
        end = file_writer.seek(0, os.SEEK_END)
        return _Wal(LogWriter.with_offset(file_writer, end), file_writer, gen)

    def insert_data(self, data: KeyValue) -> bool:
        """Log and insert one pair under a new sequence id; report whether the table is full."""
        key, value = data
        with self._lock:
            self._wal.writer.add_record(data_to_bytes(data))
            self._threshold.process(data)
            self._mem[InternalKey(key)] = value
            return self._threshold.is_exceeded()

    def insert_data_with_seq(self, data: KeyValue, seq_id: int) -> int:
        """Log and insert one pair under ``seq_id``; return the number of versions held."""
        key, value = data
        with self._lock:
            self._wal.writer.add_record(data_to_bytes(data))
            self._mem[InternalKey(key, seq_id)] = value
            return len(self._mem)

    def insert_batch_data(self, data: list[KeyValue], seq_id: int) -> bool:
        """Insert pairs under one sequence id, logged as a single record."""
        with self._lock:
            buf = bytearray()
            for item in data:
                key, value = item
                self._threshold.process(item)
                self._mem[InternalKey(key, seq_id)] = value
                buf += data_to_bytes(item)
            self._wal.writer.add_record(bytes(buf))
            return self._threshold.is_exceeded()

    def check_key_conflict(self, key_values: list[KeyValue], seq_id: int) -> bool:
        """Whether any key was written with a sequence id newer than ``seq_id``."""
        with self._lock:
            for key, _ in key_values:
                probe = InternalKey(key, seq_id)
                following = next(
                    self._mem.irange(minimum=probe, inclusive=(False, True)), None
                )
                if following is not None and following.key == key:
                    return True
        return False

    def is_empty(self) -> bool:
        with self._lock:
            return not self._mem

    def __len__(self) -> int:
        with self._lock:
            return len(self._mem)

    def swap(self) -> tuple[int, list[KeyValue]] | None:
        """Move the mutable map aside and start a new log.

        Returns the generation of the log that covered the moved data and the
        newest value of each key in key order, or ``None`` when empty.  Waits
        while transactions are open.
        """
        while True:
            while self.tx_count != 0:
                time.sleep(0.0005)
            with self._lock:
                if self.tx_count != 0:
                    continue
                if not self._mem:
                    return None
                self._threshold.reset()

                newest: dict[bytes, bytes | None] = {}
                for internal_key, value in self._mem.items():
                    newest[internal_key.key] = value
                data = list(newest.items())

                self._immut = self._mem
                self._mem = SortedDict()

                old = self._wal
                self._wal = self._open_wal(self.log_loader.factory and _new_gen())
                old.writer.flush()
                old.file.close()
                return old.gen, data

    @staticmethod
    def _find(internal_key: InternalKey, mem_map: SortedDict) -> KeyValue | None:
        found = next(mem_map.irange(maximum=internal_key, reverse=True), None)
        if found is not None and found.key == internal_key.key:
            return internal_key.key, mem_map[found]
        return None

    def find(self, key: bytes) -> KeyValue | None:
        """Newest version of ``key`` in memory, removals included."""
        return self.find_with_sequence_id(key, SEQ_MAX)

    def find_with_sequence_id(self, key: bytes, seq_id: int) -> KeyValue | None:
        """Newest version of ``key`` written at or before ``seq_id``."""
        probe = InternalKey(bytes(key), seq_id)
        with self._lock:
            result = self._find(probe, self._mem)
            if result is None and self._immut is not None:
                result = self._find(probe, self._immut)
            return result

    @staticmethod
    def _scan(
        mem_map: SortedDict,
        minimum: InternalKey | None,
        maximum: InternalKey | None,
        inclusive: tuple[bool, bool],
        seq_id: int | None,
    ) -> dict[bytes, bytes | None]:
        newest: dict[bytes, bytes | None] = {}
        for internal_key in mem_map.irange(minimum, maximum, inclusive, reverse=True):
            if seq_id is not None and internal_key.seq_id > seq_id:
                continue
            if internal_key.key not in newest:
                newest[internal_key.key] = mem_map[internal_key]
        return newest

    def range_scan(
        self, min_bound: Bound, max_bound: Bound, seq_id: int | None = None
    ) -> list[KeyValue]:
        """Newest value of each key within the bounds, in key order.

        With ``seq_id`` only versions written at or before it are seen.  The
        mutable map takes precedence over the one being flushed.
        """
        if min_bound.key is None:
            minimum = None
        else:
            minimum = InternalKey(
                min_bound.key, SEQ_MIN if min_bound.inclusive else SEQ_MAX
            )
        if max_bound.key is None:
            maximum = None
        else:
            maximum = InternalKey(
                max_bound.key, SEQ_MAX if max_bound.inclusive else SEQ_MIN
            )
        inclusive = (
            min_bound.key is None or min_bound.inclusive,
            max_bound.key is None or max_bound.inclusive,
        )
        with self._lock:
            merged: dict[bytes, bytes | None] = {}
            if self._immut is not None:
                merged.update(self._scan(self._immut, minimum, maximum, inclusive, seq_id))
            merged.update(self._scan(self._mem, minimum, maximum, inclusive, seq_id))
        return sorted(merged.items(), key=lambda item: item[0])

    def close(self) -> None:
        """Flush and close the current log file."""
        with self._lock:
            self._wal.writer.flush()
            self._wal.file.close()

    def __enter__(self) -> MemTable:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _new_gen() -> int:
    from kipstore.sequence import next_gen as _next_gen_fn

    return _next_gen_fn()