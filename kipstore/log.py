"""Block-framed record log used as the write-ahead log.

Records are split into fragments that never cross a block boundary.  Each
fragment carries a header: CRC-32 of its data (u32, little endian), data
length (u32, little endian) and a one-byte record type.  When fewer bytes
than a header are left in a block, they are zero-filled and skipped.
"""

from __future__ import annotations

import enum
import os
import struct
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO, Protocol

from kipstore.errors import CrcMismatchError, KernelError
from kipstore.io import FileExtension, FileWriter, IoFactory, IoType, sorted_gen_list
from kipstore.sequence import next_gen

BLOCK_SIZE = 32 * 1024
HEADER_SIZE = 4 + 4 + 1

_HEADER = struct.Struct("<IIB")


class _Writable(Protocol):
    def write(self, data: bytes) -> int | None: ...

    def seek(self, offset: int, whence: int = ...) -> int: ...

    def flush(self) -> None: ...


class _Readable(Protocol):
    def read(self, size: int = ...) -> bytes: ...

    def seek(self, offset: int, whence: int = ...) -> int: ...


class RecordType(enum.IntEnum):
    """Position of a fragment within its record."""

    FULL = 1
    FIRST = 2
    MIDDLE = 3
    LAST = 4


def _check_block_size(block_size: int) -> None:
    if block_size <= HEADER_SIZE:
        raise ValueError(f"block size must exceed the header size of {HEADER_SIZE}")


class LogWriter:
    """Appends framed records to a seekable byte stream."""

    def __init__(self, dst: _Writable | BinaryIO, *, block_size: int = BLOCK_SIZE) -> None:
        _check_block_size(block_size)
        self.dst = dst
        self.block_size = block_size
        self.block_offset = 0

    @classmethod
    def with_offset(cls, writer: _Writable | BinaryIO, offset: int) -> LogWriter:
        """Writer continuing a log whose existing content is ``offset`` bytes long."""
        log_writer = cls(writer)
        log_writer.block_offset = offset % BLOCK_SIZE
        return log_writer

    def seek_end(self) -> int:
        """Move the underlying stream to its end and return the position."""
        return self.dst.seek(0, os.SEEK_END)

    def add_record(self, record: bytes) -> int:
        """Write ``record``; return the bytes written for its last fragment."""
        view = memoryview(bytes(record))
        written = 0
        first_fragment = True

        while len(view) > 0:
            space_left = self.block_size - self.block_offset
            if space_left < HEADER_SIZE:
                if space_left > 0:
                    self.dst.write(bytes(space_left))
                self.block_offset = 0

            available = self.block_size - self.block_offset - HEADER_SIZE
            fragment_len = min(len(view), available)
            is_end = fragment_len == len(view)

            if first_fragment and is_end:
                record_type = RecordType.FULL
            elif first_fragment:
                record_type = RecordType.FIRST
            elif is_end:
                record_type = RecordType.LAST
            else:
                record_type = RecordType.MIDDLE

            written = self._emit(record_type, bytes(view[:fragment_len]))
            view = view[fragment_len:]
            first_fragment = False

        return written

    def _emit(self, record_type: RecordType, data: bytes) -> int:
        header = _HEADER.pack(zlib.crc32(data), len(data), int(record_type))
        count = self.dst.write(header)
        offset = len(header) if count is None else count
        count = self.dst.write(data)
        offset += len(data) if count is None else count
        self.block_offset += offset
        return offset

    def flush(self) -> None:
        self.dst.flush()


class LogReader:
    """Reads framed records back from a seekable byte stream."""

    def __init__(self, src: _Readable | BinaryIO, *, block_size: int = BLOCK_SIZE) -> None:
        _check_block_size(block_size)
        self._src = src
        self._block_size = block_size
        self._offset = 0

    def _read_exact(self, size: int) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            chunk = self._src.read(size - len(buf))
            if not chunk:
                break
            buf += chunk
        return bytes(buf)

    def read_record(self) -> bytes | None:
        """Return the next record, or ``None`` at the end of the log."""
        parts: list[bytes] = []

        while True:
            leftover = self._block_size - self._offset
            if leftover < HEADER_SIZE:
                if leftover:
                    self._src.seek(leftover, os.SEEK_CUR)
                self._offset = 0

            header = self._read_exact(HEADER_SIZE)
            if not header:
                return b"".join(parts) if parts else None
            if len(header) != HEADER_SIZE:
                raise KernelError("Truncated log record header")
            self._offset += HEADER_SIZE

            crc, length, type_byte = _HEADER.unpack(header)
            data = self._read_exact(length)
            if len(data) != length:
                raise KernelError("Truncated log record data")
            self._offset += length

            if zlib.crc32(data) != crc:
                raise CrcMismatchError()
            parts.append(data)

            try:
                record_type = RecordType(type_byte)
            except ValueError:
                raise KernelError(f"Unknown record type: {type_byte}") from None
            if record_type in (RecordType.FULL, RecordType.LAST):
                return b"".join(parts)

    def __iter__(self) -> Iterator[bytes]:
        while (record := self.read_record()) is not None:
            yield record


class LogLoader:
    """Opens the log files of one directory for reading and writing."""

    def __init__(self, factory: IoFactory, io_type: IoType) -> None:
        self.factory = factory
        self.io_type = io_type

    @classmethod
    def reload(
        cls,
        wal_dir_path: str | os.PathLike[str],
        sub_dir: str,
        gen: int | None,
        io_type: IoType,
    ) -> tuple[LogLoader, int, list[bytes]]:
        """Open ``wal_dir_path/sub_dir`` and read the records of the chosen log.

        Without an explicit ``gen`` the newest existing log is used, or a new
        generation when there is none.  Returns the loader, the generation and
        its records.
        """
        wal_path = Path(wal_dir_path) / sub_dir
        loader = cls(IoFactory(wal_path, FileExtension.LOG), io_type)

        if gen is None:
            gens = sorted_gen_list(wal_path, FileExtension.LOG)
            gen = gens[-1] if gens else next_gen()

        return loader, gen, loader.load(gen)

    def load(self, gen: int) -> list[bytes]:
        """Records of log ``gen``; reading stops at the first damaged record."""
        records: list[bytes] = []
        with self.factory.reader(gen, self.io_type) as reader:
            log_reader = LogReader(reader)
            while True:
                try:
                    record = log_reader.read_record()
                except (KernelError, OSError):
                    break
                if record is None:
                    break
                records.append(record)
        return records

    def writer(self, gen: int) -> LogWriter:
        """A log writer over the file of generation ``gen``."""
        file_writer: FileWriter = self.factory.writer(gen, self.io_type)
        return LogWriter(file_writer)

    def clean(self, gen: int) -> None:
        """Delete the log file of generation ``gen``."""
        self.factory.clean(gen)