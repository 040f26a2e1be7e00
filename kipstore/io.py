"""File access for generation-numbered data files."""

from __future__ import annotations

import enum
import os
from pathlib import Path
from typing import BinaryIO


class FileExtension(enum.Enum):
    """Kinds of file the kernel keeps, by file extension."""

    LOG = "log"
    SSTABLE = "sst"
    MANIFEST = "manifest"

    def path_with_gen(self, directory: str | os.PathLike[str], gen: int) -> Path:
        """Return the path of the file with generation ``gen`` in ``directory``."""
        return Path(directory) / f"{gen}.{self.value}"


class IoType(enum.Enum):
    """How a file is accessed: through a buffer or directly."""

    BUF = "buf"
    DIRECT = "direct"


def _open_rw(path: Path, io_type: IoType) -> BinaryIO:
    """Open ``path`` for reading and writing, creating it without truncation."""
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    buffering = 0 if io_type is IoType.DIRECT else -1
    return os.fdopen(fd, "r+b", buffering=buffering)


class FileReader:
    """Seekable reader over one generation file."""

    def __init__(self, directory: Path, gen: int, extension: FileExtension, io_type: IoType) -> None:
        self.gen = gen
        self.path = extension.path_with_gen(directory, gen)
        self.io_type = io_type
        self._file = _open_rw(self.path, io_type)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining when negative)."""
        if size is None or size < 0:
            return self._file.read() or b""
        chunks = []
        remaining = size
        while remaining > 0:
            chunk = self._file.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the read position and return the new absolute position."""
        return self._file.seek(offset, whence)

    def file_size(self) -> int:
        """Size of the underlying file on disk, in bytes."""
        return os.path.getsize(self.path)

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> FileReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FileWriter:
    """Seekable writer over one generation file that tracks its position."""

    def __init__(self, directory: Path, gen: int, extension: FileExtension, io_type: IoType) -> None:
        self.gen = gen
        self.path = extension.path_with_gen(directory, gen)
        self.io_type = io_type
        self._file = _open_rw(self.path, io_type)

    def write(self, data: bytes) -> int:
        """Write all of ``data`` and return its length."""
        view = memoryview(data)
        written = 0
        while written < len(view):
            count = self._file.write(view[written:])
            if count is None:
                continue
            written += count
        return written

    def flush(self) -> None:
        self._file.flush()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the write position and return the new absolute position."""
        return self._file.seek(offset, whence)

    def current_pos(self) -> int:
        """Current write position in the file."""
        return self._file.tell()

    def close(self) -> None:
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def __enter__(self) -> FileWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class IoFactory:
    """Creates readers and writers for the files of one directory and extension."""

    def __init__(self, dir_path: str | os.PathLike[str], extension: FileExtension) -> None:
        self.dir_path = Path(dir_path)
        self.extension = extension
        self.dir_path.mkdir(parents=True, exist_ok=True)

    def reader(self, gen: int, io_type: IoType) -> FileReader:
        return FileReader(self.dir_path, gen, self.extension, io_type)

    def writer(self, gen: int, io_type: IoType) -> FileWriter:
        return FileWriter(self.dir_path, gen, self.extension, io_type)

    def clean(self, gen: int) -> None:
        """Delete the file of generation ``gen``."""
        os.remove(self.extension.path_with_gen(self.dir_path, gen))

    def exists(self, gen: int) -> bool:
        return self.extension.path_with_gen(self.dir_path, gen).exists()


def sorted_gen_list(directory: str | os.PathLike[str], extension: FileExtension) -> list[int]:
    """Generations of the files with ``extension`` in ``directory``, ascending."""
    path = Path(directory)
    if not path.is_dir():
        return []
    suffix = f".{extension.value}"
    gens = []
    for entry in path.iterdir():
        if not entry.is_file() or not entry.name.endswith(suffix):
            continue
        stem = entry.name[: -len(suffix)]
        try:
            gens.append(int(stem))
        except ValueError:
            continue
    return sorted(gens)