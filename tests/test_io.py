import os

import pytest

from kipstore.io import FileExtension, IoFactory, IoType, sorted_gen_list


def test_path_with_gen(tmp_path):
    assert FileExtension.LOG.path_with_gen(tmp_path, 5) == tmp_path / "5.log"
    assert FileExtension.SSTABLE.path_with_gen(tmp_path, 7) == tmp_path / "7.sst"
    assert FileExtension.MANIFEST.path_with_gen(tmp_path, 1).name == "1.manifest"


def test_factory_creates_directory(tmp_path):
    target = tmp_path / "a" / "b"
    factory = IoFactory(target, FileExtension.LOG)
    assert target.is_dir()
    assert factory.dir_path == target


@pytest.mark.parametrize("io_type", [IoType.BUF, IoType.DIRECT])
def test_write_then_read_round_trip(tmp_path, io_type):
    factory = IoFactory(tmp_path, FileExtension.SSTABLE)
    payload = b"hello kip store"
    with factory.writer(3, io_type) as writer:
        assert writer.write(payload) == len(payload)
        assert writer.current_pos() == len(payload)
        writer.flush()
    with factory.reader(3, io_type) as reader:
        assert reader.gen == 3
        assert reader.io_type is io_type
        assert reader.file_size() == len(payload)
        assert reader.read() == payload


@pytest.mark.parametrize("io_type", [IoType.BUF, IoType.DIRECT])
def test_reader_seek(tmp_path, io_type):
    factory = IoFactory(tmp_path, FileExtension.LOG)
    with factory.writer(1, io_type) as writer:
        writer.write(b"0123456789")
    with factory.reader(1, io_type) as reader:
        assert reader.seek(4) == 4
        assert reader.read(3) == b"456"
        assert reader.seek(-2, os.SEEK_END) == 8
        assert reader.read(10) == b"89"
        assert reader.read(1) == b""


def test_writer_seek_overwrites(tmp_path):
    factory = IoFactory(tmp_path, FileExtension.LOG)
    with factory.writer(2, IoType.BUF) as writer:
        writer.write(b"abcdef")
        assert writer.seek(0) == 0
        writer.write(b"XY")
        assert writer.current_pos() == 2
        assert writer.seek(0, os.SEEK_END) == 6
    with factory.reader(2, IoType.BUF) as reader:
        assert reader.read() == b"XYcdef"


def test_writer_does_not_truncate_existing(tmp_path):
    factory = IoFactory(tmp_path, FileExtension.LOG)
    with factory.writer(9, IoType.DIRECT) as writer:
        writer.write(b"abc")
    with factory.writer(9, IoType.DIRECT) as writer:
        assert writer.current_pos() == 0
        assert writer.seek(0, os.SEEK_END) == 3


def test_reader_creates_missing_file(tmp_path):
    factory = IoFactory(tmp_path, FileExtension.SSTABLE)
    assert not factory.exists(11)
    with factory.reader(11, IoType.BUF) as reader:
        assert reader.file_size() == 0
        assert reader.read() == b""
    assert factory.exists(11)


def test_clean_removes_file(tmp_path):
    factory = IoFactory(tmp_path, FileExtension.LOG)
    factory.writer(4, IoType.BUF).close()
    assert factory.exists(4)
    factory.clean(4)
    assert not factory.exists(4)
    with pytest.raises(FileNotFoundError):
        factory.clean(4)


def test_sorted_gen_list(tmp_path):
    factory = IoFactory(tmp_path, FileExtension.LOG)
    for gen in (30, 2, 17):
        factory.writer(gen, IoType.BUF).close()
    (tmp_path / "5.sst").write_bytes(b"")
    (tmp_path / "junk.log").write_bytes(b"")
    assert sorted_gen_list(tmp_path, FileExtension.LOG) == [2, 17, 30]
    assert sorted_gen_list(tmp_path, FileExtension.SSTABLE) == [5]
    assert sorted_gen_list(tmp_path / "missing", FileExtension.LOG) == []