# kipstore

The in-memory and logging layers of a log-structured merge-tree (LSM)
key-value store. Keys and values are `bytes`. A value of `None` marks a
removal.

| Module | What it holds |
| --- | --- |
| `kipstore.io` | `FileExtension`, `IoType`, `FileReader`, `FileWriter`, `IoFactory` and `sorted_gen_list`. These handle generation-numbered files such as `<gen>.log`, `<gen>.sst` and `<gen>.manifest`. |
| `kipstore.log` | A block-framed write-ahead log: `RecordType`, `LogWriter`, `LogReader` and `LogLoader`. |
| `kipstore.mem_map` | `InternalKey` (a user key plus a sequence id), `MemMapIter`, and the entry codec `data_to_bytes` / `bytes_to_data`. |
| `kipstore.mem_table` | `MemTable`, a multi-version in-memory table backed by the write-ahead log. |
| `kipstore.iterator` | `Seek`, `Bound`, the `Iter` / `SeekIter` protocol, `SortedListIter`, `MergingIter` and `SeekMergingIter`. |
| `kipstore.sharding` | `key_value_bytes_len` and `data_sharding`, which split sorted data into file-sized shards. |
| `kipstore.sequence` | `next_sequence`, `init_gen` and `next_gen`. |
| `kipstore.errors` | `KernelError` and its subclasses, plus `ConnectionError_`. |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The write-ahead log

The log is written in 32 KiB blocks. Each record is split into fragments, and no fragment crosses a block boundary.

Each fragment starts with a 9-byte header:

- the CRC-32 of its data, as a little-endian u32;
- its data length, as a little-endian u32;
- one type byte: `FULL`, `FIRST`, `MIDDLE` or `LAST`.

If fewer than 9 bytes are left at the end of a block, they are zero-filled and skipped.

```python
from kipstore.io import IoType
from kipstore.log import LogLoader

# Opens data/wal and reads log generation 1 (created if missing).
loader, gen, records = LogLoader.reload("data", "wal", 1, IoType.BUF)

writer = loader.writer(gen)
writer.add_record(b"kip_key_1")
writer.add_record(b"kip_key_2")
writer.flush()

print(loader.load(gen))   # [b'kip_key_1', b'kip_key_2']
```

How the log behaves:

- **Choosing a generation.** If `reload` gets `None` for the generation, it picks the newest `*.log` file in the directory. If there is none, it takes a new generation from `next_gen()`.
- **Damaged records.** `LogLoader.load` stops at the first damaged or truncated record and returns the records read before it.
- **Reading directly.** `LogReader.read_record()` raises `CrcMismatchError` when a checksum is wrong. Iterating a `LogReader` yields whole records.
- **Where writing starts.** `LogLoader.writer` writes from the beginning of the file. To append to a log that already has content, use `LogWriter.with_offset(file, length)` after seeking to its end.

## The memtable

```python
from kipstore.iterator import Bound
from kipstore.mem_table import MemTable

with MemTable("data", count_threshold=1000) as table:
    table.insert_data((b"k1", b"v1"))
    table.insert_data((b"k1", b"v2"))
    table.insert_data((b"k2", None))                 # removal

    print(table.find(b"k1"))                         # (b'k1', b'v2')
    print(table.find(b"k2"))                         # (b'k2', None)
    print(table.range_scan(Bound.included(b"k1"), Bound.unbounded()))
    # [(b'k1', b'v2'), (b'k2', None)]

    gen, newest = table.swap()
    # newest == [(b'k1', b'v2'), (b'k2', None)]
```

### Writing

- **Logging first.** Every write is appended to the log under `<dir>/wal` before it goes into memory. Opening a `MemTable` reads the newest log back, so writes that were not yet swapped out survive a restart.
- **Versions.** Each key keeps all of its versions, ordered by sequence id.
- **`insert_data`.** Uses a new sequence id. It returns `True` once the size threshold or count threshold has been reached. The size threshold defaults to 2 MiB of keys and values.
- **`insert_batch_data(data, seq_id)`.** Writes several pairs under one sequence id, logged as one record.
- **`insert_data_with_seq(data, seq_id)`.** Returns the number of versions held.

### Reading

- **`find_with_sequence_id(key, seq_id)`.** Returns the newest version written at or before `seq_id`.
- **`range_scan(min_bound, max_bound, seq_id=None)`.** Returns the newest value of each key within the bounds, in key order.

### Transactions

- **`check_key_conflict(key_values, seq_id)`.** Reports whether any of the keys was written after `seq_id`. This is the check an optimistic transaction needs.
- **`tx_count`.** While this is non-zero, `swap` waits.

### Swapping

- **`swap()`.** Moves the current data aside and starts a new log generation. It returns the old generation and the newest value of each key. Data moved aside stays readable through `find` and `range_scan` until the next swap.

## Merging iterators

```python
from kipstore.iterator import Seek, SeekMergingIter, SortedListIter

newer = SortedListIter([(b"1", None), (b"4", b"x")])
older = SortedListIter([(b"4", None), (b"6", b"y")])

merged = SeekMergingIter([newer, older])
print(list(merged))   # [(b'1', None), (b'4', b'x'), (b'6', b'y')]

merged.seek(Seek.backward(b"5"))
print(merged.try_next())   # (b'6', b'y')
```

- **Merging order.** Keys come out in ascending order. When several sources hold the same key, the earlier source in the list wins.
- **Seeking.** `Seek.first()`, `Seek.last()` and `Seek.backward(key)` move a `SeekIter`. `Seek.backward(key)` moves to the first key that is equal or greater.

## Sharding and generations

- **`data_sharding(data, file_size)`.** Splits key-ordered pairs into shards of roughly `file_size` bytes and keeps their order. Each shard gets a fresh generation from `next_gen()`. A `file_size` of zero or less raises `ValueError`.
- **`next_sequence()`.** Counts up from 1 in each process.
- **`init_gen()`.** Seeds the generation counter with the current time in milliseconds, so generations stay ordered across restarts.

## What this package does not do

It has no complete storage engine. Specifically:

- **No on-disk tables.** There are no sorted tables on disk and no block cache. `FileExtension.SSTABLE` and `FileExtension.MANIFEST` only name files.
- **No compaction or versions.** Nothing merges levels or tracks table versions.
- **No persistence of swapped data.** Data returned by `MemTable.swap` is not written anywhere by the package.
- **No transactions object.** There is no storage object with `get`/`set`/`remove`.
- **No network layer.** There is no server, client or command-line tool.

Exception classes such as `KeyNotFoundError`, `LevelOverError`, `RepeatedWriteError`, `ChannelClosedError` and `ConnectionError_` are defined for a layer built on top of these pieces. The modules here do not raise them.