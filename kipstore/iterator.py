"""Iterator protocol over ordered key/value pairs and their merging."""

from __future__ import annotations

import abc
import bisect
import enum
import heapq
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

KeyValue = tuple[bytes, "bytes | None"]


class SeekKind(enum.Enum):
    """Where a seek moves an iterator to."""

    FIRST = "first"
    LAST = "last"
    BACKWARD = "backward"


@dataclass(frozen=True)
class Seek:
    """A seek target: the first item, past the last item, or the first key >= ``key``."""

    kind: SeekKind
    key: bytes | None = None

    @classmethod
    def first(cls) -> Seek:
        return cls(SeekKind.FIRST)

    @classmethod
    def last(cls) -> Seek:
        return cls(SeekKind.LAST)

    @classmethod
    def backward(cls, key: bytes) -> Seek:
        return cls(SeekKind.BACKWARD, bytes(key))


@dataclass(frozen=True)
class Bound:
    """One end of a key range; ``key`` is ``None`` for an open end."""

    key: bytes | None = None
    inclusive: bool = False

    @classmethod
    def included(cls, key: bytes) -> Bound:
        return cls(bytes(key), True)

    @classmethod
    def excluded(cls, key: bytes) -> Bound:
        return cls(bytes(key), False)

    @classmethod
    def unbounded(cls) -> Bound:
        return cls()


class Iter(abc.ABC):
    """Iterator that yields key/value pairs one at a time."""

    @abc.abstractmethod
    def try_next(self) -> KeyValue | None:
        """Return the next pair, or ``None`` when exhausted."""

    @abc.abstractmethod
    def is_valid(self) -> bool:
        """Whether the iterator still points inside its data."""

    def __iter__(self) -> Iterator[KeyValue]:
        while (item := self.try_next()) is not None:
            yield item


class SeekIter(Iter):
    """An :class:`Iter` that can be repositioned."""

    @abc.abstractmethod
    def seek(self, seek: Seek) -> None:
        """Reposition the iterator."""


class SortedListIter(SeekIter):
    """Seekable iterator over a list of pairs sorted by key."""

    def __init__(self, items: Sequence[KeyValue]) -> None:
        self._items = list(items)
        self._keys = [key for key, _ in self._items]
        self._pos = 0

    def try_next(self) -> KeyValue | None:
        if not self.is_valid():
            return None
        item = self._items[self._pos]
        self._pos += 1
        return item

    def is_valid(self) -> bool:
        return self._pos < len(self._items)

    def seek(self, seek: Seek) -> None:
        if seek.kind is SeekKind.FIRST:
            self._pos = 0
        elif seek.kind is SeekKind.LAST:
            self._pos = len(self._items)
        else:
            self._pos = bisect.bisect_left(self._keys, seek.key)


class MergingIter(Iter):
    """Merges sorted iterators; on equal keys the earlier iterator wins."""

    def __init__(self, iters: Sequence[Iter]) -> None:
        self._iters = list(iters)
        self._heap: list[tuple[bytes, int, bytes | None]] = []
        for num, child in enumerate(self._iters):
            self._push(num, child.try_next())
        self._refresh_next()

    def _push(self, num: int, item: KeyValue | None) -> None:
        if item is not None:
            key, value = item
            heapq.heappush(self._heap, (key, num, value))

    def _refresh_next(self) -> None:
        if self._heap:
            key, _, value = self._heap[0]
            self._next: KeyValue | None = (key, value)
        else:
            self._next = None

    def try_next(self) -> KeyValue | None:
        item = self._next
        if item is None:
            return None
        self._next = None
        while self._heap:
            key, num, value = heapq.heappop(self._heap)
            self._push(num, self._iters[num].try_next())
            if key == item[0]:
                continue
            self._next = (key, value)
            break
        return item

    def is_valid(self) -> bool:
        return all(child.is_valid() for child in self._iters)


class SeekMergingIter(MergingIter, SeekIter):
    """A :class:`MergingIter` over seekable iterators, itself seekable."""

    def __init__(self, iters: Sequence[SeekIter]) -> None:
        super().__init__(iters)

    def try_next(self) -> KeyValue | None:
        return super().try_next()

    def is_valid(self) -> bool:
        return super().is_valid()

    def seek(self, seek: Seek) -> None:
        self._heap = []
        if seek.kind is not SeekKind.LAST:
            for num, child in enumerate(self._iters):
                child.seek(seek)
                self._push(num, child.try_next())
        self._refresh_next()