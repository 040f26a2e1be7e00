"""Process-wide generators for sequence ids and file generations.

Sequence ids start at 1 on every start of the process and only grow, so
they order writes within one run.  Generations are seeded from the wall
clock in milliseconds, so they stay ordered across restarts as well.
"""

from __future__ import annotations

import threading
import time

_seq_lock = threading.Lock()
_seq_next = 1

_gen_lock = threading.Lock()
_gen_next = 0


def next_sequence() -> int:
    """Return a new sequence id, larger than every one returned before."""
    global _seq_next
    with _seq_lock:
        value = _seq_next
        _seq_next += 1
    return value


def init_gen() -> None:
    """Reset the generation counter to the current time in milliseconds."""
    global _gen_next
    with _gen_lock:
        _gen_next = time.time_ns() // 1_000_000


def next_gen() -> int:
    """Return a new generation number and advance the counter."""
    global _gen_next
    with _gen_lock:
        value = _gen_next
        _gen_next += 1
    return value