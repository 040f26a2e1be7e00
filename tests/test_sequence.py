import time
from concurrent.futures import ThreadPoolExecutor

from kipstore.sequence import init_gen, next_gen, next_sequence


def test_seq_create():
    i_1 = next_sequence()
    i_2 = next_sequence()
    assert i_1 < i_2


def test_sequence_is_positive():
    assert next_sequence() >= 1


def test_gen_create():
    init_gen()
    i_1 = next_gen()
    i_2 = next_gen()
    assert i_1 < i_2

    time.sleep(0.002)
    init_gen()
    i_3 = next_gen()

    time.sleep(0.001)
    init_gen()
    i_4 = next_gen()

    assert i_3 > i_2
    assert i_4 > i_3


def test_gen_seeded_from_clock():
    before = time.time_ns() // 1_000_000
    init_gen()
    gen = next_gen()
    after = time.time_ns() // 1_000_000
    assert before <= gen <= after


def test_gen_consecutive_after_init():
    init_gen()
    first = next_gen()
    assert next_gen() == first + 1


def _draw_batch(_):
    return [next_sequence() for _ in range(500)]


def test_sequence_unique_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        batches = list(pool.map(_draw_batch, range(8)))

    values = [value for batch in batches for value in batch]
    assert len(values) == 4000
    assert len(set(values)) == 4000
    for batch in batches:
        assert batch == sorted(batch)
    assert next_sequence() > max(values)