import pytest

from voxd.l0_core.bounded_queue import BoundedQueue


def test_bounded_queue_timed_put_get():
    q = BoundedQueue(maxsize=2, name="tq")

    # Fill within capacity
    assert q.put(1, timeout=0.01) is True
    assert q.put(2, timeout=0.01) is True

    # Exceed capacity → dropped by policy (False)
    assert q.put(3, timeout=0.01) is False

    # Drain two items in FIFO order
    ok, val = q.get(timeout=0.01)
    assert ok is True and val == 1

    ok, val = q.get(timeout=0.01)
    assert ok is True and val == 2

    # Third get times out → (False, None)
    ok, val = q.get(timeout=0.01)
    assert ok is False and val is None


def test_drain_returns_everything_oldest_first():
    q = BoundedQueue(maxsize=4, name="tq")
    for i in range(3):
        q.put(i, timeout=0.01)

    assert q.drain() == [0, 1, 2]
    assert q.qsize() == 0
    assert q.drain() == []


@pytest.mark.parametrize("maxsize,name", [(0, "q"), (2, " "), ("2", "q")])
def test_rejects_bad_construction(maxsize, name):
    with pytest.raises(ValueError):
        BoundedQueue(maxsize=maxsize, name=name)
