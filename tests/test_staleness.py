import threading

from novos.staleness import BuildClock, is_stale


def test_clock_starts_at_epoch_and_marks():
    clock = BuildClock()
    assert clock.read() == 0.0
    assert clock.mark(123.5) == 123.5
    assert clock.read() == 123.5
    assert clock.mark() > 123.5


def test_clock_shared_between_threads():
    clock = BuildClock()
    threads = [threading.Thread(target=clock.mark, args=(float(i),)) for i in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert clock.read() in {float(i) for i in range(20)}


def test_is_stale(tmp_path):
    dest = tmp_path / "post.html"
    assert is_stale(5.0, dest, 10.0)
    dest.write_text("x", encoding="utf-8")
    assert not is_stale(5.0, dest, 10.0)
    assert is_stale(11.0, dest, 10.0)
    assert is_stale(0.0, tmp_path / "missing.html", 1e12)
