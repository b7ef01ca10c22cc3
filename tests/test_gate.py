import threading

from followcam.detection.gate import DetectionGate


def test_exactly_one_concurrent_acquire_wins() -> None:
    gate = DetectionGate()
    n = 16
    barrier = threading.Barrier(n)
    results = []
    lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        ok = gate.try_acquire()
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=attempt) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert gate.busy


def test_release_allows_next_acquire() -> None:
    gate = DetectionGate()
    assert gate.try_acquire()
    assert not gate.try_acquire()
    gate.release()
    assert not gate.busy
    assert gate.try_acquire()
