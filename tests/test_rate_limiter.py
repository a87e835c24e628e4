import threading

from phonepixie.rate_limiter import InMemoryRateLimitStore, client_key_from


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_limit_then_refuse():
    clock = FakeClock()
    store = InMemoryRateLimitStore(limit=3, window_sec=60, ttl_sec=600, clock=clock)
    decisions = [store.check("1.2.3.4") for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert decisions[-1].reset_at == 1_060


def test_refused_requests_do_not_extend_window():
    clock = FakeClock()
    store = InMemoryRateLimitStore(limit=1, window_sec=60, clock=clock)
    store.check("a")
    clock.now += 30
    assert not store.check("a").allowed
    clock.now += 30
    decision = store.check("a")
    assert decision.allowed
    assert decision.reset_at == 1_120


def test_clients_are_counted_separately():
    store = InMemoryRateLimitStore(limit=1, clock=FakeClock())
    assert store.check("a").allowed
    assert store.check("b").allowed
    assert not store.check("a").allowed


def test_idle_windows_are_evicted_after_ttl():
    clock = FakeClock()
    store = InMemoryRateLimitStore(limit=5, window_sec=60, ttl_sec=600, clock=clock)
    store.check("idle")
    clock.now += 300
    store.check("active")
    assert len(store) == 2
    clock.now += 400
    store.check("active")
    assert len(store) == 1


def test_headers_render_decision():
    decision = InMemoryRateLimitStore(limit=2, window_sec=60, clock=FakeClock()).check("x")
    assert decision.headers() == {
        "X-RateLimit-Limit": "2",
        "X-RateLimit-Remaining": "1",
        "X-RateLimit-Reset": "1060",
    }


def test_concurrent_checks_never_exceed_limit():
    store = InMemoryRateLimitStore(limit=25, window_sec=60)
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(10):
            decision = store.check("shared")
            with lock:
                results.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert results.count(True) == 25
    assert len(results) == 80


def test_client_key_prefers_forwarded_for():
    assert client_key_from("203.0.113.9, 10.0.0.1", "10.0.0.1") == "203.0.113.9"
    assert client_key_from(None, "127.0.0.1") == "127.0.0.1"
    assert client_key_from(" ", None) == "anonymous"
