from cashback.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(3, 60, clock=clock)

    assert [limiter.hit("1.2.3.4") for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining("1.2.3.4") == 0
    assert limiter.reset_in("1.2.3.4") == 60


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(1, 60, clock=clock)

    assert limiter.hit("a")
    assert not limiter.hit("a")
    clock.now += 61
    assert limiter.hit("a")


def test_identifiers_are_independent():
    limiter = RateLimiter(1, 60, clock=FakeClock())

    assert limiter.hit("a")
    assert limiter.hit("b")
    assert limiter.remaining("c") == 1

    limiter.clear()
    assert limiter.hit("a")
