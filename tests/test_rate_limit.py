from printbot.rate_limit import RateLimiter


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_admits_up_to_cap_then_denies():
    clock = Clock()
    limiter = RateLimiter(3, clock)
    assert [limiter.admit("a") for _ in range(4)] == [True, True, True, False]


def test_denied_requests_are_not_recorded():
    clock = Clock()
    limiter = RateLimiter(2, clock)
    limiter.admit("a")
    clock.now = 1800
    limiter.admit("a")
    for _ in range(5):
        assert not limiter.admit("a")

    # only the first admission has aged out; the denials did not extend the window
    clock.now = 3601
    assert limiter.admit("a")
    assert not limiter.admit("a")


def test_never_more_than_cap_in_any_trailing_hour():
    clock = Clock()
    limiter = RateLimiter(5, clock)
    admitted = []
    for step in range(0, 4 * 3600, 97):
        clock.now = step
        if limiter.admit("a"):
            admitted.append(step)
    for ts in admitted:
        window = [t for t in admitted if ts - 3600 < t <= ts]
        assert len(window) <= 5


def test_senders_are_independent():
    limiter = RateLimiter(1, Clock())
    assert limiter.admit("a")
    assert limiter.admit("b")
    assert not limiter.admit("a")


def test_admins_bypass_and_disabled_limiter_admits_all():
    limiter = RateLimiter(1, Clock(), admins=["boss"])
    assert all(limiter.admit("boss") for _ in range(10))

    disabled = RateLimiter(1, Clock(), enabled=False)
    assert all(disabled.admit("a") for _ in range(10))
