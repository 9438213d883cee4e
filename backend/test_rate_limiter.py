"""Per-chat debounce."""
from strukbot.core.rate_limiter import RateLimiter


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_second_event_within_interval_is_dropped():
    clock = Ticker()
    limiter = RateLimiter(interval=1.0, clock=clock)

    assert limiter.is_allowed(1) is True
    clock.now = 0.999
    assert limiter.is_allowed(1) is False
    clock.now = 1.0
    assert limiter.is_allowed(1) is True


def test_dropped_events_do_not_extend_the_window():
    clock = Ticker()
    limiter = RateLimiter(interval=1.0, clock=clock)

    limiter.is_allowed(1)
    clock.now = 0.6
    assert limiter.is_allowed(1) is False
    clock.now = 1.1
    assert limiter.is_allowed(1) is True


def test_chats_are_independent():
    limiter = RateLimiter(interval=1.0, clock=Ticker())

    assert limiter.is_allowed(1) is True
    assert limiter.is_allowed(2) is True
    assert limiter.is_allowed(1) is False


def test_cleanup_forgets_idle_chats():
    clock = Ticker()
    limiter = RateLimiter(interval=1.0, clock=clock)
    limiter.is_allowed(1)
    limiter.is_allowed(2)

    clock.now = 301.0
    limiter.is_allowed(3)

    assert set(limiter.last_accepted) == {3}
