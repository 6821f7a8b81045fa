from app.services.rate_limiter import RateLimiter


def make_limiter(store, clock):
    return RateLimiter(store, lockout_minutes=30, clock=clock)


def test_locks_after_max_failures(store, clock):
    limiter = make_limiter(store, clock)
    for _ in range(5):
        assert limiter.check("login:ana@x.com", 5, 15).allowed
        limiter.record_failed_attempt("login:ana@x.com", 15)

    status = limiter.check("login:ana@x.com", 5, 15)
    assert not status.allowed
    assert status.lockout_end > clock()
    assert "Too many failed attempts" in status.message


def test_lockout_expires(store, clock):
    limiter = make_limiter(store, clock)
    for _ in range(5):
        limiter.record_failed_attempt("k", 15)
    assert not limiter.check("k", 5, 15).allowed

    clock.advance(minutes=31)
    assert limiter.check("k", 5, 15).allowed


def test_window_elapsed_clears_count(store, clock):
    limiter = make_limiter(store, clock)
    for _ in range(4):
        limiter.record_failed_attempt("k", 15)
    clock.advance(minutes=16)
    assert limiter.record_failed_attempt("k", 15) == 1


def test_reset(store, clock):
    limiter = make_limiter(store, clock)
    for _ in range(5):
        limiter.record_failed_attempt("k", 15)
    limiter.reset("k")
    assert limiter.check("k", 5, 15).allowed


def test_identifiers_are_independent(store, clock):
    limiter = make_limiter(store, clock)
    for _ in range(5):
        limiter.record_failed_attempt("login:a@x.com", 15)
    assert not limiter.check("login:a@x.com", 5, 15).allowed
    assert limiter.check("login:b@x.com", 5, 15).allowed
