from datetime import datetime, timezone

from data_sources.quota import DailyQuota


class FakeClock:
    def __init__(self, when):
        self.when = when

    def __call__(self):
        return self.when


def test_reserve_is_all_or_nothing():
    quota = DailyQuota(10, "test", clock=FakeClock(datetime(2024, 5, 1, 12, tzinfo=timezone.utc)))
    assert quota.try_reserve(8)
    assert not quota.try_reserve(8)
    assert quota.calls_today == 8
    assert quota.remaining == 2
    assert quota.try_reserve(2)
    assert quota.remaining == 0


def test_resets_at_utc_midnight():
    clock = FakeClock(datetime(2024, 5, 1, 23, 59, tzinfo=timezone.utc))
    quota = DailyQuota(8, "test", clock=clock)
    assert quota.try_reserve(8)
    assert not quota.try_reserve(1)

    clock.when = datetime(2024, 5, 2, 0, 1, tzinfo=timezone.utc)
    assert quota.calls_today == 0
    assert quota.try_reserve(8)


def test_usage():
    quota = DailyQuota(300, "foursquare")
    quota.try_reserve(8)
    assert quota.usage() == {"calls_today": 8, "daily_limit": 300}
