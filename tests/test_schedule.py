from datetime import datetime

import pytest

from arcontroller.schedule import Period, RecurrenceRule, ScheduleError, match_schedule

S = "2021-05-01T00:00:00+09:00"
E = "2021-05-03T00:00:00+09:00"
U22 = "2022-05-01T00:00:00+09:00"
U23 = "2023-05-01T00:00:00+09:00"

CASES = [
    ("", "", "2021-04-30T23:59:59+09:00", "", f"{S}-{E}"),
    ("", "", "2021-05-01T00:00:00+09:00", f"{S}-{E}", ""),
    ("", "", "2021-05-02T23:59:59+09:00", f"{S}-{E}", ""),
    ("", "", "2021-05-03T00:00:00+09:00", "", ""),
    ("Weekly", U22, "2021-04-30T23:59:59+09:00", "", f"{S}-{E}"),
    ("Weekly", U22, "2021-05-01T00:00:00+09:00", f"{S}-{E}", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-02T23:59:59+09:00", f"{S}-{E}", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-03T00:00:00+09:00", "", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-07T23:59:59+09:00", "", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-08T00:00:00+09:00", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00", "2021-05-15T00:00:00+09:00-2021-05-17T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-09T23:59:59+09:00", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00", "2021-05-15T00:00:00+09:00-2021-05-17T00:00:00+09:00"),
    ("Weekly", U22, "2021-05-10T00:00:00+09:00", "", "2021-05-15T00:00:00+09:00-2021-05-17T00:00:00+09:00"),
    ("Weekly", U22, "2022-04-29T23:59:59+09:00", "", "2022-04-30T00:00:00+09:00-2022-05-02T00:00:00+09:00"),
    ("Weekly", U22, "2022-04-30T00:00:00+09:00", "2022-04-30T00:00:00+09:00-2022-05-02T00:00:00+09:00", ""),
    ("Weekly", U22, "2022-05-01T23:59:59+09:00", "2022-04-30T00:00:00+09:00-2022-05-02T00:00:00+09:00", ""),
    ("Weekly", U22, "2022-05-02T00:00:00+09:00", "", ""),
    ("Weekly", "", "2021-05-08T00:00:00+09:00", "2021-05-08T00:00:00+09:00-2021-05-10T00:00:00+09:00", "2021-05-15T00:00:00+09:00-2021-05-17T00:00:00+09:00"),
    ("Monthly", U22, "2021-05-01T00:00:00+09:00", f"{S}-{E}", "2021-06-01T00:00:00+09:00-2021-06-03T00:00:00+09:00"),
    ("Monthly", U22, "2021-06-01T00:00:00+09:00", "2021-06-01T00:00:00+09:00-2021-06-03T00:00:00+09:00", "2021-07-01T00:00:00+09:00-2021-07-03T00:00:00+09:00"),
    ("Monthly", U22, "2022-04-30T23:59:59+09:00", "", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00"),
    ("Monthly", U22, "2022-05-01T00:00:00+09:00", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00", ""),
    ("Monthly", U22, "2022-05-01T00:00:01+09:00", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00", ""),
    ("Monthly", U22, "2022-05-02T23:59:59+09:00", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00", ""),
    ("Monthly", U22, "2022-05-03T00:00:00+09:00", "", ""),
    ("Yearly", U22, "2021-05-01T00:00:00+09:00", f"{S}-{E}", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00"),
    ("Yearly", U23, "2022-05-01T00:00:00+09:00", "2022-05-01T00:00:00+09:00-2022-05-03T00:00:00+09:00", "2023-05-01T00:00:00+09:00-2023-05-03T00:00:00+09:00"),
    ("Yearly", U23, "2023-04-30T23:59:59+09:00", "", "2023-05-01T00:00:00+09:00-2023-05-03T00:00:00+09:00"),
    ("Yearly", U23, "2023-05-01T00:00:00+09:00", "2023-05-01T00:00:00+09:00-2023-05-03T00:00:00+09:00", ""),
    ("Yearly", U23, "2023-05-02T23:23:59+09:00", "2023-05-01T00:00:00+09:00-2023-05-03T00:00:00+09:00", ""),
    ("Yearly", U23, "2023-05-03T00:00:00+09:00", "", ""),
]


def _s(period):
    return str(period) if period is not None else ""


@pytest.mark.parametrize("freq,until,now,want_active,want_upcoming", CASES)
def test_match_schedule(freq, until, now, want_active, want_upcoming):
    until_time = datetime.fromisoformat(until) if until else None
    active, upcoming = match_schedule(
        datetime.fromisoformat(now),
        datetime.fromisoformat(S),
        datetime.fromisoformat(E),
        RecurrenceRule(frequency=freq, until_time=until_time),
    )
    assert _s(active) == want_active
    assert _s(upcoming) == want_upcoming


def test_invalid_frequency():
    now = datetime.fromisoformat(S)
    with pytest.raises(ScheduleError):
        match_schedule(now, now, now, RecurrenceRule(frequency="Hourly"))


def test_override_longer_than_frequency():
    with pytest.raises(ScheduleError):
        match_schedule(
            datetime.fromisoformat(S),
            datetime.fromisoformat(S),
            datetime.fromisoformat("2021-05-10T00:00:00+09:00"),
            RecurrenceRule(frequency="Daily"),
        )


def test_period_string():
    p = Period(datetime.fromisoformat(S), datetime.fromisoformat(E))
    assert str(p) == f"{S}-{E}"