from datetime import datetime, timedelta, timezone

import pytest

from deskwatch.sla.domain import (
    SLAAccumulator,
    SLAEvent,
    ShiftSchedule,
    shift_aware_minutes,
    shift_aware_minutes_closed_form,
)

DAY = datetime(2024, 1, 15)


def at(hour, minute=0, second=0, days=0):
    return DAY + timedelta(days=days, hours=hour, minutes=minute, seconds=second)


def ev(event_type, when, shift=None, notes=None):
    return SLAEvent(ticket_id="T-1", event_type=event_type, occurred_at=when, shift_code=shift, notes=notes)


@pytest.fixture(params=[shift_aware_minutes, shift_aware_minutes_closed_form], ids=["walk", "closed_form"])
def accumulator(request, schedule):
    return SLAAccumulator(schedule, minute_counter=request.param)


def test_paused_after_45_minutes(accumulator):
    summary = accumulator.replay([ev("assigned", at(9), "AM"), ev("paused", at(9, 45))], now=at(12))

    assert summary.total_minutes == 45
    assert summary.is_active is False
    assert summary.formatted_time == "0h 45m"


def test_only_minutes_in_the_opening_shift_count(accumulator):
    summary = accumulator.replay([ev("assigned", at(13, 58), "AM"), ev("resolved", at(14, 10))], now=at(15))
    assert summary.total_minutes == 2


def test_unmatched_stop_event_is_ignored(accumulator):
    summary = accumulator.replay([ev("paused", at(9)), ev("resolved", at(10))], now=at(11))

    assert summary.total_minutes == 0
    assert summary.is_active is False


def test_running_timer_counts_up_to_now(accumulator):
    summary = accumulator.replay([ev("assigned", at(9), "AM")], now=at(10, 30))

    assert summary.total_minutes == 90
    assert summary.is_active is True
    assert summary.formatted_time == "1h 30m"


def test_multiple_intervals_add_up(accumulator):
    events = [
        ev("assigned", at(9), "AM"),
        ev("paused", at(9, 30)),
        ev("resumed", at(10), "AM"),
        ev("responded", at(10, 15)),
    ]
    assert accumulator.replay(events, now=at(12)).total_minutes == 45


def test_repeated_start_keeps_first_start(accumulator):
    events = [ev("assigned", at(9), "AM"), ev("resumed", at(9, 30), "AM"), ev("resolved", at(10))]
    assert accumulator.replay(events, now=at(12)).total_minutes == 60


def test_events_are_ordered_by_time(accumulator):
    events = [ev("paused", at(9, 45)), ev("assigned", at(9), "AM")]
    assert accumulator.replay(events, now=at(12)).total_minutes == 45


def test_events_without_timestamp_are_skipped(accumulator):
    events = [ev("assigned", at(9), "AM"), ev("paused", None), ev("paused", at(9, 20))]
    assert accumulator.replay(events, now=at(12)).total_minutes == 20


def test_overnight_ticket_only_counts_its_shift(accumulator):
    events = [ev("assigned", at(9), "AM"), ev("resolved", at(9, days=1))]

    # 09:00-14:00 on day one and 06:00-09:00 on day two
    assert accumulator.replay(events, now=at(12, days=1)).total_minutes == 480


def test_graveyard_timer_stops_at_six(accumulator):
    events = [ev("assigned", at(5), "GY"), ev("resolved", at(7))]
    assert accumulator.replay(events, now=at(8)).total_minutes == 60


def test_missing_shift_tag_falls_back_to_current_shift(accumulator):
    events = [ev("assigned", at(9)), ev("resolved", at(10))]
    assert accumulator.replay(events, now=at(15)).total_minutes == 0
    assert accumulator.replay(events, now=at(11)).total_minutes == 60


def test_untagged_start_uses_the_closing_event_shift(accumulator):
    events = [ev("assigned", at(9)), ev("resolved", at(10), "AM")]
    assert accumulator.replay(events, now=at(15)).total_minutes == 60


def test_replay_is_idempotent(accumulator):
    events = [ev("assigned", at(9), "AM"), ev("paused", at(11)), ev("resumed", at(13), "AM")]

    first = accumulator.replay(events, now=at(16))
    second = accumulator.replay(events, now=at(16))

    assert first == second
    assert first.total_minutes == 180


def test_aware_and_naive_timestamps_mix():
    manila = ShiftSchedule(timezone="Asia/Manila")
    events = [
        ev("assigned", datetime(2024, 1, 15, 1, 0, tzinfo=timezone.utc), "AM"),  # 09:00 Manila
        ev("paused", datetime(2024, 1, 15, 9, 30)),  # naive wall clock
    ]
    assert SLAAccumulator(manila).replay(events, now=datetime(2024, 1, 15, 12)).total_minutes == 30


# ========== Closed form against the minute walk ==========

FIXTURES = [
    ("UTC", at(9), at(9, 45), "AM"),
    ("UTC", at(13, 58), at(14, 10), "AM"),
    ("UTC", at(13, 58, 30), at(14, 10), "AM"),
    ("UTC", at(9, 0, 30), at(9, 2), "AM"),
    ("UTC", at(21, 17, 45), at(7, 3, 10, days=1), "GY"),
    ("UTC", at(5, 59, 59), at(6, 0, 1), "GY"),
    ("UTC", at(9), at(9, days=3), "PM"),
    ("UTC", at(10), at(9), "AM"),
    ("UTC", at(10), at(11), "NIGHT"),
    ("Asia/Kolkata", at(3, 10), at(20, 50), "AM"),
    ("Asia/Kathmandu", at(0, 7, 13), at(23, 59, 59), "PM"),
    ("America/New_York", datetime(2024, 3, 9, 20), datetime(2024, 3, 11, 8), "GY"),
]


@pytest.mark.parametrize("tz,start,end,shift", FIXTURES)
def test_closed_form_matches_walk(tz, start, end, shift):
    schedule = ShiftSchedule(timezone=tz)
    assert shift_aware_minutes_closed_form(start, end, shift, schedule) == shift_aware_minutes(start, end, shift, schedule)


def test_closed_form_handles_long_intervals(schedule):
    # 30 days of AM shift is 30 * 8 hours
    assert shift_aware_minutes_closed_form(at(0), at(0, days=30), "AM", schedule) == 30 * 8 * 60
