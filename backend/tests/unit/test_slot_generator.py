"""
Tests for bookable-slot generation.

The generator is pure, so these run without a database: templates and
booked sessions are built in memory.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest
import pytz

from tests.helpers import MONDAY, SUNDAY, utc
from tutorbook.core.enums import SessionStatus
from tutorbook.core.exceptions import ValidationException
from tutorbook.schemas.availability import BookedSession, WeeklyAvailability
from tutorbook.services.slot_generator import (
    fits_template,
    generate_slots,
    merge_intervals,
    valid_durations,
)

TUTOR_ID = "01HTUTOR000000000000000000"


def _template(**days):
    return WeeklyAvailability.model_validate(
        {day: [{"start": s, "end": e} for s, e in ranges] for day, ranges in days.items()}
    )


def _booked(start, end, status=SessionStatus.SCHEDULED, tutor_id=TUTOR_ID):
    return BookedSession(tutor_id=tutor_id, start_time=start, end_time=end, status=status)


def _generate(template, booked=(), window_start=MONDAY, window_days=1, granularity=60, tz=pytz.UTC):
    return generate_slots(
        template=template,
        booked=list(booked),
        window_start=window_start,
        window_days=window_days,
        tutor_id=TUTOR_ID,
        granularity_minutes=granularity,
        tz=tz,
    )


class TestGenerateSlots:
    def test_open_template_yields_consecutive_units(self):
        slots = _generate(_template(monday=[("09:00", "11:00")]))

        assert [(s.start, s.end) for s in slots] == [
            (time(9, 0), time(10, 0)),
            (time(10, 0), time(11, 0)),
        ]
        assert all(s.available for s in slots)
        assert all(s.day == MONDAY for s in slots)
        assert slots[0].starts_at == utc(MONDAY, 9)

    def test_booked_session_blocks_its_unit(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 9), utc(MONDAY, 10))],
        )

        assert [s.available for s in slots] == [False, True]

    def test_cancelled_session_does_not_block(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 9), utc(MONDAY, 10), status=SessionStatus.CANCELLED)],
        )

        assert all(s.available for s in slots)

    def test_completed_session_still_blocks(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 10), utc(MONDAY, 11), status=SessionStatus.COMPLETED)],
        )

        assert [s.available for s in slots] == [True, False]

    def test_other_tutors_sessions_are_ignored(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 9), utc(MONDAY, 11), tutor_id="someone-else")],
        )

        assert all(s.available for s in slots)

    def test_partial_overlap_blocks_every_touched_unit(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 9, 30), utc(MONDAY, 10, 30))],
        )

        assert [s.available for s in slots] == [False, False]

    def test_touching_session_does_not_block_neighbour(self):
        slots = _generate(
            _template(monday=[("09:00", "11:00")]),
            booked=[_booked(utc(MONDAY, 10), utc(MONDAY, 11))],
        )

        assert slots[0].available is True
        assert slots[1].available is False

    def test_trailing_partial_unit_is_dropped(self):
        slots = _generate(_template(monday=[("09:00", "09:45")]), granularity=30)

        assert [(s.start, s.end) for s in slots] == [(time(9, 0), time(9, 30))]

    def test_range_shorter_than_one_unit_yields_nothing(self):
        assert _generate(_template(monday=[("09:00", "09:20")]), granularity=30) == []

    def test_window_covers_only_template_weekdays_in_order(self):
        template = _template(
            wednesday=[("14:00", "15:00")],
            monday=[("10:00", "11:00"), ("08:00", "09:00")],
        )

        slots = _generate(template, window_start=SUNDAY, window_days=7)

        assert [s.starts_at for s in slots] == [
            utc(MONDAY, 8),
            utc(MONDAY, 10),
            utc(date(2030, 1, 9), 14),
        ]

    def test_output_is_deterministic(self):
        template = _template(monday=[("09:00", "12:00")], friday=[("13:00", "16:00")])
        booked = [_booked(utc(MONDAY, 10), utc(MONDAY, 11))]

        first = _generate(template, booked, window_start=SUNDAY, window_days=14, granularity=30)
        second = _generate(template, booked, window_start=SUNDAY, window_days=14, granularity=30)

        assert first == second

    def test_no_available_unit_intersects_a_booking(self):
        template = _template(
            monday=[("08:00", "12:00"), ("13:00", "18:00")],
            tuesday=[("09:00", "17:00")],
        )
        booked = [
            _booked(utc(MONDAY, 8, 15), utc(MONDAY, 9, 45)),
            _booked(utc(MONDAY, 9, 30), utc(MONDAY, 10, 0)),
            _booked(utc(MONDAY, 16, 0), utc(MONDAY, 17, 30)),
            _booked(utc(date(2030, 1, 8), 12, 0), utc(date(2030, 1, 8), 12, 30)),
        ]

        slots = _generate(template, booked, window_days=2, granularity=15)

        for slot in slots:
            clashes = any(b.start_time < slot.ends_at and slot.starts_at < b.end_time for b in booked)
            assert slot.available is not clashes

    def test_units_use_the_wall_clock_of_the_system_zone(self):
        new_york = pytz.timezone("America/New_York")
        # DST starts on 2030-03-10; 09:00 that morning is already EDT
        slots = _generate(
            _template(sunday=[("09:00", "10:00")]),
            window_start=date(2030, 3, 10),
            tz=new_york,
        )

        assert len(slots) == 1
        assert slots[0].starts_at.utcoffset() == timedelta(hours=-4)
        assert slots[0].starts_at.astimezone(timezone.utc) == datetime(
            2030, 3, 10, 13, 0, tzinfo=timezone.utc
        )

    def test_skips_the_unit_lost_when_clocks_spring_forward(self):
        los_angeles = pytz.timezone("America/Los_Angeles")
        # 02:00-03:00 does not exist on 2030-03-10
        slots = _generate(
            _template(sunday=[("00:00", "04:00")]),
            window_start=date(2030, 3, 10),
            tz=los_angeles,
        )

        assert [slot.start for slot in slots] == [time(0, 0), time(1, 0), time(3, 0)]
        assert all(slot.ends_at - slot.starts_at == timedelta(hours=1) for slot in slots)

    def test_skips_the_doubled_unit_when_clocks_fall_back(self):
        los_angeles = pytz.timezone("America/Los_Angeles")
        # 01:00-02:00 happens twice on 2030-11-03; the first pass is 08:00-09:00 UTC
        first_pass = _booked(
            datetime(2030, 11, 3, 8, 0, tzinfo=timezone.utc),
            datetime(2030, 11, 3, 9, 0, tzinfo=timezone.utc),
        )

        slots = _generate(
            _template(sunday=[("00:00", "03:00")]),
            booked=[first_pass],
            window_start=date(2030, 11, 3),
            tz=los_angeles,
        )

        assert [slot.start for slot in slots] == [time(1, 0), time(2, 0)]
        assert all(slot.ends_at - slot.starts_at == timedelta(hours=1) for slot in slots)
        assert all(slot.available for slot in slots)

    @pytest.mark.parametrize("window_days,granularity", [(0, 30), (-1, 30), (7, 0)])
    def test_rejects_non_positive_arguments(self, window_days, granularity):
        with pytest.raises(ValidationException):
            _generate(_template(monday=[("09:00", "10:00")]), window_days=window_days, granularity=granularity)


class TestMergeIntervals:
    def test_overlapping_and_touching_intervals_merge(self):
        merged = merge_intervals(
            [
                (utc(MONDAY, 11), utc(MONDAY, 12)),
                (utc(MONDAY, 9), utc(MONDAY, 10)),
                (utc(MONDAY, 9, 30), utc(MONDAY, 11)),
                (utc(MONDAY, 14), utc(MONDAY, 15)),
            ]
        )

        assert merged == [
            (utc(MONDAY, 9), utc(MONDAY, 12)),
            (utc(MONDAY, 14), utc(MONDAY, 15)),
        ]

    def test_contained_interval_is_absorbed(self):
        merged = merge_intervals([(utc(MONDAY, 9), utc(MONDAY, 12)), (utc(MONDAY, 10), utc(MONDAY, 11))])

        assert merged == [(utc(MONDAY, 9), utc(MONDAY, 12))]


class TestFitsTemplate:
    template = WeeklyAvailability.model_validate(
        {"monday": [{"start": "09:00", "end": "10:00"}, {"start": "10:00", "end": "12:00"}]}
    )

    def test_interval_inside_one_range_fits(self):
        assert fits_template(self.template, utc(MONDAY, 10), utc(MONDAY, 11), pytz.UTC) is True

    def test_interval_spanning_two_ranges_does_not_fit(self):
        assert fits_template(self.template, utc(MONDAY, 9, 30), utc(MONDAY, 10, 30), pytz.UTC) is False

    def test_interval_past_range_end_does_not_fit(self):
        assert fits_template(self.template, utc(MONDAY, 11, 30), utc(MONDAY, 12, 30), pytz.UTC) is False

    def test_interval_on_day_without_ranges_does_not_fit(self):
        assert fits_template(self.template, utc(SUNDAY, 9), utc(SUNDAY, 10), pytz.UTC) is False

    def test_interval_across_fall_back_does_not_fit(self):
        los_angeles = pytz.timezone("America/Los_Angeles")
        template = WeeklyAvailability.model_validate({"sunday": [{"start": "00:00", "end": "03:00"}]})

        # Local 00:00 PDT to 01:00 PST reads as one hour but lasts two
        assert fits_template(
            template,
            datetime(2030, 11, 3, 7, 0, tzinfo=timezone.utc),
            datetime(2030, 11, 3, 9, 0, tzinfo=timezone.utc),
            los_angeles,
        ) is False
        assert fits_template(
            template,
            datetime(2030, 11, 3, 9, 0, tzinfo=timezone.utc),
            datetime(2030, 11, 3, 10, 0, tzinfo=timezone.utc),
            los_angeles,
        ) is True


def test_valid_durations_fit_inside_a_single_range():
    template = WeeklyAvailability.model_validate({"monday": [{"start": "09:00", "end": "11:00"}]})

    assert valid_durations(template, MONDAY, 9 * 60 + 30, [120, 30, 60, 90]) == [30, 60, 90]
    assert valid_durations(template, SUNDAY, 9 * 60, [30, 60]) == []
