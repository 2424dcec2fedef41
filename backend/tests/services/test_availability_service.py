from datetime import time

import pytest

from tests.helpers import MONDAY, SUNDAY, utc
from tutorbook.core.config import settings
from tutorbook.core.exceptions import (
    FullyBookedException,
    NoAvailabilityConfiguredException,
    NotFoundException,
    RepositoryException,
    UpstreamUnavailableException,
    ValidationException,
)
from tutorbook.models.availability import TutorAvailability
from tutorbook.monitoring.prometheus_metrics import REGISTRY
from tutorbook.schemas.availability import WeeklyAvailability


class TestGetBookableSlots:
    def test_open_day_lists_every_unit(self, availability_service, tutor):
        result = availability_service.get_bookable_slots(
            tutor.id, window_start=MONDAY, window_days=1, granularity_minutes=60
        )

        assert result.has_availability is True
        assert result.fully_booked is False
        assert result.timezone == "UTC"
        assert len(result.slots) == 8
        assert result.slots[0].starts_at == utc(MONDAY, 9)
        assert result.slots[-1].ends_at == utc(MONDAY, 17)

    def test_booked_session_marks_unit_unavailable(self, availability_service, booking_service, tutor):
        booking_service.commit_booking(tutor.id, "student-1", utc(MONDAY, 9), utc(MONDAY, 10))

        result = availability_service.get_bookable_slots(
            tutor.id, window_start=MONDAY, window_days=1, granularity_minutes=60
        )

        assert [s.available for s in result.slots[:2]] == [False, True]
        assert len(result.available_slots) == 7

    def test_tutor_without_template_reports_no_availability(self, availability_service, make_tutor):
        tutor = make_tutor(template=None)

        result = availability_service.get_bookable_slots(tutor.id, window_start=MONDAY, window_days=7)

        assert result.has_availability is False
        assert result.slots == []
        with pytest.raises(NoAvailabilityConfiguredException):
            result.raise_for_status()

    def test_fully_booked_window_is_distinct_from_no_template(
        self, availability_service, booking_service, make_tutor
    ):
        tutor = make_tutor(template={"monday": [{"start": "09:00", "end": "10:00"}]})
        booking_service.commit_booking(tutor.id, "student-1", utc(MONDAY, 9), utc(MONDAY, 10))

        result = availability_service.get_bookable_slots(
            tutor.id, window_start=SUNDAY, window_days=7, granularity_minutes=30
        )

        assert result.has_availability is True
        assert result.fully_booked is True
        with pytest.raises(FullyBookedException):
            result.raise_for_status()

    def test_window_is_capped(self, availability_service, tutor):
        result = availability_service.get_bookable_slots(tutor.id, window_start=MONDAY, window_days=1000)

        assert result.window_days == settings.max_booking_window_days

    def test_defaults_come_from_settings_and_clock(self, availability_service, tutor):
        result = availability_service.get_bookable_slots(tutor.id)

        assert result.window_start.isoformat() == "2030-01-01"
        assert result.window_days == settings.booking_window_days
        assert result.granularity_minutes == settings.slot_granularity_minutes

    @pytest.mark.parametrize("kwargs", [{"window_days": 0}, {"granularity_minutes": 0}])
    def test_non_positive_arguments_are_rejected(self, availability_service, tutor, kwargs):
        with pytest.raises(ValidationException):
            availability_service.get_bookable_slots(tutor.id, window_start=MONDAY, **kwargs)

    def test_corrupt_template_is_reported_as_unavailable(self, db, availability_service, tutor):
        row = db.get(TutorAvailability, tutor.id)
        row.availability = {"monday": [{"start": "11:00", "end": "09:00"}]}
        db.commit()

        with pytest.raises(UpstreamUnavailableException):
            availability_service.get_bookable_slots(tutor.id, window_start=MONDAY, window_days=1)

    def test_booked_session_fetch_failure_is_reported_as_unavailable(
        self, availability_service, tutor, monkeypatch
    ):
        def broken_fetch(*args, **kwargs):
            raise RepositoryException("connection lost")

        monkeypatch.setattr(availability_service.session_repository, "get_booked_sessions", broken_fetch)

        with pytest.raises(UpstreamUnavailableException) as exc_info:
            availability_service.get_bookable_slots(tutor.id, window_start=MONDAY, window_days=1)

        assert exc_info.value.details == {"tutor_id": tutor.id}


class TestWeeklyTemplate:
    def test_update_replaces_the_whole_template(self, availability_service, tutor):
        template = WeeklyAvailability.model_validate({"saturday": [{"start": "10:00", "end": "12:00"}]})

        availability_service.update_weekly_availability(tutor.id, template)
        stored = availability_service.get_weekly_availability(tutor.id)

        assert stored.monday == []
        assert [(r.start, r.end) for r in stored.saturday] == [(time(10), time(12))]

    def test_update_leaves_existing_sessions_alone(
        self, db, availability_service, booking_service, tutor
    ):
        session = booking_service.commit_booking(tutor.id, "student-1", utc(MONDAY, 9), utc(MONDAY, 10))

        availability_service.update_weekly_availability(
            tutor.id, WeeklyAvailability.model_validate({"friday": [{"start": "13:00", "end": "14:00"}]})
        )

        db.refresh(session)
        assert session.status == "scheduled"

    def test_tutor_without_template_gets_an_empty_one(self, availability_service, make_tutor):
        tutor = make_tutor(template=None)

        assert availability_service.get_weekly_availability(tutor.id).is_empty()

    def test_unknown_tutor_is_not_found(self, availability_service):
        with pytest.raises(NotFoundException):
            availability_service.get_weekly_availability("missing")
        with pytest.raises(NotFoundException):
            availability_service.update_weekly_availability("missing", WeeklyAvailability())


def test_valid_durations_respect_range_end(availability_service, tutor):
    result = availability_service.get_valid_durations(tutor.id, MONDAY, time(16, 0))

    assert result.durations == [30, 60]
    assert result.requested == sorted(settings.session_duration_options)


def test_valid_durations_without_template_are_empty(availability_service, make_tutor):
    tutor = make_tutor(template=None)

    assert availability_service.get_valid_durations(tutor.id, MONDAY, time(9, 0)).durations == []


def test_explicit_empty_duration_options_are_kept(availability_service, tutor):
    result = availability_service.get_valid_durations(tutor.id, MONDAY, time(9, 0), duration_options=[])

    assert result.durations == []
    assert result.requested == []


def test_measured_operations_feed_prometheus(availability_service, tutor):
    labels = {"service": "AvailabilityService", "operation": "update_weekly_availability", "status": "success"}
    before = REGISTRY.get_sample_value("tutorbook_service_operations_total", labels) or 0.0

    availability_service.update_weekly_availability(tutor.id, WeeklyAvailability())

    assert REGISTRY.get_sample_value("tutorbook_service_operations_total", labels) == before + 1
