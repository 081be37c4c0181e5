"""
Tests for the SchedulingService orchestration layer.
"""

import asyncio
from typing import List

import pytest

from classplanner.adapters.schedule_store import InMemoryScheduleStore
from classplanner.config import AppConfig
from classplanner.domain.exceptions import (
    InvalidStatusTransitionError,
    InvalidTimeSlotError,
    PermissionDeniedError,
    ScheduleConflictError,
    ScheduleNotFoundError,
    StoreError,
)
from classplanner.domain.models import Role, Schedule, ScheduleStatus
from classplanner.services.scheduling_service import ScheduleRequest, SchedulingService


def _request(**overrides) -> ScheduleRequest:
    values = dict(
        course_id="py101",
        week_start="2024-01-01",
        days_of_week=[1],
        time_slot="09:00-11:00",
        created_by="sales1",
        trainer_id="t1",
        student_id="st1",
    )
    values.update(overrides)
    return ScheduleRequest(**values)


def _build_service(**config_values) -> SchedulingService:
    return SchedulingService(repository=InMemoryScheduleStore(), config=AppConfig(**config_values))


def _book(service: SchedulingService, role: Role = Role.SALES_CONSULTANT, **overrides) -> List[Schedule]:
    return asyncio.run(service.create_schedules(_request(**overrides), role)).created


class TestCreateSchedules:
    """Tests for booking."""

    def test_books_every_requested_day(self):
        service = _build_service()

        created = _book(service, days_of_week=[1, 3, 5])

        assert [s.day_of_week for s in created] == [1, 3, 5]
        assert all(s.status == ScheduleStatus.ACTIVE for s in created)
        assert len(asyncio.run(service.all_schedules())) == 3

    def test_conflict_rejects_booking(self):
        """Trainer t1 already teaches 09:00-11:00 on Monday."""
        service = _build_service()
        _book(service)

        with pytest.raises(ScheduleConflictError) as exc_info:
            _book(service, course_id="js201", student_id="st2", time_slot="10:00-12:00")

        assert list(exc_info.value.conflicts) == [1]
        assert "Trainer is busy" in str(exc_info.value)

    def test_back_to_back_booking_is_allowed(self):
        service = _build_service()
        _book(service)

        created = _book(service, course_id="js201", time_slot="11:00-13:00")

        assert len(created) == 1

    def test_batch_booking_for_second_student(self):
        service = _build_service()
        _book(service)

        created = _book(service, student_id="st2")

        assert len(created) == 1
        assert len(asyncio.run(service.trainer_schedules("t1"))) == 2

    def test_atomic_mode_commits_nothing_on_any_conflict(self):
        service = _build_service()
        _book(service, course_id="js201", days_of_week=[3])

        with pytest.raises(ScheduleConflictError) as exc_info:
            _book(service, days_of_week=[1, 3, 5])

        assert list(exc_info.value.conflicts) == [3]
        assert len(asyncio.run(service.all_schedules())) == 1

    def test_partial_mode_commits_free_days(self):
        service = _build_service(batch_commit_mode="partial")
        _book(service, course_id="js201", days_of_week=[3])

        result = asyncio.run(service.create_schedules(_request(days_of_week=[1, 3, 5]), Role.ADMIN))

        assert [s.day_of_week for s in result.created] == [1, 5]
        assert list(result.conflicts) == [3]
        assert not result.fully_booked

    def test_cancelled_booking_frees_trainer(self):
        service = _build_service()
        first = _book(service)[0]
        asyncio.run(service.change_status(first.id, ScheduleStatus.CANCELLED, Role.ADMIN))

        created = _book(service, course_id="js201", time_slot="10:00-12:00")

        assert len(created) == 1

    def test_booking_without_trainer_skips_conflict_check(self):
        service = _build_service()

        created = _book(service, trainer_id=None)

        assert created[0].trainer_id is None

    def test_invalid_slot_is_rejected(self):
        service = _build_service()

        with pytest.raises(InvalidTimeSlotError):
            _book(service, time_slot="09:00-10:30")

    def test_trainer_role_cannot_book(self):
        service = _build_service()

        with pytest.raises(PermissionDeniedError):
            _book(service, role=Role.TRAINER)

    def test_days_are_required(self):
        service = _build_service()

        with pytest.raises(ValueError, match="At least one day"):
            _book(service, days_of_week=[])

    def test_concurrent_bookings_cannot_both_succeed(self):
        """Check and write happen under one lock, so the second booking sees the first."""
        service = _build_service()

        async def race():
            return await asyncio.gather(
                service.create_schedules(_request(course_id="py101"), Role.ADMIN),
                service.create_schedules(_request(course_id="js201", student_id="st2"), Role.ADMIN),
                return_exceptions=True,
            )

        outcomes = asyncio.run(race())

        assert sum(isinstance(outcome, ScheduleConflictError) for outcome in outcomes) == 1
        assert len(asyncio.run(service.all_schedules())) == 1


class TestUpdateSchedule:
    """Tests for editing a booking."""

    def test_moving_within_own_slot_does_not_self_conflict(self):
        service = _build_service()
        schedule = _book(service)[0]

        updated = asyncio.run(
            service.update_schedule(schedule.id, {"time_slot": "10:00-12:00"}, Role.ADMIN)
        )

        assert updated.time_slot == "10:00-12:00"

    def test_moving_onto_busy_slot_conflicts(self):
        service = _build_service()
        _book(service, course_id="js201", time_slot="13:00-15:00")
        schedule = _book(service)[0]

        with pytest.raises(ScheduleConflictError):
            asyncio.run(service.update_schedule(schedule.id, {"time_slot": "12:00-14:00"}, Role.ADMIN))

        assert asyncio.run(service.trainer_schedules("t1"))[0].time_slot == "09:00-11:00"

    def test_unknown_field_is_rejected(self):
        service = _build_service()
        schedule = _book(service)[0]

        with pytest.raises(ValueError, match="status"):
            asyncio.run(service.update_schedule(schedule.id, {"status": "paused"}, Role.ADMIN))

    def test_unknown_schedule(self):
        service = _build_service()

        with pytest.raises(ScheduleNotFoundError):
            asyncio.run(service.update_schedule("missing", {"day_of_week": 2}, Role.ADMIN))

    def test_cancelled_schedule_cannot_be_edited(self):
        service = _build_service()
        schedule = _book(service)[0]
        asyncio.run(service.change_status(schedule.id, ScheduleStatus.CANCELLED, Role.ADMIN))

        with pytest.raises(InvalidStatusTransitionError, match="cancelled"):
            asyncio.run(service.update_schedule(schedule.id, {"day_of_week": 2}, Role.ADMIN))

        assert asyncio.run(service.all_schedules())[0].day_of_week == 1

    def test_completed_schedule_cannot_be_edited(self):
        service = _build_service()
        schedule = _book(service)[0]
        asyncio.run(service.change_status(schedule.id, ScheduleStatus.COMPLETED, Role.ADMIN))

        with pytest.raises(InvalidStatusTransitionError, match="completed"):
            asyncio.run(service.update_schedule(schedule.id, {"time_slot": "10:00-12:00"}, Role.ADMIN))

    def test_non_occupying_schedule_is_not_conflict_checked(self):
        """With only active bookings occupying, a paused booking may sit on a busy slot."""
        service = _build_service(occupying_statuses=["active"])
        _book(service, course_id="js201", student_id="st2", time_slot="13:00-15:00")
        schedule = _book(service)[0]
        asyncio.run(service.change_status(schedule.id, ScheduleStatus.PAUSED, Role.ADMIN))

        updated = asyncio.run(
            service.update_schedule(schedule.id, {"time_slot": "12:00-14:00"}, Role.ADMIN)
        )

        assert updated.time_slot == "12:00-14:00"
        assert updated.status == ScheduleStatus.PAUSED


class TestChangeStatus:
    """Tests for lifecycle changes."""

    def test_applies_to_all_days_of_student_course(self):
        service = _build_service()
        created = _book(service, days_of_week=[1, 3])
        _book(service, course_id="js201", time_slot="13:00-15:00")

        moved = asyncio.run(service.change_status(created[0].id, ScheduleStatus.PAUSED, Role.SALES_CONSULTANT))

        assert sorted(s.day_of_week for s in moved) == [1, 3]
        statuses = {s.course_id: s.status for s in asyncio.run(service.all_schedules()) if s.course_id == "js201"}
        assert statuses == {"js201": ScheduleStatus.ACTIVE}

    def test_terminal_status_cannot_be_left(self):
        service = _build_service()
        schedule = _book(service)[0]
        asyncio.run(service.change_status(schedule.id, ScheduleStatus.COMPLETED, Role.ADMIN))

        with pytest.raises(InvalidStatusTransitionError):
            asyncio.run(service.change_status(schedule.id, ScheduleStatus.ACTIVE, Role.ADMIN))

    def test_student_role_cannot_change_status(self):
        service = _build_service()
        schedule = _book(service)[0]

        with pytest.raises(PermissionDeniedError):
            asyncio.run(service.change_status(schedule.id, ScheduleStatus.PAUSED, Role.STUDENT))

    def test_finished_older_week_does_not_block_newer_week(self):
        service = _build_service()
        old = _book(service)[0]
        asyncio.run(service.change_status(old.id, ScheduleStatus.COMPLETED, Role.ADMIN))
        new = _book(service, week_start="2024-01-08")[0]

        moved = asyncio.run(service.change_status(new.id, ScheduleStatus.PAUSED, Role.ADMIN))

        assert [s.id for s in moved] == [new.id]
        statuses = {s.id: s.status for s in asyncio.run(service.all_schedules())}
        assert statuses == {old.id: ScheduleStatus.COMPLETED, new.id: ScheduleStatus.PAUSED}

    def test_cancelled_sibling_is_left_alone(self):
        service = _build_service()
        first, second = _book(service, days_of_week=[1, 3])
        asyncio.run(service.change_status(first.id, ScheduleStatus.CANCELLED, Role.ADMIN))
        third = _book(service, days_of_week=[5])[0]

        moved = asyncio.run(service.change_status(third.id, ScheduleStatus.PAUSED, Role.ADMIN))

        assert [s.id for s in moved] == [third.id]
        assert asyncio.run(service.all_schedules())[0].status == ScheduleStatus.CANCELLED

    def test_reactivation_is_conflict_checked(self):
        """A paused booking that stopped occupying must not take back a slot given away."""
        service = _build_service(occupying_statuses=["active"])
        paused = _book(service)[0]
        asyncio.run(service.change_status(paused.id, ScheduleStatus.PAUSED, Role.ADMIN))
        _book(service, course_id="js201", student_id="st2", time_slot="10:00-12:00")

        with pytest.raises(ScheduleConflictError) as exc_info:
            asyncio.run(service.change_status(paused.id, ScheduleStatus.ACTIVE, Role.ADMIN))

        assert list(exc_info.value.conflicts) == [1]
        statuses = {s.course_id: s.status for s in asyncio.run(service.all_schedules())}
        assert statuses == {"py101": ScheduleStatus.PAUSED, "js201": ScheduleStatus.ACTIVE}

    def test_reactivation_without_collision_succeeds(self):
        service = _build_service(occupying_statuses=["active"])
        paused = _book(service)[0]
        asyncio.run(service.change_status(paused.id, ScheduleStatus.PAUSED, Role.ADMIN))
        _book(service, course_id="js201", student_id="st2", time_slot="11:00-13:00")

        moved = asyncio.run(service.change_status(paused.id, ScheduleStatus.ACTIVE, Role.ADMIN))

        assert moved[0].status == ScheduleStatus.ACTIVE

    def test_all_moves_are_written_in_one_update(self, monkeypatch):
        store = InMemoryScheduleStore()
        service = SchedulingService(repository=store)
        created = _book(service, days_of_week=[1, 3, 5])
        batches = []
        original_update_many = store.update_many

        async def recording_update_many(schedules):
            batches.append(len(schedules))
            return await original_update_many(schedules)

        monkeypatch.setattr(store, "update_many", recording_update_many)

        asyncio.run(service.change_status(created[0].id, ScheduleStatus.PAUSED, Role.ADMIN))

        assert batches == [3]

    def test_failed_write_leaves_every_status_unchanged(self, tmp_path, monkeypatch):
        store = InMemoryScheduleStore(data_file=tmp_path / "schedules.json")
        service = SchedulingService(repository=store)
        created = _book(service, days_of_week=[1, 3])

        def failing_save():
            raise StoreError("disk full")

        monkeypatch.setattr(store, "_save", failing_save)

        with pytest.raises(StoreError):
            asyncio.run(service.change_status(created[0].id, ScheduleStatus.PAUSED, Role.ADMIN))

        assert {s.status for s in asyncio.run(service.all_schedules())} == {ScheduleStatus.ACTIVE}


class TestReadViews:
    """Tests for availability and listing."""

    def test_available_slots_exclude_overlaps(self):
        service = _build_service()
        _book(service, time_slot="13:00-15:00")

        values = [o.value for o in asyncio.run(service.available_slots("t1", 1, "2024-01-01"))]

        assert "09:00-11:00" in values
        assert "11:00-13:00" in values
        assert "11:20-13:20" not in values
        assert "14:40-16:40" not in values
        assert "15:00-17:00" in values
        assert len(values) == 31 - 11

    def test_available_slots_other_day_untouched(self):
        service = _build_service()
        _book(service, time_slot="13:00-15:00")

        assert len(asyncio.run(service.available_slots("t1", 2, "2024-01-01"))) == 31

    def test_student_schedules_active_only(self):
        service = _build_service()
        created = _book(service)
        asyncio.run(service.change_status(created[0].id, ScheduleStatus.PAUSED, Role.ADMIN))

        assert asyncio.run(service.student_schedules("st1")) == []
        assert len(asyncio.run(service.student_schedules("st1", active_only=False))) == 1
