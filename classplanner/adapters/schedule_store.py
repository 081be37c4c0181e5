"""
Schedule record store backed by memory, optionally persisted to a JSON file.
"""

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.exceptions import ScheduleNotFoundError, StoreError
from ..domain.models import Schedule

logger = logging.getLogger(__name__)


def _sort_key(schedule: Schedule):
    return (schedule.week_start, schedule.day_of_week, schedule.time_slot)


class InMemoryScheduleStore:
    """
    Keeps schedule records in a dict keyed by id.

    When ``data_file`` is given, records are loaded from it on construction
    and the whole set is written back after every change. The file holds a
    JSON list of records in the same shape as ``Schedule.to_dict``.
    """

    def __init__(self, data_file: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            data_file: Optional path of the JSON file to load from and save to
        """
        self.data_file = data_file
        self._records: Dict[str, Schedule] = {}
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        """Load records from the data file, if there is one."""
        if self.data_file is None or not self.data_file.exists():
            return

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                raw_records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read schedules from {self.data_file}: {exc}") from exc

        if not isinstance(raw_records, list):
            raise StoreError(f"{self.data_file} must contain a JSON list of schedules")

        for raw in raw_records:
            try:
                schedule = Schedule.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid schedule record %r: %s", raw, exc)
                continue
            self._records[schedule.id] = schedule

    def _save(self) -> None:
        if self.data_file is None:
            return

        payload = [schedule.to_dict() for schedule in sorted(self._records.values(), key=_sort_key)]
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as exc:
            raise StoreError(f"Could not write schedules to {self.data_file}: {exc}") from exc

    def lock(self) -> asyncio.Lock:
        """Lock to hold across a conflict check and the write that depends on it."""
        return self._lock

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    async def list_all(self) -> List[Schedule]:
        return sorted(self._records.values(), key=_sort_key)

    async def list_by_trainer(self, trainer_id: str) -> List[Schedule]:
        return [s for s in await self.list_all() if s.trainer_id == trainer_id]

    async def list_by_student(self, student_id: str) -> List[Schedule]:
        return [s for s in await self.list_all() if s.student_id == student_id]

    async def list_by_student_course(
        self,
        student_id: Optional[str],
        course_id: str,
    ) -> List[Schedule]:
        return [
            s for s in await self.list_all()
            if s.student_id == student_id and s.course_id == course_id
        ]

    async def get(self, schedule_id: str) -> Schedule:
        """
        Raises:
            ScheduleNotFoundError: If no schedule has this id
        """
        try:
            return self._records[schedule_id]
        except KeyError:
            raise ScheduleNotFoundError(schedule_id) from None

    def _commit(self, schedules: List[Schedule]) -> None:
        """
        Put ``schedules`` into the record set and persist it in one write.

        If the write fails, the records are restored to their prior state.
        """
        snapshot = dict(self._records)
        for schedule in schedules:
            self._records[schedule.id] = schedule
        try:
            self._save()
        except StoreError:
            self._records = snapshot
            raise

    async def add_many(self, schedules: List[Schedule]) -> List[Schedule]:
        """Insert several schedules and persist once."""
        for schedule in schedules:
            if schedule.id in self._records:
                raise StoreError(f"Schedule {schedule.id} already exists")
        self._commit(schedules)
        return list(schedules)

    async def add(self, schedule: Schedule) -> Schedule:
        await self.add_many([schedule])
        return schedule

    async def update_many(self, schedules: List[Schedule]) -> List[Schedule]:
        """
        Replace several stored schedules and persist once.

        Raises:
            ScheduleNotFoundError: If any schedule was never added
        """
        for schedule in schedules:
            if schedule.id not in self._records:
                raise ScheduleNotFoundError(schedule.id)
        self._commit(schedules)
        return list(schedules)

    async def update(self, schedule: Schedule) -> Schedule:
        """
        Replace a stored schedule with a new version.

        Raises:
            ScheduleNotFoundError: If the schedule was never added
        """
        await self.update_many([schedule])
        return schedule
