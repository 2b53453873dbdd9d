from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from truckwatch.data.appointments_repository import AppointmentRepository
from truckwatch.models.domain import AppointmentStatus
from truckwatch.persistence.filesystem import FileStorage

EASTERN = ZoneInfo("America/New_York")
TOMORROW = datetime(2024, 3, 2, 9, 30, tzinfo=EASTERN)


def _repository(tmp_path: Path) -> AppointmentRepository:
    return AppointmentRepository(FileStorage(root=tmp_path), tz=EASTERN)


def test_add_and_reload(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    created = repository.add_appointment("v1", "  12 Dock Rd, Newark  ", TOMORROW, "Gate 4")

    reloaded = _repository(tmp_path).get_appointments("v1")

    assert created.status == AppointmentStatus.PENDING
    assert created.location == "12 Dock Rd, Newark"
    assert len(reloaded) == 1
    assert reloaded[0].id == created.id
    assert reloaded[0].scheduled_at == TOMORROW
    assert reloaded[0].notes == "Gate 4"


def test_naive_times_use_reference_timezone(tmp_path: Path) -> None:
    repository = _repository(tmp_path)

    appointment = repository.add_appointment("v1", "Depot", datetime(2024, 7, 4, 8, 0))

    assert appointment.scheduled_at.utcoffset() == timedelta(hours=-4)


def test_empty_location_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        _repository(tmp_path).add_appointment("v1", "   ", TOMORROW)


def test_update_status_and_next_appointment(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    first = repository.add_appointment("v1", "First stop", TOMORROW)
    second = repository.add_appointment("v1", "Second stop", TOMORROW + timedelta(hours=3))

    assert repository.next_appointment("v1").id == first.id

    updated = repository.update_status("v1", first.id, AppointmentStatus.COMPLETED)

    assert updated.status == AppointmentStatus.COMPLETED
    assert repository.next_appointment("v1").id == second.id
    assert len(repository.get_appointments("v1")) == 2
    assert repository.update_status("v1", "missing", AppointmentStatus.MISSED) is None


def test_remove_and_clear(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    kept = repository.add_appointment("v1", "Keep", TOMORROW)
    dropped = repository.add_appointment("v1", "Drop", TOMORROW)
    repository.add_appointment("v2", "Other", TOMORROW)

    assert repository.remove_appointment("v1", dropped.id) is True
    assert repository.remove_appointment("v1", dropped.id) is False
    assert [appointment.id for appointment in repository.get_appointments("v1")] == [kept.id]

    repository.clear_appointments("v1")

    assert repository.get_appointments("v1") == []
    assert list(repository.all_appointments()) == ["v2"]


def test_stats_count_by_status(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    first = repository.add_appointment("v1", "A", TOMORROW)
    repository.add_appointment("v1", "B", TOMORROW)
    third = repository.add_appointment("v2", "C", TOMORROW)
    repository.update_status("v1", first.id, AppointmentStatus.COMPLETED)
    repository.update_status("v2", third.id, AppointmentStatus.MISSED)

    assert repository.stats() == {"total": 3, "pending": 1, "completed": 1, "missed": 1}


def test_unreadable_entries_are_skipped(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    storage.write_json(
        "delivery_appointments",
        {
            "v1": {
                "appointments": [
                    {"id": "ok", "location": "Depot", "scheduled_at": "2024-03-02T09:30:00", "status": "pending"},
                    {"id": "bad", "location": "Depot", "scheduled_at": "tomorrow-ish"},
                ]
            }
        },
    )

    appointments = AppointmentRepository(storage, tz=EASTERN).get_appointments("v1")

    assert [appointment.id for appointment in appointments] == ["ok"]
    assert appointments[0].scheduled_at.tzinfo == EASTERN
