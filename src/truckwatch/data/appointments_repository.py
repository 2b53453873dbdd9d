"""Delivery appointment storage, one appointment list per vehicle."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import settings
from ..models.domain import Appointment, AppointmentStatus
from ..persistence.filesystem import DocumentStore
from ..services.risk.analyzer import next_appointment

STORAGE_KEY = "delivery_appointments"

logger = logging.getLogger(__name__)


class AppointmentRepository:
    def __init__(self, store: DocumentStore, tz: tzinfo | None = None) -> None:
        self.store = store
        self.tz = tz or ZoneInfo(settings.reference_timezone)
        self._lock = threading.RLock()

    def _read(self) -> dict:
        document = self.store.read_json(STORAGE_KEY)
        return document if isinstance(document, dict) else {}

    def _parse(self, vehicle_id: str, raw_list: list) -> list[Appointment]:
        appointments: list[Appointment] = []
        for raw in raw_list:
            try:
                appointments.append(Appointment.from_dict(raw, self.tz))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Ignoring unreadable appointment for vehicle {vehicle_id}: {exc}")
        return appointments

    def get_appointments(self, vehicle_id: str) -> list[Appointment]:
        stored = self._read().get(vehicle_id) or {}
        return self._parse(vehicle_id, stored.get("appointments") or [])

    def all_appointments(self) -> dict[str, list[Appointment]]:
        return {
            vehicle_id: self._parse(vehicle_id, stored.get("appointments") or [])
            for vehicle_id, stored in self._read().items()
        }

    def save_appointments(self, vehicle_id: str, appointments: list[Appointment]) -> None:
        with self._lock:
            document = self._read()
            document[vehicle_id] = {
                "appointments": [appointment.to_dict() for appointment in appointments],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self.store.write_json(STORAGE_KEY, document)
        logger.info(f"Saved {len(appointments)} appointments for vehicle {vehicle_id}")

    def add_appointment(
        self, vehicle_id: str, location: str, scheduled_at: datetime, notes: str = ""
    ) -> Appointment:
        if not location.strip():
            raise ValueError("Appointment location must not be empty")
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=self.tz)
        appointment = Appointment(
            id=uuid.uuid4().hex,
            location=location.strip(),
            scheduled_at=scheduled_at,
            notes=notes or "",
            status=AppointmentStatus.PENDING,
        )
        with self._lock:
            self.save_appointments(vehicle_id, [*self.get_appointments(vehicle_id), appointment])
        return appointment

    def update_status(
        self, vehicle_id: str, appointment_id: str, status: AppointmentStatus
    ) -> Optional[Appointment]:
        with self._lock:
            appointments = self.get_appointments(vehicle_id)
            updated: Optional[Appointment] = None
            for appointment in appointments:
                if appointment.id == appointment_id:
                    appointment.status = status
                    updated = appointment
            if updated is None:
                return None
            self.save_appointments(vehicle_id, appointments)
        logger.info(f"Updated appointment {appointment_id} status to {status.value}")
        return updated

    def remove_appointment(self, vehicle_id: str, appointment_id: str) -> bool:
        with self._lock:
            appointments = self.get_appointments(vehicle_id)
            remaining = [appointment for appointment in appointments if appointment.id != appointment_id]
            if len(remaining) == len(appointments):
                return False
            self.save_appointments(vehicle_id, remaining)
        return True

    def clear_appointments(self, vehicle_id: str) -> None:
        with self._lock:
            document = self._read()
            document.pop(vehicle_id, None)
            self.store.write_json(STORAGE_KEY, document)
        logger.info(f"Cleared all appointments for vehicle {vehicle_id}")

    def next_appointment(self, vehicle_id: str) -> Optional[Appointment]:
        return next_appointment(self.get_appointments(vehicle_id))

    def stats(self) -> dict[str, int]:
        counts = {"total": 0, **{status.value: 0 for status in AppointmentStatus}}
        for appointments in self.all_appointments().values():
            for appointment in appointments:
                counts["total"] += 1
                counts[appointment.status.value] += 1
        return counts
