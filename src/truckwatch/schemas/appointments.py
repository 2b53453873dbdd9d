"""Delivery appointment schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from ..models.domain import Appointment


class AppointmentCreate(BaseModel):
    location: str = Field(..., min_length=1, description="Destination address for the delivery.")
    scheduled_at: datetime = Field(
        ..., description="Appointment time. Values without an offset are read in the reference timezone."
    )
    notes: str = ""


class AppointmentStatusUpdate(BaseModel):
    status: Literal["pending", "completed", "missed"]


class AppointmentModel(BaseModel):
    id: str
    location: str
    scheduled_at: datetime
    notes: str = ""
    status: str

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentModel":
        return cls(
            id=appointment.id,
            location=appointment.location,
            scheduled_at=appointment.scheduled_at,
            notes=appointment.notes,
            status=appointment.status.value,
        )


class AppointmentListResponse(BaseModel):
    vehicle_id: str
    appointments: List[AppointmentModel]
