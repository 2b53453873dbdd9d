"""Delivery appointment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...models.domain import AppointmentStatus
from ...schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentModel,
    AppointmentStatusUpdate,
)
from ...services.tracking import TrackingService
from ..deps import get_tracking_service

router = APIRouter(prefix="/vehicles/{vehicle_id}/appointments", tags=["appointments"])


@router.get("", response_model=AppointmentListResponse, status_code=status.HTTP_200_OK)
def list_appointments(vehicle_id: str, service: TrackingService = Depends(get_tracking_service)) -> AppointmentListResponse:
    appointments = service.appointments.get_appointments(vehicle_id)
    return AppointmentListResponse(
        vehicle_id=vehicle_id,
        appointments=[AppointmentModel.from_appointment(appointment) for appointment in appointments],
    )


@router.post("", response_model=AppointmentModel, status_code=status.HTTP_201_CREATED)
def create_appointment(
    vehicle_id: str,
    payload: AppointmentCreate,
    service: TrackingService = Depends(get_tracking_service),
) -> AppointmentModel:
    try:
        appointment = service.appointments.add_appointment(
            vehicle_id, payload.location, payload.scheduled_at, payload.notes
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return AppointmentModel.from_appointment(appointment)


@router.delete("", status_code=status.HTTP_200_OK)
def clear_appointments(vehicle_id: str, service: TrackingService = Depends(get_tracking_service)) -> dict:
    service.appointments.clear_appointments(vehicle_id)
    return {"success": True, "message": f"Cleared all appointments for vehicle {vehicle_id}"}


@router.patch("/{appointment_id}", response_model=AppointmentModel, status_code=status.HTTP_200_OK)
def update_appointment_status(
    vehicle_id: str,
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    service: TrackingService = Depends(get_tracking_service),
) -> AppointmentModel:
    appointment = service.appointments.update_status(vehicle_id, appointment_id, AppointmentStatus(payload.status))
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Appointment {appointment_id} not found for vehicle {vehicle_id}",
        )
    return AppointmentModel.from_appointment(appointment)


@router.delete("/{appointment_id}", status_code=status.HTTP_200_OK)
def remove_appointment(
    vehicle_id: str,
    appointment_id: str,
    service: TrackingService = Depends(get_tracking_service),
) -> dict:
    if not service.appointments.remove_appointment(vehicle_id, appointment_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Appointment {appointment_id} not found for vehicle {vehicle_id}",
        )
    return {"success": True, "message": f"Appointment {appointment_id} removed"}
