"""Delivery risk schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RiskAnalysisModel(BaseModel):
    vehicle_id: str
    status: str
    severity: str
    message: str
    minutes_late: Optional[float] = None
    minutes_short: Optional[float] = None
    minutes_ahead: Optional[float] = None
