"""
Pydantic schemas for the alert and station APIs.

Separated from the route handlers so the relay client and tests can
reuse them.

``SendAlertRequest`` deliberately types every field as Optional: a missing
field must produce the service's own 400 "Missing required fields!" body,
not FastAPI's default 422 validation report.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SendAlertRequest(BaseModel):
    """Body of POST /send-alert."""
    phone: Optional[str] = Field(None, examples=["+15551234567"])
    latitude: Optional[float] = Field(None, examples=[37.7749])
    longitude: Optional[float] = Field(None, examples=[-122.4194])


class MessageResponse(BaseModel):
    message: str


class ProviderErrorResponse(BaseModel):
    message: str
    error: str
    text_sent: bool = False
    call_placed: bool = False


class RankedStationOut(BaseModel):
    name: str
    latitude: float
    longitude: float
    distance_km: float = Field(..., ge=0)
    distance_label: str
    directions_url: str


class NearestStationsResponse(BaseModel):
    latitude: float
    longitude: float
    count: int
    stations: List[RankedStationOut]
