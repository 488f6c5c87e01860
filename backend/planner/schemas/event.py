"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class Location(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class EventCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    location: Optional[Location] = None
    earliest_date: date
    latest_date: date
    duration: int = Field(default=1, ge=1)
    organiser_id: str


class EventUpdate(BaseModel):
    actor_user_id: str
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    location: Optional[Location] = None
    earliest_date: Optional[date] = None
    latest_date: Optional[date] = None
    duration: Optional[int] = Field(default=None, ge=1)
    details_version: int  # required for optimistic locking


class EventOut(BaseModel):
    event_id: str
    title: str
    description: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    earliest_date: date
    latest_date: date
    duration: int
    organiser_id: str
    status: str
    cancellation_reason: Optional[str] = None
    chosen_dates: Optional[list[str]] = None
    reminder_time: Optional[datetime] = None
    reminder_sent: bool
    daily_reminder_sent: bool
    deleted_warning_sent: bool
    version: int
    details_version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventStatusOut(BaseModel):
    event_id: str
    status: str
    chosen_dates: Optional[list[str]] = None
    cancellation_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class ActorRequest(BaseModel):
    actor_user_id: str


class ConfirmRequest(ActorRequest):
    chosen_dates: list[date] = Field(min_length=1)
    reminder_time: Optional[datetime] = None


class CancelRequest(ActorRequest):
    reason: str = ""


class ChosenDatesToggle(ActorRequest):
    dates: list[date] = Field(min_length=1)


class PathMarker(BaseModel):
    path: str = Field(min_length=1)


class PathMarkerOut(BaseModel):
    path: str
    timestamp: str
