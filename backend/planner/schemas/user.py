"""Pydantic schemas for Users and event membership."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    fingerprint: str = Field(min_length=1)
    role: Optional[str] = None
    profile_pic: Optional[int] = None
    event_id: Optional[str] = None


class UserUpdate(BaseModel):
    event_id: str
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    profile_pic: Optional[int] = None


class UserOut(BaseModel):
    user_id: str
    email: str
    username: str
    role: str
    profile_pic: Optional[int] = None
    is_coming: Optional[bool] = None
    availability: dict[str, str] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class MemberOut(BaseModel):
    """Public view of a user inside an event."""

    user_id: str
    username: str
    role: str
    profile_pic: Optional[int] = None
    is_coming: Optional[bool] = None

    model_config = {"from_attributes": True}


class IsComingUpdate(BaseModel):
    is_coming: Optional[bool] = None


class AvailabilityItem(BaseModel):
    date: str
    status: Optional[str] = None  # None clears the date


class AvailabilityUpdate(BaseModel):
    updates: list[AvailabilityItem]


class LeaveRequest(BaseModel):
    event_id: str


class MemberAvailability(BaseModel):
    user_id: str
    username: str
    profile_pic: Optional[int] = None
    availability: dict[str, str] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class EventAvailabilityOut(BaseModel):
    organiser: Optional[MemberAvailability] = None
    attendees: list[MemberAvailability] = []


class AttendeesOut(BaseModel):
    organiser: Optional[MemberOut] = None
    attendees: list[MemberOut] = []
    requests: list[JoinRequestOut] = []


class JoinRequestIn(BaseModel):
    email: str = Field(min_length=3)
    username: str = Field(min_length=1)
    profile_pic: Optional[int] = None


class JoinRequestOut(BaseModel):
    email: str
    username: str
    profile_pic: Optional[int] = None
    time_requested: str
    status: str


class RequestDecision(BaseModel):
    actor_user_id: str
    email: str
    status: str  # accepted | rejected


class MemberAction(BaseModel):
    actor_user_id: str
    user_id: str


AttendeesOut.model_rebuild()
