"""
Vastu Samadhan Registration — Pydantic request/response schemas.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    PAGE_VIEW = "page_view"
    BOUNCE = "bounce"
    EXIT = "exit"
    FORM_SUBMIT = "form_submit"


class AnalyticsEvent(BaseModel):
    """One row of the hosted ``page_analytics`` table. Write-once."""

    session_id: str
    page_url: str
    referrer: Optional[str] = None
    user_agent: str = ""
    event_type: EventType
    time_on_page: Optional[int] = None  # whole seconds, null for page_view

    model_config = {"use_enum_values": True}


class RegistrationRecord(BaseModel):
    """One row of the hosted ``registrations`` table."""

    name: str
    phone_number: str
    email: str
    date_of_birth: str  # ISO date
    time_of_birth: Optional[str] = None
    place_of_birth: str
    floor_plan_url: str


class ToastVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Toast(BaseModel):
    title: str
    description: str = ""
    variant: ToastVariant = ToastVariant.DEFAULT


class FormState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"


class SubmissionResult(BaseModel):
    ok: bool
    state: FormState = FormState.IDLE
    errors: dict[str, str] = {}
    toast: Optional[Toast] = None
    floor_plan_url: Optional[str] = None


class UnloadBeacon(BaseModel):
    view_id: str = Field(..., min_length=1, max_length=64)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    firebase: str = "disconnected"
    live_page_views: int = 0


class AnalyticsSummary(BaseModel):
    page_views: int = 0
    bounces: int = 0
    exits: int = 0
    form_submits: int = 0
    sessions: int = 0
    bounce_rate: float = 0.0       # percent of bounce / (bounce + exit)
    conversion_rate: float = 0.0   # percent of viewing sessions that submitted
    avg_time_on_page: float = 0.0  # seconds, over bounce + exit events


class ArchiveResult(BaseModel):
    archived: int = 0
    pruned: int = 0
