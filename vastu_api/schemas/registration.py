"""
Vastu Samadhan Registration — intake form schema and field rules.

Every rule raises a ``PydanticCustomError`` whose text is the exact message
shown under the field, so ``validate_registration`` can hand the page a
plain ``{field: message}`` mapping.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from vastu_api.exceptions import FormValidationError
from vastu_api.regions import INDIAN_STATES
from vastu_api.schemas import RegistrationRecord

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
})
EARLIEST_BIRTH_DATE = date(1900, 1, 1)


def _field_error(message: str) -> PydanticCustomError:
    return PydanticCustomError("registration", message)


class FloorPlanUpload(BaseModel):
    """A file picked in the floor plan input, read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class RegistrationForm(BaseModel):
    name: str = ""
    phone: str = ""
    email: str = ""
    floor_plan: Optional[FloorPlanUpload] = None
    date_of_birth: Optional[date] = None
    time_of_birth: Optional[str] = None
    place_of_birth: str = ""

    model_config = {"validate_default": True}

    @field_validator("name", mode="before")
    @classmethod
    def _check_name(cls, value: Any) -> str:
        value = value or ""
        if len(value) < 2:
            raise _field_error("Name must be at least 2 characters")
        if len(value) > 100:
            raise _field_error("Name must be at most 100 characters")
        return value

    @field_validator("phone", mode="before")
    @classmethod
    def _check_phone(cls, value: Any) -> str:
        value = value or ""
        if not 10 <= len(value) <= 15:
            raise _field_error("Please enter a valid phone number")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> str:
        raw = str(value or "").strip()
        try:
            # bare address only, no "Name <addr>" form
            validate_email(raw, check_deliverability=False)
        except EmailNotValidError:
            raise _field_error("Please enter a valid email address")
        return raw

    @field_validator("floor_plan", mode="before")
    @classmethod
    def _check_floor_plan(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise _field_error("Please upload your floor plan")
        upload = value if isinstance(value, FloorPlanUpload) else FloorPlanUpload.model_validate(value)
        limit = (info.context or {}).get("max_upload_bytes", MAX_UPLOAD_BYTES)
        if upload.size > limit:
            raise _field_error(f"File size must be less than {limit // (1024 * 1024)}MB")
        if upload.content_type.lower() not in ALLOWED_CONTENT_TYPES:
            raise _field_error("Only JPEG, PNG, WebP or PDF files are allowed")
        return upload

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _check_date_of_birth(cls, value: Any, info: ValidationInfo) -> date:
        if value in (None, ""):
            raise _field_error("Please select your date of birth")
        if isinstance(value, str):
            try:
                value = date.fromisoformat(value)
            except ValueError:
                raise _field_error("Please enter a valid date")
        if not isinstance(value, date):
            raise _field_error("Please enter a valid date")

        today = (info.context or {}).get("today") or date.today()
        if value > today:
            raise _field_error("Date of birth cannot be in the future")
        if value < EARLIEST_BIRTH_DATE:
            raise _field_error("Date of birth must be on or after 1900-01-01")
        return value

    @field_validator("time_of_birth", mode="before")
    @classmethod
    def _blank_time_is_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("place_of_birth", mode="before")
    @classmethod
    def _check_place_of_birth(cls, value: Any) -> str:
        if value not in INDIAN_STATES:
            raise _field_error("Please select your place of birth")
        return value

    def to_record(self, floor_plan_url: str) -> RegistrationRecord:
        return RegistrationRecord(
            name=self.name,
            phone_number=self.phone,
            email=self.email,
            date_of_birth=self.date_of_birth.isoformat(),
            time_of_birth=self.time_of_birth,
            place_of_birth=self.place_of_birth,
            floor_plan_url=floor_plan_url,
        )


def validate_registration(
    values: dict[str, Any],
    floor_plan: Optional[FloorPlanUpload],
    *,
    today: Optional[date] = None,
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
) -> RegistrationForm:
    """
    Run every field rule at once.

    Raises FormValidationError with the first message for each failing field.
    """
    context = {"today": today, "max_upload_bytes": max_upload_bytes}
    try:
        return RegistrationForm.model_validate(
            {**values, "floor_plan": floor_plan}, context=context
        )
    except ValidationError as exc:
        errors: dict[str, str] = {}
        for error in exc.errors():
            field = str(error["loc"][0]) if error["loc"] else "form"
            errors.setdefault(field, error["msg"])
        raise FormValidationError(errors)
