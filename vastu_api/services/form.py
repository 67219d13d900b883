"""
Registration form controller.

Owns field values, the selected file and the submit state for one form
instance, and runs the submission sequence:

    validate → upload floor plan → resolve public URL → insert registration
    → form_submit analytics → success toast + reset

Each step stops the sequence on failure. Nothing is retried automatically
and an uploaded file is not removed if the insert after it fails. The
accepted floor plan is held until the next successful submit, so a retry
without a new file reuses it.
"""

from __future__ import annotations

import logging
import mimetypes
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Protocol

from vastu_api.exceptions import (
    FormValidationError,
    InsertError,
    SubmissionInProgressError,
    UploadError,
)
from vastu_api.schemas import FormState, SubmissionResult, Toast, ToastVariant
from vastu_api.schemas.registration import (
    MAX_UPLOAD_BYTES,
    FloorPlanUpload,
    RegistrationForm,
    validate_registration,
)
from vastu_api.services.backend import BlobStorage, RecordStore
from vastu_api.services.session import timestamped_id

logger = logging.getLogger(__name__)

FIELD_NAMES = ("name", "phone", "email", "date_of_birth", "time_of_birth", "place_of_birth")

SUCCESS_TOAST = Toast(
    title="Registration Successful",
    description="Thank you for your submission. We'll be in touch soon!",
)
FAILURE_TITLE = "Submission Failed"


class Notifier(Protocol):
    def show(self, toast: Toast) -> None: ...


class ToastQueue:
    """Collects toasts until the page is rendered."""

    def __init__(self) -> None:
        self._toasts: list[Toast] = []

    def show(self, toast: Toast) -> None:
        self._toasts.append(toast)

    def drain(self) -> list[Toast]:
        toasts, self._toasts = self._toasts, []
        return toasts


def storage_key_for(filename: str, content_type: str = "", now: Optional[float] = None) -> str:
    """``<epoch-millis>-<base36>.<ext>`` keeping the original extension."""
    if "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    else:
        guessed = mimetypes.guess_extension(content_type or "") or ".bin"
        ext = guessed.lstrip(".")
    return f"{timestamped_id(now)}.{ext}"


def _blank_values() -> dict[str, str]:
    return {field: "" for field in FIELD_NAMES}


class FormController:
    def __init__(
        self,
        storage: BlobStorage,
        records: RecordStore,
        notifier: Notifier,
        *,
        bucket: str,
        table: str = "registrations",
        on_submitted: Optional[Callable[[], Awaitable[Any]]] = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        today: Optional[Callable[[], date]] = None,
    ):
        self._storage = storage
        self._records = records
        self._notifier = notifier
        self._bucket = bucket
        self._table = table
        self._on_submitted = on_submitted
        self._max_upload_bytes = max_upload_bytes
        self._today = today or date.today

        self.state = FormState.IDLE
        self.values: dict[str, str] = _blank_values()
        self.selected_file: Optional[str] = None
        self.errors: dict[str, str] = {}
        # last accepted floor plan, reused when a retry carries no new file
        self.pending_upload: Optional[FloorPlanUpload] = None

    @property
    def is_submitting(self) -> bool:
        return self.state == FormState.SUBMITTING

    def reset(self) -> None:
        self.values = _blank_values()
        self.selected_file = None
        self.errors = {}
        self.pending_upload = None

    def _fail(self, error: UploadError | InsertError) -> SubmissionResult:
        toast = Toast(
            title=FAILURE_TITLE,
            description=error.message,
            variant=ToastVariant.DESTRUCTIVE,
        )
        self._notifier.show(toast)
        return SubmissionResult(ok=False, toast=toast)

    async def submit(
        self,
        values: dict[str, Any],
        floor_plan: Optional[FloorPlanUpload],
    ) -> SubmissionResult:
        if self.is_submitting:
            raise SubmissionInProgressError()

        self.values = {
            **_blank_values(),
            **{k: str(v or "") for k, v in values.items() if k in FIELD_NAMES},
        }
        if floor_plan is None:
            floor_plan = self.pending_upload
        self.selected_file = floor_plan.filename if floor_plan else None

        # 1. validate, no network on failure
        try:
            form = validate_registration(
                values,
                floor_plan,
                today=self._today(),
                max_upload_bytes=self._max_upload_bytes,
            )
        except FormValidationError as e:
            self.errors = e.errors
            self.pending_upload = None if "floor_plan" in e.errors else floor_plan
            self.state = FormState.IDLE
            logger.info("Registration rejected: %s", ", ".join(sorted(e.errors)))
            return SubmissionResult(ok=False, errors=e.errors)

        self.errors = {}
        self.pending_upload = form.floor_plan
        self.state = FormState.SUBMITTING
        try:
            return await self._send(form)
        finally:
            self.state = FormState.IDLE

    async def _send(self, form: RegistrationForm) -> SubmissionResult:
        upload = form.floor_plan

        # 2. upload the floor plan
        key = storage_key_for(upload.filename, upload.content_type)
        try:
            await self._storage.upload(self._bucket, key, upload.data, upload.content_type)
        except UploadError as e:
            logger.warning("Floor plan upload failed for %s: %s", key, e.message)
            return self._fail(e)

        # 3. resolve its public URL
        floor_plan_url = await self._storage.get_public_url(self._bucket, key)

        # 4. insert the registration
        try:
            await self._records.insert(self._table, form.to_record(floor_plan_url).model_dump())
        except InsertError as e:
            logger.warning("Registration insert failed — %s left orphaned: %s", key, e.message)
            return self._fail(e)

        # 5. form_submit analytics, best-effort
        if self._on_submitted is not None:
            try:
                await self._on_submitted()
            except Exception as e:
                logger.error("form_submit tracking failed: %s", e)

        # 6. acknowledge and reset
        logger.info("Registration stored with floor plan %s", key)
        self._notifier.show(SUCCESS_TOAST)
        self.reset()
        return SubmissionResult(ok=True, toast=SUCCESS_TOAST, floor_plan_url=floor_plan_url)
