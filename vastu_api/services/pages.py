"""
Page renderer — Jinja2 HTML for the landing and success pages.
"""

import logging
from datetime import date
from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from vastu_api.regions import INDIAN_STATES

logger = logging.getLogger(__name__)

# ─── Template directory ────────────────────────────────────────────────
TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "pages"

UNLOAD_URL = "/api/v1/analytics/unload"


@lru_cache(maxsize=1)
def _get_jinja_env() -> Environment:
    """Create a Jinja2 environment with the page templates directory."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_page(template: str, **context) -> str:
    return _get_jinja_env().get_template(template).render(**context)


def render_registration_page(view, *, max_upload_bytes: int, today: date | None = None) -> str:
    """
    Render the landing page for a live page view.

    Drains the view's pending toasts and shows the form's current values,
    inline errors, selected file name and submit state.
    """
    form = view.form
    return render_page(
        "index.html",
        view_id=view.view_id,
        values=form.values,
        errors=form.errors,
        selected_file=form.selected_file,
        file_kept=form.pending_upload is not None,
        submitting=form.is_submitting,
        toasts=view.toasts.drain(),
        states=INDIAN_STATES,
        today=(today or date.today()).isoformat(),
        max_upload_mb=max_upload_bytes // (1024 * 1024),
        unload_url=UNLOAD_URL,
    )


def render_success_page() -> str:
    return render_page("success.html")
