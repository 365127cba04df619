"""HTML page served to browsers and mobile web views."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.schemas.lookup import LookupResponse
from app.services.lookup_service import NOT_FOUND_MESSAGE

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",)),
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_page(
    *,
    result: LookupResponse | None = None,
    error: str | None = None,
    mobile: str | None = None,
) -> str:
    """Render the lookup form, optionally with a result or an error message."""
    return _env.get_template("lookup.html").render(
        result=result,
        error=error,
        mobile=mobile,
        not_found_message=NOT_FOUND_MESSAGE,
    )
