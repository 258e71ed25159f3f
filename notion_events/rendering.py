import json
import os
from datetime import date, datetime
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .config import Settings

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

templates = Jinja2Templates(directory=TEMPLATES_DIR)


class DebugPageError(Exception):
    """
    Raised by route handlers to answer with a debug page instead of the normal view.
    """

    def __init__(self, status_code: int, title: str, details: dict, settings: Settings):
        super().__init__(title)
        self.settings = settings
        self.status_code = status_code
        self.title = title
        self.details = details


def raise_debug_page(settings: Settings, status_code: int, title: str, details: dict):
    """
    Helper function to raise DebugPageError.
    """
    raise DebugPageError(status_code, title, details, settings)


def format_date(value: str) -> str:
    """
    Format an ISO date or datetime as e.g. "Saturday, March 15, 2025".
    Values that do not parse are returned unchanged.
    """
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = date.fromisoformat(value)
        except ValueError:
            return value
    return f"{parsed:%A, %B} {parsed.day}, {parsed.year}"


def format_price(value: float) -> str:
    if not value or value <= 0:
        return "Free"
    if float(value).is_integer():
        return f"${int(value)}"
    return f"${value:.2f}"


def pretty(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, indent=2, default=str)
    return "" if value is None else str(value)


templates.env.filters["format_date"] = format_date
templates.env.filters["format_price"] = format_price
templates.env.filters["pretty"] = pretty


def render_debug_page(request: Request, error: DebugPageError):
    settings = error.settings
    details = error.details if settings.show_debug_details else {}
    return templates.TemplateResponse(
        request=request,
        name="debug.html",
        context={"title": error.title, "details": details, "site_title": settings.site_title},
        status_code=error.status_code,
    )
