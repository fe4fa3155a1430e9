"""
Helpers shared by the server-rendered views in ``app.views``.
"""
from pathlib import Path

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


class PageNotFound(Exception):
    """Raised by views when the requested entity does not exist."""

    def __init__(self, message: str = "Page not found") -> None:
        super().__init__(message)
        self.message = message


def render(request: Request, name: str, context: dict | None = None, status_code: int = 200):
    return templates.TemplateResponse(request, name, context or {}, status_code=status_code)


def redirect(url: str) -> RedirectResponse:
    """POST/redirect/GET: always answer form posts with 303 See Other."""
    return RedirectResponse(url, status_code=303)


def form_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten a pydantic ``ValidationError`` into ``{field: message}``."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "__all__"
        errors.setdefault(field, err["msg"])
    return errors


def parse_ids(values: list) -> list[int]:
    """Convert multi-select form values to ints, dropping anything non-numeric."""
    ids: list[int] = []
    for value in values:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids
