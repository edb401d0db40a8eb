"""
Helpers shared by plugin handlers for shaping lead/submission payloads.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any

import httpx

from app.config import settings


def app_url(path: str) -> str:
    """Absolute link into the application frontend."""
    return f"{settings.FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"


def lead_url(lead_id: Any) -> str:
    return app_url(f"/app/leads/{lead_id}")


def humanize_key(key: str) -> str:
    """`first_name` -> `First Name`."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), key.replace("_", " "))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def submission_fields(data: dict[str, Any]) -> list[tuple[str, Any]]:
    """Pairs of (label, value) from a submission's `metadata.data` block."""
    submitted = as_dict(as_dict(data.get("metadata")).get("data"))
    return [(humanize_key(key), value) for key, value in submitted.items()]


def submission_lead(data: dict[str, Any]) -> dict[str, Any]:
    return as_dict(data.get("lead"))


def submission_source(data: dict[str, Any]) -> str:
    return as_dict(data.get("metadata")).get("source") or "N/A"


def pretty_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def provider_error(provider: str, response: httpx.Response, detail: str | None = None) -> httpx.HTTPStatusError:
    """Build the error raised when a provider answers with a non-2xx status."""
    message = f"{provider} API error: {response.status_code}"
    if detail:
        message = f"{message} - {detail}"
    return httpx.HTTPStatusError(message, request=response.request, response=response)
