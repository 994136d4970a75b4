"""Response error extraction for load test observability.

Parses Checkout API error responses into human-readable messages. Every
error body has the shape ``{"success": false, "message": ..., "error": ...}``
where ``error`` is either a string or a ``{field: [messages]}`` mapping.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a human-readable error message from an API error response.

    Returns a compact string suitable for Locust failure messages and log lines.
    """
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    error = body.get("error")
    if isinstance(error, dict):
        return " | ".join(f"{field}: {', '.join(map(str, messages))}" for field, messages in error.items())
    if error:
        return str(error)
    if "message" in body:
        return str(body["message"])

    return str(body)[:300]
