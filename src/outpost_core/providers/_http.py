"""Shared response handling for provider HTTP APIs."""

import httpx

from outpost_core.exceptions import ProviderError


def error_detail(response: httpx.Response) -> str:
    """Extract a readable error message from an API error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase

    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message", errors[0]))
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", error))
        for key in ("message", "error", "msg"):
            if key in body:
                return str(body[key])
    return response.text[:500]


def ensure_success(
    response: httpx.Response,
    action: str,
    error_cls: type[ProviderError] = ProviderError,
) -> None:
    """Raise ``error_cls`` unless the response is 2xx.

    Args:
        response: HTTP response
        action: What was attempted, for the error message
        error_cls: Exception type to raise
    """
    if response.is_success:
        return
    raise error_cls(f"Failed to {action}: {response.status_code} {error_detail(response)}")
