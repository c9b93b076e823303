"""Error codes dictionary for the render API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery actions. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import Any, TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_action: str
    suggested_fix: str
    parameters: dict[str, Any]


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Input contract errors (not retryable, fix input)
    # ==========================================================================
    "NO_MEDIA_PROVIDED": {
        "retryable": False,
        "suggested_fix": "Upload at least one photo or video",
    },
    "MISSING_NATIVE_DURATION": {
        "retryable": False,
        "suggested_fix": "Probe every video item and pass its duration in seconds",
    },
    "INVALID_MEDIA": {
        "retryable": False,
        "suggested_fix": "Use a supported image, video or audio format",
    },
    "INVALID_SETTINGS": {
        "retryable": False,
        "suggested_fix": "Use a positive photo_duration in seconds",
    },
    # ==========================================================================
    # Render errors
    # ==========================================================================
    "FILTER_GRAPH_INVALID": {
        "retryable": False,
    },
    "ENGINE_EXECUTION_FAILED": {
        "retryable": False,
        "suggested_fix": "Check that every video item carries a decodable stream",
    },
    "OUTPUT_MISSING_OR_EMPTY": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 1000, "max_retries": 2},
    },
    "AUDIO_PIPELINE_FATAL": {
        "retryable": True,
        "suggested_action": "retry_without_background_audio",
    },
    "ENGINE_UNAVAILABLE": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 5000, "max_retries": 3},
    },
    "INTERNAL_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "BAD_REQUEST": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested actions
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    spec = get_error_spec(code)
    return spec.get("retryable", False)
