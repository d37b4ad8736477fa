"""Error codes dictionary.

Single source of truth for error codes, their retryability and a
suggested fix. Used by exception handlers to build error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
        "suggested_fix": "Check the request body against the endpoint's required fields",
    },
    "ARTIFACT_NOT_FOUND": {
        "retryable": True,
        "suggested_fix": "Poll GET /api/status/{job_id} until the job is completed",
    },
    "RANGE_NOT_SATISFIABLE": {
        "retryable": False,
        "suggested_fix": "Request a byte range that starts before the end of the file",
    },
    # ==========================================================================
    # Pipeline errors
    # ==========================================================================
    "FETCH_FAILED": {
        "retryable": True,
        "suggested_fix": "Verify the asset URL is reachable and returns a 2xx response",
    },
    "PROBE_FAILED": {
        "retryable": False,
        "suggested_fix": "Make sure the asset is a readable audio/video file",
    },
    "TRANSFORM_FAILED": {
        "retryable": False,
        "suggested_fix": "Clips being stitched must share codec, resolution and frame rate",
    },
    "FILESYSTEM_ERROR": {
        "retryable": True,
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get the error spec for a code, empty if the code is unknown."""
    return ERROR_CODES.get(code, {})
