"""Custom exceptions for the meme engine.

Each pipeline stage raises its own error type so that handlers can map a
failure to an HTTP status and a machine-readable code.
"""

from typing import Any

from meme_engine.constants.error_codes import get_error_spec
from meme_engine.schemas.jobs import ErrorInfo


class MemeEngineError(Exception):
    """Base exception for all meme engine errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API responses."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            retryable=spec.get("retryable", False),
            suggested_fix=spec.get("suggested_fix"),
            details=self.details,
        )


# =============================================================================
# Request Errors (4xx)
# =============================================================================


class ValidationError(MemeEngineError):
    """Missing or malformed request fields."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class ArtifactNotFoundError(MemeEngineError):
    """No artifact has been produced for the job id."""

    code = "ARTIFACT_NOT_FOUND"
    status_code = 404
    message = "Artifact not found"

    def __init__(self, job_id: str | None = None, kind: str = "Video"):
        message = f"{kind} not found"
        details = f"No {kind.lower()} has been produced for job {job_id}" if job_id else None
        super().__init__(message, details=details)


class RangeNotSatisfiableError(MemeEngineError):
    """Requested byte range starts past the end of the artifact."""

    code = "RANGE_NOT_SATISFIABLE"
    status_code = 416
    message = "Requested range not satisfiable"

    def __init__(self, file_size: int):
        self.file_size = file_size
        super().__init__(f"Requested range not satisfiable for {file_size} byte file")


# =============================================================================
# Pipeline Errors (500)
# =============================================================================


class FetchError(MemeEngineError):
    """Remote asset could not be downloaded (transport, timeout or non-2xx)."""

    code = "FETCH_FAILED"
    message = "Failed to fetch asset"

    def __init__(self, message: str | None = None, *, url: str | None = None):
        super().__init__(message, details={"url": url} if url else None)
        self.url = url


class ProbeError(MemeEngineError):
    """The engine could not read metadata from a local file."""

    code = "PROBE_FAILED"
    message = "Failed to probe media file"


class TransformError(MemeEngineError):
    """The transcoding engine failed or was given incompatible inputs."""

    code = "TRANSFORM_FAILED"
    message = "Media transform failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class FilesystemError(MemeEngineError):
    """A directory or file operation failed."""

    code = "FILESYSTEM_ERROR"
    message = "Filesystem operation failed"
