"""Custom exceptions for the slidecast renderer.

Every failure the compositor can raise is a ``SlidecastError`` carrying a
machine-readable code, an HTTP status and optional location information so
the API layer can turn it into an error envelope without guessing.
"""

from typing import Any

from slidecast.constants.error_codes import get_error_spec, is_retryable
from slidecast.schemas.envelope import ErrorInfo, ErrorLocation, SuggestedAction


class SlidecastError(Exception):
    """Base exception for all slidecast errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)

        suggested_actions: list[SuggestedAction] = []
        if "suggested_action" in spec:
            suggested_actions.append(
                SuggestedAction(
                    action=spec["suggested_action"],
                    parameters=spec.get("parameters", {}),
                )
            )

        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=is_retryable(self.code),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
            suggested_actions=suggested_actions,
        )


# =============================================================================
# Input Contract Errors (400)
# =============================================================================


class InputContractError(SlidecastError):
    """Base class for invocations that violate the input contract."""

    code = "BAD_REQUEST"
    status_code = 400


class NoMediaProvided(InputContractError):
    """The media list is empty."""

    code = "NO_MEDIA_PROVIDED"
    message = "No media provided for video generation"


class MissingNativeDuration(InputContractError):
    """A video item reached the compositor without a probed duration."""

    code = "MISSING_NATIVE_DURATION"
    message = "Video item has no native duration"

    def __init__(self, index: int | None = None, name: str | None = None):
        message = self.message
        if index is not None:
            message = f"Video item {index} has no native duration"
            if name:
                message += f" ({name})"
        location = ErrorLocation(field="native_duration", index=index) if index is not None else None
        super().__init__(message, location=location)


class InvalidSettingsError(InputContractError):
    """Compositor settings that cannot produce a timeline."""

    code = "INVALID_SETTINGS"
    message = "Invalid slideshow settings"

    def __init__(self, field: str, value: object):
        super().__init__(
            f"Invalid slideshow setting {field}={value!r}",
            location=ErrorLocation(field=field),
        )


class InvalidMediaError(InputContractError):
    """An uploaded file is neither a photo nor a video."""

    code = "INVALID_MEDIA"
    message = "Unsupported media file"

    def __init__(self, name: str | None = None, mime_type: str | None = None, index: int | None = None):
        message = self.message
        if name:
            message = f"Unsupported media file: {name}"
            if mime_type:
                message += f" ({mime_type})"
        location = ErrorLocation(field="media", index=index) if index is not None else None
        super().__init__(message, location=location)


# =============================================================================
# Render Errors (500)
# =============================================================================


class RenderError(SlidecastError):
    """Base class for failures while building or executing a render."""

    code = "INTERNAL_ERROR"
    status_code = 500


class FilterGraphError(RenderError):
    """The assembled filter graph breaks the pad discipline."""

    code = "FILTER_GRAPH_INVALID"
    message = "Invalid filter graph"

    def __init__(self, message: str | None = None, *, pad: str | None = None):
        msg = message or self.message
        if pad and message is None:
            msg = f"Invalid filter graph at pad [{pad}]"
        self.pad = pad
        super().__init__(msg)


class EngineExecutionFailure(RenderError):
    """The rendering engine rejected an argument list."""

    code = "ENGINE_EXECUTION_FAILED"
    message = "Rendering engine failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        returncode: int | None = None,
        stderr: str | None = None,
        args: Any = None,
    ):
        msg = message or self.message
        if returncode is not None and message is None:
            msg = f"Rendering engine exited with code {returncode}"
        self.returncode = returncode
        self.stderr = stderr
        self.engine_args = args
        super().__init__(msg)


class OutputMissingOrEmpty(RenderError):
    """The engine reported success but produced no usable output."""

    code = "OUTPUT_MISSING_OR_EMPTY"
    message = "Failed to generate video: output file was not created"


class AudioPipelineFatal(RenderError):
    """Background audio preparation failed at every fallback tier."""

    code = "AUDIO_PIPELINE_FATAL"
    message = "Failed to prepare background audio"


class EngineUnavailableError(RenderError):
    """The FFmpeg binary could not be located or started."""

    code = "ENGINE_UNAVAILABLE"
    status_code = 503
    message = "Rendering engine is not available"
