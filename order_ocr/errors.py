"""Exception hierarchy for the order form pipeline.

Each exception carries a stable ``kind`` tag that the API and CLI expose
to callers, plus the pipeline ``stage`` it was raised from when known.
"""


class OrderOCRError(Exception):
    """Base class for all order form processing errors.

    Args:
        message: Human-readable description of the failure.
        stage: Pipeline stage name where the error surfaced.
    """

    kind = "INTERNAL_ERROR"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict[str, str | None]:
        """Return the caller-facing error descriptor."""
        return {"kind": self.kind, "stage": self.stage, "message": self.message}


class InputValidationError(OrderOCRError):
    """Upload rejected before the pipeline starts (missing file, wrong type)."""

    kind = "VALIDATION_ERROR"

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, stage="received")
        self.status_code = status_code


class ConversionError(OrderOCRError):
    """PDF rasterization failed or produced no image."""

    kind = "CONVERSION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="rasterizing")


class MissingLanguageResource(OrderOCRError):
    """The Tesseract trained data for the configured language is absent."""

    kind = "MISSING_LANGUAGE_RESOURCE"

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message, stage="recognizing")
        self.path = path


class OcrError(OrderOCRError):
    """Text recognition failed for a rasterized page."""

    kind = "OCR_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="recognizing")


class SinkError(OrderOCRError):
    """The record could not be persisted to the configured sink.

    Args:
        message: Human-readable description of the failure.
        reason: One of ``permission``, ``not_found``, ``not_configured``
            or ``other``.
    """

    kind = "SINK_ERROR"

    def __init__(self, message: str, reason: str = "other") -> None:
        super().__init__(message, stage="sinking")
        self.reason = reason

    def to_dict(self) -> dict[str, str | None]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class PipelineCancelled(OrderOCRError):
    """The run was cancelled between stages."""

    kind = "CANCELLED"


class CleanupError(OrderOCRError):
    """A temporary file could not be removed. Logged, never raised to callers."""

    kind = "CLEANUP_ERROR"

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message, stage="cleanup")
        self.path = path
