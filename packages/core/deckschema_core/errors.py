"""Error taxonomy shared by the pipeline and the job runner.

Every exception carries a stable ``code`` so job records and API layers can
report the failure class without string matching on messages.
"""

from typing import Literal

ErrorCode = Literal[
    "validation_error",
    "file_error",
    "extraction_error",
    "enrichment_error",
    "schema_error",
    "timeout_error",
    "cancelled_error",
    "service_unavailable",
]

OpenFailureReason = Literal["unsupported-format", "corrupt", "io-error"]


class DeckSchemaError(Exception):
    """Base class for all conversion errors."""

    code: ErrorCode = "validation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputValidationError(DeckSchemaError):
    """Malformed request input rejected before any processing starts."""

    code: ErrorCode = "validation_error"


class FileValidationError(DeckSchemaError):
    """Source file is missing, empty, unsupported or corrupt."""

    code: ErrorCode = "file_error"


class EngineOpenError(FileValidationError):
    """The document engine refused to open a file."""

    def __init__(self, message: str, reason: OpenFailureReason = "corrupt") -> None:
        super().__init__(message)
        self.reason = reason


class ExtractionError(DeckSchemaError):
    """Engine-level failure while reading document structure."""

    code: ErrorCode = "extraction_error"


class EngineCapabilityError(ExtractionError):
    """The engine cannot produce the requested render format."""


class EnrichmentError(DeckSchemaError):
    """Enrichment of a single shape failed."""

    code: ErrorCode = "enrichment_error"

    def __init__(
        self,
        message: str,
        slide_index: int | None = None,
        shape_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.slide_index = slide_index
        self.shape_index = shape_index


class SchemaBuildError(DeckSchemaError):
    """Built document violates a structural rule that cannot be defaulted."""

    code: ErrorCode = "schema_error"


class JobTimeoutError(DeckSchemaError):
    """A job exceeded its time budget."""

    code: ErrorCode = "timeout_error"


class JobCancelledError(DeckSchemaError):
    """A job was cancelled by its caller."""

    code: ErrorCode = "cancelled_error"


class ServiceUnavailableError(DeckSchemaError):
    """A required collaborator is unreachable or unconfigured."""

    code: ErrorCode = "service_unavailable"


def error_for_code(code: str | None, message: str) -> DeckSchemaError:
    """Rebuild an exception from a code recorded in pipeline state."""
    for cls in (
        InputValidationError,
        FileValidationError,
        ExtractionError,
        EnrichmentError,
        SchemaBuildError,
        JobTimeoutError,
        JobCancelledError,
        ServiceUnavailableError,
    ):
        if cls.code == code:
            return cls(message)
    return ExtractionError(message)
