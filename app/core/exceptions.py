"""
Domain Exceptions
Prescription Scanner

Every failure the service reports carries a machine-readable ``code`` and
the HTTP status it maps to. The exception handler in ``app.main`` renders
them as ``{"error": message, "code": code}``.
"""


class PrescriptionScannerError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)


# ── Validation (400) ───────────────────────────────────────────────
class ValidationFailed(PrescriptionScannerError):
    """Request payload failed validation."""

    code = "VALIDATION"
    status_code = 400


class MissingResultError(ValidationFailed):
    """No result data provided"""

    code = "MISSING_RESULT"


class NoImageError(ValidationFailed):
    """No image uploaded"""

    code = "NO_IMAGE"


class ImageTooLargeError(PrescriptionScannerError):
    """Uploaded image exceeds the configured size limit."""

    code = "IMAGE_TOO_LARGE"
    status_code = 413


# ── Archive access ─────────────────────────────────────────────────
class AccessDeniedError(PrescriptionScannerError):
    """Access denied"""

    code = "ACCESS_DENIED"
    status_code = 403


class ArchiveNotFoundError(PrescriptionScannerError):
    """File not found"""

    code = "NOT_FOUND"
    status_code = 404


# ── Storage (500) ──────────────────────────────────────────────────
class StoreIOError(PrescriptionScannerError):
    """Storage read/write failed."""

    code = "STORE_IO"


class StoreCorruptError(StoreIOError):
    """Result store does not contain a valid JSON array."""

    code = "STORE_CORRUPT"


# ── AI extraction (500) ────────────────────────────────────────────
class ExtractionError(PrescriptionScannerError):
    """Prescription extraction failed."""

    code = "AI_ERROR"


class AIConfigurationError(ExtractionError):
    code = "AI_NOT_CONFIGURED"


class AIEmptyResponseError(ExtractionError):
    """No response from AI"""

    code = "AI_EMPTY_RESPONSE"


class AIParseError(ExtractionError):
    """AI response is not valid extraction JSON."""

    code = "AI_PARSE_ERROR"


class AIProviderError(ExtractionError):
    """AI provider call failed."""

    code = "AI_PROVIDER_ERROR"
