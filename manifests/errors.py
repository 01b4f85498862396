"""
Manifest tracker error taxonomy.

Every error carries a machine-readable ``kind`` and a human-readable
``description``. The API layer maps each family to an HTTP status.
"""

from typing import Optional


class ManifestError(Exception):
    """Base class for all manifest tracker errors."""

    kind = "manifest_error"
    status_code = 400

    def __init__(self, message: str, description: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.description = description or ""

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "description": self.description}


# ============================================================================
# CALLER ERRORS
# ============================================================================

class ValidationError(ManifestError):
    """Malformed identifiers, bad signing seed or inconsistent batch input."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(ManifestError):
    kind = "not_found"
    status_code = 404


class ManifestNotFound(NotFoundError):
    kind = "manifest_not_found"


class NotStoring(NotFoundError):
    kind = "not_storing"


class ConflictError(ManifestError):
    kind = "conflict"
    status_code = 409


class DuplicateUpload(ConflictError):
    kind = "duplicate_upload"


class AlreadyStoring(ConflictError):
    kind = "already_storing"


class NoAvailableSlot(ConflictError):
    kind = "no_available_slot"


# ============================================================================
# LEDGER / CONSISTENCY FAULTS
# ============================================================================

class LedgerSubmissionError(ManifestError):
    """Transaction rejected by the ledger or a stored record failed to decode."""

    kind = "ledger_submission_error"
    status_code = 502


class SubmissionTimeout(LedgerSubmissionError):
    kind = "submission_timeout"
    status_code = 504


class EventNotFoundError(ManifestError):
    """Transaction finalized but the expected confirmation event is missing."""

    kind = "event_not_found"
    status_code = 500
