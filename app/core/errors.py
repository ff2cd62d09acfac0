from __future__ import annotations

"""Domain-specific exception hierarchy for the maturity assessment core."""

from typing import Any

__all__ = [
    "DomainError",
    "ValidationError",
    "WeightValidationError",
    "AuthenticationError",
    "NotFoundError",
    "VersionNotFoundError",
    "StructureNotFoundError",
    "AssessmentNotFoundError",
    "NoPublishedVersionError",
    "StateConflictError",
    "VersionStateError",
    "AssessmentStateError",
    "ResultsNotReadyError",
    "ComputationError",
    "CollaboratorFailure",
    "PdfRenderError",
    "EmailDeliveryError",
    "ConfigurationError",
]


class DomainError(Exception):
    """Base class for recoverable domain-level errors."""

    status_code: int = 400
    error_code: str = "domain_error"
    default_message: str = "Domain error"

    def __init__(
        self,
        message: str | None = None,
        *,
        detail: Any | None = None,
        status_code: int | None = None,
    ) -> None:
        final_message = message or self.default_message
        super().__init__(final_message)
        self.message = final_message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(DomainError, ValueError):
    """Raised when caller-provided input is malformed."""

    error_code = "validation_error"
    default_message = "Validation error"
    status_code = 400


class WeightValidationError(ValidationError):
    """Raised when area weights of a version do not sum to 1.0."""

    error_code = "invalid_weights"
    default_message = "Total weight must equal 1.0"


class AuthenticationError(DomainError):
    """Raised when the admin secret check fails."""

    error_code = "authentication_required"
    status_code = 401
    default_message = "Authentication required"


class NotFoundError(DomainError):
    """Base class for missing domain resources."""

    error_code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class VersionNotFoundError(NotFoundError):
    error_code = "version_not_found"
    default_message = "Questionnaire version not found"


class StructureNotFoundError(NotFoundError):
    """Raised when an area, element or question is missing from a version."""

    error_code = "structure_not_found"
    default_message = "Questionnaire item not found"


class AssessmentNotFoundError(NotFoundError):
    error_code = "assessment_not_found"
    default_message = "Assessment not found"


class NoPublishedVersionError(NotFoundError):
    """No questionnaire version is published yet (valid on a fresh deployment)."""

    error_code = "no_published_version"
    default_message = "No published version"


class StateConflictError(DomainError):
    """Base class for operations forbidden by the current lifecycle status."""

    error_code = "state_conflict"
    status_code = 409
    default_message = "Operation not allowed in the current state"


class VersionStateError(StateConflictError):
    error_code = "version_state_conflict"


class AssessmentStateError(StateConflictError):
    error_code = "assessment_state_conflict"


class ResultsNotReadyError(StateConflictError):
    """Raised when results are requested for an assessment still in draft."""

    error_code = "results_not_ready"
    default_message = "Assessment not yet submitted"


class ComputationError(DomainError):
    """Raised when no valid area can be scored from the answers."""

    error_code = "computation_error"
    status_code = 422
    default_message = "No valid area could be scored"


class CollaboratorFailure(DomainError):
    """Base class for PDF rendering and email delivery failures."""

    error_code = "collaborator_failure"
    status_code = 502
    default_message = "External collaborator failed"


class PdfRenderError(CollaboratorFailure):
    error_code = "pdf_render_failed"
    default_message = "PDF generation failed"


class EmailDeliveryError(CollaboratorFailure):
    error_code = "email_delivery_failed"
    default_message = "Email delivery failed"


class ConfigurationError(DomainError):
    """Raised when server-side configuration is invalid or incomplete."""

    error_code = "configuration_error"
    status_code = 500
    default_message = "Invalid server configuration"
