"""
Error taxonomy for the intake and delivery pipeline.

Intake errors are resolved synchronously and rendered as JSON by the views.
Delivery errors are raised inside the worker and handed to Celery's retry
mechanism.
"""
from typing import Optional


class LeadRelayError(Exception):
    """Base class for all pipeline errors."""
    pass


class IntakeError(LeadRelayError):
    """An error surfaced to the intake caller."""

    status_code = 400
    code = 'INTAKE_ERROR'

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(IntakeError):
    """Malformed intake payload or failed anti-bot check. Never retried."""

    status_code = 400
    code = 'VALIDATION_ERROR'


class NotFoundError(IntakeError):
    """Unresolved target identifiers or unknown submission. Never retried."""

    status_code = 404
    code = 'NOT_FOUND'


class DeliveryPipelineError(LeadRelayError):
    """Raised inside the delivery worker."""

    retryable = True


class FatalDeliveryError(DeliveryPipelineError):
    """A failure that another attempt cannot fix."""

    retryable = False


class RetryableDeliveryError(DeliveryPipelineError):
    """A failure that may succeed on a later attempt."""

    retryable = True


class SubmissionMissingError(FatalDeliveryError):
    """The job references a submission that does not exist for its tenant."""
    pass


class TenantMismatchError(FatalDeliveryError):
    """The job's tenant or target identifiers disagree with the stored row."""
    pass


class ConfigurationError(FatalDeliveryError):
    """Tenant delivery configuration is missing or invalid."""
    pass


class DeliveryError(RetryableDeliveryError):
    """The adapter reached the external system and it reported failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(RetryableDeliveryError):
    """Network or timeout failure talking to the external system."""
    pass
