"""Custom exceptions for market-agent-flow."""

from __future__ import annotations


class WorkflowError(Exception):
    """General workflow error."""
    pass


class ValidationError(WorkflowError):
    """Raised when pipeline input or resume data does not match its declared shape."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Raised for an unknown instance id, workflow, agent or external entity."""
    pass


class InvalidStateError(WorkflowError):
    """Raised when an operation is not allowed in the instance's current status."""
    pass


class ConcurrentResumeError(WorkflowError):
    """Raised when a resume races another one on the same instance."""

    def __init__(self, instance_id: str, detail: str = "modified concurrently"):
        self.instance_id = instance_id
        super().__init__(f"Instance '{instance_id}': {detail}")


class ResuspensionError(WorkflowError):
    """Raised when a stage suspends again after being re-entered with resume data."""

    def __init__(self, stage_name: str):
        self.stage_name = stage_name
        super().__init__(f"Stage '{stage_name}': re-suspension not permitted")


class StageFailedError(WorkflowError):
    """Raised when a stage errors out. The instance has already been marked failed."""

    def __init__(self, instance_id: str, stage_name: str, message: str):
        self.instance_id = instance_id
        self.stage_name = stage_name
        super().__init__(f"Stage '{stage_name}' failed for instance '{instance_id}': {message}")


class ApprovalTimeoutError(InvalidStateError):
    """Raised when resume arrives after the maximum suspension duration."""

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Instance '{instance_id}' expired: approval timeout")


class ConfigurationError(WorkflowError):
    """Raised when required configuration (e.g. an API key) is missing."""
    pass


class ProviderError(WorkflowError):
    """Error returned by an external data provider."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class RateLimitError(ProviderError):
    """HTTP 429 from a provider."""
    pass


class UnauthorizedError(ProviderError):
    """HTTP 401 from a provider."""
    pass


class ForbiddenError(ProviderError):
    """HTTP 403 from a provider."""
    pass


class NetworkError(ProviderError):
    """Transport-level failure (timeout, connection refused, ...)."""
    pass


class UnknownError(ProviderError):
    """Any other provider failure."""
    pass
