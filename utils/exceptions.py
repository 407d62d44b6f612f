"""
Custom Exceptions
Error taxonomy for the reconciliation and scheduling engine.
"""


class PipelineError(Exception):
    """Base error for the generation/scheduling pipeline."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PipelineError):
    """Malformed slot list, missing credentials and similar fatal setup problems."""
    pass


class NotFoundError(PipelineError):
    """No matching artifact, unknown item, or missing local file."""
    pass


class TransferError(PipelineError):
    """Artifact download failed (network, size mismatch, wrong content type)."""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class HostingError(PipelineError):
    """Hosting service call failed."""
    pass


class UploadError(HostingError):
    """Hosting service rejected an item."""

    def __init__(self, message: str, file_name: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.file_name = file_name


class StoreError(PipelineError):
    """Item store could not be read or written."""
    pass


class GenerationError(PipelineError):
    """Generation service call failed."""

    def __init__(self, message: str, status_code: int = None, **kwargs):
        super().__init__(message, kwargs)
        self.status_code = status_code


class InvalidStateError(PipelineError):
    """Requested transition is not allowed for the item's lifecycle state."""
    pass


class RunInProgressError(PipelineError):
    """Another run of the same type is already active."""
    pass
