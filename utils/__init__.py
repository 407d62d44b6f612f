"""
Utils Module
Logging and error taxonomy shared by every package.
"""
from .logger import configure_logging
from .exceptions import (
    PipelineError,
    ConfigurationError,
    NotFoundError,
    TransferError,
    HostingError,
    UploadError,
    StoreError,
    GenerationError,
    InvalidStateError,
    RunInProgressError,
)

__all__ = [
    "configure_logging",
    "PipelineError",
    "ConfigurationError",
    "NotFoundError",
    "TransferError",
    "HostingError",
    "UploadError",
    "StoreError",
    "GenerationError",
    "InvalidStateError",
    "RunInProgressError",
]
