"""
Generation Module
Generation service client, task matching and artifact reconciliation.
"""
from .client import BaseGenerationClient, SoraGenerationClient
from .matcher import TaskMatcher, normalize_key
from .reconcile import ReconciliationService, default_file_name, file_uuid_from_url

__all__ = [
    "BaseGenerationClient",
    "ReconciliationService",
    "SoraGenerationClient",
    "TaskMatcher",
    "default_file_name",
    "file_uuid_from_url",
    "normalize_key",
]
