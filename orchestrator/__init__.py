"""Scheduling orchestrator, engine wiring and single-flight guard."""

from .context import EngineContext, build_context
from .guard import RunGuard
from .service import SchedulingOrchestrator

__all__ = [
    "EngineContext",
    "RunGuard",
    "SchedulingOrchestrator",
    "build_context",
]
