"""Application services."""

from qodecore.application.services.request_orchestrator import RequestOrchestrator

__all__ = ["RequestOrchestrator"]
