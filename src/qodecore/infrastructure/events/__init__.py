"""Event infrastructure."""

from qodecore.infrastructure.events.trigger_scheduler import (
    DispatchCallback,
    TriggerScheduler,
)

__all__ = ["DispatchCallback", "TriggerScheduler"]
