"""Event handlers package."""

from qodecore.application.handlers.edit_handler import EditHandler

__all__ = ["EditHandler"]
