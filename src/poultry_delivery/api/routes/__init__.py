"""Route group exports."""

from . import delivery, health, webhooks

__all__ = ["delivery", "health", "webhooks"]
