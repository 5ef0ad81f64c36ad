"""Router exports for FastAPI composition."""

from . import dashboard, health, updates, values

__all__ = ["dashboard", "health", "updates", "values"]
