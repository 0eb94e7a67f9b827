"""Environment-driven settings for the planner service."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
