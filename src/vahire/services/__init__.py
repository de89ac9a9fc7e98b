"""Shared services module for external integrations."""

from src.vahire.services.analytics.posthog import PostHogService

__all__ = [
    "PostHogService",
]
