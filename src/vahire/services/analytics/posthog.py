"""PostHog analytics for authentication and account events."""

import posthog

from src.vahire.config import settings


class PostHogService:
    """
    Sends auth events to PostHog; a no-op when no API key is configured.

    Every event is tagged with the deployment environment and, when the
    service is bound to one, the auth source (``external`` or ``local``)
    that produced the identity.

    Example:
        >>> PostHogService(auth_source="external").capture(
        ...     "google-oauth2|1234", "user_authenticated"
        ... )
    """

    def __init__(self, auth_source: str | None = None) -> None:
        self.auth_source = auth_source
        self.enabled = bool(settings.posthog_api_key)
        if self.enabled:
            posthog.api_key = settings.posthog_api_key
            posthog.host = settings.posthog_host

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Track an event.

        Args:
            distinct_id: Identity ID, or "anonymous" before authentication succeeds
            event: Event name ("user_authenticated", "authentication_failed", "user_provisioned")
            properties: Extra event properties; these win over the default tags
        """
        if not self.enabled:
            return

        tags = {"environment": settings.environment}
        if self.auth_source:
            tags["auth_source"] = self.auth_source
        posthog.capture(distinct_id=distinct_id, event=event, properties={**tags, **(properties or {})})
