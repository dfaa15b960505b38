"""
Provider entry points: API client configuration and the resources map.

The client is built from :class:`~nrprovider.config.Settings` and cached as
a singleton so every resource operation in a run shares one connection pool.
"""

from __future__ import annotations

import logging
import threading

from nrprovider.alerts_api.client import NewRelicClient
from nrprovider.config import Settings, get_settings
from nrprovider.core.logging import setup_logging
from nrprovider.resources.alert_condition.resource import (
    RESOURCE_NAME as ALERT_CONDITION,
)
from nrprovider.resources.alert_condition.resource import alert_condition_resource
from nrprovider.resources.base import Resource

logger = logging.getLogger(__name__)

RESOURCES: dict[str, Resource] = {
    ALERT_CONDITION: alert_condition_resource(),
}

_client_instance: NewRelicClient | None = None
_client_lock = threading.Lock()


def configure(settings: Settings | None = None) -> NewRelicClient:
    """Build a New Relic client from settings (environment by default)."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    client = NewRelicClient(
        settings.NEWRELIC_API_KEY,
        settings.NEWRELIC_API_URL,
        timeout=settings.NEWRELIC_HTTP_TIMEOUT,
        max_retries=settings.NEWRELIC_MAX_RETRIES,
    )
    logger.info("New Relic client configured", extra={"api_url": client.base_url})
    return client


def get_client() -> NewRelicClient:
    """Return the singleton client configured from the environment.

    Returns:
        A ready-to-use NewRelicClient instance.
    """
    global _client_instance

    if _client_instance is not None:
        return _client_instance

    with _client_lock:
        # Double-check after acquiring lock
        if _client_instance is None:
            _client_instance = configure()
    return _client_instance


def get_resource(name: str) -> Resource:
    """Look up a resource descriptor by its configuration type name.

    Raises:
        KeyError: ``name`` is not a resource of this provider.
    """
    try:
        return RESOURCES[name]
    except KeyError:
        raise KeyError(f"Unknown resource type '{name}'") from None
