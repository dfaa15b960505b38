"""
Shared pytest fixtures for the nrprovider test suite.

Provides an in-memory Alerts API, a client wired to it, and sample
condition documents for both condition shapes.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest

from nrprovider.alerts_api.client import NewRelicClient
from nrprovider.alerts_api.mock_api import MockAlertsAPI

TEST_API_KEY = "test-api-key"
TEST_API_URL = "https://api.newrelic.test/v2"

SYNTHETICS_QUERY = "SELECT count(*) from SyntheticCheck where monitorName = 'foo' and result != 'SUCCESS'"


# ---------------------------------------------------------------------------
# Alerts API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_api() -> MockAlertsAPI:
    """Return an empty in-memory Alerts API."""
    return MockAlertsAPI(api_key=TEST_API_KEY)


@pytest.fixture
def policy_id(mock_api: MockAlertsAPI) -> int:
    """Register an alert policy on the mock API and return its id."""
    return mock_api.create_policy("tf-test-policy")


@pytest.fixture
async def client(mock_api: MockAlertsAPI) -> AsyncGenerator[NewRelicClient, None]:
    """Provide a NewRelicClient talking to the mock API, without backoff delays."""
    nr_client = NewRelicClient(
        TEST_API_KEY,
        TEST_API_URL,
        transport=mock_api.transport,
        backoff_base=0.0,
    )
    yield nr_client
    await nr_client.close()


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------


@pytest.fixture
def metric_document(policy_id: int) -> dict:
    """Return a valid metric-shaped condition document."""
    return {
        "policy_id": policy_id,
        "name": "tf-test-apdex",
        "type": "apm_app_metric",
        "entities": [12345],
        "metric": "apdex",
        "runbook_url": "https://foo.example.com",
        "condition_scope": "application",
        "term": [
            {
                "duration": 5,
                "operator": "below",
                "priority": "critical",
                "threshold": 0.75,
                "time_function": "all",
            }
        ],
    }


@pytest.fixture
def nrql_document(policy_id: int) -> dict:
    """Return a valid NRQL-shaped condition document."""
    return {
        "policy_id": policy_id,
        "name": "tf-test-nrql",
        "runbook_url": "https://foo.example.com",
        "term": [
            {
                "duration": 5,
                "operator": "below",
                "priority": "critical",
                "threshold": 0.75,
                "time_function": "all",
            }
        ],
        "nrql": [{"query": SYNTHETICS_QUERY, "since_value": 3}],
        "value_function": "single_value",
    }
