from __future__ import annotations

import json

import httpx
import pytest

from nrprovider.alerts_api.client import NRQL_FAMILY, NewRelicClient
from nrprovider.alerts_api.mock_api import MockAlertsAPI
from nrprovider.alerts_api.models import (
    AlertCondition,
    AlertConditionNrql,
    AlertConditionTerm,
)
from nrprovider.core.exceptions import RemoteException, RemoteNotFoundException

API_URL = "https://api.newrelic.test/v2"


def _metric_condition(policy_id: int, name: str = "tf-test-apdex") -> AlertCondition:
    return AlertCondition(
        policy_id=policy_id,
        type="apm_app_metric",
        name=name,
        entities=["12345"],
        metric="apdex",
        condition_scope="application",
        terms=[
            AlertConditionTerm(duration=5, operator="below", priority="critical", threshold=0.75, time_function="all")
        ],
    )


def _nrql_condition(policy_id: int) -> AlertCondition:
    return AlertCondition(
        policy_id=policy_id,
        name="tf-test-nrql",
        value_function="sum",
        terms=[
            AlertConditionTerm(duration=1, operator="above", priority="critical", threshold=10, time_function="all")
        ],
        nrql=AlertConditionNrql(query="SELECT count(*) FROM Transaction", since_value=3),
    )


class _FlakyTransport:
    """Answer with ``statuses`` in order, then serve ``payload``."""

    def __init__(self, statuses: list[int], payload: dict) -> None:
        self.statuses = list(statuses)
        self.payload = payload
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.statuses:
            status = self.statuses.pop(0)
            if status == 0:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(status, json={"error": {"title": f"status {status}"}})
        return httpx.Response(200, json=self.payload)


def _client_for(handler, max_retries: int = 3) -> NewRelicClient:
    return NewRelicClient(
        "key",
        API_URL,
        transport=httpx.MockTransport(handler),
        max_retries=max_retries,
        backoff_base=0.0,
    )


class TestCreateCondition:
    async def test_metric_condition_uses_conditions_endpoint(
        self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int
    ):
        created = await client.create_condition(_metric_condition(policy_id))

        request = mock_api.requests[-1]
        assert request.method == "POST"
        assert request.url.path == f"/v2/alerts_conditions/policies/{policy_id}.json"
        body = json.loads(request.content)
        assert body["condition"]["terms"][0]["duration"] == "5"
        assert "id" not in body["condition"]

        assert created.id > 0
        assert created.policy_id == policy_id
        assert created.entities == ["12345"]

    async def test_nrql_condition_uses_nrql_endpoint(
        self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int
    ):
        created = await client.create_condition(_nrql_condition(policy_id))

        request = mock_api.requests[-1]
        assert request.url.path == f"/v2/alerts_nrql_conditions/policies/{policy_id}.json"
        body = json.loads(request.content)
        assert body["nrql_condition"]["nrql"]["since_value"] == "3"
        assert "entities" not in body["nrql_condition"]

        assert created.nrql == AlertConditionNrql(query="SELECT count(*) FROM Transaction", since_value=3)
        assert created.id in mock_api.conditions[NRQL_FAMILY.collection]

    async def test_unknown_policy_is_not_found(self, client: NewRelicClient):
        with pytest.raises(RemoteNotFoundException):
            await client.create_condition(_metric_condition(99))

    async def test_sends_api_key(self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int):
        await client.create_condition(_metric_condition(policy_id))

        assert mock_api.requests[-1].headers["X-Api-Key"] == mock_api.api_key

    async def test_bad_api_key_is_remote_error(self, mock_api: MockAlertsAPI, policy_id: int):
        async with NewRelicClient("wrong", API_URL, transport=mock_api.transport) as bad_client:
            with pytest.raises(RemoteException) as exc_info:
                await bad_client.create_condition(_metric_condition(policy_id))

        assert exc_info.value.status_code == 401
        assert "Invalid API key" in exc_info.value.message
        assert not isinstance(exc_info.value, RemoteNotFoundException)


class TestGetCondition:
    async def test_finds_metric_condition(self, client: NewRelicClient, policy_id: int):
        created = await client.create_condition(_metric_condition(policy_id))

        found = await client.get_condition(policy_id, created.id)

        assert found == created

    async def test_finds_nrql_condition(self, client: NewRelicClient, policy_id: int):
        await client.create_condition(_metric_condition(policy_id))
        created = await client.create_condition(_nrql_condition(policy_id))

        found = await client.get_condition(policy_id, created.id)

        assert found.is_nrql
        assert found.value_function == "sum"

    async def test_missing_condition(self, client: NewRelicClient, policy_id: int):
        with pytest.raises(RemoteNotFoundException, match=f"{policy_id}:4242"):
            await client.get_condition(policy_id, 4242)

    async def test_condition_on_other_policy_is_missing(
        self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int
    ):
        other_policy = mock_api.create_policy("other")
        created = await client.create_condition(_metric_condition(other_policy))

        with pytest.raises(RemoteNotFoundException):
            await client.get_condition(policy_id, created.id)

    async def test_missing_policy(self, client: NewRelicClient):
        with pytest.raises(RemoteNotFoundException):
            await client.get_condition(1, 2)


class TestListConditions:
    async def test_follows_pagination(self, policy_id: int, mock_api: MockAlertsAPI):
        mock_api.page_size = 2
        async with NewRelicClient(mock_api.api_key, API_URL, transport=mock_api.transport) as nr_client:
            for index in range(5):
                await nr_client.create_condition(_metric_condition(policy_id, f"condition-{index}"))
            mock_api.requests.clear()

            conditions = await nr_client.list_conditions(policy_id)

        assert [condition.name for condition in conditions] == [f"condition-{index}" for index in range(5)]
        assert len(mock_api.requests) == 3
        assert all(condition.policy_id == policy_id for condition in conditions)

    async def test_nrql_family(self, client: NewRelicClient, policy_id: int):
        await client.create_condition(_metric_condition(policy_id))
        await client.create_condition(_nrql_condition(policy_id))

        conditions = await client.list_conditions(policy_id, NRQL_FAMILY)

        assert [condition.name for condition in conditions] == ["tf-test-nrql"]


class TestUpdateAndDelete:
    async def test_update_replaces_condition(self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int):
        created = await client.create_condition(_metric_condition(policy_id))
        changed = _metric_condition(policy_id, "tf-test-updated")
        changed.id = created.id
        changed.terms[0].threshold = 0.65

        updated = await client.update_condition(changed)

        assert mock_api.requests[-1].method == "PUT"
        assert mock_api.requests[-1].url.path == f"/v2/alerts_conditions/{created.id}.json"
        assert updated.id == created.id
        assert updated.name == "tf-test-updated"
        assert updated.terms[0].threshold == 0.65
        assert updated.policy_id == policy_id

    async def test_update_missing_is_not_found(self, client: NewRelicClient, policy_id: int):
        condition = _metric_condition(policy_id)
        condition.id = 4242

        with pytest.raises(RemoteNotFoundException):
            await client.update_condition(condition)

    async def test_delete_resolves_family(self, client: NewRelicClient, mock_api: MockAlertsAPI, policy_id: int):
        created = await client.create_condition(_nrql_condition(policy_id))

        await client.delete_condition(policy_id, created.id)

        assert mock_api.requests[-1].method == "DELETE"
        assert mock_api.requests[-1].url.path == f"/v2/alerts_nrql_conditions/{created.id}.json"
        with pytest.raises(RemoteNotFoundException):
            await client.get_condition(policy_id, created.id)

    async def test_delete_missing_is_not_found(self, client: NewRelicClient, policy_id: int):
        with pytest.raises(RemoteNotFoundException):
            await client.delete_condition(policy_id, 4242)


class TestRetry:
    async def test_retries_server_errors(self):
        transport = _FlakyTransport([503, 0], {"conditions": []})

        async with _client_for(transport) as nr_client:
            assert await nr_client.list_conditions(1) == []

        assert transport.calls == 3

    async def test_gives_up_after_max_retries(self):
        transport = _FlakyTransport([500, 502, 503, 504], {"conditions": []})

        async with _client_for(transport, max_retries=2) as nr_client:
            with pytest.raises(RemoteException) as exc_info:
                await nr_client.list_conditions(1)

        assert transport.calls == 2
        assert exc_info.value.status_code == 502

    async def test_client_errors_are_not_retried(self):
        transport = _FlakyTransport([422], {"conditions": []})

        async with _client_for(transport) as nr_client:
            with pytest.raises(RemoteException, match="status 422") as exc_info:
                await nr_client.list_conditions(1)

        assert transport.calls == 1
        assert exc_info.value.to_dict()["detail"] == {"status_code": 422}

    async def test_not_found_is_not_retried(self):
        transport = _FlakyTransport([404], {"conditions": []})

        async with _client_for(transport) as nr_client:
            with pytest.raises(RemoteNotFoundException):
                await nr_client.list_conditions(1)

        assert transport.calls == 1

    async def test_missing_envelope_is_remote_error(self):
        async with _client_for(lambda request: httpx.Response(201, json={"unexpected": {}})) as nr_client:
            with pytest.raises(RemoteException, match="'condition'"):
                await nr_client.create_condition(_metric_condition(1))
