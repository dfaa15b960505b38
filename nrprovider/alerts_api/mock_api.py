"""
In-memory stand-in for the New Relic Alerts REST API.

Serves the alert condition endpoints through ``httpx.MockTransport`` so the
real :class:`~nrprovider.alerts_api.client.NewRelicClient` can be driven
end to end without an account. No external calls are made.
"""

from __future__ import annotations

import copy
import itertools
import json
import logging
import re
from typing import Any

import httpx

from nrprovider.alerts_api.client import CONDITION_FAMILIES, ConditionFamily

logger = logging.getLogger(__name__)

_FAMILIES_BY_COLLECTION = {family.collection: family for family in CONDITION_FAMILIES}

_LIST_PATH = re.compile(r"/(?P<collection>alerts_(?:nrql_)?conditions)\.json$")
_POLICY_PATH = re.compile(
    r"/(?P<collection>alerts_(?:nrql_)?conditions)/policies/(?P<policy_id>\d+)\.json$"
)
_ITEM_PATH = re.compile(r"/(?P<collection>alerts_(?:nrql_)?conditions)/(?P<condition_id>\d+)\.json$")


def _error(status_code: int, title: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"title": title}})


class MockAlertsAPI:
    """Fake Alerts API keeping policies and conditions in memory.

    Conditions are stored exactly as submitted (string-encoded numbers
    included) plus their assigned ``id``, keyed by id within their
    family. Listings are paginated ``page_size`` at a time with a
    ``Link: rel="next"`` header.

    Usage::

        api = MockAlertsAPI(api_key="test-key")
        policy_id = api.create_policy("tf-test")
        client = NewRelicClient("test-key", transport=api.transport)
    """

    def __init__(self, api_key: str = "mock-api-key", page_size: int = 50) -> None:
        self.api_key = api_key
        self.page_size = page_size
        self.policies: dict[int, str] = {}
        self.conditions: dict[str, dict[int, dict[str, Any]]] = {
            family.collection: {} for family in CONDITION_FAMILIES
        }
        self.requests: list[httpx.Request] = []
        self._owners: dict[int, int] = {}
        self._ids = itertools.count(100001)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def create_policy(self, name: str) -> int:
        policy_id = next(self._ids)
        self.policies[policy_id] = name
        return policy_id

    def policy_of(self, condition_id: int) -> int | None:
        return self._owners.get(condition_id)

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("X-Api-Key") != self.api_key:
            return _error(401, "Invalid API key")

        path = request.url.path

        match = _LIST_PATH.search(path)
        if match and request.method == "GET":
            return self._list(request, _FAMILIES_BY_COLLECTION[match["collection"]])

        match = _POLICY_PATH.search(path)
        if match and request.method == "POST":
            return self._create(
                request,
                _FAMILIES_BY_COLLECTION[match["collection"]],
                int(match["policy_id"]),
            )

        match = _ITEM_PATH.search(path)
        if match and request.method in {"PUT", "DELETE"}:
            family = _FAMILIES_BY_COLLECTION[match["collection"]]
            condition_id = int(match["condition_id"])
            if request.method == "PUT":
                return self._update(request, family, condition_id)
            return self._delete(family, condition_id)

        return _error(404, f"No route for {request.method} {path}")

    def _list(self, request: httpx.Request, family: ConditionFamily) -> httpx.Response:
        raw_policy_id = request.url.params.get("policy_id", "")
        if not raw_policy_id.isdigit() or int(raw_policy_id) not in self.policies:
            return _error(404, "Policy not found")
        policy_id = int(raw_policy_id)
        page = int(request.url.params.get("page", "1"))

        owned = [
            copy.deepcopy(condition)
            for condition_id, condition in sorted(self.conditions[family.collection].items())
            if self._owners.get(condition_id) == policy_id
        ]
        start = (page - 1) * self.page_size
        headers = {}
        if start + self.page_size < len(owned):
            next_url = request.url.copy_set_param("page", page + 1)
            headers["Link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(
            200,
            json={family.list_key: owned[start : start + self.page_size]},
            headers=headers,
        )

    def _create(
        self,
        request: httpx.Request,
        family: ConditionFamily,
        policy_id: int,
    ) -> httpx.Response:
        if policy_id not in self.policies:
            return _error(404, "Policy not found")
        body = json.loads(request.content)
        if family.envelope not in body:
            return _error(422, f"Missing '{family.envelope}' object")

        condition = dict(body[family.envelope])
        condition["id"] = next(self._ids)
        self.conditions[family.collection][condition["id"]] = condition
        self._owners[condition["id"]] = policy_id
        logger.debug("Mock API stored %s %d", family.envelope, condition["id"])
        return httpx.Response(201, json={family.envelope: copy.deepcopy(condition)})

    def _update(
        self,
        request: httpx.Request,
        family: ConditionFamily,
        condition_id: int,
    ) -> httpx.Response:
        stored = self.conditions[family.collection]
        if condition_id not in stored:
            return _error(404, "Condition not found")
        body = json.loads(request.content)
        if family.envelope not in body:
            return _error(422, f"Missing '{family.envelope}' object")

        condition = dict(body[family.envelope])
        condition["id"] = condition_id
        stored[condition_id] = condition
        return httpx.Response(200, json={family.envelope: copy.deepcopy(condition)})

    def _delete(self, family: ConditionFamily, condition_id: int) -> httpx.Response:
        stored = self.conditions[family.collection]
        if condition_id not in stored:
            return _error(404, "Condition not found")
        condition = stored.pop(condition_id)
        self._owners.pop(condition_id, None)
        return httpx.Response(200, json={family.envelope: condition})
