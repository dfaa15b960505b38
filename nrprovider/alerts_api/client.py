"""
Async HTTP client for the New Relic Alerts REST API (v2).

Covers the alert condition endpoints for both condition families (metric
conditions under ``alerts_conditions`` and NRQL conditions under
``alerts_nrql_conditions``). Transient failures are retried with
exponential backoff; every other failure is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from nrprovider.alerts_api.models import AlertCondition
from nrprovider.core.exceptions import RemoteException, RemoteNotFoundException

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.newrelic.com/v2"

_MAX_RETRIES = 3
_BACKOFF_BASE = 0.5  # seconds
_DEFAULT_TIMEOUT = 30.0  # seconds
_RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class ConditionFamily:
    """URL layout and JSON envelope keys of one condition endpoint family."""

    collection: str
    envelope: str
    list_key: str


METRIC_FAMILY = ConditionFamily(
    collection="alerts_conditions",
    envelope="condition",
    list_key="conditions",
)
NRQL_FAMILY = ConditionFamily(
    collection="alerts_nrql_conditions",
    envelope="nrql_condition",
    list_key="nrql_conditions",
)
CONDITION_FAMILIES = (METRIC_FAMILY, NRQL_FAMILY)


def family_for(condition: AlertCondition) -> ConditionFamily:
    return NRQL_FAMILY if condition.is_nrql else METRIC_FAMILY


def _error_title(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("title"):
            return str(error["title"])
    return response.text


class NewRelicClient:
    """Async HTTP client for the New Relic Alerts REST API.

    Wraps ``httpx.AsyncClient`` with automatic retry logic using
    exponential backoff for transport errors and retriable statuses.
    A 404 is raised as :class:`RemoteNotFoundException`; any other
    failure as :class:`RemoteException`.

    Usage::

        client = NewRelicClient("NRAK-...")
        created = await client.create_condition(condition)
        found = await client.get_condition(created.policy_id, created.id)
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        max_retries: int = _MAX_RETRIES,
        backoff_base: float = _BACKOFF_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"X-Api-Key": api_key, "Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def close(self) -> None:
        """Shut down the underlying HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> NewRelicClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Returns the successful ``httpx.Response``. Raises
        ``RemoteNotFoundException`` on 404 and ``RemoteException`` on any
        other non-retriable status or once all attempts are used up.
        """
        last_exc: Exception | None = None
        last_status: int | None = None

        for attempt in range(self._max_retries):
            logger.debug("New Relic request %s %s body=%s", method, path, json_body)
            try:
                response = await self._http.request(
                    method,
                    path,
                    json=json_body,
                    params=params,
                )
                logger.debug(
                    "New Relic response %s %s status=%d body=%s",
                    method,
                    path,
                    response.status_code,
                    response.text,
                )
                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as exc:
                last_exc = exc
                last_status = exc.response.status_code
                if last_status == 404:
                    raise RemoteNotFoundException(
                        "New Relic resource",
                        f"{method} {path}",
                        detail={"title": _error_title(exc.response)},
                    ) from exc
                if last_status not in _RETRIABLE_STATUSES:
                    raise RemoteException(
                        f"New Relic request {method} {path} failed with status "
                        f"{last_status}: {_error_title(exc.response)}",
                        status_code=last_status,
                    ) from exc

            except httpx.RequestError as exc:
                last_exc = exc
                last_status = None

            if attempt + 1 < self._max_retries:
                wait = self._backoff_base * (2**attempt)
                logger.warning(
                    "New Relic request %s %s failed (attempt %d/%d): %s – retrying in %.1fs",
                    method,
                    path,
                    attempt + 1,
                    self._max_retries,
                    last_exc,
                    wait,
                )
                await asyncio.sleep(wait)

        logger.error(
            "New Relic request %s %s failed after %d attempt(s): %s",
            method,
            path,
            self._max_retries,
            last_exc,
        )
        raise RemoteException(
            f"New Relic request {method} {path} failed after "
            f"{self._max_retries} attempt(s): {last_exc}",
            status_code=last_status,
        ) from last_exc

    @staticmethod
    def _parse_condition(
        response: httpx.Response,
        family: ConditionFamily,
        policy_id: int,
    ) -> AlertCondition:
        body = response.json()
        try:
            payload = body[family.envelope]
        except (KeyError, TypeError) as exc:
            raise RemoteException(
                f"New Relic response is missing the '{family.envelope}' object",
                status_code=response.status_code,
            ) from exc
        condition = AlertCondition.model_validate(payload)
        condition.policy_id = policy_id
        return condition

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_conditions(
        self,
        policy_id: int,
        family: ConditionFamily = METRIC_FAMILY,
    ) -> list[AlertCondition]:
        """List every condition of one family attached to a policy.

        Follows ``Link: rel="next"`` pagination until exhausted.
        """
        conditions: list[AlertCondition] = []
        url: str | None = f"/{family.collection}.json"
        params: dict[str, Any] | None = {"policy_id": policy_id}

        while url is not None:
            response = await self._request_with_retry("GET", url, params=params)
            for item in response.json().get(family.list_key, []):
                condition = AlertCondition.model_validate(item)
                condition.policy_id = policy_id
                conditions.append(condition)
            url = response.links.get("next", {}).get("url")
            params = None

        logger.debug(
            "Listed %d %s for policy=%d",
            len(conditions),
            family.list_key,
            policy_id,
        )
        return conditions

    async def create_condition(self, condition: AlertCondition) -> AlertCondition:
        """Create a condition under ``condition.policy_id``.

        Returns:
            The stored condition, including its assigned ``id``.
        """
        family = family_for(condition)
        response = await self._request_with_retry(
            "POST",
            f"/{family.collection}/policies/{condition.policy_id}.json",
            json_body={family.envelope: condition.to_payload()},
        )
        created = self._parse_condition(response, family, condition.policy_id)
        logger.info(
            "Created New Relic %s %d on policy=%d",
            family.envelope,
            created.id,
            created.policy_id,
        )
        return created

    async def get_condition(self, policy_id: int, condition_id: int) -> AlertCondition:
        """Fetch one condition by ``(policy_id, condition_id)``.

        The API has no single-condition endpoint, so both families'
        listings for the policy are searched.

        Raises:
            RemoteNotFoundException: No condition with that id exists
                on the policy (or the policy itself is gone).
        """
        for family in CONDITION_FAMILIES:
            try:
                conditions = await self.list_conditions(policy_id, family)
            except RemoteNotFoundException:
                logger.debug("Policy %d has no %s listing", policy_id, family.list_key)
                continue
            for condition in conditions:
                if condition.id == condition_id:
                    return condition

        raise RemoteNotFoundException(
            "Alert condition",
            f"{policy_id}:{condition_id}",
        )

    async def update_condition(self, condition: AlertCondition) -> AlertCondition:
        """Replace the stored condition ``condition.id`` with ``condition``."""
        family = family_for(condition)
        response = await self._request_with_retry(
            "PUT",
            f"/{family.collection}/{condition.id}.json",
            json_body={family.envelope: condition.to_payload()},
        )
        return self._parse_condition(response, family, condition.policy_id)

    async def delete_condition(self, policy_id: int, condition_id: int) -> None:
        """Delete a condition.

        Raises:
            RemoteNotFoundException: The condition does not exist.
        """
        existing = await self.get_condition(policy_id, condition_id)
        family = family_for(existing)
        await self._request_with_retry(
            "DELETE",
            f"/{family.collection}/{condition_id}.json",
        )
        logger.info(
            "Deleted New Relic %s %d on policy=%d",
            family.envelope,
            condition_id,
            policy_id,
        )
