"""
Lifecycle callbacks for the ``newrelic_alert_condition`` resource.

Each callback validates and maps through :mod:`.mapper`, issues a single
client operation, and updates the resource state. Remote failures are
raised unchanged; only a missing condition on read is treated as absence.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from nrprovider.alerts_api.client import NewRelicClient
from nrprovider.core.exceptions import RemoteNotFoundException
from nrprovider.resources.alert_condition.mapper import (
    build_alert_condition,
    read_alert_condition,
)
from nrprovider.resources.alert_condition.schema import AlertConditionConfig
from nrprovider.resources.base import Resource, ResourceData, import_state_passthrough
from nrprovider.resources.ids import parse_ids, serialize_ids

logger = logging.getLogger(__name__)

RESOURCE_NAME = "newrelic_alert_condition"


async def create_alert_condition(data: ResourceData, client: NewRelicClient) -> None:
    condition = build_alert_condition(data.to_dict())

    logger.info("Creating New Relic alert condition %s", condition.name)

    created = await client.create_condition(condition)
    data.set_id(serialize_ids([created.policy_id, created.id]))

    logger.info(
        "Created New Relic alert condition %s",
        data.id,
        extra={"policy_id": created.policy_id, "condition_id": created.id},
    )


async def read_alert_condition_state(data: ResourceData, client: NewRelicClient) -> None:
    logger.info("Reading New Relic alert condition %s", data.id)

    policy_id, condition_id = parse_ids(data.id, 2)

    try:
        condition = await client.get_condition(policy_id, condition_id)
    except RemoteNotFoundException:
        logger.warning(
            "Alert condition %s no longer exists, removing from state",
            data.id,
            extra={"policy_id": policy_id, "condition_id": condition_id},
        )
        data.set_id("")
        return

    read_alert_condition(condition, data)


async def update_alert_condition(data: ResourceData, client: NewRelicClient) -> None:
    condition = build_alert_condition(data.to_dict())

    policy_id, condition_id = parse_ids(data.id, 2)
    condition.policy_id = policy_id
    condition.id = condition_id

    logger.info(
        "Updating New Relic alert condition %d",
        condition_id,
        extra={"policy_id": policy_id, "condition_id": condition_id},
    )

    updated = await client.update_condition(condition)
    read_alert_condition(updated, data)


async def delete_alert_condition(data: ResourceData, client: NewRelicClient) -> None:
    policy_id, condition_id = parse_ids(data.id, 2)

    logger.info(
        "Deleting New Relic alert condition %d",
        condition_id,
        extra={"policy_id": policy_id, "condition_id": condition_id},
    )

    await client.delete_condition(policy_id, condition_id)
    data.set_id("")


def shape_changed(prior: Mapping[str, Any], planned: Mapping[str, Any]) -> bool:
    """Whether the condition moves between the metric and NRQL families."""
    return bool(prior.get("nrql")) != bool(planned.get("nrql"))


def alert_condition_resource() -> Resource:
    """Return the ``newrelic_alert_condition`` resource descriptor."""
    return Resource(
        name=RESOURCE_NAME,
        schema=AlertConditionConfig,
        create=create_alert_condition,
        read=read_alert_condition_state,
        update=update_alert_condition,
        delete=delete_alert_condition,
        importer=import_state_passthrough,
        force_new=frozenset({"policy_id"}),
        replace_when=shape_changed,
    )
