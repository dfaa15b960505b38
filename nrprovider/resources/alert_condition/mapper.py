"""
Translation between condition documents and Alerts API conditions.

:func:`build_alert_condition` turns a validated document into the wire
model submitted to New Relic; :func:`read_alert_condition` projects an API
condition back onto a resource's attribute state.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nrprovider.alerts_api.models import (
    AlertCondition,
    AlertConditionNrql,
    AlertConditionTerm,
    AlertConditionUserDefined,
)
from nrprovider.core.exceptions import ValidationException
from nrprovider.resources.alert_condition.schema import (
    AlertConditionConfig,
    ConditionShape,
    ValueFunction,
    detect_shape,
    validate,
)
from nrprovider.resources.base import ResourceData
from nrprovider.resources.ids import parse_ids, parse_int_id


def build_alert_condition(document: Mapping[str, Any] | AlertConditionConfig) -> AlertCondition:
    """Build the API representation of a condition document.

    Mappings are validated first; an :class:`AlertConditionConfig` is
    taken as already valid.

    Raises:
        ValidationException: The document is invalid, or a metric
            condition lacks ``type``, ``entities`` or ``metric``.
        ShapeConflictException: Fields of one shape are set alongside
            the other, or neither shape is present.
    """
    config = document if isinstance(document, AlertConditionConfig) else validate(document)
    shape = detect_shape(config)

    condition = AlertCondition(
        policy_id=config.policy_id,
        name=config.name,
        enabled=True,
        terms=[
            AlertConditionTerm(
                duration=term.duration,
                operator=term.operator.value,
                priority=term.priority.value,
                threshold=term.threshold,
                time_function=term.time_function.value,
            )
            for term in config.term
        ],
        condition_scope=config.condition_scope or "",
        value_function=config.value_function.value,
    )

    if shape is ConditionShape.NRQL:
        block = config.nrql[0]
        condition.nrql = AlertConditionNrql(query=block.query, since_value=block.since_value)
    else:
        missing = [
            name
            for name in ("metric", "entities", "type")
            if getattr(config, name) is None
        ]
        if missing:
            raise ValidationException(
                "Metric conditions must set type, entities and metric",
                errors=[
                    {
                        "field": name,
                        "message": f"{name} is required for metric conditions",
                        "type": "missing",
                    }
                    for name in missing
                ],
            )
        condition.metric = config.metric or ""
        condition.entities = [str(entity) for entity in config.entities or []]
        condition.type = config.type.value if config.type else ""

    if config.runbook_url:
        condition.runbook_url = config.runbook_url

    if config.user_defined_metric and config.user_defined_value_function:
        condition.user_defined = AlertConditionUserDefined(
            metric=config.user_defined_metric,
            value_function=config.user_defined_value_function.value,
        )

    return condition


def _or_none(value: str) -> str | None:
    return value or None


def read_alert_condition(condition: AlertCondition, data: ResourceData) -> None:
    """Copy an API condition onto ``data``.

    ``data.id`` must already hold the composite id; its policy part
    becomes ``policy_id``. Attributes the API does not model are left
    untouched.

    Raises:
        MalformedIdentifierException: ``data.id`` or an entity id is not
            a valid integer identifier.
    """
    policy_id, _ = parse_ids(data.id, 2)
    entities = [parse_int_id(entity, bits=32) for entity in condition.entities]
    user_defined = condition.user_defined or AlertConditionUserDefined()

    data.set("policy_id", policy_id)
    data.set("name", condition.name)
    data.set("type", _or_none(condition.type))
    data.set("metric", _or_none(condition.metric))
    data.set("runbook_url", _or_none(condition.runbook_url))
    data.set("condition_scope", _or_none(condition.condition_scope))
    data.set("user_defined_metric", _or_none(user_defined.metric))
    data.set("user_defined_value_function", _or_none(user_defined.value_function))
    data.set("value_function", condition.value_function or ValueFunction.SINGLE_VALUE.value)
    data.set("entities", entities or None)
    data.set(
        "term",
        [
            {
                "duration": term.duration,
                "operator": term.operator,
                "priority": term.priority,
                "threshold": term.threshold,
                "time_function": term.time_function,
            }
            for term in condition.terms
        ],
    )
    data.set(
        "nrql",
        [{"query": condition.nrql.query, "since_value": condition.nrql.since_value}]
        if condition.nrql is not None
        else [],
    )
