"""
Pydantic wire models for the New Relic Alerts REST API (v2).

The API encodes term durations, thresholds and NRQL ``since_value`` as
strings; these models accept either form on input and always emit the
string form on output. ``policy_id`` is addressing data carried in URLs and
is never part of a request body.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def _format_number(value: float | int) -> str:
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


class AlertConditionTerm(BaseModel):
    """A single threshold rule within a condition."""

    model_config = ConfigDict(extra="ignore")

    duration: int = Field(
        ...,
        description="Minutes the threshold must be violated before opening a violation.",
    )
    operator: str = Field(
        default="equal",
        description="Comparison against the threshold: above, below or equal.",
    )
    priority: str = Field(
        default="critical",
        description="critical or warning.",
    )
    threshold: float = Field(
        ...,
        description="Value compared against the metric or query result.",
    )
    time_function: str = Field(
        ...,
        description="all (every data point) or any (at least once) during duration.",
    )

    @field_serializer("duration", "threshold")
    def _serialize_numeric(self, value: float | int) -> str:
        return _format_number(value)


class AlertConditionUserDefined(BaseModel):
    """Custom metric settings used when ``metric`` is ``user_defined``."""

    model_config = ConfigDict(extra="ignore")

    metric: str = Field(default="", description="Custom metric name.")
    value_function: str = Field(
        default="",
        description="average, min, max, total or sample_size.",
    )


class AlertConditionNrql(BaseModel):
    """The query evaluated by an NRQL condition."""

    model_config = ConfigDict(extra="ignore")

    query: str = Field(..., description="NRQL query monitored by the condition.")
    since_value: int = Field(
        ...,
        description="Timeframe in minutes over which the query is evaluated.",
    )

    @field_serializer("since_value")
    def _serialize_since_value(self, value: int) -> str:
        return str(value)


class AlertCondition(BaseModel):
    """An alert condition as stored by New Relic.

    Metric conditions use ``type``, ``entities``, ``metric`` and
    ``condition_scope``; NRQL conditions use ``nrql`` and
    ``value_function``. A populated ``nrql`` marks the NRQL family.
    """

    model_config = ConfigDict(extra="ignore")

    policy_id: int = Field(
        default=0,
        exclude=True,
        description="Owning policy; addressing only, never serialised.",
    )
    id: int = Field(default=0, description="Assigned by New Relic on creation.")
    type: str = Field(default="", description="Condition family.")
    name: str = Field(..., description="Condition name.")
    enabled: bool = Field(default=True)
    entities: list[str] = Field(
        default_factory=list,
        description="Monitored entity ids, string-encoded.",
    )
    metric: str = Field(default="")
    runbook_url: str = Field(default="")
    condition_scope: str = Field(default="")
    terms: list[AlertConditionTerm] = Field(default_factory=list)
    user_defined: AlertConditionUserDefined | None = Field(default=None)
    value_function: str = Field(default="")
    nrql: AlertConditionNrql | None = Field(default=None)

    @property
    def is_nrql(self) -> bool:
        return self.nrql is not None

    def to_payload(self) -> dict[str, Any]:
        """Return the request body for this condition's API family."""
        if self.is_nrql:
            exclude = {"type", "entities", "metric", "condition_scope", "user_defined"}
        else:
            exclude = {"nrql", "value_function"}
        if not self.id:
            exclude.add("id")
        return self.model_dump(mode="json", exclude=exclude, exclude_none=True)
