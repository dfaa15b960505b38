"""
Configuration schema and validation for ``newrelic_alert_condition``.

A condition document is parsed once into :class:`AlertConditionConfig`.
Field-level constraints (enumerations, bounds, unknown keys) are enforced by
the model; rules that span fields (term durations, metric names per type,
the user-defined pair) are checked by :func:`validate`. Whether a condition
is metric- or NRQL-shaped is decided per document by :func:`detect_shape`.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from nrprovider.core.exceptions import ShapeConflictException, ValidationException

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ALERT_CONDITION_TYPES: dict[str, tuple[str, ...]] = {
    "apm_app_metric": (
        "apdex",
        "error_percentage",
        "response_time_background",
        "response_time_web",
        "throughput_background",
        "throughput_web",
        "user_defined",
    ),
    "apm_kt_metric": (
        "apdex",
        "error_count",
        "error_percentage",
        "response_time",
        "throughput",
    ),
    "browser_metric": (
        "ajax_response_time",
        "ajax_throughput",
        "dom_processing",
        "end_user_apdex",
        "network",
        "page_rendering",
        "page_view_throughput",
        "page_views_with_js_errors",
        "request_queuing",
        "total_page_load",
        "user_defined",
        "web_application",
    ),
    "mobile_metric": (
        "database",
        "images",
        "json",
        "mobile_crash_rate",
        "network_error_percentage",
        "network",
        "status_error_percentage",
        "user_defined",
        "view_loading",
    ),
    "servers_metric": (
        "cpu_percentage",
        "disk_io_percentage",
        "fullest_disk_percentage",
        "load_average_one_minute",
        "memory_percentage",
        "user_defined",
    ),
}

METRIC_TERM_DURATIONS: tuple[int, ...] = (5, 10, 15, 30, 60, 120)
NRQL_TERM_DURATIONS: tuple[int, ...] = (1, 2, 3, 4, 5, 10, 15, 30, 60, 120)
NRQL_SINCE_VALUES: tuple[int, ...] = (1, 2, 3, 4, 5)

EntityId = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]

METRIC_SHAPE_FIELDS: tuple[str, ...] = ("type", "entities", "metric")
METRIC_ONLY_FIELDS: tuple[str, ...] = METRIC_SHAPE_FIELDS + (
    "condition_scope",
    "user_defined_metric",
    "user_defined_value_function",
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConditionType(str, Enum):
    """Metric condition family."""

    APM_APP_METRIC = "apm_app_metric"
    APM_KT_METRIC = "apm_kt_metric"
    BROWSER_METRIC = "browser_metric"
    MOBILE_METRIC = "mobile_metric"
    SERVERS_METRIC = "servers_metric"


class ConditionShape(str, Enum):
    """Which of the two mutually exclusive condition bodies a document uses."""

    METRIC = "metric"
    NRQL = "nrql"


class TermOperator(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    EQUAL = "equal"


class TermPriority(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


class TimeFunction(str, Enum):
    ALL = "all"
    ANY = "any"


class ValueFunction(str, Enum):
    """How NRQL query results are evaluated against the terms.

    ``single_value`` evaluates each returned value; ``sum`` evaluates the
    sum of the returned values over the term duration.
    """

    SINGLE_VALUE = "single_value"
    SUM = "sum"


class UserDefinedValueFunction(str, Enum):
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    TOTAL = "total"
    SAMPLE_SIZE = "sample_size"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TermConfig(BaseModel):
    """One threshold rule of a condition."""

    model_config = ConfigDict(extra="forbid")

    duration: int = Field(
        ...,
        description="Minutes; allowed values depend on the condition shape.",
    )
    operator: TermOperator = Field(default=TermOperator.EQUAL)
    priority: TermPriority = Field(default=TermPriority.CRITICAL)
    threshold: float = Field(..., ge=0.0)
    time_function: TimeFunction = Field(...)


class NrqlConfig(BaseModel):
    """Query block of an NRQL condition."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., min_length=1, description="NRQL query to monitor.")
    since_value: int = Field(
        ...,
        description="Timeframe in minutes over which the query is evaluated.",
    )

    @field_validator("since_value")
    @classmethod
    def _check_since_value(cls, value: int) -> int:
        if value not in NRQL_SINCE_VALUES:
            raise ValueError(f"since_value must be one of {_join(NRQL_SINCE_VALUES)}, got {value}")
        return value


class AlertConditionConfig(BaseModel):
    """Typed configuration of a ``newrelic_alert_condition`` resource.

    Either the metric fields (``type``, ``entities``, ``metric``) or a
    single ``nrql`` block describe the condition; see :func:`detect_shape`.
    """

    model_config = ConfigDict(extra="forbid")

    policy_id: int = Field(..., description="Owning alert policy. Changing it forces a new resource.")
    name: str = Field(..., min_length=1)
    type: ConditionType | None = Field(default=None)
    entities: list[EntityId] | None = Field(default=None, min_length=1)
    metric: str | None = Field(default=None)
    runbook_url: str | None = Field(default=None)
    condition_scope: str | None = Field(default=None)
    term: list[TermConfig] = Field(..., min_length=1)
    value_function: ValueFunction = Field(default=ValueFunction.SINGLE_VALUE)
    nrql: list[NrqlConfig] = Field(default_factory=list, max_length=1)
    user_defined_metric: str | None = Field(default=None)
    user_defined_value_function: UserDefinedValueFunction | None = Field(default=None)

    @field_validator(
        "type",
        "metric",
        "runbook_url",
        "condition_scope",
        "user_defined_metric",
        "user_defined_value_function",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("value_function", mode="before")
    @classmethod
    def _blank_is_default(cls, value: Any) -> Any:
        return ValueFunction.SINGLE_VALUE if value in ("", None) else value

    @field_validator("nrql", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def metric_fields_set(self) -> list[str]:
        """Names of the metric-shape fields present in this document."""
        return [name for name in METRIC_SHAPE_FIELDS if getattr(self, name) is not None]

    @property
    def metric_only_fields_set(self) -> list[str]:
        return [name for name in METRIC_ONLY_FIELDS if getattr(self, name) is not None]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _join(values: tuple[int, ...]) -> str:
    return ", ".join(str(value) for value in values)


def validate_term_duration(duration: int, *, nrql: bool) -> int:
    """Check a term duration against the rules of the condition's own shape."""
    allowed = NRQL_TERM_DURATIONS if nrql else METRIC_TERM_DURATIONS
    if duration not in allowed:
        kind = "NRQL" if nrql else "metric"
        raise ValueError(
            f"duration must be one of {_join(allowed)} for {kind} conditions, got {duration}"
        )
    return duration


def _cross_field_errors(config: AlertConditionConfig) -> list[dict[str, object]]:
    errors: list[dict[str, object]] = []
    nrql = bool(config.nrql)

    for index, term in enumerate(config.term):
        try:
            validate_term_duration(term.duration, nrql=nrql)
        except ValueError as exc:
            errors.append(
                {"field": f"term.{index}.duration", "message": str(exc), "type": "invalid_duration"}
            )

    if config.type is not None and config.metric is not None:
        allowed_metrics = ALERT_CONDITION_TYPES[config.type.value]
        if config.metric not in allowed_metrics:
            errors.append(
                {
                    "field": "metric",
                    "message": (
                        f"metric '{config.metric}' is not valid for type '{config.type.value}'; "
                        f"expected one of {', '.join(allowed_metrics)}"
                    ),
                    "type": "invalid_metric",
                }
            )

    has_metric = config.user_defined_metric is not None
    has_function = config.user_defined_value_function is not None
    if has_metric != has_function:
        missing = "user_defined_value_function" if has_metric else "user_defined_metric"
        errors.append(
            {
                "field": missing,
                "message": "user_defined_metric and user_defined_value_function must be set together",
                "type": "missing_pair",
            }
        )

    return errors


def validate(document: Mapping[str, Any]) -> AlertConditionConfig:
    """Parse and validate a condition document.

    Returns:
        The typed configuration.

    Raises:
        ValidationException: One entry per violated constraint, keyed by
            the dotted field path.
    """
    try:
        config = AlertConditionConfig.model_validate(dict(document))
    except PydanticValidationError as exc:
        raise ValidationException(
            "Invalid alert condition configuration",
            errors=[
                {
                    "field": ".".join(str(part) for part in error["loc"]),
                    "message": error["msg"],
                    "type": error["type"],
                }
                for error in exc.errors()
            ],
        ) from exc

    errors = _cross_field_errors(config)
    if errors:
        raise ValidationException("Invalid alert condition configuration", errors=errors)
    return config


def _conflicts(fields: list[str], reason: str) -> list[dict[str, object]]:
    return [
        {"field": name, "message": f"{name} {reason}", "type": "shape_conflict"}
        for name in fields
    ]


def detect_shape(config: AlertConditionConfig) -> ConditionShape:
    """Decide whether ``config`` describes a metric or an NRQL condition.

    Fields that belong to the other shape are rejected rather than dropped,
    so what is sent to New Relic is exactly what was configured.

    Raises:
        ShapeConflictException: Both shapes, or neither, are present.
    """
    if config.nrql:
        conflicting = config.metric_only_fields_set
        if conflicting:
            raise ShapeConflictException(
                f"NRQL conditions cannot set {', '.join(conflicting)}",
                errors=_conflicts(conflicting, "is not allowed when an nrql block is set"),
            )
        return ConditionShape.NRQL

    if not config.metric_fields_set:
        raise ShapeConflictException(
            "Alert condition must set either an nrql block or type, entities and metric",
            errors=[
                {
                    "field": "nrql",
                    "message": "neither an nrql block nor metric fields are set",
                    "type": "shape_missing",
                }
            ],
        )

    if config.value_function is not ValueFunction.SINGLE_VALUE:
        raise ShapeConflictException(
            "Metric conditions cannot set value_function",
            errors=_conflicts(["value_function"], "is only allowed with an nrql block"),
        )
    return ConditionShape.METRIC
