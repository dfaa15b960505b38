"""
Resource descriptor and attribute state shared by provider resources.

The configuration engine owns parsing and diffing; it hands each lifecycle
callback a :class:`ResourceData` holding the resource's attributes and its
external identity, and reads the populated state back afterwards.
"""

from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from nrprovider.alerts_api.client import NewRelicClient


class ResourceData:
    """Attribute state of one resource instance.

    An empty ``id`` means the resource does not exist remotely (never
    created, deleted, or found missing on read).
    """

    def __init__(self, attributes: Mapping[str, Any] | None = None, id: str = "") -> None:
        self._attributes: dict[str, Any] = copy.deepcopy(dict(attributes or {}))
        self._id = id

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r}, attributes={self._attributes!r})"

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._attributes[key] = value

    def update(self, attributes: Mapping[str, Any]) -> None:
        """Replace attributes with newly planned configuration values."""
        self._attributes.update(copy.deepcopy(dict(attributes)))

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._attributes)


LifecycleFunc = Callable[[ResourceData, "NewRelicClient"], Awaitable[None]]
ImportFunc = Callable[[ResourceData, "NewRelicClient"], Awaitable[list[ResourceData]]]
ReplaceFunc = Callable[[Mapping[str, Any], Mapping[str, Any]], bool]


async def import_state_passthrough(
    data: ResourceData,
    client: NewRelicClient,
) -> list[ResourceData]:
    """Import using the supplied id as-is; the following read fills the state."""
    return [data]


@dataclass(frozen=True)
class Resource:
    """Schema plus lifecycle callbacks for one resource type."""

    name: str
    schema: type[BaseModel]
    create: LifecycleFunc
    read: LifecycleFunc
    update: LifecycleFunc
    delete: LifecycleFunc
    importer: ImportFunc | None = None
    force_new: frozenset[str] = field(default_factory=frozenset)
    replace_when: ReplaceFunc | None = None

    def requires_replacement(
        self,
        prior: Mapping[str, Any],
        planned: Mapping[str, Any],
    ) -> bool:
        """Whether moving from ``prior`` to ``planned`` needs delete and create.

        True when a force-new attribute changes, or when ``replace_when``
        reports a change the remote API cannot apply in place.
        """
        if any(prior.get(key) != planned.get(key) for key in self.force_new):
            return True
        return self.replace_when is not None and self.replace_when(prior, planned)
