"""Light group models (``/api/<username>/groups``)."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pyhiomehue.models._base import HueBaseModel


class GroupAction(HueBaseModel):
    """Last action applied to every light in the group."""

    on: bool = False
    bri: int | None = None


class GroupState(HueBaseModel):
    any_on: bool = False
    all_on: bool = False


class Group(HueBaseModel):
    """A named collection of lights controllable as a unit."""

    id: str
    name: str = ""
    type: str = ""
    lights: list[str] = Field(default_factory=list)
    action: GroupAction = Field(default_factory=GroupAction)
    state: GroupState = Field(default_factory=GroupState)

    @property
    def on(self) -> bool:
        """On-state as last set through the group action."""
        return self.action.on

    def with_on(self, on: bool) -> Group:
        """Return a copy with the action on-state replaced."""
        return self.model_copy(update={"action": self.action.model_copy(update={"on": on})})

    @classmethod
    def from_resource(cls, group_id: str, data: dict[str, Any]) -> Group:
        """Build a group from one entry of the groups resource map."""
        return cls.model_validate({**data, "id": str(group_id)})
