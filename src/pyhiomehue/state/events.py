"""Typed bus events.

Every subscribed topic, current or legacy, is parsed into one of these
before it reaches the reconciler or the pairing state machine.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ControlAction(StrEnum):
    SCAN = "scan"
    DISCONNECT = "disconnect"


class _BusEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class _SensorEvent(_BusEvent):
    sensor_id: str

    @field_validator("sensor_id")
    @classmethod
    def _normalize_sensor_id(cls, value: str) -> str:
        sensor_id = value.strip()
        if not sensor_id:
            raise ValueError("sensor_id must be non-empty")
        return sensor_id


class OccupancyEvent(_SensorEvent):
    """A room became occupied or vacant.

    ``name`` is set when the protocol embeds the room name in the
    occupancy message itself (legacy ``meta`` payloads).
    """

    occupied: bool
    name: str | None = None


class NameEvent(_SensorEvent):
    """Canonical name announcement for a sensor."""

    name: str


class DayNightEvent(_BusEvent):
    position: str
    is_night: bool


class PolicyEvent(_BusEvent):
    """New value of the "only control lights at night" preference."""

    night_only: bool


class ControlEvent(_BusEvent):
    action: ControlAction


BusEvent = OccupancyEvent | NameEvent | DayNightEvent | PolicyEvent | ControlEvent
