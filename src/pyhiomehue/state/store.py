"""Durable key-value state surviving process restarts.

The in-memory :class:`PersistedState` is the single source of truth; the
JSON file mirrors it. Every mutation schedules a flush, and at most one
write is in flight at a time.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pyhiomehue.exceptions import PersistenceError

_logger = logging.getLogger(__name__)


class PersistedState(BaseModel):
    """On-disk record.

    Field aliases are the JSON keys written by earlier releases, so an
    existing ``hue.json`` keeps working.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    paired_credential: str | None = Field(default=None, alias="hueUsername")
    sensor_occupancy: dict[str, bool] = Field(default_factory=dict, alias="sensorVals")
    sensor_name_to_id: dict[str, str] = Field(default_factory=dict, alias="sensorNames")
    sensor_id_to_name: dict[str, str] = Field(default_factory=dict, alias="sensorNameById")
    night_only: bool = Field(
        default=False,
        validation_alias=AliasChoices("onlyControlAtNight", "night_only"),
        serialization_alias="onlyControlAtNight",
    )

    @field_validator("sensor_occupancy", "sensor_name_to_id", "sensor_id_to_name", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {str(k): (str(v) if isinstance(v, int) and not isinstance(v, bool) else v) for k, v in value.items()}

    @model_validator(mode="after")
    def _reindex_names(self) -> PersistedState:
        """Rebuild the id->name map from ``sensorNames`` so both directions agree.

        When two names point at the same id the later one wins.
        """
        forward: dict[str, str] = {}
        reverse: dict[str, str] = {}
        for name, sensor_id in self.sensor_name_to_id.items():
            previous = reverse.get(sensor_id)
            if previous is not None:
                forward.pop(previous, None)
            forward[name] = sensor_id
            reverse[sensor_id] = name
        self.sensor_name_to_id = forward
        self.sensor_id_to_name = reverse
        return self


class StateStore:
    """Owns :class:`PersistedState` and its file mirror."""

    def __init__(self, path: str | os.PathLike[str], state: PersistedState | None = None) -> None:
        self._path = Path(path)
        self._state = state if state is not None else PersistedState()
        self._writing = False
        self._dirty = False
        self._flush_task: asyncio.Task[None] | None = None
        self.last_error: PersistenceError | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> StateStore:
        """Load *path* merged over defaults.

        A missing file yields defaults. A corrupt or mistyped file is
        reported and also yields defaults.
        """
        file_path = Path(path)
        store = cls(file_path)
        if not file_path.exists():
            return store
        try:
            raw = json.loads(file_path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            store._state = PersistedState.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            # json.JSONDecodeError is a ValueError.
            store.last_error = PersistenceError(f"Could not load state from {file_path}: {exc}")
            _logger.warning("%s; starting from defaults", store.last_error)
        return store

    @property
    def path(self) -> Path:
        return self._path

    @property
    def state(self) -> PersistedState:
        return self._state

    # ------------------------------------------------------------------
    # Accessors and mutations
    # ------------------------------------------------------------------

    @property
    def credential(self) -> str | None:
        return self._state.paired_credential

    def set_credential(self, credential: str | None) -> None:
        if self._state.paired_credential == credential:
            return
        self._state.paired_credential = credential
        self.request_flush()

    @property
    def night_only(self) -> bool:
        return self._state.night_only

    def set_night_only(self, value: bool) -> bool:
        """Store the policy flag; returns whether it changed."""
        if self._state.night_only == value:
            return False
        self._state.night_only = value
        self.request_flush()
        return True

    def occupancy(self, sensor_id: str) -> bool | None:
        return self._state.sensor_occupancy.get(sensor_id)

    def update_occupancy(self, sensor_id: str, occupied: bool) -> bool:
        """Store a sensor reading; returns ``False`` when it is unchanged."""
        if self._state.sensor_occupancy.get(sensor_id) == occupied:
            return False
        self._state.sensor_occupancy[sensor_id] = occupied
        self.request_flush()
        return True

    def name_for(self, sensor_id: str) -> str | None:
        return self._state.sensor_id_to_name.get(sensor_id)

    def id_for(self, name: str) -> str | None:
        return self._state.sensor_name_to_id.get(name)

    def set_sensor_name(self, sensor_id: str, name: str) -> bool:
        """Bind canonical *name* to *sensor_id*, keeping both maps consistent.

        The sensor's previous name is released, and a name previously held
        by another sensor moves to this one. Returns whether anything changed.
        """
        forward = self._state.sensor_name_to_id
        reverse = self._state.sensor_id_to_name
        if reverse.get(sensor_id) == name and forward.get(name) == sensor_id:
            return False

        old_name = reverse.pop(sensor_id, None)
        if old_name is not None and forward.get(old_name) == sensor_id:
            del forward[old_name]
        previous_owner = forward.get(name)
        if previous_owner is not None:
            reverse.pop(previous_owner, None)

        forward[name] = sensor_id
        reverse[sensor_id] = name
        self.request_flush()
        return True

    def known_sensors(self) -> list[tuple[str, str, bool]]:
        """``(sensor_id, canonical_name, occupied)`` for every named sensor with a reading."""
        occupancy = self._state.sensor_occupancy
        return [
            (sensor_id, name, occupancy[sensor_id])
            for sensor_id, name in self._state.sensor_id_to_name.items()
            if sensor_id in occupancy
        ]

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def dump_json(self) -> str:
        return self._state.model_dump_json(by_alias=True, indent=2)

    def request_flush(self) -> None:
        """Persist the current state.

        With a write already in flight the request only marks the store
        dirty; the in-flight flush then writes once more when it finishes.
        Without a running event loop the write happens synchronously.
        """
        if self._writing:
            self._dirty = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write_reporting(self.dump_json())
            return
        self._writing = True
        self._flush_task = loop.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                self._dirty = False
                payload = self.dump_json()
                try:
                    await loop.run_in_executor(None, self._write_file, payload)
                except PersistenceError as exc:
                    self._report(exc)
                if not self._dirty:
                    break
        finally:
            self._writing = False

    async def wait_flushed(self) -> None:
        """Wait for the in-flight flush, if any, to finish."""
        task = self._flush_task
        if task is not None and not task.done():
            await task

    def _write_reporting(self, payload: str) -> None:
        try:
            self._write_file(payload)
        except PersistenceError as exc:
            self._report(exc)

    def _report(self, exc: PersistenceError) -> None:
        self.last_error = exc
        _logger.warning("%s; in-memory state kept", exc)

    def _write_file(self, payload: str) -> None:
        """Atomically replace the state file with *payload*."""
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Could not write state to {self._path}: {exc}") from exc
