"""Snapshot <-> persisted record codecs."""

from __future__ import annotations

import json
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from simplepersist.exceptions import PersistRestoreError

Snapshot = dict[str, Any]

S = TypeVar("S")
M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class Serializer(Protocol[S]):
    """Encode/decode pair used for every save and restore.

    A record read back is only guaranteed to decode if it was written by a
    serializer honouring the same contract.
    """

    def serialize(self, data: S) -> str:
        """Serialize state into a string before storing."""
        ...

    def deserialize(self, data: str) -> S:
        """Deserialize a stored string back into state before restoring."""
        ...


class JsonSerializer:
    """Compact JSON codec, the default serializer.

    Output matches ``JSON.stringify`` spacing (``{"count":99}``) so records
    stay interchangeable with JavaScript writers of the same key.
    """

    def __init__(self, *, sort_keys: bool = False) -> None:
        self._sort_keys = sort_keys

    def serialize(self, data: Any) -> str:
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False, sort_keys=self._sort_keys)

    def deserialize(self, data: str) -> Any:
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise PersistRestoreError(f"Persisted record is not valid JSON: {exc}") from exc


class ModelSerializer(Generic[M]):
    """JSON codec that validates snapshots against a pydantic model.

    Records that parse but do not match the model schema are rejected on
    restore, so incompatible data never reaches the store.
    """

    def __init__(self, model: type[M], *, exclude_none: bool = False) -> None:
        self._model = model
        self._exclude_none = exclude_none

    @property
    def model(self) -> type[M]:
        return self._model

    def serialize(self, data: Snapshot | M) -> str:
        instance = data if isinstance(data, self._model) else self._model.model_validate(data)
        return instance.model_dump_json(exclude_none=self._exclude_none)

    def deserialize(self, data: str) -> Snapshot:
        try:
            instance = self._model.model_validate_json(data)
        except ValidationError as exc:
            raise PersistRestoreError(
                f"Persisted record does not match {self._model.__name__}: {exc.error_count()} error(s)"
            ) from exc
        return instance.model_dump(mode="json", exclude_none=self._exclude_none)
