"""Map a set of named state cells to a plain snapshot and back.

Stores that keep their persisted fields in individual cells can hand them to
:class:`StateMapper` instead of writing ``serialize_state``/``restore_state``
by hand.  A cell is one of:

* a :class:`Ref`, a single mutable value replaced wholesale;
* a structured mutable value (any ``MutableMapping`` or a non-frozen
  pydantic model), updated in place by shallow merge;
* anything else, which the mapper reads but never writes.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclasses.dataclass(slots=True)
class Ref(Generic[T]):
    """A single mutable cell."""

    value: T


def _is_structured(cell: Any) -> bool:
    if isinstance(cell, MutableMapping):
        return True
    return isinstance(cell, BaseModel) and not cell.model_config.get("frozen", False)


def _to_plain(value: Any) -> Any:
    """Copy *value* into plain dicts/lists/scalars."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def _merge_into(cell: Any, patch: Any) -> None:
    """Shallow-merge *patch* into a structured cell.

    A patch that is not a mapping is ignored, and a model cell only takes
    keys it declares as fields.
    """
    if not isinstance(patch, Mapping):
        _logger.debug("Ignoring non-mapping value for %s cell", type(cell).__name__)
        return
    if isinstance(cell, BaseModel):
        known = type(cell).model_fields
        for name, value in patch.items():
            if name not in known:
                _logger.debug("Ignoring unknown field %r for %s", name, type(cell).__name__)
                continue
            setattr(cell, name, value)
        return
    cell.update(patch)


class StateMapper:
    """Serialize, restore and reset a fixed set of state cells.

    Parameters
    ----------
    state : Mapping[str, Any]
        Field name to cell.
    defaults : Mapping[str, Any]
        Field name to the value :meth:`reset` writes back.
    """

    def __init__(self, state: Mapping[str, Any], defaults: Mapping[str, Any]) -> None:
        self._state = dict(state)
        self._defaults = dict(defaults)

    @property
    def fields(self) -> list[str]:
        return list(self._state)

    def serialize_state(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, cell in self._state.items():
            value = cell.value if isinstance(cell, Ref) else cell
            out[name] = _to_plain(value)
        return out

    def restore_state(self, data: Mapping[str, Any]) -> None:
        """Write fields present in *data*; fields missing from it are left alone."""
        for name, cell in self._state.items():
            if name not in data:
                continue
            self._write(cell, data[name])

    def reset(self) -> None:
        for name, cell in self._state.items():
            if name not in self._defaults:
                continue
            self._write(cell, copy.deepcopy(self._defaults[name]))

    @staticmethod
    def _write(cell: Any, value: Any) -> None:
        if isinstance(cell, Ref):
            cell.value = value
        elif _is_structured(cell):
            _merge_into(cell, value)
        # Plain values are caller-managed and cannot be updated in place.


def make_state_mapper(state: Mapping[str, Any], defaults: Mapping[str, Any]) -> StateMapper:
    """Build a :class:`StateMapper` for *state* with reset values *defaults*."""
    return StateMapper(state, defaults)
