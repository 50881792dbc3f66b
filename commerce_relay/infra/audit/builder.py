"""Audit entry builder: value snapshots for tracked entities.

Snapshots are built from SQLAlchemy's instance state without triggering
database operations: only values already present in the instance dict (or
in attribute history) are read, so unloaded or expired attributes are
omitted rather than lazily fetched inside a flush.

Values are normalised so audit rows stay stable and comparable across
model versions:

- ``datetime``/``date``/``time``: ISO-8601 string
- value objects (dataclasses, pydantic models, SQLAlchemy composites): JSON string
- sequences and sets: JSON string
- ``Enum``: its value; ``UUID`` and ``Decimal``: ``str``
- JSON scalars (str, int, float, bool, None): unchanged
- anything else: ``str(value)``

Example:
    >>> product.price = Decimal("12.50")
    >>> snapshot_original_values(product)
    {'id': '0193...', 'name': 'Mug', 'price': '9.99', 'version': 3}
    >>> snapshot_values(product)
    {'id': '0193...', 'name': 'Mug', 'price': '12.50', 'version': 3}
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect

from commerce_relay.infra.audit.models import AuditAction, AuditLog

if TYPE_CHECKING:
    from sqlalchemy.orm import InstanceState

    from commerce_relay.infra.audit.context import AuditContext

_JSON_SCALARS = (str, int, float, bool)


def _value_object_to_primitive(value: Any) -> Any:
    """Nested JSON-ready form of a value object, or the value itself."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "__composite_values__"):
        return list(value.__composite_values__())
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    primitive = _value_object_to_primitive(value)
    if primitive is not value:
        return primitive
    return str(value)


def _is_value_object(value: Any) -> bool:
    return (
        isinstance(value, BaseModel)
        or (dataclasses.is_dataclass(value) and not isinstance(value, type))
        or hasattr(value, "__composite_values__")
    )


def serialize_value(value: Any) -> Any:
    """Canonical JSON-storable form of a single property value."""
    if value is None:
        return None
    # bool is an int subclass; both pass through unchanged
    if isinstance(value, _JSON_SCALARS) and not isinstance(value, Enum):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if _is_value_object(value):
        return json.dumps(_value_object_to_primitive(value), default=_json_default, sort_keys=True)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
        return json.dumps(items, default=_json_default)
    if isinstance(value, dict):
        return json.dumps(value, default=_json_default, sort_keys=True)
    return str(value)


def _composite_columns(state: InstanceState[Any]) -> dict[str, list[str]]:
    """Map each composite attribute to the column attributes backing it."""
    return {comp.key: [prop.key for prop in comp.props] for comp in state.mapper.composites}


def _snapshot(state: InstanceState[Any], column_value: Any) -> dict[str, Any]:
    composites = _composite_columns(state)
    backing = {key for keys in composites.values() for key in keys}
    values: dict[str, Any] = {}

    for attr in state.mapper.column_attrs:
        if attr.key in backing:
            continue
        found, value = column_value(attr.key)
        if found:
            values[attr.key] = serialize_value(value)

    for comp in state.mapper.composites:
        parts = [column_value(key) for key in composites[comp.key]]
        if not all(found for found, _ in parts):
            continue
        raw = [value for _, value in parts]
        value = None if all(v is None for v in raw) else comp.composite_class(*raw)
        values[comp.key] = serialize_value(value)

    return values


def snapshot_values(entity: Any) -> dict[str, Any]:
    """Current value of every loaded scalar and value-object property.

    Relationships (navigation properties) are never included.
    """
    state: InstanceState[Any] = sa_inspect(entity)

    def current(key: str) -> tuple[bool, Any]:
        if key in state.dict:
            return True, state.dict[key]
        return False, None

    return _snapshot(state, current)


def snapshot_original_values(entity: Any) -> dict[str, Any]:
    """Value of every loaded property as it was before pending changes."""
    state: InstanceState[Any] = sa_inspect(entity)

    def original(key: str) -> tuple[bool, Any]:
        history = state.attrs[key].history
        if history.deleted:
            return True, history.deleted[0]
        if key in state.dict:
            # Not changed, return current value
            return True, state.dict[key]
        return False, None

    return _snapshot(state, original)


def build_audit_entry(
    entity: Any,
    action: AuditAction,
    context: AuditContext | None = None,
    *,
    app_version: str | None = None,
) -> AuditLog:
    """Build the audit entry for one entity transition.

    - Create: old = {}, new = current snapshot
    - Update: old = original snapshot, new = current snapshot
    - Delete: old = last known snapshot, new = {}

    Empty snapshots are stored as a placeholder by ``AuditLog.create``.

    Raises:
        AuditLogValidationError: If the entity has no type name or id.
    """
    if action == AuditAction.CREATE:
        old_values: dict[str, Any] = {}
        new_values = snapshot_values(entity)
    elif action == AuditAction.UPDATE:
        old_values = snapshot_original_values(entity)
        new_values = snapshot_values(entity)
    else:
        old_values = snapshot_values(entity)
        new_values = {}

    return AuditLog.create(
        type(entity).__name__,
        sa_inspect(entity).dict.get("id"),
        action,
        old_values,
        new_values,
        user_id=context.user_id if context else None,
        ip_address=context.ip_address if context else None,
        user_agent=context.user_agent if context else None,
        app_version=app_version,
    )


__all__ = [
    "build_audit_entry",
    "serialize_value",
    "snapshot_original_values",
    "snapshot_values",
]
