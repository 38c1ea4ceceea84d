"""
Entities for DocStore.

An Entity is a dictionary of property values plus an optional key.
Entities without a key are embedded value records: they are stored inline
inside a parent entity's property and have no identity of their own.

Supported property values:
    None, bool, int, float, str, datetime, embedded Entity, and lists of these.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from .keys import Key

_DATETIME_TAG = "__datetime__"
_ENTITY_TAG = "__entity__"


class Entity(dict):
    """A stored or embedded record.

    Attributes:
        key: Entity key, or None for an embedded record

    The key is positional-only, so "key" is usable as a property name.

    Example:
        >>> contact = Entity(email="a@example.com", phone="555-0100")
        >>> user = Entity(Key("User", "alice"), count=0, contact=contact)
        >>> user["contact"]["email"]
        'a@example.com'
    """

    def __init__(self, key: Optional[Key] = None, /, **properties: Any) -> None:
        super().__init__(properties)
        self.key = key

    def copy_with(self, **changes: Any) -> Entity:
        """Return a new entity with the same key and updated properties."""
        props = dict(self)
        props.update(changes)
        return Entity(self.key, **props)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Entity):
            return self.key == other.key and dict.__eq__(self, other)
        return dict.__eq__(self, other)

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Entity(key={self.key!r}, properties={dict.__repr__(self)})"


def _encode_value(value: Any) -> Any:
    if isinstance(value, Entity):
        return {_ENTITY_TAG: {name: _encode_value(v) for name, v in value.items()}}
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    raise TypeError(f"Unsupported property value type: {type(value).__name__}")


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if _DATETIME_TAG in value:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        if _ENTITY_TAG in value:
            return Entity(**{name: _decode_value(v) for name, v in value[_ENTITY_TAG].items()})
        raise ValueError(f"Untagged mapping in stored properties: {sorted(value)}")
    if isinstance(value, list):
        return [_decode_value(v) for v in value]
    return value


def encode_properties(entity: Entity) -> str:
    """Serialize an entity's properties to JSON text.

    Raises:
        TypeError: If a property value has an unsupported type
    """
    return json.dumps({name: _encode_value(v) for name, v in entity.items()}, sort_keys=True)


def decode_properties(data: str) -> Dict[str, Any]:
    """Parse JSON text produced by encode_properties."""
    return {name: _decode_value(v) for name, v in json.loads(data).items()}
