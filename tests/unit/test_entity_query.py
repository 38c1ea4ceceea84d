"""
Unit tests for entities, property encoding and query cursors.

Tests cover:
- Entity copy semantics
- Property JSON encoding with embedded records and datetimes
- Cursor encoding and rejection of malformed cursors
- Query validation
"""

from datetime import datetime, timezone

import pytest

from sdk.docstore_sdk.entity import Entity, decode_properties, encode_properties
from sdk.docstore_sdk.errors import InvalidCursorError, InvalidKeyError
from sdk.docstore_sdk.keys import Key
from sdk.docstore_sdk.query import Query, decode_cursor, encode_cursor


class TestEntity:
    """Tests for Entity."""

    def test_copy_with_keeps_key(self):
        """copy_with returns a new entity with the same key."""
        key = Key("User", "alice")
        user = Entity(key, count=1)

        updated = user.copy_with(count=2)

        assert updated.key == key
        assert updated["count"] == 2
        assert user["count"] == 1

    def test_equality_includes_key(self):
        """Entities with equal properties but different keys differ."""
        assert Entity(Key("User", "a"), count=1) != Entity(Key("User", "b"), count=1)
        assert Entity(Key("User", "a"), count=1) == Entity(Key("User", "a"), count=1)

    def test_embedded_record_has_no_key(self):
        """Embedded records are plain key-less entities."""
        contact = Entity(email="a@example.com", phone="555")

        assert contact.key is None
        assert contact["email"] == "a@example.com"

    def test_property_named_key(self):
        """"key" is an ordinary property name, separate from the entity key."""
        key = Key("User", "alice")
        user = Entity(key, key="house", count=1)

        assert user.key == key
        assert user["key"] == "house"
        assert user.copy_with(count=2)["key"] == "house"

    def test_embedded_property_named_key_survives_encoding(self):
        """Embedded records may also carry a "key" property."""
        user = Entity(Key("User", "alice"), locker=Entity(key="L7"))

        decoded = decode_properties(encode_properties(user))

        assert decoded["locker"]["key"] == "L7"
        assert decoded["locker"].key is None


class TestPropertyEncoding:
    """Tests for encode_properties/decode_properties."""

    def test_nested_values_survive_encoding(self):
        """Embedded entities, datetimes and lists are restored with their types."""
        stamp = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
        user = Entity(
            Key("User", "alice"),
            count=3,
            contact=Entity(email="a@example.com", phone="555"),
            seen=[stamp],
            note=None,
        )

        decoded = decode_properties(encode_properties(user))

        assert decoded["count"] == 3
        assert isinstance(decoded["contact"], Entity)
        assert decoded["contact"]["phone"] == "555"
        assert decoded["seen"] == [stamp]
        assert decoded["seen"][0].tzinfo is not None
        assert decoded["note"] is None

    def test_unsupported_value_rejected(self):
        """Values outside the supported set raise TypeError."""
        with pytest.raises(TypeError):
            encode_properties(Entity(blob=object()))


class TestCursor:
    """Tests for cursor tokens."""

    def test_cursor_points_after_path(self):
        """A cursor decodes to the path it was built from."""
        path = Key("Comment", 5, parent=Key("User", "alice")).encoded_path

        assert decode_cursor(encode_cursor(path)) == path

    @pytest.mark.parametrize("cursor", ["not a cursor!", "abc", "", "é"])
    def test_malformed_cursor(self, cursor):
        """Garbage cursors raise InvalidCursorError."""
        with pytest.raises(InvalidCursorError):
            decode_cursor(cursor)


class TestQuery:
    """Tests for Query."""

    def test_with_cursor_returns_copy(self):
        """with_cursor leaves the original query untouched."""
        query = Query(kind="Comment", namespace="ns", limit=10)
        cursor = encode_cursor("x")

        resumed = query.with_cursor(cursor)

        assert query.start_cursor is None
        assert resumed.start_cursor == cursor
        assert resumed.start_after() == "x"
        assert resumed.limit == 10

    def test_partial_ancestor_rejected(self):
        """Ancestor keys must be complete."""
        with pytest.raises(InvalidKeyError):
            Query(kind="Comment", ancestor=Key("User"))

    def test_non_positive_limit_rejected(self):
        """Limits must be positive."""
        with pytest.raises(ValueError):
            Query(kind="Comment", limit=0)
