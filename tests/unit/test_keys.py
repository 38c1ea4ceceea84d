"""
Unit tests for DocStore keys.

Tests cover:
- Key validation
- Namespace inheritance from parents
- Encoded path ordering and round trips
- Key factories
"""

import pytest

from sdk.docstore_sdk.errors import InvalidKeyError
from sdk.docstore_sdk.keys import Key, KeyFactory


class TestKey:
    """Tests for Key."""

    def test_named_key(self):
        """Key with a name identifier."""
        key = Key("User", "alice", namespace="ns")

        assert key.name == "alice"
        assert key.id is None
        assert not key.is_partial
        assert key.path == (("User", "alice"),)

    def test_partial_child_inherits_namespace(self):
        """Child keys take the parent's namespace."""
        user = Key("User", "alice", namespace="ns")
        comment = Key("Comment", parent=user)

        assert comment.is_partial
        assert comment.namespace == "ns"
        assert comment.path == (("User", "alice"), ("Comment", None))

    def test_namespace_mismatch_rejected(self):
        """Child namespace must match the parent's."""
        user = Key("User", "alice", namespace="ns")

        with pytest.raises(InvalidKeyError):
            Key("Comment", 1, parent=user, namespace="other")

    def test_partial_parent_rejected(self):
        """Parents must be complete."""
        with pytest.raises(InvalidKeyError):
            Key("Comment", 1, parent=Key("User"))

    @pytest.mark.parametrize("identifier", [0, -5, "", True, 1.5])
    def test_invalid_identifiers(self, identifier):
        """Ids must be positive ints, names non-empty strings."""
        with pytest.raises(InvalidKeyError):
            Key("User", identifier)

    def test_empty_kind_rejected(self):
        """Kind is required."""
        with pytest.raises(InvalidKeyError):
            Key("", "alice")

    def test_completed(self):
        """Completing a partial key keeps kind, parent and namespace."""
        user = Key("User", "alice", namespace="ns")
        comment = Key("Comment", parent=user).completed(7)

        assert comment.id == 7
        assert comment.parent == user
        assert comment.namespace == "ns"

        with pytest.raises(InvalidKeyError):
            comment.completed(8)

    def test_partial_key_has_no_encoded_path(self):
        """Only complete keys can be encoded."""
        with pytest.raises(InvalidKeyError):
            Key("User").encoded_path

    def test_encoded_path_round_trip_with_separators_in_name(self):
        """Names containing separators survive encoding."""
        user = Key("User", "a/b:c d%", namespace="ns")
        child = Key("Comment", 42, parent=user)

        decoded = Key.from_encoded_path(child.encoded_path, namespace="ns")

        assert decoded == child
        assert decoded.parent.name == "a/b:c d%"

    def test_descendant_paths_share_prefix(self):
        """A child's encoded path starts with its parent's path plus separator."""
        alice = Key("User", "alice")
        alice2 = Key("User", "alice2")
        comment = Key("Comment", 3, parent=alice)
        other = Key("Comment", 3, parent=alice2)

        assert comment.encoded_path.startswith(alice.encoded_path + "/")
        assert not other.encoded_path.startswith(alice.encoded_path + "/")

    def test_numeric_ids_order_numerically(self):
        """Zero padding keeps numeric order in string form."""
        paths = [Key("Comment", i).encoded_path for i in (2, 10, 100, 9)]

        assert sorted(paths) == [Key("Comment", i).encoded_path for i in (2, 9, 10, 100)]

    def test_is_ancestor_of(self):
        """Ancestry is strict and transitive."""
        root = Key("User", "alice")
        child = Key("Thread", 1, parent=root)
        grandchild = Key("Comment", 2, parent=child)

        assert root.is_ancestor_of(grandchild)
        assert child.is_ancestor_of(grandchild)
        assert not grandchild.is_ancestor_of(root)
        assert not root.is_ancestor_of(root)

    def test_keys_are_hashable(self):
        """Equal keys hash equally."""
        assert {Key("User", "alice", namespace="ns")} == {Key("User", "alice", namespace="ns")}


class TestKeyFactory:
    """Tests for KeyFactory."""

    def test_new_key(self):
        """Factory fills kind and namespace."""
        factory = KeyFactory("User", namespace="ns")
        key = factory.new_key("bob")

        assert key == Key("User", "bob", namespace="ns")

    def test_new_partial_child_key(self):
        """Factory with a parent builds children."""
        parent = Key("User", "bob", namespace="ns")
        key = KeyFactory("Comment", namespace="ns", parent=parent).new_key()

        assert key.is_partial
        assert key.parent == parent
