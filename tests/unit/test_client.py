"""
Unit tests for DatastoreClient.

Tests cover:
- Keys, key factories and queries built in the client's namespace
- Non-transactional put/get/delete
- Construction from settings
"""

import pytest

from sdk.docstore_sdk import (
    ClientSettings,
    DatastoreClient,
    Entity,
    InMemoryBackend,
    Key,
    SqliteBackend,
)


@pytest.fixture
def client():
    return DatastoreClient(InMemoryBackend(), "test-project", namespace="ns")


class TestKeyHelpers:
    """Tests for key and query construction."""

    def test_key_carries_namespace(self, client):
        """Keys built by the client use its namespace."""
        key = client.key("User", "alice")

        assert key == Key("User", "alice", namespace="ns")

    def test_key_factory_carries_namespace(self, client):
        """Key factories build complete and partial keys in the namespace."""
        factory = client.key_factory("User")

        alice = factory.new_key("alice")
        partial = factory.new_key()

        assert alice == Key("User", "alice", namespace="ns")
        assert partial.is_partial
        assert partial.namespace == "ns"

    def test_key_factory_with_parent(self, client):
        """Child keys from a factory sit under the parent."""
        alice = client.key("User", "alice")

        comment = client.key_factory("Comment", parent=alice).new_key(7)

        assert comment.parent == alice
        assert comment.namespace == "ns"
        assert alice.is_ancestor_of(comment)

    def test_query_carries_namespace(self, client):
        """Queries built by the client scan its namespace."""
        alice = client.key("User", "alice")

        query = client.query("Comment", ancestor=alice, keys_only=True, limit=10)

        assert query.kind == "Comment"
        assert query.namespace == "ns"
        assert query.ancestor == alice
        assert query.keys_only
        assert query.limit == 10
        assert query.start_cursor is None

    def test_query_finds_client_writes(self, client):
        """A client query sees entities the client stored."""
        alice = client.key("User", "alice")
        client.put(Entity(client.key_factory("Comment", parent=alice).new_key(), content="hi"))

        results = client.run(client.query("Comment", ancestor=alice))

        assert [c["content"] for c in results] == ["hi"]


class TestWrites:
    """Tests for non-transactional writes."""

    def test_put_completes_partial_key(self, client):
        """put allocates an id for a partial key."""
        entity = Entity(client.key("User"), count=0)

        key = client.put(entity)

        assert not key.is_partial
        assert entity.key == key
        assert client.get(key)["count"] == 0

    def test_put_replaces(self, client):
        """put on a complete key overwrites the entity."""
        key = client.key("User", "alice")
        client.put(Entity(key, count=1))
        client.put(Entity(key, count=2))

        assert client.get(key) == Entity(key, count=2)

    def test_delete(self, client):
        """delete removes the entity."""
        key = client.key("User", "alice")
        client.put(Entity(key, count=1))

        client.delete(key)

        assert client.get(key) is None


class TestFromSettings:
    """Tests for DatastoreClient.from_settings."""

    def test_default_project(self, tmp_path):
        """The settings' default project is used when none is given."""
        settings = ClientSettings(backend="sqlite", data_dir=str(tmp_path), default_project="fallback")

        with DatastoreClient.from_settings(settings, namespace="ns") as client:
            assert client.project_id == "fallback"
            assert client.namespace == "ns"
            assert isinstance(client.backend, SqliteBackend)

    def test_unknown_backend(self):
        """Unknown backend names are rejected."""
        with pytest.raises(ValueError):
            DatastoreClient.from_settings(ClientSettings(backend="cassandra"), "p")
