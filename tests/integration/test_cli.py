"""
Integration tests for the datastore example CLI.

Each invocation opens a fresh client over the same SQLite data directory,
as separate processes would.
"""

import pytest

from examples.datastore_example import main as cli
from examples.datastore_example.dispatcher import DispatchOutcome
from sdk.docstore_sdk import ClientSettings, StorageError


@pytest.fixture
def settings(tmp_path):
    return ClientSettings(backend="sqlite", data_dir=str(tmp_path), sqlite_wal_mode=False)


class TestCli:
    """End-to-end command flows."""

    def test_full_flow(self, settings, capsys):
        """add, set, display and delete across separate invocations."""
        assert cli.run(["proj", "alice", "add", "hello", "world"], settings) is DispatchOutcome.COMMITTED
        assert cli.run(["proj", "alice", "add"], settings) is DispatchOutcome.COMMITTED
        assert cli.run(["proj", "alice", "set", "a@example.com", "555"], settings) is DispatchOutcome.COMMITTED
        capsys.readouterr()

        cli.run(["proj", "alice", "display"], settings)
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "User 'alice' email is 'a@example.com', phone is '555'."
        assert lines[1] == "User 'alice' has 2 comment[s]."
        assert lines[2].endswith(": hello world")
        assert lines[3].endswith(": No comment.")

        cli.run(["proj", "alice", "delete"], settings)
        assert "Deleting user 'alice' and 2 comment[s]." in capsys.readouterr().out

        cli.run(["proj", "alice"], settings)
        assert capsys.readouterr().out == "User 'alice' does not exist.\n"

    def test_projects_are_isolated(self, settings, capsys):
        """Data written under one project is invisible in another."""
        cli.run(["one", "alice", "add", "hi"], settings)
        capsys.readouterr()

        cli.run(["two", "alice", "display"], settings)

        assert "does not exist" in capsys.readouterr().out

    def test_default_project(self, tmp_path, capsys):
        """A missing project falls back to the configured default."""
        settings = ClientSettings(backend="sqlite", data_dir=str(tmp_path), default_project="fallback")

        cli.run([], settings)

        assert (tmp_path / "project_fallback.db").exists()

    def test_default_user(self, settings, monkeypatch, capsys):
        """A missing user falls back to the OS login name."""
        monkeypatch.setattr(cli.getpass, "getuser", lambda: "osuser")

        cli.run(["proj"], settings)

        assert "User 'osuser' does not exist." in capsys.readouterr().out

    def test_unknown_action(self, settings, capsys):
        """Unknown verbs print usage."""
        outcome = cli.run(["proj", "alice", "frobnicate"], settings)

        assert outcome is DispatchOutcome.UNKNOWN_ACTION
        assert "Usage: datastore-example" in capsys.readouterr().out

    def test_invalid_contact(self, settings, capsys):
        """set with one argument writes nothing."""
        outcome = cli.run(["proj", "alice", "set", "a@example.com"], settings)

        assert outcome is DispatchOutcome.INVALID_INPUT
        cli.run(["proj", "alice"], settings)
        assert "User 'alice' does not exist." in capsys.readouterr().out

    def test_store_error_propagates(self, tmp_path):
        """Store failures are raised, not reported as parse errors."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        settings = ClientSettings(backend="sqlite", data_dir=str(blocker))

        with pytest.raises(StorageError):
            cli.run(["proj", "alice", "add", "x"], settings)

    def test_memory_backend(self, capsys):
        """The in-memory backend works for a single invocation."""
        outcome = cli.run(["proj", "alice", "add", "hi"], ClientSettings(backend="memory"))

        assert outcome is DispatchOutcome.COMMITTED
        assert "Adding a comment to user 'alice'." in capsys.readouterr().out


class TestPositionalArguments:
    """Arguments are resolved by position, never as options."""

    def test_parse_command_line(self):
        """Each position maps to one field; the rest are verb arguments."""
        line = cli.parse_command_line(["proj", "alice", "add", "-x", "--", "y"])

        assert line.project_id == "proj"
        assert line.user == "alice"
        assert line.action == "add"
        assert line.args == ["-x", "--", "y"]

    def test_parse_short_command_line(self):
        """Missing positions are None."""
        line = cli.parse_command_line(["proj"])

        assert line.user is None
        assert line.action is None
        assert line.args == []

    def test_user_starting_with_dash(self, settings, monkeypatch, capsys):
        """A user name starting with "-" is still the user."""
        monkeypatch.setattr(cli.getpass, "getuser", lambda: "osuser")

        outcome = cli.run(["proj", "-bob", "add", "hi"], settings)

        assert outcome is DispatchOutcome.COMMITTED
        assert "Adding a comment to user '-bob'." in capsys.readouterr().out

        cli.run(["proj", "-bob"], settings)
        out = capsys.readouterr().out
        assert "User '-bob' has 1 comment[s]." in out
        assert out.rstrip().endswith(": hi")

    def test_verb_starting_with_dash(self, settings, capsys):
        """A verb starting with "-" is an unknown action."""
        outcome = cli.run(["proj", "alice", "-v"], settings)

        out = capsys.readouterr().out
        assert outcome is DispatchOutcome.UNKNOWN_ACTION
        assert out.startswith("Unrecognized action.\nUsage: datastore-example")

    def test_double_dash_kept_in_comment(self, settings, capsys):
        """Every trailing argument, including "--", is part of the comment."""
        cli.run(["proj", "alice", "add", "--", "x"], settings)
        capsys.readouterr()

        cli.run(["proj", "alice", "display"], settings)

        assert capsys.readouterr().out.rstrip().endswith(": -- x")
