"""
Datastore example CLI.

Adds, displays or deletes comments for a user, and sets the user's contact
info. Comments are stored as children of the user entity, contact info as an
embedded record inside it.

Usage:
    datastore-example <project_id> <user> delete
    datastore-example <project_id> <user> display
    datastore-example <project_id> <user> add <comment>
    datastore-example <project_id> <user> set <email> <phone>

If no action is given, display runs. If no user is given, the login name of
the current OS user is used.

Environment:
    DOCSTORE_BACKEND: Storage backend, sqlite or memory (default: sqlite)
    DOCSTORE_DATA_DIR: Directory for SQLite databases (default: ~/.docstore)
    DOCSTORE_DEFAULT_PROJECT: Project used when none is given (default: default)
    DOCSTORE_LOG_LEVEL: Logging level (default: WARNING)
"""

from __future__ import annotations

import getpass
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sdk.docstore_sdk import ClientSettings, DatastoreClient

from .actions import NAMESPACE, USER_KIND, build_actions
from .dispatcher import DispatchOutcome, dispatch

logger = logging.getLogger(__name__)


def setup_logging(settings: ClientSettings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Client settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.WARNING)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


@dataclass(frozen=True)
class CommandLine:
    """Positional command line arguments.

    Arguments are taken strictly by position; none of them is treated as an
    option, so user names, verbs and comment text may start with "-".
    """

    project_id: Optional[str] = None
    user: Optional[str] = None
    action: Optional[str] = None
    args: List[str] = field(default_factory=list)


def parse_command_line(argv: Sequence[str]) -> CommandLine:
    """Split argv into project, user, verb and verb arguments."""
    argv = list(argv)
    return CommandLine(
        project_id=argv[0] if len(argv) > 0 else None,
        user=argv[1] if len(argv) > 1 else None,
        action=argv[2] if len(argv) > 2 else None,
        args=argv[3:],
    )


def run(
    argv: Optional[Sequence[str]] = None,
    settings: Optional[ClientSettings] = None,
) -> DispatchOutcome:
    """Resolve project, user and action from argv and dispatch.

    Args:
        argv: Command line arguments (sys.argv[1:] if None)
        settings: Client settings (loaded from environment if None)

    Returns:
        DispatchOutcome of the invocation
    """
    args = parse_command_line(sys.argv[1:] if argv is None else argv)
    settings = settings or ClientSettings()

    name = args.user or getpass.getuser()

    with DatastoreClient.from_settings(settings, args.project_id, namespace=NAMESPACE) as client:
        user_key = client.key_factory(USER_KIND).new_key(name)
        return dispatch(client, user_key, args.action, args.args, build_actions())


def main() -> None:
    """CLI entry point for the datastore example."""
    settings = ClientSettings()
    setup_logging(settings)
    run(settings=settings)


if __name__ == "__main__":
    main()
