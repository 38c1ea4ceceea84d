"""
Action dispatch for the datastore example.

dispatch() selects an action by verb, parses its arguments and runs it in a
transaction. Validation problems are reported and end the invocation
cleanly; store errors propagate to the caller.

Invariants:
    - Unknown verbs and bad arguments never touch the store
    - A transaction is committed only if the action ran without raising
    - No transaction is left active, whatever the action or commit raises
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from sdk.docstore_sdk import CommitResult, DatastoreClient, Key

from .actions import DEFAULT_ACTION, Action, InvalidArgumentError

logger = logging.getLogger(__name__)

PROGRAM_NAME = "datastore-example"


class DispatchOutcome(Enum):
    """How an invocation ended."""

    COMMITTED = "committed"
    UNKNOWN_ACTION = "unknown_action"
    INVALID_INPUT = "invalid_input"
    PARSE_FAILED = "parse_failed"


def usage(actions: Mapping[str, Action], program: str = PROGRAM_NAME) -> str:
    """Usage text listing every action with its parameters."""
    lines = [f"Usage: {program} <project_id> <user> operation <args>*"]
    for name, action in actions.items():
        lines.append(f"\t{name} {action.params}".rstrip())
    return "\n".join(lines)


def run_in_transaction(
    client: DatastoreClient,
    action: Action,
    user_key: Key,
    request: Any,
) -> CommitResult:
    """Run an action in a fresh transaction and commit it.

    The transaction is rolled back if the action or the commit raises.
    """
    with client.transaction() as tx:
        action.run(tx, user_key, request)
        return tx.commit()


def dispatch(
    client: DatastoreClient,
    user_key: Key,
    action_name: Optional[str],
    args: Sequence[str],
    actions: Mapping[str, Action],
) -> DispatchOutcome:
    """Parse and run one action.

    Args:
        client: Client bound to the example's namespace
        user_key: Key of the user the action works on
        action_name: Verb, case-insensitive (None selects display)
        args: Arguments following the verb
        actions: Verb -> action table

    Returns:
        DispatchOutcome describing how the invocation ended

    Raises:
        DocStoreError: If the store fails while running or committing
    """
    name = (action_name or DEFAULT_ACTION).lower()
    action = actions.get(name)
    if action is None:
        print("Unrecognized action.")
        print(usage(actions))
        return DispatchOutcome.UNKNOWN_ACTION

    try:
        request = action.parse(list(args))
    except InvalidArgumentError as e:
        print(f"Invalid input for action '{name}'. {e}")
        print(f"Expected: {action.params}")
        return DispatchOutcome.INVALID_INPUT
    except Exception as e:
        print("Failed to parse request.")
        logger.error(f"Failed to parse request: {e}", exc_info=True, extra={"action": name})
        return DispatchOutcome.PARSE_FAILED

    result = run_in_transaction(client, action, user_key, request)
    logger.info(
        "Action committed",
        extra={
            "action": name,
            "user": user_key.name,
            "mutations": result.mutation_count,
        },
    )
    return DispatchOutcome.COMMITTED
