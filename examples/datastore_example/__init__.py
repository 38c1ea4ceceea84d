"""
Datastore example - comments and contact info for users.

Demonstrates the DocStore SDK: transactions, ancestor keys, key-only and
paginated ancestor queries, deferred id allocation and embedded records.
"""

from .actions import Action, InvalidArgumentError, build_actions
from .dispatcher import DispatchOutcome, dispatch

__all__ = [
    "Action",
    "InvalidArgumentError",
    "build_actions",
    "DispatchOutcome",
    "dispatch",
]
