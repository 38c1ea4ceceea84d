"""
Actions of the datastore example.

Each action works on one user entity and the comment entities stored as its
children:
- delete: remove the user and all of its comments
- display: print contact info, comment count and comments in time order
- add: add a comment, creating the user on first use
- set: replace the user's contact info, creating the user on first use

An action is a parse function turning trailing CLI arguments into a typed
request plus a run function executing the request inside a transaction.
Actions print their outcome; they never commit or roll back themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from sdk.docstore_sdk import Entity, Key, Query, Transaction

logger = logging.getLogger(__name__)

USER_KIND = "_DS_EXAMPLE_USER"
COMMENT_KIND = "_DS_EXAMPLE_COMMENT"
NAMESPACE = "datastore_example"
DEFAULT_ACTION = "display"
DEFAULT_COMMENT = "No comment."
DISPLAY_PAGE_SIZE = 200


class InvalidArgumentError(ValueError):
    """Action arguments are malformed."""


class AddCommentRequest(BaseModel):
    """Parsed arguments of the add action."""

    content: str = DEFAULT_COMMENT


class Contact(BaseModel):
    """Contact info embedded in a user entity."""

    model_config = {"frozen": True}

    email: str = Field(min_length=1)
    phone: str = Field(min_length=1)


@dataclass(frozen=True)
class Action:
    """A CLI action.

    Attributes:
        name: Verb selecting the action
        parse: Turns trailing arguments into a request
        run: Executes the request inside a transaction
        params: Expected parameter signature, shown in usage and errors
    """

    name: str
    parse: Callable[[Sequence[str]], Any]
    run: Callable[[Transaction, Key, Any], None]
    params: str = ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_nothing(args: Sequence[str]) -> None:
    return None


def parse_comment(args: Sequence[str]) -> AddCommentRequest:
    """Join all arguments with single spaces; no arguments means the default comment."""
    if not args:
        return AddCommentRequest()
    return AddCommentRequest(content=" ".join(args))


def parse_contact(args: Sequence[str]) -> Contact:
    """Parse exactly two arguments: email and phone.

    Raises:
        InvalidArgumentError: On any other argument count or empty values
    """
    if len(args) == 2:
        try:
            return Contact(email=args[0], phone=args[1])
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise InvalidArgumentError(f"Invalid contact ({problems}).") from e
    elif len(args) > 2:
        message = "Too many arguments."
    else:
        message = "Missing required email and phone."
    raise InvalidArgumentError(message)


def comment_query(user_key: Key, *, keys_only: bool = False, limit: Optional[int] = None) -> Query:
    """Query for the comments stored under a user."""
    return Query(
        kind=COMMENT_KIND,
        namespace=user_key.namespace,
        ancestor=user_key,
        keys_only=keys_only,
        limit=limit,
    )


def delete_user(tx: Transaction, user_key: Key, request: None) -> None:
    """Delete a user and every comment under it."""
    user = tx.get(user_key)
    if user is None:
        print("Nothing to delete, user does not exist.")
        return

    count = 0
    for comment_key in tx.run(comment_query(user_key, keys_only=True)):
        tx.delete(comment_key)
        count += 1
    tx.delete(user_key)
    print(f"Deleting user '{user_key.name}' and {count} comment[s].")


def load_comments(tx: Transaction, user_key: Key, page_size: int = DISPLAY_PAGE_SIZE) -> list[Entity]:
    """Fetch all comments of a user page by page, sorted by timestamp.

    Ties on timestamp are ordered by key path.
    """
    query = comment_query(user_key, limit=page_size)
    comments: list[Entity] = []
    while True:
        results = tx.run(query)
        comments.extend(results)
        if len(results) < page_size:
            break
        query = query.with_cursor(results.cursor_after)

    # Sorted here rather than by the store, which would need a timestamp index
    return sorted(comments, key=lambda c: (c["timestamp"], c.key.encoded_path))


def display_user(tx: Transaction, user_key: Key, request: None) -> None:
    """Print a user's contact info and comments."""
    user = tx.get(user_key)
    if user is None:
        print(f"User '{user_key.name}' does not exist.")
        return

    contact = user.get("contact")
    if contact is not None:
        print(
            f"User '{user_key.name}' email is '{contact['email']}', "
            f"phone is '{contact['phone']}'."
        )
    print(f"User '{user_key.name}' has {user.get('count', 0)} comment[s].")

    for comment in load_comments(tx, user_key):
        print(f"\t{comment['timestamp'].isoformat()}: {comment['content']}")


def add_comment(tx: Transaction, user_key: Key, request: AddCommentRequest) -> None:
    """Add a comment, creating the user if needed."""
    user = tx.get(user_key)
    if user is None:
        print("Adding a new user.")
        tx.add(Entity(user_key, count=1))
    else:
        tx.update(user.copy_with(count=user.get("count", 0) + 1))

    comment = Entity(
        Key(COMMENT_KIND, parent=user_key),
        content=request.content,
        timestamp=utcnow(),
    )
    tx.add_with_deferred_id(comment)
    print(f"Adding a comment to user '{user_key.name}'.")


def set_contact(tx: Transaction, user_key: Key, contact: Contact) -> None:
    """Replace a user's contact info, creating the user if needed."""
    user = tx.get(user_key)
    if user is None:
        print("Adding a new user.")
        user = Entity(user_key, count=0)
        tx.add(user)

    contact_entity = Entity(email=contact.email, phone=contact.phone)
    tx.update(user.copy_with(contact=contact_entity))
    print(f"Setting contact for user '{user_key.name}'.")


def build_actions() -> Mapping[str, Action]:
    """Build the read-only verb -> action table."""
    actions = [
        Action("delete", parse_nothing, delete_user),
        Action("add", parse_comment, add_comment, params="<comment>"),
        Action("set", parse_contact, set_contact, params="<email> <phone>"),
        Action("display", parse_nothing, display_user),
    ]
    return MappingProxyType({action.name: action for action in actions})
