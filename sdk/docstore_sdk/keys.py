"""
Entity keys for DocStore.

A key is a path of (kind, identifier) pairs from a root entity down to the
entity itself. Children embed their parent's key as a prefix, which is what
makes ancestor queries possible.

Invariants:
    - Parents are always complete keys
    - Only the last path element may be partial (identifier is None)
    - encoded_path of a descendant starts with the ancestor's encoded_path + "/"
    - Lexicographic order of encoded paths is a stable total order
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from urllib.parse import quote, unquote

from .errors import InvalidKeyError

Identifier = Union[int, str]

PATH_SEPARATOR = "/"
_ID_WIDTH = 20


def _encode_element(kind: str, identifier: Identifier) -> str:
    kind_part = quote(kind, safe="")
    if isinstance(identifier, int):
        # Zero-padded so string order matches numeric order
        return f"{kind_part}:i:{identifier:0{_ID_WIDTH}d}"
    return f"{kind_part}:n:{quote(identifier, safe='')}"


def _decode_element(element: str) -> Tuple[str, Identifier]:
    try:
        kind_part, tag, value = element.split(":", 2)
    except ValueError:
        raise InvalidKeyError(f"Malformed key path element: {element!r}", key=element)
    if tag == "i":
        return unquote(kind_part), int(value)
    if tag == "n":
        return unquote(kind_part), unquote(value)
    raise InvalidKeyError(f"Unknown key path element tag: {tag!r}", key=element)


@dataclass(frozen=True)
class Key:
    """Key of a stored entity.

    Attributes:
        kind: Entity kind
        identifier: Name (str), id (int), or None for a partial key
        parent: Parent key (complete) or None for a root entity
        namespace: Logical namespace; inherited from the parent when omitted

    Example:
        >>> user = Key("User", "alice", namespace="example")
        >>> comment = Key("Comment", parent=user)
        >>> comment.is_partial
        True
    """

    kind: str
    identifier: Optional[Identifier] = None
    parent: Optional[Key] = None
    namespace: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, str) or not self.kind:
            raise InvalidKeyError("Key kind must be a non-empty string", key=repr(self.kind))

        ident = self.identifier
        if ident is not None:
            if isinstance(ident, bool) or not isinstance(ident, (int, str)):
                raise InvalidKeyError(
                    f"Key identifier must be a name or an id, got {type(ident).__name__}",
                    key=repr(ident),
                )
            if isinstance(ident, int) and ident <= 0:
                raise InvalidKeyError("Key id must be positive", key=repr(ident))
            if isinstance(ident, str) and not ident:
                raise InvalidKeyError("Key name must not be empty", key=repr(ident))

        if self.parent is not None:
            if self.parent.is_partial:
                raise InvalidKeyError(
                    "Parent key must be complete", key=repr(self.parent)
                )
            if self.namespace is None:
                object.__setattr__(self, "namespace", self.parent.namespace)
            elif self.namespace != self.parent.namespace:
                raise InvalidKeyError(
                    f"Namespace {self.namespace!r} differs from parent namespace "
                    f"{self.parent.namespace!r}",
                    key=repr(self),
                )

    @property
    def name(self) -> Optional[str]:
        """Key name, if the identifier is a name."""
        return self.identifier if isinstance(self.identifier, str) else None

    @property
    def id(self) -> Optional[int]:
        """Key id, if the identifier is an id."""
        return self.identifier if isinstance(self.identifier, int) else None

    @property
    def is_partial(self) -> bool:
        """Whether the identifier is still to be assigned by the store."""
        return self.identifier is None

    @property
    def path(self) -> Tuple[Tuple[str, Optional[Identifier]], ...]:
        """(kind, identifier) pairs from the root down to this key."""
        prefix = self.parent.path if self.parent is not None else ()
        return prefix + ((self.kind, self.identifier),)

    @property
    def encoded_path(self) -> str:
        """Order-preserving string form of a complete key path.

        Raises:
            InvalidKeyError: If the key is partial
        """
        if self.is_partial:
            raise InvalidKeyError("Partial keys have no encoded path", key=repr(self))
        return PATH_SEPARATOR.join(
            _encode_element(kind, ident) for kind, ident in self.path  # type: ignore[arg-type]
        )

    def completed(self, identifier: int) -> Key:
        """Return a complete copy of this partial key."""
        if not self.is_partial:
            raise InvalidKeyError("Key is already complete", key=repr(self))
        return Key(self.kind, identifier, parent=self.parent, namespace=self.namespace)

    def is_ancestor_of(self, other: Key) -> bool:
        """Whether this key is a strict ancestor of ``other``."""
        node = other.parent
        while node is not None:
            if node == self:
                return True
            node = node.parent
        return False

    @classmethod
    def from_encoded_path(cls, encoded: str, namespace: Optional[str] = None) -> Key:
        """Rebuild a key from its encoded path.

        Args:
            encoded: Value previously returned by encoded_path
            namespace: Namespace to attach

        Returns:
            Complete Key
        """
        if not encoded:
            raise InvalidKeyError("Empty key path", key=encoded)
        key: Optional[Key] = None
        for element in encoded.split(PATH_SEPARATOR):
            kind, ident = _decode_element(element)
            key = cls(kind, ident, parent=key, namespace=namespace)
        assert key is not None
        return key

    def __str__(self) -> str:
        path = ", ".join(f"{kind}:{ident if ident is not None else '?'}" for kind, ident in self.path)
        if self.namespace:
            return f"Key({self.namespace}/{path})"
        return f"Key({path})"


class KeyFactory:
    """Builds keys of one kind in one namespace.

    Example:
        >>> users = KeyFactory("User", namespace="example")
        >>> users.new_key("alice")
        Key(kind='User', identifier='alice', parent=None, namespace='example')
    """

    def __init__(
        self,
        kind: str,
        namespace: Optional[str] = None,
        parent: Optional[Key] = None,
    ) -> None:
        self.kind = kind
        self.namespace = namespace
        self.parent = parent

    def new_key(self, identifier: Optional[Identifier] = None) -> Key:
        """Create a key; omit the identifier for a partial key."""
        return Key(self.kind, identifier, parent=self.parent, namespace=self.namespace)
