"""
Permission and module-access sets.

Roles and tenant overrides store their grants as JSON arrays where the
string ``"*"`` means "everything". PermissionSet parses that storage form
into an explicit value: either ALL, or a literal collection of ids. Grant
decisions are made against PermissionSet, never by comparing strings
against the wildcard directly.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

WILDCARD = '*'


@dataclass(frozen=True, eq=False)
class PermissionSet:
    """
    Immutable set of permission (or module) identifiers.

    ``PermissionSet.all()`` grants every id, including ids that do not
    exist in the catalog yet. ``PermissionSet.of(ids)`` grants exactly the
    listed ids. Insertion order is kept so the storage form round-trips.
    """

    is_all: bool = False
    ids: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def all(cls) -> 'PermissionSet':
        return cls(is_all=True)

    @classmethod
    def empty(cls) -> 'PermissionSet':
        return cls()

    @classmethod
    def of(cls, ids: Iterable[str] = ()) -> 'PermissionSet':
        """Build a set from ids; a wildcard anywhere in ``ids`` yields ALL."""
        unique = tuple(dict.fromkeys(ids))
        if WILDCARD in unique:
            return cls.all()
        return cls(ids=unique)

    @classmethod
    def from_stored(cls, stored: Optional[Iterable[str]]) -> 'PermissionSet':
        """Parse the JSON storage form. ``None`` and ``[]`` are both empty."""
        if not stored:
            return cls.empty()
        if isinstance(stored, str):
            stored = [stored]
        return cls.of(stored)

    def to_stored(self) -> List[str]:
        if self.is_all:
            return [WILDCARD]
        return list(self.ids)

    def grants(self, identifier: str) -> bool:
        return self.is_all or identifier in self.ids

    def union(self, other: 'PermissionSet') -> 'PermissionSet':
        if self.is_all or other.is_all:
            return PermissionSet.all()
        return PermissionSet.of(self.ids + other.ids)

    def with_id(self, identifier: str) -> 'PermissionSet':
        if self.grants(identifier):
            return self
        return PermissionSet.of(self.ids + (identifier,))

    def without_id(self, identifier: str) -> 'PermissionSet':
        """
        Remove a literal id. Removing the wildcard from ALL yields an empty
        set; removing a literal from ALL is a no-op, since ALL has no
        enumerable members to remove.
        """
        if self.is_all:
            return PermissionSet.empty() if identifier == WILDCARD else self
        return PermissionSet(ids=tuple(i for i in self.ids if i != identifier))

    def as_set(self) -> set:
        """Plain set form for API responses: ``{"*"}`` for ALL."""
        return set(self.to_stored())

    def __contains__(self, identifier) -> bool:
        return self.grants(identifier)

    def __or__(self, other: 'PermissionSet') -> 'PermissionSet':
        return self.union(other)

    def __bool__(self) -> bool:
        return self.is_all or bool(self.ids)

    def __iter__(self):
        return iter(self.to_stored())

    def __len__(self) -> int:
        return len(self.to_stored())

    def __eq__(self, other) -> bool:
        if not isinstance(other, PermissionSet):
            return NotImplemented
        if self.is_all or other.is_all:
            return self.is_all == other.is_all
        return frozenset(self.ids) == frozenset(other.ids)

    def __hash__(self) -> int:
        return hash((self.is_all, frozenset(self.ids)))

    def __repr__(self) -> str:
        if self.is_all:
            return 'PermissionSet.all()'
        return f'PermissionSet.of({list(self.ids)!r})'
