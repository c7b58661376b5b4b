"""Comment origin roles encoded as bit flags.

A comment type is the ``_``-joined name of the atomic roles it carries,
e.g. ``ISSUE_ISSUER`` for a comment the issue author left on the issue.
Its encoded value is the bitwise OR of those roles, which is the key used
for fixed relevance lookups.
"""

from collections.abc import Iterable
from enum import IntFlag
from typing import Final

ROLE_SEPARATOR: Final[str] = "_"


class CommentKind(IntFlag):
    """Atomic comment origin roles."""

    ISSUE = 0b1
    REVIEW = 0b10
    ISSUER = 0b100
    ASSIGNEE = 0b1000
    COLLABORATOR = 0b10000
    CONTRIBUTOR = 0b100000
    SPECIFICATION = 0b1000000


def encode_role(role: str) -> int:
    """Encode a (possibly compound) role name into its bitmask.

    Unknown atomic names contribute no bit.

    Example:
        >>> encode_role("ISSUE_ISSUER")
        5
        >>> encode_role("ISSUE_UNKNOWN")
        1
    """
    value = 0
    for part in role.split(ROLE_SEPARATOR):
        member = CommentKind.__members__.get(part)
        if member is not None:
            value |= member.value
    return value


def encode_roles(roles: Iterable[str]) -> int:
    """OR together the encoded value of every role name."""
    value = 0
    for role in roles:
        value |= encode_role(role)
    return value


def unknown_role_parts(role: str) -> list[str]:
    """Return the atomic parts of ``role`` that are not known roles."""
    return [
        part
        for part in role.split(ROLE_SEPARATOR)
        if part not in CommentKind.__members__
    ]


__all__ = [
    "ROLE_SEPARATOR",
    "CommentKind",
    "encode_role",
    "encode_roles",
    "unknown_role_parts",
]
