"""Typed user roles

Roles are persisted as the strings '1', '2', '3' so tokens and API payloads stay
compatible with existing clients; everywhere in code they are handled as Role.
"""

from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "1"
    STAFF = "2"
    CLIENT = "3"

    @property
    def label(self) -> str:
        """Upper-case name used on tasks (assignedToRole) and templates (availableFor)"""
        return self.name

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


STAFF_ROLES = frozenset({Role.ADMIN, Role.STAFF})
