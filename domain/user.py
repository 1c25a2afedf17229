"""
Domain: users, actors and authenticated sessions.

- A user created by registration always starts unconfirmed.
- An unconfirmed user never authenticates.
- Role and confirmation change only through administrator actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .roles import Role
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Actor:
    """Explicit caller context passed into every engine operation."""

    id: str
    name: str
    role: Role


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str
    role: Role
    confirmed: bool
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    def as_actor(self) -> Actor:
        return Actor(id=self.id, name=self.name, role=self.role)


@dataclass(frozen=True, slots=True)
class AuthSession:
    user: Optional[User] = None
    is_authenticated: bool = False

    @property
    def actor(self) -> Optional[Actor]:
        if not self.is_authenticated or self.user is None:
            return None
        return self.user.as_actor()


__all__ = ["Actor", "User", "AuthSession"]
