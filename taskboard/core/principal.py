"""Who is acting, and on what request.

A :data:`Principal` is derived once from a user's global role.  Global
owners become :class:`Superuser` and pass every project check; everyone else
is :class:`Scoped` to the projects they own or belong to.  Authorization code
dispatches on the type instead of comparing role strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from taskboard.models.user import UserRole


@dataclass(frozen=True)
class Superuser:
    user_id: int


@dataclass(frozen=True)
class Scoped:
    user_id: int


Principal = Union[Superuser, Scoped]


def principal_for(user_id: int, role: UserRole | str) -> Principal:
    if UserRole(role) == UserRole.owner:
        return Superuser(user_id=user_id)
    return Scoped(user_id=user_id)


def is_superuser(principal: Principal) -> bool:
    return isinstance(principal, Superuser)


@dataclass(frozen=True)
class RequestContext:
    """Explicit per-request identity handed to guards and the idempotency layer."""

    principal: Principal
    method: str
    path: str

    @property
    def user_id(self) -> int:
        return self.principal.user_id
