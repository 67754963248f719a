"""
Role-gated access layer.

The caller is resolved once per request into a ``CallerContext`` and passed
explicitly into every operation.  ``authorize`` wraps an operation whose
second positional argument is the caller (the first being ``self`` or the
DB session) and rejects unauthenticated or wrong-role callers before the
operation body runs.  Row ownership checks stay inside the operations.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Optional

from .enums import UserRole
from .errors import Forbidden, Unauthorized


@dataclass(frozen=True)
class CallerContext:
    user_id: str
    role: UserRole
    name: str = ""
    email: str = ""

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and owner_id == self.user_id


def require_caller(caller: Optional[CallerContext]) -> CallerContext:
    if caller is None:
        raise Unauthorized("Unauthorized: Please sign in")
    return caller


def require_role(caller: Optional[CallerContext], *roles: UserRole) -> CallerContext:
    caller = require_caller(caller)
    if roles and caller.role not in roles:
        if roles == (UserRole.ADMIN,):
            raise Forbidden("Forbidden: Admin access required", code="admin-required")
        allowed = ", ".join(r.value for r in roles)
        raise Forbidden(f"Forbidden: requires role {allowed}", code="role-required")
    return caller


def authorize(*roles: UserRole):
    """Guard an async operation ``fn(owner, caller, ...)``."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(owner, caller, *args, **kwargs):
            require_role(caller, *roles)
            return await fn(owner, caller, *args, **kwargs)

        return wrapper

    return decorator
