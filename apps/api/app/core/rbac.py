from collections.abc import Callable, Iterable
import logging

from fastapi import Depends

from app.auth.models import Role
from app.core.auth import get_current_principal
from app.core.errors import Forbidden
from app.metrics import observe_authz_forbidden
from app.platform.security.context import Principal


logger = logging.getLogger("app.authz")

ANY_AUTHENTICATED: frozenset[str] = frozenset()
USER_OR_ADMIN: frozenset[str] = frozenset({Role.USER.value, Role.ADMIN.value})
ADMIN_ONLY: frozenset[str] = frozenset({Role.ADMIN.value})


def authorize(principal: Principal, allowed_roles: Iterable[str] | None) -> None:
    """Role gate. An empty or missing role set admits any authenticated principal."""

    allowed = frozenset(allowed_roles or ())
    if not allowed or principal.role in allowed:
        return
    observe_authz_forbidden()
    logger.info("authz.forbidden", extra={"user_id": principal.user_id, "role": principal.role})
    raise Forbidden(detail=f"Access denied. Required roles: {', '.join(sorted(allowed))}")


def require_roles(*roles: str) -> Callable[[Principal], Principal]:
    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        authorize(principal, roles)
        return principal

    return checker


require_user_or_admin = require_roles(*sorted(USER_OR_ADMIN))
require_admin = require_roles(*ADMIN_ONLY)
