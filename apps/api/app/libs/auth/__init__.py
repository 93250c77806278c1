from app.core.auth import get_current_principal
from app.core.rbac import authorize, require_admin, require_roles, require_user_or_admin
from app.platform.security.context import Principal

__all__ = [
    "Principal",
    "authorize",
    "get_current_principal",
    "require_admin",
    "require_roles",
    "require_user_or_admin",
]
