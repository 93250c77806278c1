from app.platform.security.context import Principal
from app.platform.security.ownership import OwnershipResolver

__all__ = [
    "OwnershipResolver",
    "Principal",
]
