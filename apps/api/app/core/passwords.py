from functools import lru_cache

from passlib.context import CryptContext

from app.core.config import get_settings


@lru_cache
def get_password_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(schemes=settings.password_hash_schemes, deprecated="auto")


def hash_password(plaintext: str) -> str:
    return get_password_context().hash(plaintext)


def verify_password(plaintext: str, digest: str) -> bool:
    if not digest:
        return False
    try:
        return get_password_context().verify(plaintext, digest)
    except ValueError:
        # digest not produced by any configured scheme
        return False
