from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity resolved from a bearer token and the user store."""

    id: uuid.UUID
    role: str
    name: str | None = None
    email: str | None = None
    correlation_id: str | None = None

    @property
    def user_id(self) -> str:
        return str(self.id)
