from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.auth.schemas import LoginRequest, LoginResponse, MeResponse, RegisterRequest, RegisterResponse, UserRead
from app.auth.service import AuthService
from app.core.auth import get_current_principal
from app.core.config import get_settings
from app.core.database import get_db
from app.core.tokens import TokenCodec, get_token_codec
from app.platform.security.context import Principal

router = APIRouter(prefix="/api/auth", tags=["auth"])
service = AuthService()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(dto: RegisterRequest, db: Session = Depends(get_db)) -> RegisterResponse:
    service.register(db, name=dto.name, email=str(dto.email), password=dto.password)
    return RegisterResponse()


@router.post("/login", response_model=LoginResponse)
def login(
    dto: LoginRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> LoginResponse:
    result = service.login(
        db,
        codec,
        email=str(dto.email),
        password=dto.password,
        ttl_seconds=get_settings().access_token_ttl_seconds,
    )
    return LoginResponse(
        token=result.token,
        expires_in=result.expires_in,
        user=UserRead.model_validate(result.user),
    )


@router.get("/me", response_model=MeResponse)
def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    return MeResponse(
        user=UserRead(
            id=principal.id,
            name=principal.name or "",
            email=principal.email or "",
            role=principal.role,
        )
    )
