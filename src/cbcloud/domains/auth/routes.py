# src/cbcloud/domains/auth/routes.py
from fastapi import APIRouter, Depends, status

from cbcloud.core.database import Database, get_db
from cbcloud.domains.users.models import User, UserResponse

from .dependencies import get_current_user
from .models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
)
from .service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="register",
)
async def register(
    data: RegisterRequest, db: Database = Depends(get_db)
) -> AuthResponse:
    """Create an account and return an access/refresh token pair."""
    return await AuthService(db).register(data)


@router.post("/login", response_model=AuthResponse, operation_id="login")
async def login(
    credentials: LoginRequest, db: Database = Depends(get_db)
) -> AuthResponse:
    """Exchange credentials for tokens. Repeated failures lock the account."""
    return await AuthService(db).login(credentials)


@router.post("/refresh", response_model=TokenResponse, operation_id="refreshToken")
async def refresh(
    data: RefreshRequest, db: Database = Depends(get_db)
) -> TokenResponse:
    return await AuthService(db).refresh(data.refresh_token)


@router.post("/logout", response_model=MessageResponse, operation_id="logout")
async def logout(
    user: User = Depends(get_current_user), db: Database = Depends(get_db)
) -> MessageResponse:
    """Invalidate all tokens issued to the current user."""
    await AuthService(db).logout(user)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse, operation_id="getCurrentUser")
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(user)
