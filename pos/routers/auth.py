from fastapi import APIRouter, Depends

from pos.dependencies import bearer_token, get_auth_service
from pos.schemas import (
    AuthRequest,
    ForgotPasswordRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    StatusResponse,
    TokenResponse,
    UserResponse,
)
from pos.services.auth_service import AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=UserResponse)
async def register(data: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    return await service.register(data)


@router.post("/login", response_model=TokenResponse)
async def login(data: AuthRequest, service: AuthService = Depends(get_auth_service)):
    return await service.login(data)


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(data: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)):
    return await service.refresh_token(data.refresh_token)


@router.post("/forgot-password", response_model=StatusResponse)
async def forgot_password(
    data: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)
):
    success = await service.forgot_password(data.email)
    return StatusResponse(message="Password reset email sent", success=success)


@router.post("/reset-password", response_model=StatusResponse)
async def reset_password(
    data: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)
):
    success = await service.reset_password(data)
    return StatusResponse(message="Password has been reset", success=success)


@router.get("/me", response_model=UserResponse)
async def get_me(
    token: str = Depends(bearer_token), service: AuthService = Depends(get_auth_service)
):
    return await service.get_me(token)
