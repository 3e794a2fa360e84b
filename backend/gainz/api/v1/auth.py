"""Auth: register, login, logout, refresh, email verification, password reset."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from gainz.api.deps import get_auth_service, get_current_user_id
from gainz.config import settings
from gainz.core.rate_limit import limiter
from gainz.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterBody(_Body):
    email: str | None = None
    password: str | None = None
    confirm_password: str | None = None


class LoginBody(_Body):
    email: str | None = None
    password: str | None = None


class RefreshBody(_Body):
    refresh_token: str | None = Field(default=None, alias="refreshToken")


class EmailBody(_Body):
    email: str | None = None


class ResetPasswordBody(_Body):
    token: str | None = None
    new_password: str | None = Field(default=None, alias="newPassword")


class VerifyEmailBody(_Body):
    email: str | None = None
    otp: str | None = None


class MessageResponse(BaseModel):
    message: str


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    token: str
    refresh_token: str = Field(alias="refreshToken")


class AccessTokenResponse(BaseModel):
    message: str = "Token refreshed successfully"
    token: str


@router.post(
    "/register",
    response_model=TokenPairResponse,
    status_code=201,
    summary="Register a new user",
    responses={
        400: {"description": "Missing fields, password mismatch, weak password or user already exists"},
        500: {"description": "Registration failed"},
    },
)
async def register(
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: RegisterBody,
) -> TokenPairResponse:
    result = await service.register(body.email, body.password, body.confirm_password)
    return TokenPairResponse(message=result.message, token=result.access_token, refresh_token=result.refresh_token)


@router.post(
    "/login",
    response_model=TokenPairResponse,
    summary="Login with email and password",
    responses={400: {"description": "Invalid credentials"}, 429: {"description": "Too many login attempts"}},
)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: LoginBody,
) -> TokenPairResponse:
    result = await service.login(body.email, body.password)
    return TokenPairResponse(message=result.message, token=result.access_token, refresh_token=result.refresh_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Revoke a refresh token",
    responses={400: {"description": "Unknown refresh token"}},
)
async def logout(
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: RefreshBody,
) -> MessageResponse:
    await service.logout(body.refresh_token)
    return MessageResponse(message="Logout successful")


@router.post(
    "/logout-all",
    response_model=MessageResponse,
    summary="Revoke every refresh token of the current user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def logout_all(
    service: Annotated[AuthService, Depends(get_auth_service)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> MessageResponse:
    await service.logout_all(user_id)
    return MessageResponse(message="Logged out from all sessions")


@router.post(
    "/refresh-token",
    response_model=AccessTokenResponse,
    summary="Exchange a refresh token for a new access token",
    responses={
        401: {"description": "Refresh token missing, unknown or revoked"},
        403: {"description": "Refresh token invalid or expired"},
    },
)
async def refresh_token(
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: RefreshBody,
) -> AccessTokenResponse:
    token = await service.refresh_access_token(body.refresh_token)
    return AccessTokenResponse(token=token)


@router.post(
    "/verify-email",
    response_model=MessageResponse,
    summary="Verify email with the OTP sent at registration",
    responses={400: {"description": "Invalid or expired verification code"}, 404: {"description": "User not found"}},
)
async def verify_email(
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: VerifyEmailBody,
) -> MessageResponse:
    return MessageResponse(message=await service.verify_email(body.email, body.otp))


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    summary="Send a new email verification code",
    responses={404: {"description": "User not found"}, 500: {"description": "Error sending email"}},
)
@limiter.limit(settings.password_reset_rate_limit)
async def resend_verification(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: EmailBody,
) -> MessageResponse:
    return MessageResponse(message=await service.resend_verification(body.email))


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Email a password reset link",
    responses={404: {"description": "User not found"}, 500: {"description": "Error sending email"}},
)
@limiter.limit(settings.password_reset_rate_limit)
async def forgot_password(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: EmailBody,
) -> MessageResponse:
    return MessageResponse(message=await service.forgot_password(body.email))


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password with a reset token",
    responses={400: {"description": "Invalid or expired token"}},
)
@limiter.limit(settings.password_reset_rate_limit)
async def reset_password(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: ResetPasswordBody,
) -> MessageResponse:
    return MessageResponse(message=await service.reset_password(body.token, body.new_password))
