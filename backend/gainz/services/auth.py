"""Registration, login, email verification and password reset flows.

Flows raise ``gainz.core.errors`` exceptions; the API layer renders them.
Store mutations are flushed by the store and committed with the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from gainz.core.datetime_utils import ensure_utc, utc_now
from gainz.core.errors import (
    BadRequestError,
    ConflictError,
    EmailDeliveryError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from gainz.core.security import (
    generate_otp,
    hash_password,
    is_valid_email,
    normalize_email,
    password_policy_error,
    token_fingerprint,
    verify_password,
)
from gainz.models.token import TOKEN_TYPE_REFRESH
from gainz.models.user import User
from gainz.repositories.credentials import CredentialStore
from gainz.services.email import EmailProvider
from gainz.services.tokens import TokenService

logger = logging.getLogger(__name__)

DEFAULT_OTP_TTL = timedelta(minutes=10)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str
    message: str


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenService,
        email: EmailProvider,
        *,
        bcrypt_rounds: int = 10,
        otp_ttl: timedelta = DEFAULT_OTP_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._email = email
        self._bcrypt_rounds = bcrypt_rounds
        self._otp_ttl = otp_ttl
        self._clock = clock

    async def _issue_pair(self, user: User) -> tuple[str, str]:
        access = self._tokens.issue_access_token(user.id)
        refresh = await self._tokens.issue_refresh_token(user.id)
        return access, refresh

    async def register(self, email: str | None, password: str | None, confirm_password: str | None) -> AuthResult:
        email = normalize_email(email)
        if not email or not password or not confirm_password:
            raise BadRequestError("Email, password and confirm_password are required")
        if not is_valid_email(email):
            raise BadRequestError("Must provide a valid email address")
        if password != confirm_password:
            raise BadRequestError("Passwords do not match")
        policy_error = password_policy_error(password)
        if policy_error:
            raise BadRequestError(policy_error)
        if await self._store.get_user_by_email(email) is not None:
            raise ConflictError("User already exists")

        otp = generate_otp()
        user = await self._store.create_user(
            email=email,
            password_hash=hash_password(password, rounds=self._bcrypt_rounds),
            email_verification_code=otp,
            email_verification_expiry=self._clock() + self._otp_ttl,
        )
        logger.info("Registered user %s", user.id)

        # Best effort: the account exists even if the mail provider is down.
        try:
            sent = await self._email.send_verification_email(user.email, otp)
        except Exception:
            logger.exception("Verification email to %s raised", user.email)
            sent = False
        if not sent:
            logger.warning("Verification email not delivered for user %s", user.id)

        access, refresh = await self._issue_pair(user)
        return AuthResult(
            user=user,
            access_token=access,
            refresh_token=refresh,
            message="User registered successfully. Please verify your email.",
        )

    async def login(self, email: str | None, password: str | None) -> AuthResult:
        email = normalize_email(email)
        if not email or not password:
            raise BadRequestError(INVALID_CREDENTIALS)
        user = await self._store.get_user_by_email(email)
        # Same message for unknown email and wrong password
        if user is None or not verify_password(password, user.password_hash):
            raise BadRequestError(INVALID_CREDENTIALS)
        user.last_login = self._clock()
        await self._store.save_user(user)
        access, refresh = await self._issue_pair(user)
        return AuthResult(user=user, access_token=access, refresh_token=refresh, message="Login successful")

    async def logout(self, refresh_token: str | None) -> None:
        if not refresh_token:
            raise BadRequestError("Refresh token is required")
        row = await self._store.get_token(token_fingerprint(refresh_token), type=TOKEN_TYPE_REFRESH)
        if row is None or await self._store.get_user_by_id(row.user_id) is None:
            raise BadRequestError("Invalid token")
        await self._tokens.revoke_token(refresh_token)

    async def logout_all(self, user_id: str) -> None:
        await self._tokens.revoke_all_user_tokens(user_id)

    async def refresh_access_token(self, refresh_token: str | None) -> str:
        if not refresh_token:
            raise UnauthorizedError("Refresh token required", reason="missing")
        try:
            payload = await self._tokens.verify_refresh_token(refresh_token)
        except UnauthorizedError as e:
            if e.reason in ("expired", "invalid"):
                # signature, expiry or token type failed; unknown and revoked stay 401
                raise ForbiddenError("Invalid or expired refresh token") from e
            raise
        return self._tokens.issue_access_token(payload["userId"])

    async def verify_email(self, email: str | None, otp: str | None) -> str:
        email = normalize_email(email)
        if not email or not otp:
            raise BadRequestError("Email and verification code are required")
        user = await self._store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            return "Email already verified"

        expiry = ensure_utc(user.email_verification_expiry)
        if (
            user.email_verification_code is None
            or expiry is None
            or otp.strip() != user.email_verification_code
            or self._clock() > expiry
        ):
            raise BadRequestError("Invalid or expired verification code")

        user.is_email_verified = True
        user.email_verification_code = None
        user.email_verification_expiry = None
        await self._store.save_user(user)
        logger.info("Email verified for user %s", user.id)
        return "Email verified successfully"

    async def resend_verification(self, email: str | None) -> str:
        email = normalize_email(email)
        if not email:
            raise BadRequestError("Email is required")
        user = await self._store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_email_verified:
            return "Email already verified"

        otp = generate_otp()
        user.email_verification_code = otp
        user.email_verification_expiry = self._clock() + self._otp_ttl
        await self._store.save_user(user)
        if not await self._email.send_verification_email(user.email, otp):
            raise EmailDeliveryError()
        return "Verification code sent"

    async def forgot_password(self, email: str | None) -> str:
        email = normalize_email(email)
        if not email:
            raise BadRequestError("Email is required")
        user = await self._store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        token, expires_at = await self._tokens.issue_reset_token(user.id)
        user.reset_password_token = token_fingerprint(token)
        user.reset_password_expiry = expires_at
        await self._store.save_user(user)

        if not await self._email.send_password_reset_email(user.email, token):
            # request transaction rolls back, so the unsent token never becomes usable
            raise EmailDeliveryError()
        logger.info("Password reset issued for user %s", user.id)
        return "Password reset email sent"

    async def reset_password(self, token: str | None, new_password: str | None) -> str:
        if not token or not new_password:
            raise BadRequestError("Token and new password are required")
        policy_error = password_policy_error(new_password)
        if policy_error:
            raise BadRequestError(policy_error)
        user = await self._store.get_user_by_reset_token(token_fingerprint(token), self._clock())
        if user is None:
            raise BadRequestError("Invalid or expired token")

        user.password_hash = hash_password(new_password, rounds=self._bcrypt_rounds)
        user.reset_password_token = None
        user.reset_password_expiry = None
        await self._store.save_user(user)
        await self._tokens.revoke_token(token)
        # sessions opened with the old password stop refreshing
        await self._tokens.revoke_all_user_tokens(user.id)
        logger.info("Password reset for user %s", user.id)
        return "Password reset successful"
