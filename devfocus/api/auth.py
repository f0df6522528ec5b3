"""
DevFocus - Authentication API
=============================

Registration with emailed one-time codes, login, password reset and
password change.

Flow:
    register -> (code emailed) -> verify-otp -> token
    login (verified accounts only) -> token
    forgot-password -> (code emailed) -> verify-reset-otp -> reset-password
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import APIRouter, Response, status
from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from devfocus.api.deps import CurrentUser, DbSession, MailerDep, create_access_token
from devfocus.core.clock import as_utc
from devfocus.core.config import settings
from devfocus.core.exceptions import (
    AuthError,
    ConflictError,
    EmailDeliveryError,
    NotFoundError,
    ValidationError,
)
from devfocus.core.mailer import Mailer, OTPPurpose, generate_otp
from devfocus.core.models import User
from devfocus.core.schemas import (
    EmailRequest,
    MessageResponse,
    OTPVerify,
    PasswordChange,
    PasswordReset,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ==========================================================================
# Helper Functions
# ==========================================================================

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.verify(password, password_hash)


def hash_otp(otp: str) -> str:
    """Create a hash of a one-time code for storage."""
    return hashlib.sha256(otp.encode()).hexdigest()


def issue_otp(user: User, now: Optional[datetime] = None) -> str:
    """Generate a fresh code for the user and store its hash and expiry."""
    otp = generate_otp()
    now = now or datetime.now(timezone.utc)
    user.otp_hash = hash_otp(otp)
    user.otp_expires_at = now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
    return otp


def check_otp(user: User, otp: str, now: Optional[datetime] = None) -> None:
    """
    Validate a presented code against the stored one.

    Raises:
        ValidationError: If no code is pending, it does not match, or it expired
    """
    if not user.otp_hash or user.otp_expires_at is None:
        raise ValidationError("No verification code found. Please request a new one.")

    if not secrets.compare_digest(hash_otp(otp), user.otp_hash):
        raise ValidationError("Invalid verification code")

    now = now or datetime.now(timezone.utc)
    if as_utc(user.otp_expires_at) < now:
        raise ValidationError("Verification code expired. Please request a new one.")


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


def token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_access_token(user.id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


async def send_code(
    db: AsyncSession,
    mailer: Mailer,
    user: User,
    otp: str,
    purpose: OTPPurpose,
) -> None:
    """Email a code; on failure discard the pending changes and re-raise."""
    try:
        await mailer.send_otp(user.email, user.name, otp, purpose)
    except EmailDeliveryError:
        await db.rollback()
        raise


# ==========================================================================
# Registration & Verification
# ==========================================================================

@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    responses={
        201: {"description": "User created, verification code sent"},
        200: {"description": "Unverified account exists, code re-sent"},
        400: {"description": "Verified account already exists / validation error"},
        502: {"description": "Verification email could not be sent"},
    },
)
async def register(
    data: UserCreate,
    db: DbSession,
    mailer: MailerDep,
    response: Response,
) -> RegisterResponse:
    """
    Register a new user account.

    - A verified account with the same email blocks registration (400)
    - An unverified account with the same email gets a fresh code (200)
    - Otherwise the user is created unverified and a code is emailed (201)
    - If the email cannot be sent nothing is stored (502)
    """
    email = data.email.lower()
    existing_user = await find_user_by_email(db, email)

    if existing_user is not None:
        if existing_user.is_verified:
            raise ConflictError("User with this email already exists")

        otp = issue_otp(existing_user)
        await send_code(db, mailer, existing_user, otp, "verify")
        await db.commit()

        logger.info("registration_code_resent", user_id=str(existing_user.id))
        response.status_code = status.HTTP_200_OK
        return RegisterResponse(
            email=existing_user.email,
            requires_verification=True,
            message="Account exists but not verified. Verification code resent to your email.",
        )

    user = User(
        id=uuid4(),
        name=data.name,
        email=email,
        password_hash=hash_password(data.password),
        is_verified=False,
        total_pomodoros=0,
        current_streak=0,
        longest_streak=0,
    )
    otp = issue_otp(user)
    db.add(user)
    await db.flush()

    await send_code(db, mailer, user, otp, "verify")
    await db.commit()

    logger.info("user_registered", user_id=str(user.id))
    return RegisterResponse(
        email=user.email,
        requires_verification=True,
        message="Registration successful! Check your email for the verification code.",
    )


@router.post(
    "/verify-otp",
    response_model=TokenResponse,
    summary="Verify email with one-time code",
    responses={
        200: {"description": "Email verified, token issued"},
        400: {"description": "Invalid or expired code"},
        404: {"description": "User not found"},
    },
)
async def verify_otp(
    data: OTPVerify,
    db: DbSession,
) -> TokenResponse:
    """Mark the account verified when a matching, unexpired code is presented."""
    user = await find_user_by_email(db, data.email)

    if user is None:
        raise NotFoundError("User not found")

    if user.is_verified:
        raise ValidationError("Email already verified. Please login.")

    check_otp(user, data.otp)

    user.is_verified = True
    user.clear_otp()
    await db.commit()
    await db.refresh(user)

    logger.info("user_verified", user_id=str(user.id))
    return token_response(user)


@router.post(
    "/resend-otp",
    response_model=MessageResponse,
    summary="Resend verification code",
    responses={
        200: {"description": "New code sent"},
        400: {"description": "Already verified"},
        404: {"description": "User not found"},
    },
)
async def resend_otp(
    data: EmailRequest,
    db: DbSession,
    mailer: MailerDep,
) -> MessageResponse:
    user = await find_user_by_email(db, data.email)

    if user is None:
        raise NotFoundError("User not found")

    if user.is_verified:
        raise ValidationError("Email already verified. Please login.")

    otp = issue_otp(user)
    await send_code(db, mailer, user, otp, "verify")
    await db.commit()

    return MessageResponse(message="New verification code sent to your email")


# ==========================================================================
# Login
# ==========================================================================

@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and get a token",
    responses={
        200: {"description": "Login successful"},
        401: {"description": "Invalid credentials"},
        403: {"description": "Email not verified"},
    },
)
async def login(
    data: UserLogin,
    db: DbSession,
) -> TokenResponse:
    """
    Authenticate user and return a token.

    Unknown email and wrong password produce the same 401. The verification
    check runs after the password check so it never reveals account state to
    someone without the password.
    """
    user = await find_user_by_email(db, data.email)

    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthError("Invalid credentials")

    if not user.is_verified:
        raise AuthError("Please verify your email before logging in", status_code=403)

    logger.info("user_logged_in", user_id=str(user.id))
    return token_response(user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    responses={
        200: {"description": "Current user data"},
        401: {"description": "Not authenticated"},
    },
)
async def get_me(
    current_user: CurrentUser,
) -> UserResponse:
    """Get current authenticated user's profile and counters."""
    return UserResponse.model_validate(current_user)


# ==========================================================================
# Password Reset
# ==========================================================================

@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request password reset code",
    responses={
        200: {"description": "Code sent (if account exists)"},
    },
)
async def forgot_password(
    data: EmailRequest,
    db: DbSession,
    mailer: MailerDep,
) -> MessageResponse:
    """
    Request a password reset code.

    Always returns 200 with the same message so account existence is not
    revealed. Delivery failures are logged, not reported.
    """
    user = await find_user_by_email(db, data.email)

    if user is not None:
        otp = issue_otp(user)
        await db.commit()
        try:
            await mailer.send_otp(user.email, user.name, otp, "reset")
        except EmailDeliveryError as e:
            logger.error("password_reset_email_failed", user_id=str(user.id), error=e.detail)

    return MessageResponse(
        message="If this email exists, you will receive a code to reset your password.",
    )


@router.post(
    "/verify-reset-otp",
    response_model=MessageResponse,
    summary="Check a password reset code",
    responses={
        200: {"description": "Code is valid"},
        400: {"description": "Invalid or expired code"},
    },
)
async def verify_reset_otp(
    data: OTPVerify,
    db: DbSession,
) -> MessageResponse:
    user = await find_user_by_email(db, data.email)

    if user is None:
        raise ValidationError("Invalid verification code")

    check_otp(user, data.otp)

    return MessageResponse(message="Code verified successfully")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with code",
    responses={
        200: {"description": "Password reset"},
        400: {"description": "Invalid or expired code / weak password"},
    },
)
async def reset_password(
    data: PasswordReset,
    db: DbSession,
) -> MessageResponse:
    user = await find_user_by_email(db, data.email)

    if user is None:
        raise ValidationError("Invalid verification code")

    check_otp(user, data.otp)

    user.password_hash = hash_password(data.new_password)
    user.clear_otp()
    await db.commit()

    logger.info("password_reset", user_id=str(user.id))
    return MessageResponse(
        message="Password reset successful. Please login with your new password.",
    )


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    responses={
        200: {"description": "Password changed"},
        401: {"description": "Not authenticated / wrong current password"},
    },
)
async def change_password(
    data: PasswordChange,
    current_user: CurrentUser,
    db: DbSession,
) -> MessageResponse:
    if not verify_password(data.current_password, current_user.password_hash):
        raise AuthError("Current password is incorrect")

    current_user.password_hash = hash_password(data.new_password)
    await db.commit()

    logger.info("password_changed", user_id=str(current_user.id))
    return MessageResponse(message="Password updated successfully")
