"""
Authentication API
Register, login, logout, session and password recovery
"""

import hashlib
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.auth.dependencies import STUDENT, get_auth_context, get_config, get_db
from learnhub.auth.models import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    user_out,
)
from learnhub.auth.provider import AccountExistsError, InvalidCredentialsError
from learnhub.config import Config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESET_EMAIL_SENT = "If an account exists with this email, a password reset link has been sent."


def session_fingerprint(session_cookie: str) -> str:
    """Opaque id for a session, safe to hand to the client"""
    return hashlib.sha256(session_cookie.encode()).hexdigest()[:32]


async def ensure_user_profile(db: AsyncIOMotorDatabase, uid: str, email: str, name: Optional[str] = None):
    now = datetime.utcnow()
    await db.users.update_one(
        {"user_id": uid},
        {"$setOnInsert": {
            "user_id": uid,
            "email": email,
            "name": name or email.split("@")[0],
            "avatar": None,
            "role": STUDENT,
            "created_at": now,
            "updated_at": now,
        }},
        upsert=True,
    )


# ==================== REGISTER / LOGIN ====================

@router.post("/register")
async def register(
    data: RegisterRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        account = await request.app.state.auth_provider.create_account(
            data.email, data.password, data.name
        )
        try:
            await ensure_user_profile(db, account["uid"], data.email, data.name)
        except DuplicateKeyError:
            raise HTTPException(409, "User already exists with this email")

        logger.info(f"Registered user {account['uid']}")
        return {
            "success": True,
            "userId": account["uid"],
            "email": data.email,
            "name": data.name,
            "message": "Registration successful. Please login to continue.",
        }
    except HTTPException:
        raise
    except AccountExistsError:
        raise HTTPException(409, "User already exists with this email")
    except Exception:
        logger.exception("Registration failed")
        raise HTTPException(500, "Failed to register user")


@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
):
    try:
        session = await request.app.state.auth_provider.sign_in(data.email, data.password)
    except InvalidCredentialsError:
        raise HTTPException(401, "Invalid email or password")
    except Exception:
        logger.exception("Login failed")
        raise HTTPException(500, "Failed to login")

    try:
        await ensure_user_profile(db, session["uid"], data.email)
    except Exception:
        logger.exception("Login profile sync failed")
        raise HTTPException(500, "Failed to login")

    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session["session_cookie"],
        max_age=config.SESSION_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=config.APP_URL.startswith("https://"),
        samesite="lax",
        path="/",
    )

    return {
        "success": True,
        "userId": session["uid"],
        "sessionId": session_fingerprint(session["session_cookie"]),
        "expires": session["expires"],
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    config: Config = Depends(get_config),
):
    """Always succeeds; the cookie is cleared even if revocation fails"""
    session_cookie = request.cookies.get(config.SESSION_COOKIE_NAME)
    if session_cookie:
        try:
            await request.app.state.auth_provider.revoke_session(session_cookie)
        except Exception:
            logger.exception("Session revocation failed")

    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/session")
async def get_session(user: Optional[dict] = Depends(get_auth_context)):
    if not user:
        return {"user": None, "isAuthenticated": False}
    return {"user": user_out(user), "isAuthenticated": True}


# ==================== PASSWORD RECOVERY ====================

@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    config: Config = Depends(get_config),
):
    try:
        await request.app.state.auth_provider.send_password_reset(
            data.email, f"{config.APP_URL}/reset-password"
        )
    except Exception as e:
        # Same answer either way so account existence never leaks
        logger.info(f"Password reset not sent: {e}")

    return {"success": True, "message": RESET_EMAIL_SENT}


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, request: Request):
    try:
        await request.app.state.auth_provider.confirm_password_reset(data.secret, data.password)
        return {"success": True, "message": "Password has been reset successfully"}
    except InvalidCredentialsError:
        raise HTTPException(400, "Invalid or expired reset link")
    except Exception:
        logger.exception("Password reset failed")
        raise HTTPException(500, "Failed to reset password")
