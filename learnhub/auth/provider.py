"""
Firebase Authentication provider
Accounts and session cookies through the Admin SDK,
email/password sign-in and recovery through the Identity Toolkit REST API
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import firebase_admin
import httpx
from fastapi.concurrency import run_in_threadpool
from firebase_admin import auth, credentials, exceptions

from learnhub.config import Config

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
FIREBASE_APP_NAME = "learnhub"

INVALID_CREDENTIAL_CODES = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "USER_DISABLED",
}
INVALID_RESET_CODES = {"EXPIRED_OOB_CODE", "INVALID_OOB_CODE"}


class AuthProviderError(Exception):
    """Upstream auth provider call failed"""


class AccountExistsError(AuthProviderError):
    pass


class InvalidCredentialsError(AuthProviderError):
    pass


class FirebaseAuthProvider:
    """
    Thin wrapper around Firebase Auth.
    This app never sees password hashes: it forwards credentials
    and trusts the session cookie Firebase mints.
    """

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        self.api_key = config.FIREBASE_WEB_API_KEY
        self.session_lifetime = timedelta(days=config.SESSION_DAYS)
        self.http = http_client or httpx.AsyncClient(timeout=20)

        try:
            self.app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": config.FIREBASE_PROJECT_ID,
                "private_key": config.FIREBASE_PRIVATE_KEY,
                "client_email": config.FIREBASE_CLIENT_EMAIL,
                "token_uri": "https://oauth2.googleapis.com/token",
            })
            self.app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
        logger.info("✅ Firebase Admin SDK initialized")

    async def close(self):
        await self.http.aclose()

    # ==================== REST HELPERS ====================

    async def _identity_call(self, action: str, payload: dict) -> dict:
        response = await self.http.post(
            f"{IDENTITY_TOOLKIT_URL}:{action}",
            params={"key": self.api_key},
            json=payload,
        )
        data = response.json()
        if response.status_code != 200:
            message = data.get("error", {}).get("message", "UNKNOWN")
            # Firebase appends details after " : " (e.g. "INVALID_PASSWORD : ...")
            raise AuthProviderError(message.split(" ")[0])
        return data

    # ==================== ACCOUNTS ====================

    async def create_account(self, email: str, password: str, name: str) -> dict:
        try:
            user = await run_in_threadpool(
                auth.create_user,
                email=email,
                password=password,
                display_name=name,
                app=self.app,
            )
        except auth.EmailAlreadyExistsError:
            raise AccountExistsError(email)
        return {"uid": user.uid, "email": user.email, "name": user.display_name}

    async def sign_in(self, email: str, password: str) -> dict:
        """
        Exchange email/password for a Firebase session cookie

        Returns:
            {"uid": str, "session_cookie": str, "expires": datetime}
        """
        try:
            data = await self._identity_call("signInWithPassword", {
                "email": email,
                "password": password,
                "returnSecureToken": True,
            })
        except AuthProviderError as e:
            if str(e) in INVALID_CREDENTIAL_CODES:
                raise InvalidCredentialsError(str(e))
            raise

        cookie = await run_in_threadpool(
            auth.create_session_cookie,
            data["idToken"],
            expires_in=self.session_lifetime,
            app=self.app,
        )
        return {
            "uid": data["localId"],
            "session_cookie": cookie.decode() if isinstance(cookie, bytes) else cookie,
            "expires": datetime.utcnow() + self.session_lifetime,
        }

    async def verify_session(self, session_cookie: str) -> Optional[dict]:
        """Resolve a session cookie to {"uid", "email"}; None when invalid"""
        try:
            claims = await run_in_threadpool(
                auth.verify_session_cookie,
                session_cookie,
                check_revoked=True,
                app=self.app,
            )
        except (ValueError, exceptions.FirebaseError):
            return None
        return {"uid": claims["uid"], "email": claims.get("email")}

    async def revoke_session(self, session_cookie: str):
        identity = await self.verify_session(session_cookie)
        if identity:
            await run_in_threadpool(auth.revoke_refresh_tokens, identity["uid"], app=self.app)

    # ==================== PASSWORDS ====================

    async def send_password_reset(self, email: str, continue_url: str):
        await self._identity_call("sendOobCode", {
            "requestType": "PASSWORD_RESET",
            "email": email,
            "continueUrl": continue_url,
        })

    async def confirm_password_reset(self, secret: str, new_password: str):
        try:
            await self._identity_call("resetPassword", {
                "oobCode": secret,
                "newPassword": new_password,
            })
        except AuthProviderError as e:
            if str(e) in INVALID_RESET_CODES:
                raise InvalidCredentialsError(str(e))
            raise

    async def change_password(self, uid: str, email: str, current_password: str, new_password: str):
        """Re-authenticate with the current password, then set the new one"""
        try:
            await self._identity_call("signInWithPassword", {
                "email": email,
                "password": current_password,
                "returnSecureToken": True,
            })
        except AuthProviderError as e:
            if str(e) in INVALID_CREDENTIAL_CODES:
                raise InvalidCredentialsError(str(e))
            raise

        await run_in_threadpool(auth.update_user, uid, password=new_password, app=self.app)
