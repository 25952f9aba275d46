"""
LearnHub Configuration
Validated settings built once at startup - fails fast on missing vars
"""

import os
from typing import List, Mapping, Optional


class Config:
    """Validated configuration - fails fast on missing vars"""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self._env = os.environ if env is None else env

        # Document store
        self.MONGO_URL = self._require_env("MONGO_URL")
        self.MONGO_DB_NAME = self._env.get("MONGO_DB_NAME", "learnhub")
        self.MONGO_TRANSACTIONS = self._flag("MONGO_TRANSACTIONS", False)

        # Auth provider (Firebase)
        self.FIREBASE_PROJECT_ID = self._require_env("FIREBASE_PROJECT_ID")
        self.FIREBASE_CLIENT_EMAIL = self._require_env("FIREBASE_CLIENT_EMAIL")
        self.FIREBASE_PRIVATE_KEY = self._require_env("FIREBASE_PRIVATE_KEY").replace('\\n', '\n')
        self.FIREBASE_WEB_API_KEY = self._require_env("FIREBASE_WEB_API_KEY")
        self.SESSION_COOKIE_NAME = self._env.get("SESSION_COOKIE_NAME", "learnhub_session")
        self.SESSION_DAYS = int(self._env.get("SESSION_DAYS", "5"))

        # Object storage (S3-compatible)
        self.S3_ENDPOINT_URL = self._require_env("S3_ENDPOINT_URL")
        self.S3_ACCESS_KEY_ID = self._require_env("S3_ACCESS_KEY_ID")
        self.S3_SECRET_ACCESS_KEY = self._require_env("S3_SECRET_ACCESS_KEY")
        self.S3_BUCKET = self._require_env("S3_BUCKET")
        self.S3_REGION = self._env.get("S3_REGION", "auto")
        self.SIGNED_URL_TTL_SECONDS = int(self._env.get("SIGNED_URL_TTL_SECONDS", "3600"))

        # Payment gateway (Razorpay)
        self.RAZORPAY_KEY_ID = self._require_env("RAZORPAY_KEY_ID")
        self.RAZORPAY_KEY_SECRET = self._require_env("RAZORPAY_KEY_SECRET")
        self.RAZORPAY_WEBHOOK_SECRET = self._require_env("RAZORPAY_WEBHOOK_SECRET")
        self.CURRENCY = self._env.get("CURRENCY", "INR").upper()

        # Application
        self.APP_URL = self._require_env("APP_URL").rstrip("/")
        self.CORS_ORIGINS = self._parse_list(self._env.get("CORS_ORIGINS", "*"))
        self.LOG_LEVEL = self._env.get("LOG_LEVEL", "INFO").upper()

    def _require_env(self, key: str) -> str:
        """Get required environment variable or crash"""
        value = self._env.get(key)
        if not value:
            raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
        return value

    def _flag(self, key: str, default: bool) -> bool:
        value = self._env.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _parse_list(value: str) -> List[str]:
        """Parse comma-separated values into a list"""
        return [item.strip() for item in value.split(",") if item.strip()]
