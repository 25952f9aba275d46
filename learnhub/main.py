"""
LearnHub API
Application factory: validated config, external clients and routers
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from learnhub.admin.router import router as admin_router
from learnhub.auth.provider import FirebaseAuthProvider
from learnhub.auth.router import router as auth_router
from learnhub.config import Config
from learnhub.courses.category_router import router as category_router
from learnhub.courses.course_router import router as course_router
from learnhub.courses.curriculum_router import router as curriculum_router
from learnhub.courses.review_router import router as review_router
from learnhub.database import create_indexes
from learnhub.payments.gateway import RazorpayGateway
from learnhub.payments.router import router as payment_router
from learnhub.progress.router import router as progress_router
from learnhub.storage.client import ObjectStorage
from learnhub.storage.router import router as storage_router
from learnhub.system.health_router import router as health_router
from learnhub.users.router import router as user_router

logger = logging.getLogger(__name__)


def first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    error = errors[0]
    message = error.get("msg", "Invalid value")
    if error.get("type") == "value_error":
        return message.removeprefix("Value error, ")

    field = next((str(part) for part in reversed(error.get("loc", ())) if isinstance(part, str)), None)
    if field and field not in ("body", "query", "path"):
        return f"{field}: {message}"
    return message


def create_app(
    config: Optional[Config] = None,
    db=None,
    auth_provider=None,
    storage=None,
    payments=None,
) -> FastAPI:
    config = config or Config()

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="LearnHub API")

    if db is None:
        db = AsyncIOMotorClient(config.MONGO_URL)[config.MONGO_DB_NAME]

    app.state.config = config
    app.state.db = db
    app.state.auth_provider = auth_provider or FirebaseAuthProvider(config)
    app.state.storage = storage or ObjectStorage(config)
    app.state.payments = payments or RazorpayGateway(config)

    @app.on_event("startup")
    async def startup_event():
        await create_indexes(app.state.db)
        logger.info("✅ LearnHub API started")

    @app.on_event("shutdown")
    async def shutdown_event():
        close = getattr(app.state.auth_provider, "close", None)
        if close:
            await close()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": first_validation_message(exc)})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== ROUTER REGISTRATION ====================

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(course_router)
    app.include_router(curriculum_router)
    app.include_router(category_router)
    app.include_router(review_router)
    app.include_router(progress_router)
    app.include_router(payment_router)
    app.include_router(storage_router)
    app.include_router(admin_router)

    return app


def main():
    uvicorn.run("learnhub.main:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
