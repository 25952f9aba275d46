import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Liveness plus a database ping"""
    try:
        await db.command("ping")
        database = "UP"
    except Exception as e:
        logger.warning(f"Health check: database ping failed: {e}")
        database = "DOWN"

    return {
        "status": "ok" if database == "UP" else "degraded",
        "database": database,
        "timestamp": datetime.utcnow(),
    }
