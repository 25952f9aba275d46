"""
MongoDB helpers shared by every router
Indexes, id generation, slugs and optional transactions
"""

import logging
import re
import uuid
from contextlib import asynccontextmanager

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)


def generate_id(prefix: str, length: int = 12) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{uuid.uuid4().hex[:length].upper()}"


def slugify(text: str) -> str:
    """
    Lowercase, hyphenated transform of a title.
    Only [a-z0-9-] survives and there are no leading/trailing hyphens.
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-")




# ==================== DATABASE INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for data integrity and performance"""

    # Users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email", unique=True)
    await db.users.create_index("role")

    # Courses
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index("slug", unique=True)
    await db.courses.create_index([("status", ASCENDING), ("category", ASCENDING)])
    await db.courses.create_index("instructor_id")

    # Curriculum
    await db.modules.create_index("module_id", unique=True)
    await db.modules.create_index([("course_id", ASCENDING), ("order", ASCENDING)])
    await db.lessons.create_index("lesson_id", unique=True)
    await db.lessons.create_index([("module_id", ASCENDING), ("order", ASCENDING)])
    await db.lessons.create_index("course_id")

    # Purchases (unique gateway session = one purchase per checkout)
    await db.purchases.create_index("purchase_id", unique=True)
    await db.purchases.create_index("gateway_session_id", unique=True)
    await db.purchases.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])
    await db.purchases.create_index([("purchased_at", DESCENDING)])

    # Progress (one row per user and lesson)
    await db.progress.create_index([("user_id", ASCENDING), ("lesson_id", ASCENDING)], unique=True)
    await db.progress.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])

    # Reviews (one per user and course)
    await db.reviews.create_index("review_id", unique=True)
    await db.reviews.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True)

    # Categories
    await db.categories.create_index("category_id", unique=True)
    await db.categories.create_index("slug", unique=True)

    logger.info("✅ MongoDB indexes created")


# ==================== TRANSACTIONS ====================

@asynccontextmanager
async def maybe_transaction(db: AsyncIOMotorDatabase, enabled: bool):
    """
    Yield a session bound to a multi-document transaction when the
    deployment supports it, otherwise yield None.
    Transactions need a replica set, so they are opt-in.
    """
    if not enabled:
        yield None
        return

    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session
