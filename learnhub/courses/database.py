import json
import logging
import re
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.courses.models import CourseStatus
from learnhub.database import generate_id, maybe_transaction, slugify

logger = logging.getLogger(__name__)

SLUG_ATTEMPTS = 5


# ==================== RESHAPE ====================

def course_out(course: dict) -> dict:
    return {
        "courseId": course["course_id"],
        "title": course["title"],
        "slug": course["slug"],
        "description": course.get("description", ""),
        "shortDescription": course.get("short_description", ""),
        "price": course.get("price", 0),
        "currency": course.get("currency"),
        "thumbnail": course.get("thumbnail"),
        "category": course.get("category"),
        "level": course.get("level"),
        "instructorId": course.get("instructor_id"),
        "status": course.get("status"),
        "totalDuration": course.get("total_duration", 0),
        "totalLessons": course.get("total_lessons", 0),
        "createdAt": course.get("created_at"),
        "updatedAt": course.get("updated_at"),
        "publishedAt": course.get("published_at"),
    }


def module_out(module: dict) -> dict:
    return {
        "moduleId": module["module_id"],
        "courseId": module["course_id"],
        "title": module["title"],
        "description": module.get("description", ""),
        "order": module.get("order", 0),
        "createdAt": module.get("created_at"),
    }


def parse_resources(raw) -> list:
    """
    Lesson resources are stored as a list; rows written by older
    versions hold a JSON string instead.
    """
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


def lesson_out(lesson: dict) -> dict:
    return {
        "lessonId": lesson["lesson_id"],
        "moduleId": lesson["module_id"],
        "courseId": lesson["course_id"],
        "title": lesson["title"],
        "description": lesson.get("description", ""),
        "videoUrl": lesson.get("video_url"),
        "duration": lesson.get("duration", 0),
        "order": lesson.get("order", 0),
        "isFreePreview": lesson.get("is_free_preview", False),
        "resources": parse_resources(lesson.get("resources")),
        "createdAt": lesson.get("created_at"),
    }


def category_out(category: dict) -> dict:
    return {
        "categoryId": category["category_id"],
        "name": category["name"],
        "slug": category["slug"],
        "description": category.get("description", ""),
        "icon": category.get("icon"),
        "order": category.get("order", 0),
    }


def review_out(review: dict) -> dict:
    return {
        "reviewId": review["review_id"],
        "userId": review["user_id"],
        "courseId": review["course_id"],
        "rating": review["rating"],
        "comment": review["comment"],
        "createdAt": review.get("created_at"),
        "updatedAt": review.get("updated_at"),
    }


# ==================== COURSE CRUD ====================

async def find_course(db: AsyncIOMotorDatabase, id_or_slug: str) -> Optional[dict]:
    """Get course by ID or slug"""
    return await db.courses.find_one(
        {"$or": [{"course_id": id_or_slug}, {"slug": id_or_slug}]},
        {"_id": 0},
    )


async def unique_slug(db: AsyncIOMotorDatabase, title: str, exclude_course_id: Optional[str] = None) -> str:
    """slugify(title), suffixed -2, -3... until no other course holds it"""
    base = slugify(title)
    candidate = base
    n = 2
    while True:
        query = {"slug": candidate}
        if exclude_course_id:
            query["course_id"] = {"$ne": exclude_course_id}
        if not await db.courses.find_one(query, {"_id": 1}):
            return candidate
        candidate = f"{base}-{n}"
        n += 1


async def create_course(db: AsyncIOMotorDatabase, data: dict, instructor_id: str, default_currency: str) -> dict:
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("COURSE"),
        "title": data["title"],
        "description": data["description"],
        "short_description": data["short_description"],
        "price": data["price"],
        "currency": (data.get("currency") or default_currency).upper(),
        "thumbnail": data.get("thumbnail"),
        "category": data["category"],
        "level": data["level"],
        "instructor_id": instructor_id,
        "status": data.get("status") or CourseStatus.DRAFT.value,
        "total_duration": 0,
        "total_lessons": 0,
        "created_at": now,
        "updated_at": now,
        "published_at": now if data.get("status") == CourseStatus.PUBLISHED.value else None,
    }

    # Another request may claim the same slug between lookup and insert
    for attempt in range(SLUG_ATTEMPTS):
        course["slug"] = await unique_slug(db, data["title"])
        try:
            await db.courses.insert_one(course)
            break
        except DuplicateKeyError:
            course.pop("_id", None)
            if attempt == SLUG_ATTEMPTS - 1:
                raise

    course.pop("_id", None)
    return course


async def update_course(db: AsyncIOMotorDatabase, course: dict, updates: dict) -> dict:
    """
    Apply a partial update.
    A title change regenerates the slug; the first transition to
    published stamps published_at, later ones leave it alone.
    """
    updates = {k: v for k, v in updates.items() if v is not None}

    if "currency" in updates:
        updates["currency"] = updates["currency"].upper()

    retitled = "title" in updates and updates["title"] != course["title"]

    if updates.get("status") == CourseStatus.PUBLISHED.value and not course.get("published_at"):
        updates["published_at"] = datetime.utcnow()

    updates["updated_at"] = datetime.utcnow()

    # Same race as create_course: the fresh slug can be taken before the write lands
    for attempt in range(SLUG_ATTEMPTS):
        if retitled:
            updates["slug"] = await unique_slug(db, updates["title"], exclude_course_id=course["course_id"])
        try:
            await db.courses.update_one({"course_id": course["course_id"]}, {"$set": updates})
            break
        except DuplicateKeyError:
            if not retitled or attempt == SLUG_ATTEMPTS - 1:
                raise

    return await db.courses.find_one({"course_id": course["course_id"]}, {"_id": 0})


async def delete_course(db: AsyncIOMotorDatabase, course_id: str, use_transactions: bool = False):
    """Remove a course with its curriculum, progress and reviews. Purchases are kept."""
    async with maybe_transaction(db, use_transactions) as session:
        await db.progress.delete_many({"course_id": course_id}, session=session)
        await db.reviews.delete_many({"course_id": course_id}, session=session)
        await db.lessons.delete_many({"course_id": course_id}, session=session)
        await db.modules.delete_many({"course_id": course_id}, session=session)
        await db.courses.delete_one({"course_id": course_id}, session=session)

    logger.info(f"Deleted course {course_id} with its curriculum")


async def recompute_course_totals(db: AsyncIOMotorDatabase, course_id: str):
    """Persist total_lessons / total_duration from the course's current lessons"""
    lessons = await db.lessons.find({"course_id": course_id}, {"duration": 1}).to_list(length=None)
    await db.courses.update_one(
        {"course_id": course_id},
        {"$set": {
            "total_lessons": len(lessons),
            "total_duration": sum(lesson.get("duration", 0) or 0 for lesson in lessons),
            "updated_at": datetime.utcnow(),
        }},
    )


# ==================== CURRICULUM ====================

async def list_modules(db: AsyncIOMotorDatabase, course_id: str) -> List[dict]:
    cursor = db.modules.find({"course_id": course_id}, {"_id": 0}).sort("order", 1)
    return await cursor.to_list(length=None)


async def list_lessons(db: AsyncIOMotorDatabase, query: dict) -> List[dict]:
    cursor = db.lessons.find(query, {"_id": 0}).sort("order", 1)
    return await cursor.to_list(length=None)


async def course_lessons_in_order(db: AsyncIOMotorDatabase, course_id: str) -> List[dict]:
    """Every lesson of a course in course order: module order, then lesson order"""
    modules = await list_modules(db, course_id)
    lessons = await db.lessons.find({"course_id": course_id}, {"_id": 0}).to_list(length=None)

    module_rank = {module["module_id"]: i for i, module in enumerate(modules)}
    return sorted(
        lessons,
        key=lambda lesson: (
            module_rank.get(lesson["module_id"], len(module_rank)),
            lesson.get("order", 0),
        ),
    )


async def delete_module(db: AsyncIOMotorDatabase, module: dict, use_transactions: bool = False):
    """Remove a module, its lessons and their progress rows"""
    lesson_ids = await db.lessons.distinct("lesson_id", {"module_id": module["module_id"]})

    async with maybe_transaction(db, use_transactions) as session:
        if lesson_ids:
            await db.progress.delete_many({"lesson_id": {"$in": lesson_ids}}, session=session)
        await db.lessons.delete_many({"module_id": module["module_id"]}, session=session)
        await db.modules.delete_one({"module_id": module["module_id"]}, session=session)

    await recompute_course_totals(db, module["course_id"])


async def apply_order(
    db: AsyncIOMotorDatabase,
    collection_name: str,
    parent_field: str,
    parent_id: str,
    id_field: str,
    orders: List[dict],
    use_transactions: bool = False,
) -> bool:
    """
    Write a batch of {id, order} pairs for the children of one parent.
    The submitted ids must be exactly the parent's current children.
    Returns False (nothing written) when they are not.
    """
    collection = db[collection_name]
    submitted = [item[id_field] for item in orders]
    existing = await collection.distinct(id_field, {parent_field: parent_id})

    if len(submitted) != len(set(submitted)) or set(submitted) != set(existing):
        return False

    async with maybe_transaction(db, use_transactions) as session:
        for item in orders:
            await collection.update_one(
                {id_field: item[id_field], parent_field: parent_id},
                {"$set": {"order": item["order"]}},
                session=session,
            )

    return True


# ==================== SEARCH ====================

def text_search_filter(search: str, fields: List[str]) -> dict:
    """Case-insensitive substring match; user text is escaped, never interpreted"""
    pattern = re.escape(search.strip())
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}
