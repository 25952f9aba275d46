"""
Access-control dependencies
Resolve the caller from the session cookie and short-circuit with 401/403
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.config import Config
from learnhub.courses.models import CourseStatus

STUDENT = "student"
INSTRUCTOR = "instructor"
ADMIN = "admin"


# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db(request: Request) -> AsyncIOMotorDatabase:
    """Database dependency"""
    return request.app.state.db


async def get_config(request: Request) -> Config:
    return request.app.state.config


async def get_auth_context(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> Optional[dict]:
    """
    Current user document, or None.
    Never raises: a missing, expired or revoked cookie is just "anonymous".
    """
    cookie_name = request.app.state.config.SESSION_COOKIE_NAME
    session_cookie = request.cookies.get(cookie_name)
    if not session_cookie:
        return None

    identity = await request.app.state.auth_provider.verify_session(session_cookie)
    if not identity:
        return None

    user = await db.users.find_one({"user_id": identity["uid"]}, {"_id": 0})
    return user


async def require_auth(user: Optional[dict] = Depends(get_auth_context)) -> dict:
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_role(*roles: str):
    """Dependency factory: caller must hold one of roles"""

    async def checker(user: dict = Depends(require_auth)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return checker


require_admin = require_role(ADMIN)
require_instructor = require_role(INSTRUCTOR, ADMIN)


# ==================== OWNERSHIP / ACCESS ====================

def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") == ADMIN


def require_owner_or_admin(owner_id: str, user: dict):
    """Raise 403 unless user owns the resource or is an admin"""
    if user.get("user_id") != owner_id and not is_admin(user):
        raise HTTPException(status_code=403, detail="Not authorized")


def can_see_course(course: dict, user: Optional[dict]) -> bool:
    """Published courses are public; anything else only to its instructor and admins"""
    if course.get("status") == CourseStatus.PUBLISHED.value:
        return True
    is_owner = bool(user) and user.get("user_id") == course.get("instructor_id")
    return is_owner or is_admin(user)


async def visible_course(db: AsyncIOMotorDatabase, course_id: str, user: Optional[dict]) -> dict:
    """Load a course for reading; unpublished ones are 404 to outsiders"""
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course or not can_see_course(course, user):
        raise HTTPException(404, "Course not found")
    return course


async def verify_course_owner(db: AsyncIOMotorDatabase, course_id: str, user: dict) -> dict:
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course:
        raise HTTPException(404, "Course not found")

    require_owner_or_admin(course["instructor_id"], user)
    return course


async def verify_module_owner(db: AsyncIOMotorDatabase, module_id: str, user: dict) -> dict:
    module = await db.modules.find_one({"module_id": module_id}, {"_id": 0})
    if not module:
        raise HTTPException(404, "Module not found")

    await verify_course_owner(db, module["course_id"], user)
    return module


async def verify_lesson_owner(db: AsyncIOMotorDatabase, lesson_id: str, user: dict) -> dict:
    lesson = await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
    if not lesson:
        raise HTTPException(404, "Lesson not found")

    await verify_course_owner(db, lesson["course_id"], user)
    return lesson


async def has_purchased(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> bool:
    purchase = await db.purchases.find_one({
        "user_id": user_id,
        "course_id": course_id,
        "status": "completed",
    })
    return purchase is not None


async def can_view_lesson(db: AsyncIOMotorDatabase, lesson: dict, user: Optional[dict]) -> bool:
    """Free preview, purchased course, or course owner/admin"""
    if lesson.get("is_free_preview"):
        return True
    if not user:
        return False
    if is_admin(user):
        return True

    course = await db.courses.find_one({"course_id": lesson["course_id"]}, {"instructor_id": 1})
    if course and course.get("instructor_id") == user["user_id"]:
        return True

    return await has_purchased(db, user["user_id"], lesson["course_id"])
