import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.dependencies import (
    ADMIN,
    INSTRUCTOR,
    can_see_course,
    get_auth_context,
    get_config,
    get_db,
    is_admin,
    require_instructor,
    verify_course_owner,
)
from learnhub.config import Config
from learnhub.courses.database import (
    course_out,
    create_course,
    delete_course,
    find_course,
    text_search_filter,
    update_course,
)
from learnhub.courses.models import CourseCreate, CourseLevel, CourseStatus, CourseUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Courses"])


# ==================== COURSE CRUD ====================

@router.get("")
async def list_courses(
    status: CourseStatus = CourseStatus.PUBLISHED,
    category: Optional[str] = None,
    level: Optional[CourseLevel] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    """
    Browse courses. Anyone may list published courses; drafts and
    archived courses are visible to their instructor and to admins.
    """
    query = {"status": status.value}

    if status != CourseStatus.PUBLISHED:
        if not user:
            raise HTTPException(401, "Authentication required")
        if user.get("role") not in (INSTRUCTOR, ADMIN):
            raise HTTPException(403, "Insufficient permissions")
        if not is_admin(user):
            query["instructor_id"] = user["user_id"]

    if category:
        query["category"] = category
    if level:
        query["level"] = level.value
    if search and search.strip():
        query.update(text_search_filter(search, ["title", "description"]))

    try:
        total = await db.courses.count_documents(query)
        cursor = db.courses.find(query, {"_id": 0}).sort("created_at", -1).skip(offset).limit(limit)
        courses = await cursor.to_list(length=limit)

        return {
            "success": True,
            "courses": [course_out(c) for c in courses],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    except Exception:
        logger.exception("List courses failed")
        raise HTTPException(500, "Failed to fetch courses")


@router.post("", status_code=201)
async def create_course_endpoint(
    data: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    try:
        course = await create_course(db, data.model_dump(), user["user_id"], config.CURRENCY)
        logger.info(f"Course {course['course_id']} created by {user['user_id']}")
        return {"success": True, "course": course_out(course)}
    except Exception:
        logger.exception("Create course failed")
        raise HTTPException(500, "Failed to create course")


@router.get("/{course_id}")
async def get_course_endpoint(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    """Get course by ID or slug"""
    try:
        course = await find_course(db, course_id)
    except Exception:
        logger.exception("Get course failed")
        raise HTTPException(500, "Failed to fetch course")

    if not course or not can_see_course(course, user):
        raise HTTPException(404, "Course not found")
    return {"success": True, "course": course_out(course)}


@router.put("/{course_id}")
async def update_course_endpoint(
    course_id: str,
    data: CourseUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        course = await verify_course_owner(db, course_id, user)

        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(400, "No fields to update")

        updated = await update_course(db, course, updates)
        return {"success": True, "course": course_out(updated)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update course failed")
        raise HTTPException(500, "Failed to update course")


@router.delete("/{course_id}")
async def delete_course_endpoint(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    try:
        await verify_course_owner(db, course_id, user)
        await delete_course(db, course_id, config.MONGO_TRANSACTIONS)
        return {"success": True, "message": "Course deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete course failed")
        raise HTTPException(500, "Failed to delete course")
