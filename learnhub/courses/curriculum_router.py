"""
Curriculum API
Modules and lessons of a course, ordering and lesson video access
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.dependencies import (
    can_view_lesson,
    get_auth_context,
    get_config,
    get_db,
    has_purchased,
    is_admin,
    require_instructor,
    verify_course_owner,
    verify_lesson_owner,
    verify_module_owner,
    visible_course,
)
from learnhub.config import Config
from learnhub.courses.database import (
    apply_order,
    delete_module,
    lesson_out,
    list_lessons,
    list_modules,
    module_out,
    recompute_course_totals,
)
from learnhub.courses.models import (
    LessonCreate,
    LessonReorder,
    LessonUpdate,
    ModuleCreate,
    ModuleReorder,
    ModuleUpdate,
)
from learnhub.database import generate_id
from learnhub.storage.validation import video_key_from_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Curriculum"])


async def course_access(db: AsyncIOMotorDatabase, course: dict, user: Optional[dict]) -> bool:
    """Owner, admin or buyer of the course"""
    if not user:
        return False
    if is_admin(user) or course.get("instructor_id") == user["user_id"]:
        return True
    return await has_purchased(db, user["user_id"], course["course_id"])


def lesson_for_viewer(lesson: dict, full_access: bool) -> dict:
    """Video links stay hidden unless the viewer may watch the lesson"""
    out = lesson_out(lesson)
    if not (full_access or lesson.get("is_free_preview")):
        out["videoUrl"] = None
    return out


# ==================== MODULES ====================

@router.get("/modules")
async def list_modules_endpoint(
    courseId: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    if not courseId:
        raise HTTPException(400, "Course ID is required")

    try:
        await visible_course(db, courseId, user)
        modules = await list_modules(db, courseId)
        return {"success": True, "modules": [module_out(m) for m in modules], "total": len(modules)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("List modules failed")
        raise HTTPException(500, "Failed to fetch modules")


@router.post("/modules", status_code=201)
async def create_module(
    data: ModuleCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        await verify_course_owner(db, data.course_id, user)

        order = data.order
        if order is None:
            order = await db.modules.count_documents({"course_id": data.course_id})

        module = {
            "module_id": generate_id("MOD"),
            "course_id": data.course_id,
            "title": data.title,
            "description": data.description,
            "order": order,
            "created_at": datetime.utcnow(),
        }
        await db.modules.insert_one(module)
        return {"success": True, "module": module_out(module)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create module failed")
        raise HTTPException(500, "Failed to create module")


@router.put("/modules/reorder")
async def reorder_modules(
    data: ModuleReorder,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    try:
        await verify_course_owner(db, data.course_id, user)

        applied = await apply_order(
            db, "modules", "course_id", data.course_id, "module_id",
            [item.model_dump() for item in data.module_orders],
            config.MONGO_TRANSACTIONS,
        )
        if not applied:
            raise HTTPException(400, "Module list must contain every module of the course exactly once")

        modules = await list_modules(db, data.course_id)
        return {"success": True, "modules": [module_out(m) for m in modules]}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Reorder modules failed")
        raise HTTPException(500, "Failed to reorder modules")


@router.get("/modules/{module_id}")
async def get_module(
    module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    try:
        module = await db.modules.find_one({"module_id": module_id}, {"_id": 0})
        if not module:
            raise HTTPException(404, "Module not found")

        await visible_course(db, module["course_id"], user)
        return {"success": True, "module": module_out(module)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get module failed")
        raise HTTPException(500, "Failed to fetch module")


@router.put("/modules/{module_id}")
async def update_module(
    module_id: str,
    data: ModuleUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        await verify_module_owner(db, module_id, user)

        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not updates:
            raise HTTPException(400, "No fields to update")

        await db.modules.update_one({"module_id": module_id}, {"$set": updates})
        module = await db.modules.find_one({"module_id": module_id}, {"_id": 0})
        return {"success": True, "module": module_out(module)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update module failed")
        raise HTTPException(500, "Failed to update module")


@router.delete("/modules/{module_id}")
async def delete_module_endpoint(
    module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    try:
        module = await verify_module_owner(db, module_id, user)
        await delete_module(db, module, config.MONGO_TRANSACTIONS)
        return {"success": True, "message": "Module deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete module failed")
        raise HTTPException(500, "Failed to delete module")


# ==================== LESSONS ====================

@router.get("/lessons")
async def list_lessons_endpoint(
    moduleId: Optional[str] = None,
    courseId: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    if not (moduleId or courseId):
        raise HTTPException(400, "Module ID or Course ID is required")

    try:
        if moduleId:
            module = await db.modules.find_one({"module_id": moduleId}, {"course_id": 1})
            if not module:
                raise HTTPException(404, "Module not found")
            course = await visible_course(db, module["course_id"], user)
            lessons = await list_lessons(db, {"module_id": moduleId})
        else:
            course = await visible_course(db, courseId, user)
            lessons = await list_lessons(db, {"course_id": courseId})

        full_access = await course_access(db, course, user)
        return {
            "success": True,
            "lessons": [lesson_for_viewer(lesson, full_access) for lesson in lessons],
            "total": len(lessons),
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("List lessons failed")
        raise HTTPException(500, "Failed to fetch lessons")


@router.post("/lessons", status_code=201)
async def create_lesson(
    data: LessonCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        module = await verify_module_owner(db, data.module_id, user)
        if module["course_id"] != data.course_id:
            raise HTTPException(400, "Module does not belong to this course")

        order = data.order
        if order is None:
            order = await db.lessons.count_documents({"module_id": data.module_id})

        lesson = {
            "lesson_id": generate_id("LESS"),
            "module_id": data.module_id,
            "course_id": data.course_id,
            "title": data.title,
            "description": data.description,
            "video_url": data.video_url,
            "duration": data.duration,
            "order": order,
            "is_free_preview": data.is_free_preview,
            "resources": [r.model_dump() for r in data.resources],
            "created_at": datetime.utcnow(),
        }
        await db.lessons.insert_one(lesson)
        await recompute_course_totals(db, data.course_id)

        return {"success": True, "lesson": lesson_out(lesson)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create lesson failed")
        raise HTTPException(500, "Failed to create lesson")


@router.put("/lessons/reorder")
async def reorder_lessons(
    data: LessonReorder,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_instructor),
):
    try:
        await verify_module_owner(db, data.module_id, user)

        applied = await apply_order(
            db, "lessons", "module_id", data.module_id, "lesson_id",
            [item.model_dump() for item in data.lesson_orders],
            config.MONGO_TRANSACTIONS,
        )
        if not applied:
            raise HTTPException(400, "Lesson list must contain every lesson of the module exactly once")

        lessons = await list_lessons(db, {"module_id": data.module_id})
        return {"success": True, "lessons": [lesson_out(lesson) for lesson in lessons]}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Reorder lessons failed")
        raise HTTPException(500, "Failed to reorder lessons")


@router.get("/lessons/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    try:
        lesson = await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
        if not lesson:
            raise HTTPException(404, "Lesson not found")

        course = await visible_course(db, lesson["course_id"], user)
        full_access = await course_access(db, course, user)
        return {"success": True, "lesson": lesson_for_viewer(lesson, full_access)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get lesson failed")
        raise HTTPException(500, "Failed to fetch lesson")


@router.put("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: str,
    data: LessonUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        lesson = await verify_lesson_owner(db, lesson_id, user)

        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not updates:
            raise HTTPException(400, "No fields to update")

        await db.lessons.update_one({"lesson_id": lesson_id}, {"$set": updates})
        if "duration" in updates:
            await recompute_course_totals(db, lesson["course_id"])

        lesson = await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
        return {"success": True, "lesson": lesson_out(lesson)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update lesson failed")
        raise HTTPException(500, "Failed to update lesson")


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_instructor),
):
    try:
        lesson = await verify_lesson_owner(db, lesson_id, user)

        await db.progress.delete_many({"lesson_id": lesson_id})
        await db.lessons.delete_one({"lesson_id": lesson_id})
        await recompute_course_totals(db, lesson["course_id"])

        return {"success": True, "message": "Lesson deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete lesson failed")
        raise HTTPException(500, "Failed to delete lesson")


@router.get("/lessons/{lesson_id}/video")
async def get_lesson_video(
    lesson_id: str,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: Optional[dict] = Depends(get_auth_context),
):
    """Short-lived signed URL for the lesson video"""
    try:
        lesson = await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})
        if not lesson:
            raise HTTPException(404, "Lesson not found")

        await visible_course(db, lesson["course_id"], user)
        if not await can_view_lesson(db, lesson, user):
            if not user:
                raise HTTPException(401, "Authentication required")
            raise HTTPException(403, "Purchase this course to access this lesson")

        if not lesson.get("video_url"):
            raise HTTPException(404, "Video not available for this lesson")

        storage = request.app.state.storage
        video_key = video_key_from_url(lesson["video_url"])
        signed_url = storage.signed_download_url(video_key)
        return {"success": True, "videoUrl": signed_url, "expiresIn": storage.default_ttl}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Video URL generation failed")
        raise HTTPException(500, "Failed to generate video URL")
