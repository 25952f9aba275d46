"""
Progress API
Per-lesson watch progress and per-course aggregates
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import Field
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.auth.dependencies import can_view_lesson, get_db, require_auth
from learnhub.courses.database import course_lessons_in_order
from learnhub.database import generate_id
from learnhub.progress.aggregator import course_progress, lesson_neighbors
from learnhub.schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["Progress"])


class ProgressUpdate(CamelModel):
    course_id: str = Field(..., min_length=1)
    lesson_id: str = Field(..., min_length=1)
    watched_seconds: int = Field(..., ge=0)
    completed: Optional[bool] = None


def progress_out(row: Optional[dict]) -> Optional[dict]:
    if not row:
        return None
    return {
        "progressId": row["progress_id"],
        "userId": row["user_id"],
        "courseId": row["course_id"],
        "lessonId": row["lesson_id"],
        "completed": row.get("completed", False),
        "watchedSeconds": row.get("watched_seconds", 0),
        "lastWatchedAt": row.get("last_watched_at"),
    }


async def upsert_progress(db: AsyncIOMotorDatabase, user_id: str, data: ProgressUpdate) -> dict:
    """
    One row per (user, lesson). An omitted `completed` keeps the stored flag
    (False for a new row).
    """
    fields = {
        "course_id": data.course_id,
        "watched_seconds": data.watched_seconds,
        "last_watched_at": datetime.utcnow(),
    }
    on_insert = {"progress_id": generate_id("PROG")}

    if data.completed is None:
        on_insert["completed"] = False
    else:
        fields["completed"] = data.completed

    # Two first writes can race on the unique index; the loser updates instead
    for attempt in range(2):
        try:
            return await db.progress.find_one_and_update(
                {"user_id": user_id, "lesson_id": data.lesson_id},
                {"$set": fields, "$setOnInsert": on_insert},
                upsert=True,
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            if attempt == 1:
                raise


@router.get("")
async def get_progress(
    courseId: Optional[str] = None,
    lessonId: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    if not courseId:
        raise HTTPException(400, "courseId parameter is required")

    try:
        if lessonId:
            row = await db.progress.find_one({"user_id": user["user_id"], "lesson_id": lessonId}, {"_id": 0})
            return {"success": True, "progress": progress_out(row)}

        rows = await db.progress.find({"user_id": user["user_id"], "course_id": courseId}, {"_id": 0}).to_list(length=None)
        return {
            "success": True,
            "progress": [progress_out(row) for row in rows],
            "summary": {
                "completedLessons": sum(1 for row in rows if row.get("completed")),
                "totalWatchTime": sum(row.get("watched_seconds", 0) for row in rows),
                "totalLessonsTracked": len(rows),
            },
        }
    except Exception:
        logger.exception("Get progress failed")
        raise HTTPException(500, "Failed to fetch progress")


@router.post("")
async def update_progress(
    data: ProgressUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        lesson = await db.lessons.find_one({"lesson_id": data.lesson_id}, {"_id": 0})
        if not lesson:
            raise HTTPException(404, "Lesson not found")
        if lesson["course_id"] != data.course_id:
            raise HTTPException(400, "Lesson does not belong to this course")
        if not await can_view_lesson(db, lesson, user):
            raise HTTPException(403, "Purchase this course to track progress")

        row = await upsert_progress(db, user["user_id"], data)
        return {"success": True, "progress": progress_out(row)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update progress failed")
        raise HTTPException(500, "Failed to update progress")


@router.get("/{course_id}")
async def get_course_progress(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        lessons = await course_lessons_in_order(db, course_id)
        rows = await db.progress.find({"user_id": user["user_id"], "course_id": course_id}, {"_id": 0}).to_list(length=None)
        return {"success": True, "courseProgress": course_progress(course_id, lessons, rows)}
    except Exception:
        logger.exception("Get course progress failed")
        raise HTTPException(500, "Failed to fetch course progress")


@router.get("/{course_id}/lessons/{lesson_id}/navigation")
async def get_lesson_navigation(
    course_id: str,
    lesson_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    """Previous / next lesson in course order"""
    try:
        lessons = await course_lessons_in_order(db, course_id)
    except Exception:
        logger.exception("Lesson navigation failed")
        raise HTTPException(500, "Failed to fetch lesson navigation")

    neighbors = lesson_neighbors(lessons, lesson_id)
    if neighbors is None:
        raise HTTPException(404, "Lesson not found in this course")
    return {"success": True, "navigation": neighbors}
