"""
Admin API Router
Platform statistics and moderation of users, courses and purchases
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import Field, field_validator

from learnhub.auth.dependencies import ADMIN, INSTRUCTOR, STUDENT, get_db, require_admin
from learnhub.auth.models import user_out
from learnhub.courses.database import course_out, text_search_filter
from learnhub.courses.models import CourseStatus
from learnhub.payments.router import course_summary, purchase_out
from learnhub.schemas import CamelModel, check_http_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

PURCHASE_STATUSES = ("pending", "completed", "refunded")


class AdminUserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2)
    role: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("role")
    @classmethod
    def known_role(cls, v):
        if v is not None and v not in (STUDENT, INSTRUCTOR, ADMIN):
            raise ValueError("Role must be one of: student, instructor, admin")
        return v

    @field_validator("avatar")
    @classmethod
    def avatar_url(cls, v):
        return check_http_url(v, "Invalid avatar URL")


# ==================== STATISTICS ====================

@router.get("/stats")
async def get_stats(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    """Platform-wide totals. Revenue is in minor currency units."""
    try:
        since = datetime.utcnow() - timedelta(days=30)

        completed_purchases = 0
        total_revenue = 0
        recent_purchases = 0
        recent_revenue = 0
        async for purchase in db.purchases.find({"status": "completed"}, {"amount": 1, "purchased_at": 1}):
            amount = purchase.get("amount", 0) or 0
            completed_purchases += 1
            total_revenue += amount
            if purchase.get("purchased_at") and purchase["purchased_at"] >= since:
                recent_purchases += 1
                recent_revenue += amount

        return {
            "success": True,
            "stats": {
                "totalUsers": await db.users.count_documents({}),
                "totalCourses": await db.courses.count_documents({}),
                "publishedCourses": await db.courses.count_documents({"status": CourseStatus.PUBLISHED.value}),
                "totalPurchases": await db.purchases.count_documents({}),
                "completedPurchases": completed_purchases,
                "totalRevenue": total_revenue,
                "totalCategories": await db.categories.count_documents({}),
                "recentPurchases": recent_purchases,
                "recentRevenue": recent_revenue,
            },
        }
    except Exception:
        logger.exception("Admin stats failed")
        raise HTTPException(500, "Failed to fetch admin statistics")


# ==================== USERS ====================

@router.get("/users")
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    query = {}
    if role:
        query["role"] = role
    if search and search.strip():
        query.update(text_search_filter(search, ["name", "email"]))

    try:
        total = await db.users.count_documents(query)
        users = await db.users.find(query, {"_id": 0}).sort("created_at", -1).skip(offset).limit(limit).to_list(length=limit)
        return {"success": True, "users": [user_out(u) for u in users], "total": total}
    except Exception:
        logger.exception("Admin list users failed")
        raise HTTPException(500, "Failed to fetch users")


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    try:
        user = await db.users.find_one({"user_id": user_id}, {"_id": 0})
        if not user:
            raise HTTPException(404, "User not found")

        purchases = await db.purchases.count_documents({"user_id": user_id, "status": "completed"})
        courses = await db.courses.count_documents({"instructor_id": user_id})
        return {
            "success": True,
            "user": user_out(user),
            "stats": {"purchases": purchases, "courses": courses},
        }
    except HTTPException:
        raise
    except Exception:
        logger.exception("Admin get user failed")
        raise HTTPException(500, "Failed to fetch user")


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not updates:
        raise HTTPException(400, "No fields to update")

    try:
        updates["updated_at"] = datetime.utcnow()
        result = await db.users.update_one({"user_id": user_id}, {"$set": updates})
        if result.matched_count == 0:
            raise HTTPException(404, "User not found")

        if "role" in updates:
            logger.info(f"Admin {admin['user_id']} set role of {user_id} to {updates['role']}")

        user = await db.users.find_one({"user_id": user_id}, {"_id": 0})
        return {"success": True, "user": user_out(user)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Admin update user failed")
        raise HTTPException(500, "Failed to update user")


# ==================== COURSES / PURCHASES ====================

@router.get("/courses")
async def list_all_courses(
    status: Optional[CourseStatus] = None,
    search: Optional[str] = None,
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    """Every course regardless of status or instructor"""
    query = {}
    if status:
        query["status"] = status.value
    if search and search.strip():
        query.update(text_search_filter(search, ["title", "description"]))

    try:
        total = await db.courses.count_documents(query)
        courses = await db.courses.find(query, {"_id": 0}).sort("created_at", -1).skip(offset).limit(limit).to_list(length=limit)
        return {"success": True, "courses": [course_out(c) for c in courses], "total": total}
    except Exception:
        logger.exception("Admin list courses failed")
        raise HTTPException(500, "Failed to fetch courses")


@router.get("/purchases")
async def list_all_purchases(
    status: Optional[str] = None,
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: dict = Depends(require_admin),
):
    query = {}
    if status:
        if status not in PURCHASE_STATUSES:
            raise HTTPException(400, f"Status must be one of: {', '.join(PURCHASE_STATUSES)}")
        query["status"] = status

    try:
        total = await db.purchases.count_documents(query)
        purchases = await db.purchases.find(query, {"_id": 0}).sort("purchased_at", -1).skip(offset).limit(limit).to_list(length=limit)

        course_ids = list({p["course_id"] for p in purchases})
        courses = await db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0}).to_list(length=None)
        by_id = {c["course_id"]: c for c in courses}

        return {
            "success": True,
            "purchases": [
                {**purchase_out(p), "course": course_summary(by_id.get(p["course_id"]))}
                for p in purchases
            ],
            "total": total,
        }
    except Exception:
        logger.exception("Admin list purchases failed")
        raise HTTPException(500, "Failed to fetch purchases")
