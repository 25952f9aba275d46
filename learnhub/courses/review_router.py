import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.auth.dependencies import get_db, has_purchased, require_auth, require_owner_or_admin
from learnhub.courses.database import review_out
from learnhub.courses.models import ReviewCreate, ReviewUpdate
from learnhub.database import generate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


async def find_review(db: AsyncIOMotorDatabase, review_id: str) -> dict:
    review = await db.reviews.find_one({"review_id": review_id}, {"_id": 0})
    if not review:
        raise HTTPException(404, "Review not found")
    return review


@router.get("")
async def list_reviews(courseId: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    if not courseId:
        raise HTTPException(400, "courseId parameter is required")

    try:
        reviews = await db.reviews.find({"course_id": courseId}, {"_id": 0}).sort("created_at", -1).to_list(length=None)
        average = sum(r["rating"] for r in reviews) / len(reviews) if reviews else 0

        return {
            "success": True,
            "reviews": [review_out(r) for r in reviews],
            "total": len(reviews),
            "averageRating": round(average, 1),
        }
    except Exception:
        logger.exception("List reviews failed")
        raise HTTPException(500, "Failed to fetch reviews")


@router.post("", status_code=201)
async def create_review(
    data: ReviewCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        if not await has_purchased(db, user["user_id"], data.course_id):
            raise HTTPException(403, "You must purchase this course before leaving a review")

        now = datetime.utcnow()
        review = {
            "review_id": generate_id("REV"),
            "user_id": user["user_id"],
            "course_id": data.course_id,
            "rating": data.rating,
            "comment": data.comment,
            "created_at": now,
            "updated_at": now,
        }
        await db.reviews.insert_one(review)
        return {"success": True, "review": review_out(review)}
    except HTTPException:
        raise
    except DuplicateKeyError:
        raise HTTPException(409, "You have already reviewed this course")
    except Exception:
        logger.exception("Create review failed")
        raise HTTPException(500, "Failed to create review")


@router.get("/{review_id}")
async def get_review(review_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        review = await find_review(db, review_id)
        return {"success": True, "review": review_out(review)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get review failed")
        raise HTTPException(500, "Failed to fetch review")


@router.put("/{review_id}")
async def update_review(
    review_id: str,
    data: ReviewUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        review = await find_review(db, review_id)

        # Only the author edits; admins may delete but not rewrite
        if review["user_id"] != user["user_id"]:
            raise HTTPException(403, "You can only edit your own reviews")

        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not updates:
            raise HTTPException(400, "No fields to update")

        updates["updated_at"] = datetime.utcnow()
        await db.reviews.update_one({"review_id": review_id}, {"$set": updates})

        review.update(updates)
        return {"success": True, "review": review_out(review)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Update review failed")
        raise HTTPException(500, "Failed to update review")


@router.delete("/{review_id}")
async def delete_review(
    review_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        review = await find_review(db, review_id)
        require_owner_or_admin(review["user_id"], user)

        await db.reviews.delete_one({"review_id": review_id})
        return {"success": True, "message": "Review deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete review failed")
        raise HTTPException(500, "Failed to delete review")
