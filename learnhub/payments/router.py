"""
Payments API
Checkout creation, gateway webhook, purchase verification and history
"""

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import Field
from pymongo.errors import DuplicateKeyError

from learnhub.auth.dependencies import get_config, get_db, has_purchased, require_auth
from learnhub.config import Config
from learnhub.courses.models import CourseStatus
from learnhub.database import generate_id
from learnhub.payments.gateway import CHECKOUT_COMPLETED_EVENT, PAYMENT_FAILED_EVENT
from learnhub.schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


class CheckoutRequest(CamelModel):
    course_id: str = Field(..., min_length=1)


def purchase_out(purchase: dict) -> dict:
    return {
        "purchaseId": purchase["purchase_id"],
        "userId": purchase["user_id"],
        "courseId": purchase["course_id"],
        "gatewayPaymentId": purchase.get("gateway_payment_id"),
        "gatewaySessionId": purchase.get("gateway_session_id"),
        "amount": purchase.get("amount", 0),
        "currency": purchase.get("currency"),
        "status": purchase.get("status"),
        "purchasedAt": purchase.get("purchased_at"),
    }


def course_summary(course: Optional[dict]) -> Optional[dict]:
    if not course:
        return None
    return {
        "courseId": course["course_id"],
        "title": course["title"],
        "slug": course["slug"],
        "thumbnail": course.get("thumbnail"),
        "category": course.get("category"),
    }


# ==================== CHECKOUT ====================

@router.post("/create-checkout")
async def create_checkout(
    data: CheckoutRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_auth),
):
    try:
        course = await db.courses.find_one({"course_id": data.course_id}, {"_id": 0})
        if not course:
            raise HTTPException(404, "Course not found")

        if course.get("price", 0) == 0:
            raise HTTPException(501, "Free course enrollment not yet implemented")

        if course["status"] != CourseStatus.PUBLISHED.value:
            raise HTTPException(400, "Course is not available for purchase")

        if await has_purchased(db, user["user_id"], data.course_id):
            raise HTTPException(409, "You already own this course")

        checkout = await request.app.state.payments.create_checkout(
            course, user, f"{config.APP_URL}/checkout/success"
        )
        logger.info(f"Checkout {checkout['id']} created for {user['user_id']} / {data.course_id}")
        return {"success": True, "url": checkout["url"], "sessionId": checkout["id"]}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Create checkout failed")
        raise HTTPException(500, "Failed to create checkout session")


# ==================== WEBHOOK ====================

def event_entity(payload: dict, name: str) -> dict:
    """payload[name]["entity"], or {} when the event does not carry one"""
    wrapper = payload.get(name)
    entity = wrapper.get("entity") if isinstance(wrapper, dict) else None
    return entity if isinstance(entity, dict) else {}


def link_notes(link: dict) -> dict:
    # Razorpay sends an empty list when a link has no notes
    notes = link.get("notes")
    return notes if isinstance(notes, dict) else {}


async def record_purchase(db: AsyncIOMotorDatabase, link: dict, payment: dict) -> bool:
    """
    Insert the purchase for a paid checkout.
    Returns False when this gateway session was already recorded.
    """
    session_id = link["id"]

    if await db.purchases.find_one({"gateway_session_id": session_id}, {"_id": 1}):
        return False

    notes = link_notes(link)
    purchase = {
        "purchase_id": generate_id("PUR"),
        "user_id": notes["user_id"],
        "course_id": notes["course_id"],
        "gateway_payment_id": payment.get("id"),
        "gateway_session_id": session_id,
        "amount": link.get("amount_paid") or link.get("amount") or payment.get("amount", 0),
        "currency": link.get("currency") or payment.get("currency"),
        "status": "completed",
        "purchased_at": datetime.utcnow(),
    }

    try:
        await db.purchases.insert_one(purchase)
    except DuplicateKeyError:
        # Concurrent redelivery won the insert
        return False
    return True


@router.post("/webhook")
async def payment_webhook(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Gateway webhook - NO AUTH (signature verification)
    Redeliveries of an already recorded checkout are acknowledged without a second insert.
    """
    signature = request.headers.get("X-Razorpay-Signature")
    if not signature:
        raise HTTPException(400, "Missing signature")

    try:
        body = (await request.body()).decode()
    except UnicodeDecodeError:
        raise HTTPException(400, "Invalid payload")

    if not request.app.state.payments.verify_webhook(body, signature):
        logger.warning("Webhook signature verification failed")
        raise HTTPException(400, "Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(400, "Invalid payload")

    if not isinstance(event, dict):
        raise HTTPException(400, "Invalid payload")

    event_type = event.get("event")
    payload = event.get("payload")
    if not isinstance(payload, dict):
        payload = {}
    logger.info(f"Webhook event: {event_type}")

    if event_type == CHECKOUT_COMPLETED_EVENT:
        link = event_entity(payload, "payment_link")
        payment = event_entity(payload, "payment")
        notes = link_notes(link)

        if not link.get("id") or not notes.get("course_id") or not notes.get("user_id"):
            raise HTTPException(400, "Missing metadata")

        try:
            created = await record_purchase(db, link, payment)
        except Exception:
            logger.exception(f"Failed to record purchase for {link['id']}")
            raise HTTPException(500, "Failed to process webhook")

        if not created:
            logger.info(f"Checkout {link['id']} already processed, skipping")
            return {"received": True, "duplicate": True}

        logger.info(f"✅ Purchase recorded for checkout {link['id']}")

    elif event_type == PAYMENT_FAILED_EVENT:
        payment = event_entity(payload, "payment")
        logger.info(f"Payment failed: {payment.get('id')} ({payment.get('error_description')})")

    return {"received": True}


# ==================== VERIFICATION ====================

@router.get("/verify-session")
async def verify_session(
    session_id: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    if not session_id:
        raise HTTPException(400, "session_id parameter is required")

    try:
        purchase = await db.purchases.find_one(
            {"gateway_session_id": session_id, "user_id": user["user_id"]},
            {"_id": 0},
        )
    except Exception:
        logger.exception("Verify session failed")
        raise HTTPException(500, "Failed to verify purchase")

    if not purchase:
        raise HTTPException(404, "Purchase not found")
    return {"success": True, "purchase": purchase_out(purchase)}


@router.get("/verify/{course_id}")
async def verify_access(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        return {"success": True, "hasAccess": await has_purchased(db, user["user_id"], course_id)}
    except Exception:
        logger.exception("Verify access failed")
        raise HTTPException(500, "Failed to verify access")


@router.get("/history")
async def purchase_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    try:
        query = {"user_id": user["user_id"]}

        if category:
            course_ids = await db.courses.distinct("course_id", {"category": category})
            query["course_id"] = {"$in": course_ids}

        total = await db.purchases.count_documents(query)
        cursor = (
            db.purchases.find(query, {"_id": 0})
            .sort("purchased_at", -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        purchases = await cursor.to_list(length=limit)

        course_ids = list({p["course_id"] for p in purchases})
        courses = await db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0}).to_list(length=None)
        by_id = {c["course_id"]: c for c in courses}

        return {
            "success": True,
            "purchases": [
                {**purchase_out(p), "course": course_summary(by_id.get(p["course_id"]))}
                for p in purchases
            ],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": -(-total // limit),
            },
        }
    except Exception:
        logger.exception("Purchase history failed")
        raise HTTPException(500, "Failed to fetch purchase history")
