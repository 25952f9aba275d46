"""
Current-user API
Profile, password, avatar and owned courses
"""

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import Field, field_validator

from learnhub.auth.dependencies import get_config, get_db, require_auth
from learnhub.auth.models import user_out
from learnhub.auth.provider import InvalidCredentialsError
from learnhub.config import Config
from learnhub.payments.router import course_summary, purchase_out
from learnhub.schemas import CamelModel, check_http_url
from learnhub.storage.router import file_url, save_upload
from learnhub.storage.validation import AVATARS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["User"])


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_length(cls, v):
        if v is not None and len(v.strip()) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v.strip() if v else v

    @field_validator("avatar")
    @classmethod
    def avatar_url(cls, v):
        return check_http_url(v, "Invalid avatar URL")


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


@router.get("/profile")
async def get_profile(user: dict = Depends(require_auth)):
    return {"success": True, "user": user_out(user)}


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not updates:
        raise HTTPException(400, "No fields to update")

    updates["updated_at"] = datetime.utcnow()
    try:
        await db.users.update_one({"user_id": user["user_id"]}, {"$set": updates})
    except Exception:
        logger.exception("Profile update failed")
        raise HTTPException(500, "Failed to update profile")

    user.update(updates)
    return {"success": True, "user": user_out(user)}


@router.put("/password")
async def change_password(
    data: PasswordChange,
    request: Request,
    user: dict = Depends(require_auth),
):
    try:
        await request.app.state.auth_provider.change_password(
            user["user_id"], user["email"], data.current_password, data.new_password
        )
        return {"success": True, "message": "Password updated successfully"}
    except InvalidCredentialsError:
        raise HTTPException(401, "Current password is incorrect")
    except Exception:
        logger.exception("Password change failed")
        raise HTTPException(500, "Failed to update password")


@router.post("/avatar")
async def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    config: Config = Depends(get_config),
    user: dict = Depends(require_auth),
):
    key = f"{AVATARS}/{user['user_id']}-{int(time.time() * 1000)}"
    result = await save_upload(request.app.state.storage, AVATARS, file, key=key)

    avatar_url = file_url(config, result["key"])
    try:
        await db.users.update_one(
            {"user_id": user["user_id"]},
            {"$set": {"avatar": avatar_url, "updated_at": datetime.utcnow()}},
        )
    except Exception:
        logger.exception("Avatar profile update failed")
        raise HTTPException(500, "Failed to update avatar")
    return {"success": True, "avatarUrl": avatar_url}


@router.get("/purchases")
async def list_my_purchases(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_auth),
):
    """Completed purchases with their course, newest first"""
    try:
        purchases = await db.purchases.find(
            {"user_id": user["user_id"], "status": "completed"}, {"_id": 0}
        ).sort("purchased_at", -1).to_list(length=None)

        course_ids = [p["course_id"] for p in purchases]
        courses = await db.courses.find({"course_id": {"$in": course_ids}}, {"_id": 0}).to_list(length=None)
        by_id = {c["course_id"]: c for c in courses}

        return {
            "success": True,
            "purchases": [
                {**purchase_out(p), "course": course_summary(by_id.get(p["course_id"]))}
                for p in purchases
            ],
            "total": len(purchases),
        }
    except Exception:
        logger.exception("List purchases failed")
        raise HTTPException(500, "Failed to fetch purchases")
