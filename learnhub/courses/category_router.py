import logging

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.auth.dependencies import get_db, require_admin
from learnhub.courses.database import category_out
from learnhub.courses.models import CategoryCreate, CategoryUpdate
from learnhub.database import generate_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])


async def find_category(db: AsyncIOMotorDatabase, id_or_slug: str) -> dict:
    category = await db.categories.find_one(
        {"$or": [{"category_id": id_or_slug}, {"slug": id_or_slug}]},
        {"_id": 0},
    )
    if not category:
        raise HTTPException(404, "Category not found")
    return category


@router.get("")
async def list_categories(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        categories = await db.categories.find({}, {"_id": 0}).sort([("order", 1), ("name", 1)]).to_list(length=None)
        return {"success": True, "categories": [category_out(c) for c in categories], "total": len(categories)}
    except Exception:
        logger.exception("List categories failed")
        raise HTTPException(500, "Failed to fetch categories")


@router.post("", status_code=201)
async def create_category(
    data: CategoryCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_admin),
):
    category = {"category_id": generate_id("CAT"), **data.model_dump()}
    try:
        await db.categories.insert_one(category)
    except DuplicateKeyError:
        raise HTTPException(409, "A category with this slug already exists")
    except Exception:
        logger.exception("Create category failed")
        raise HTTPException(500, "Failed to create category")

    return {"success": True, "category": category_out(category)}


@router.get("/{category_id}")
async def get_category(category_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Get category by ID or slug"""
    try:
        category = await find_category(db, category_id)
        return {"success": True, "category": category_out(category)}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Get category failed")
        raise HTTPException(500, "Failed to fetch category")


@router.put("/{category_id}")
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_admin),
):
    try:
        category = await find_category(db, category_id)

        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not updates:
            raise HTTPException(400, "No fields to update")

        await db.categories.update_one({"category_id": category["category_id"]}, {"$set": updates})

        category.update(updates)
        return {"success": True, "category": category_out(category)}
    except HTTPException:
        raise
    except DuplicateKeyError:
        raise HTTPException(409, "A category with this slug already exists")
    except Exception:
        logger.exception("Update category failed")
        raise HTTPException(500, "Failed to update category")


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_admin),
):
    try:
        category = await find_category(db, category_id)
        await db.categories.delete_one({"category_id": category["category_id"]})
        return {"success": True, "message": "Category deleted successfully"}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Delete category failed")
        raise HTTPException(500, "Failed to delete category")
