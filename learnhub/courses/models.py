from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from learnhub.schemas import CamelModel, check_http_url

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# ==================== COURSE MODELS ====================

class CourseCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    short_description: str = Field(..., min_length=10, max_length=200)
    price: int = Field(..., ge=0)  # minor currency units
    currency: Optional[str] = None
    thumbnail: Optional[str] = None
    category: str = Field(..., min_length=1)
    level: CourseLevel
    status: CourseStatus = CourseStatus.DRAFT

    @field_validator("title")
    @classmethod
    def title_has_slug(cls, v: str) -> str:
        if not any(ch.isascii() and ch.isalnum() for ch in v):
            raise ValueError("Title must contain at least one letter or digit")
        return v.strip()

    @field_validator("thumbnail")
    @classmethod
    def thumbnail_url(cls, v):
        return check_http_url(v, "Thumbnail must be a valid URL")


class CourseUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    short_description: Optional[str] = Field(None, min_length=10, max_length=200)
    price: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = None
    thumbnail: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    level: Optional[CourseLevel] = None
    status: Optional[CourseStatus] = None

    @field_validator("title")
    @classmethod
    def title_has_slug(cls, v):
        if v is not None and not any(ch.isascii() and ch.isalnum() for ch in v):
            raise ValueError("Title must contain at least one letter or digit")
        return v.strip() if v else v

    @field_validator("thumbnail")
    @classmethod
    def thumbnail_url(cls, v):
        return check_http_url(v, "Thumbnail must be a valid URL")


# ==================== MODULE MODELS ====================

class ModuleCreate(CamelModel):
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    order: Optional[int] = Field(None, ge=0)


class ModuleUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)


class ModuleOrder(CamelModel):
    module_id: str = Field(..., min_length=1)
    order: int = Field(..., ge=0)


class ModuleReorder(CamelModel):
    course_id: str = Field(..., min_length=1)
    module_orders: List[ModuleOrder] = Field(..., min_length=1)


# ==================== LESSON MODELS ====================

class LessonResource(CamelModel):
    name: str = Field(..., min_length=1)
    url: str
    type: str

    @field_validator("url")
    @classmethod
    def resource_url(cls, v):
        return check_http_url(v, "Resource URL must be a valid URL")


class LessonCreate(CamelModel):
    module_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    video_url: Optional[str] = None
    duration: int = Field(0, ge=0)  # seconds
    order: Optional[int] = Field(None, ge=0)
    is_free_preview: bool = False
    resources: List[LessonResource] = []


class LessonUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    order: Optional[int] = Field(None, ge=0)
    is_free_preview: Optional[bool] = None
    resources: Optional[List[LessonResource]] = None


class LessonOrder(CamelModel):
    lesson_id: str = Field(..., min_length=1)
    order: int = Field(..., ge=0)


class LessonReorder(CamelModel):
    module_id: str = Field(..., min_length=1)
    lesson_orders: List[LessonOrder] = Field(..., min_length=1)


# ==================== CATEGORY MODELS ====================

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100)
    description: str = ""
    icon: Optional[str] = None
    order: int = Field(0, ge=0)

    @field_validator("slug")
    @classmethod
    def slug_format(cls, v: str) -> str:
        if not all(ch.isascii() and (ch.isalnum() or ch == "-") for ch in v) or v != v.lower():
            raise ValueError("Slug may only contain lowercase letters, digits and hyphens")
        return v


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    order: Optional[int] = Field(None, ge=0)

    @field_validator("slug")
    @classmethod
    def slug_format(cls, v):
        if v is not None and (not all(ch.isascii() and (ch.isalnum() or ch == "-") for ch in v) or v != v.lower()):
            raise ValueError("Slug may only contain lowercase letters, digits and hyphens")
        return v


# ==================== REVIEW MODELS ====================

class ReviewCreate(CamelModel):
    course_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=10, max_length=2000)


class ReviewUpdate(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=10, max_length=2000)
