"""
Upload validation: allowed content types, size limits and key building
"""

import re
import time
import uuid
from typing import Optional

VIDEOS = "videos"
IMAGES = "images"
RESOURCES = "resources"
THUMBNAILS = "thumbnails"
AVATARS = "avatars"

FOLDERS = (VIDEOS, IMAGES, RESOURCES, THUMBNAILS, AVATARS)

MB = 1024 * 1024

ALLOWED_VIDEO_TYPES = ("video/mp4", "video/webm", "video/quicktime", "video/x-msvideo")
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif")
ALLOWED_RESOURCE_TYPES = (
    "application/pdf",
    "application/zip",
    "application/x-zip-compressed",
    "text/plain",
    "application/json",
)

ALLOWED_TYPES = {
    VIDEOS: ALLOWED_VIDEO_TYPES,
    IMAGES: ALLOWED_IMAGE_TYPES,
    THUMBNAILS: ALLOWED_IMAGE_TYPES,
    AVATARS: ALLOWED_IMAGE_TYPES,
    RESOURCES: ALLOWED_RESOURCE_TYPES,
}

MAX_FILE_SIZES = {
    VIDEOS: 500 * MB,
    IMAGES: 10 * MB,
    RESOURCES: 50 * MB,
    THUMBNAILS: 5 * MB,
    AVATARS: 5 * MB,
}

LABELS = {
    VIDEOS: "Video",
    IMAGES: "Image",
    RESOURCES: "Resource",
    THUMBNAILS: "Thumbnail",
    AVATARS: "Avatar",
}


def validate_content_type(folder: str, content_type: Optional[str]) -> Optional[str]:
    """Error message, or None when the type is allowed for the folder"""
    allowed = ALLOWED_TYPES[folder]
    if content_type not in allowed:
        return f"Invalid {LABELS[folder].lower()} type. Allowed types: {', '.join(allowed)}"
    return None


def validate_file_size(folder: str, size: int) -> Optional[str]:
    max_size = MAX_FILE_SIZES[folder]
    if size > max_size:
        return f"{LABELS[folder]} file size exceeds maximum allowed size of {max_size / MB:.2f} MB"
    return None


def sanitize_filename(filename: str) -> str:
    """Keep the basename, replacing anything outside [A-Za-z0-9._-]"""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "file"


def build_key(folder: str, filename: str) -> str:
    """folder/<timestamp>-<random>-<sanitized name>"""
    return f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{sanitize_filename(filename)}"


def video_key_from_url(video_url: str) -> str:
    """
    Resolve a lesson's stored video reference to an object key.
    Full URLs are cut down to their videos/... path, bare names go under videos/.
    """
    if video_url.startswith("http"):
        parts = video_url.split("?", 1)[0].split("/")
        if VIDEOS in parts:
            return "/".join(parts[parts.index(VIDEOS):])
        return video_url
    if not video_url.startswith(f"{VIDEOS}/"):
        return f"{VIDEOS}/{video_url}"
    return video_url
