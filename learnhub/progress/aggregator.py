"""
Course progress aggregation
Pure functions over already-fetched lessons (in course order) and progress rows
"""

from typing import List, Optional


def completion_percentage(completed: int, total: int) -> int:
    if total == 0:
        return 0
    return round(completed / total * 100)


def last_watched_lesson_id(progress_rows: List[dict]) -> Optional[str]:
    watched = [row for row in progress_rows if row.get("last_watched_at")]
    if not watched:
        return None
    return max(watched, key=lambda row: row["last_watched_at"])["lesson_id"]


def next_lesson_id(lessons: List[dict], completed_ids: set) -> Optional[str]:
    """First lesson in course order not marked complete"""
    for lesson in lessons:
        if lesson["lesson_id"] not in completed_ids:
            return lesson["lesson_id"]
    return None


def lesson_neighbors(lessons: List[dict], lesson_id: str) -> Optional[dict]:
    """Previous and next lesson ids around lesson_id; None if it is not in the course"""
    ids = [lesson["lesson_id"] for lesson in lessons]
    if lesson_id not in ids:
        return None

    index = ids.index(lesson_id)
    return {
        "previousLessonId": ids[index - 1] if index > 0 else None,
        "nextLessonId": ids[index + 1] if index < len(ids) - 1 else None,
        "position": index + 1,
        "totalLessons": len(ids),
    }


def course_progress(course_id: str, lessons: List[dict], progress_rows: List[dict]) -> dict:
    """
    Summarize a user's progress through one course.

    Args:
        lessons: every lesson of the course, in course order
        progress_rows: the user's progress rows for the course

    watchedDuration is the plain sum of watched_seconds, so re-watching
    can push it past totalDuration.
    """
    by_lesson = {row["lesson_id"]: row for row in progress_rows}
    completed_ids = {row["lesson_id"] for row in progress_rows if row.get("completed")}
    completed_count = sum(1 for row in progress_rows if row.get("completed"))

    return {
        "courseId": course_id,
        "totalLessons": len(lessons),
        "completedLessons": completed_count,
        "completionPercentage": completion_percentage(completed_count, len(lessons)),
        "totalDuration": sum(lesson.get("duration", 0) or 0 for lesson in lessons),
        "watchedDuration": sum(row.get("watched_seconds", 0) or 0 for row in progress_rows),
        "lastWatchedLessonId": last_watched_lesson_id(progress_rows),
        "nextLessonId": next_lesson_id(lessons, completed_ids),
        "lessonProgress": [
            {
                "lessonId": lesson["lesson_id"],
                "moduleId": lesson.get("module_id"),
                "title": lesson.get("title"),
                "duration": lesson.get("duration", 0),
                "order": lesson.get("order", 0),
                "completed": bool(by_lesson.get(lesson["lesson_id"], {}).get("completed", False)),
                "watchedSeconds": by_lesson.get(lesson["lesson_id"], {}).get("watched_seconds", 0),
                "lastWatchedAt": by_lesson.get(lesson["lesson_id"], {}).get("last_watched_at"),
            }
            for lesson in lessons
        ],
    }
