from datetime import datetime, timedelta

from conftest import act_as, create_course, create_lesson, create_module, grant_purchase, run
from learnhub.progress.aggregator import course_progress, lesson_neighbors


def lessons(*ids, duration=100):
    return [{"lesson_id": lesson_id, "module_id": "MOD_1", "duration": duration, "order": i} for i, lesson_id in enumerate(ids)]


def row(lesson_id, completed=False, watched=0, minutes_ago=0):
    return {
        "lesson_id": lesson_id,
        "completed": completed,
        "watched_seconds": watched,
        "last_watched_at": datetime(2026, 1, 1, 12, 0) - timedelta(minutes=minutes_ago),
    }


# ==================== AGGREGATOR ====================

def test_completion_percentage_quarter():
    summary = course_progress("COURSE_1", lessons("L1", "L2", "L3", "L4"), [
        row("L1", completed=True),
        row("L2", completed=False),
    ])
    assert summary["totalLessons"] == 4
    assert summary["completedLessons"] == 1
    assert summary["completionPercentage"] == 25


def test_completion_percentage_empty_course():
    summary = course_progress("COURSE_1", [], [])
    assert summary["completionPercentage"] == 0
    assert summary["lastWatchedLessonId"] is None
    assert summary["nextLessonId"] is None


def test_last_watched_and_next_lesson():
    summary = course_progress("COURSE_1", lessons("L1", "L2", "L3"), [
        row("L1", completed=True, minutes_ago=30),
        row("L3", completed=False, minutes_ago=5),
    ])
    assert summary["lastWatchedLessonId"] == "L3"
    assert summary["nextLessonId"] == "L2"


def test_watched_duration_is_not_capped():
    summary = course_progress("COURSE_1", lessons("L1", duration=100), [row("L1", watched=250)])
    assert summary["totalDuration"] == 100
    assert summary["watchedDuration"] == 250


def test_lesson_neighbors():
    ordered = lessons("L1", "L2", "L3")
    assert lesson_neighbors(ordered, "L1")["previousLessonId"] is None
    assert lesson_neighbors(ordered, "L2") == {
        "previousLessonId": "L1",
        "nextLessonId": "L3",
        "position": 2,
        "totalLessons": 3,
    }
    assert lesson_neighbors(ordered, "L3")["nextLessonId"] is None
    assert lesson_neighbors(ordered, "missing") is None


# ==================== API ====================

def setup_course(client, make_user, db):
    instructor = make_user("instructor")
    student = make_user("student")
    course = create_course(client, instructor)
    first_module = create_module(client, instructor, course["courseId"], "First")
    second_module = create_module(client, instructor, course["courseId"], "Second")
    l1 = create_lesson(client, instructor, first_module, "L1", duration=120)
    l2 = create_lesson(client, instructor, first_module, "L2", duration=120)
    l3 = create_lesson(client, instructor, second_module, "L3", duration=120)
    l4 = create_lesson(client, instructor, second_module, "L4", duration=120)
    grant_purchase(db, student, course["courseId"])
    return course, student, [l1, l2, l3, l4]


def test_progress_upsert_is_idempotent(client, make_user, db):
    course, student, course_lessons = setup_course(client, make_user, db)
    lesson_id = course_lessons[0]["lessonId"]
    payload = {"courseId": course["courseId"], "lessonId": lesson_id, "watchedSeconds": 120, "completed": True}

    act_as(client, student)
    first = client.post("/progress", json=payload)
    second = client.post("/progress", json=payload)
    assert first.status_code == second.status_code == 200
    assert first.json()["progress"]["progressId"] == second.json()["progress"]["progressId"]

    rows = run(db.progress.find({"user_id": student["user_id"], "lesson_id": lesson_id}).to_list(length=None))
    assert len(rows) == 1
    assert rows[0]["watched_seconds"] == 120
    assert rows[0]["completed"] is True


def test_omitted_completed_keeps_stored_flag(client, make_user, db):
    course, student, course_lessons = setup_course(client, make_user, db)
    lesson_id = course_lessons[0]["lessonId"]

    act_as(client, student)
    client.post("/progress", json={"courseId": course["courseId"], "lessonId": lesson_id, "watchedSeconds": 100, "completed": True})
    response = client.post("/progress", json={"courseId": course["courseId"], "lessonId": lesson_id, "watchedSeconds": 10})
    assert response.json()["progress"]["completed"] is True
    assert response.json()["progress"]["watchedSeconds"] == 10


def test_progress_requires_access(client, make_user, db):
    course, _, course_lessons = setup_course(client, make_user, db)
    act_as(client, make_user("student"))
    response = client.post("/progress", json={
        "courseId": course["courseId"], "lessonId": course_lessons[0]["lessonId"], "watchedSeconds": 5,
    })
    assert response.status_code == 403


def test_progress_rejects_mismatched_course(client, make_user, db):
    course, student, course_lessons = setup_course(client, make_user, db)
    act_as(client, student)
    response = client.post("/progress", json={
        "courseId": "COURSE_OTHER", "lessonId": course_lessons[0]["lessonId"], "watchedSeconds": 5,
    })
    assert response.status_code == 400

    response = client.post("/progress", json={"courseId": course["courseId"], "lessonId": "LESS_MISSING", "watchedSeconds": 5})
    assert response.status_code == 404


def test_course_progress_endpoint(client, make_user, db):
    course, student, course_lessons = setup_course(client, make_user, db)
    act_as(client, student)
    client.post("/progress", json={
        "courseId": course["courseId"], "lessonId": course_lessons[0]["lessonId"],
        "watchedSeconds": 120, "completed": True,
    })
    client.post("/progress", json={
        "courseId": course["courseId"], "lessonId": course_lessons[2]["lessonId"], "watchedSeconds": 30,
    })

    summary = client.get(f"/progress/{course['courseId']}").json()["courseProgress"]
    assert summary["totalLessons"] == 4
    assert summary["completionPercentage"] == 25
    assert summary["lastWatchedLessonId"] == course_lessons[2]["lessonId"]
    assert summary["nextLessonId"] == course_lessons[1]["lessonId"]
    assert [lesson["lessonId"] for lesson in summary["lessonProgress"]] == [l["lessonId"] for l in course_lessons]

    listing = client.get("/progress", params={"courseId": course["courseId"]}).json()
    assert listing["summary"]["completedLessons"] == 1
    assert listing["summary"]["totalLessonsTracked"] == 2


def test_lesson_navigation_crosses_modules(client, make_user, db):
    course, student, course_lessons = setup_course(client, make_user, db)
    act_as(client, student)
    nav = client.get(f"/progress/{course['courseId']}/lessons/{course_lessons[1]['lessonId']}/navigation").json()
    assert nav["navigation"]["previousLessonId"] == course_lessons[0]["lessonId"]
    assert nav["navigation"]["nextLessonId"] == course_lessons[2]["lessonId"]
