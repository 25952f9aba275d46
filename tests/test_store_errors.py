import pytest

from conftest import act_as


class BrokenCollection:
    """Every operation fails the way a dropped connection would"""

    def __init__(self, name):
        self.name = name

    def __getattr__(self, operation):
        def fail(*args, **kwargs):
            raise RuntimeError(f"connection lost during {self.name}.{operation}")
        return fail


class BrokenDatabase:
    def __init__(self, db, working=()):
        self.db = db
        self.working = working

    def __getattr__(self, name):
        if name in self.working:
            return getattr(self.db, name)
        return BrokenCollection(name)


ANONYMOUS_READS = [
    ("/categories", None, "Failed to fetch categories"),
    ("/categories/web", None, "Failed to fetch category"),
    ("/reviews", {"courseId": "COURSE_X"}, "Failed to fetch reviews"),
    ("/reviews/REV_X", None, "Failed to fetch review"),
    ("/courses", None, "Failed to fetch courses"),
    ("/courses/COURSE_X", None, "Failed to fetch course"),
    ("/modules", {"courseId": "COURSE_X"}, "Failed to fetch modules"),
    ("/modules/MOD_X", None, "Failed to fetch module"),
    ("/lessons", {"courseId": "COURSE_X"}, "Failed to fetch lessons"),
    ("/lessons", {"moduleId": "MOD_X"}, "Failed to fetch lessons"),
    ("/lessons/LES_X", None, "Failed to fetch lesson"),
    ("/lessons/LES_X/video", None, "Failed to generate video URL"),
]


@pytest.mark.parametrize("path, params, detail", ANONYMOUS_READS)
def test_public_reads_answer_500_when_store_fails(client, db, path, params, detail):
    act_as(client, None)
    client.app.state.db = BrokenDatabase(db)

    response = client.get(path, params=params)
    assert response.status_code == 500
    assert response.json() == {"detail": detail}


def test_login_answers_500_when_profile_sync_fails(client, db, auth_provider):
    auth_provider.add_account("learner@example.com", "Passw0rd!", "Learner")
    client.app.state.db = BrokenDatabase(db)

    response = client.post("/auth/login", json={"email": "learner@example.com", "password": "Passw0rd!"})
    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to login"}
    assert "set-cookie" not in response.headers


def test_signed_in_reads_answer_500_when_store_fails(client, db, make_user):
    student = make_user("student")
    act_as(client, student)
    # Sessions still resolve so the handlers themselves hit the failure
    client.app.state.db = BrokenDatabase(db, working=("users",))

    reads = [
        ("/progress", {"courseId": "COURSE_X"}, "Failed to fetch progress"),
        ("/progress/COURSE_X", None, "Failed to fetch course progress"),
        ("/progress/COURSE_X/lessons/LES_X/navigation", None, "Failed to fetch lesson navigation"),
        ("/payments/verify-session", {"session_id": "plink_x"}, "Failed to verify purchase"),
        ("/payments/verify/COURSE_X", None, "Failed to verify access"),
        ("/payments/history", None, "Failed to fetch purchase history"),
        ("/user/purchases", None, "Failed to fetch purchases"),
    ]
    for path, params, detail in reads:
        response = client.get(path, params=params)
        assert response.status_code == 500, path
        assert response.json() == {"detail": detail}

    response = client.post("/progress", json={"courseId": "COURSE_X", "lessonId": "LES_X", "watchedSeconds": 5})
    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to update progress"}

    response = client.post("/reviews", json={"courseId": "COURSE_X", "rating": 5, "comment": "Clear and practical."})
    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to create review"}


def test_admin_reads_answer_500_when_store_fails(client, db, make_user):
    act_as(client, make_user("admin"))
    client.app.state.db = BrokenDatabase(db, working=("users",))

    for path, detail in [
        ("/admin/stats", "Failed to fetch admin statistics"),
        ("/admin/courses", "Failed to fetch courses"),
        ("/admin/purchases", "Failed to fetch purchases"),
    ]:
        response = client.get(path)
        assert response.status_code == 500, path
        assert response.json() == {"detail": detail}
