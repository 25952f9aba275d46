from conftest import COOKIE, RESET_SECRET, act_as


def test_register_login_session_logout(client):
    response = client.post("/auth/register", json={
        "email": "student@example.com",
        "password": "Passw0rd!",
        "name": "Student One",
    })
    assert response.status_code == 200
    registered = response.json()
    assert registered["email"] == "student@example.com"
    assert registered["name"] == "Student One"

    response = client.post("/auth/login", json={"email": "student@example.com", "password": "Passw0rd!"})
    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == registered["userId"]
    assert body["sessionId"]
    assert body["expires"]
    assert COOKIE in response.cookies

    session = client.get("/auth/session").json()
    assert session["isAuthenticated"] is True
    assert session["user"]["email"] == "student@example.com"
    assert session["user"]["role"] == "student"

    assert client.post("/auth/logout").status_code == 200

    session = client.get("/auth/session").json()
    assert session == {"user": None, "isAuthenticated": False}


def test_register_duplicate_email_conflicts(client):
    payload = {"email": "dup@example.com", "password": "Passw0rd!", "name": "Dup User"}
    assert client.post("/auth/register", json=payload).status_code == 200

    response = client.post("/auth/register", json=payload)
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]


def test_register_validation_returns_first_message(client):
    response = client.post("/auth/register", json={
        "email": "short@example.com",
        "password": "short",
        "name": "Short Password",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Password must be at least 8 characters"


def test_register_rejects_bad_email(client):
    response = client.post("/auth/register", json={"email": "not-an-email", "password": "Passw0rd!", "name": "Bad"})
    assert response.status_code == 400
    assert "detail" in response.json()


def test_login_with_wrong_password(client, make_user):
    user = make_user(email="known@example.com")
    response = client.post("/auth/login", json={"email": user["email"], "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_session_with_unknown_cookie_degrades(client):
    client.cookies.set(COOKIE, "cookie-forged")
    response = client.get("/auth/session")
    assert response.status_code == 200
    assert response.json() == {"user": None, "isAuthenticated": False}


def test_logout_without_session_succeeds(client):
    act_as(client, None)
    assert client.post("/auth/logout").status_code == 200


def test_forgot_password_is_uniform(client, make_user, auth_provider):
    user = make_user()
    known = client.post("/auth/forgot-password", json={"email": user["email"]})
    unknown = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert auth_provider.reset_emails == [user["email"]]


def test_reset_password(client):
    ok = client.post("/auth/reset-password", json={"secret": RESET_SECRET, "password": "N3wPassw0rd"})
    assert ok.status_code == 200

    bad = client.post("/auth/reset-password", json={"secret": "expired", "password": "N3wPassw0rd"})
    assert bad.status_code == 400


def test_protected_route_requires_session(client):
    act_as(client, None)
    assert client.get("/user/profile").status_code == 401
