from fastapi.testclient import TestClient

ADMIN = {"X-User-Id": "admin-1"}


def test_first_sign_in_creates_incomplete_profile(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/users/sign-in",
        json={"email": "owner@shop.in", "displayName": "Shop Owner"},
        headers={"X-User-Id": "new-user"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["uid"] == "new-user"
    assert body["role"] == "user"
    assert body["status"] == "incomplete"
    assert body["displayName"] == "Shop Owner"


def test_admin_identity_signs_in_as_admin(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/users/sign-in",
        json={"email": "Admin@SignalX.com"},
        headers={"X-User-Id": "admin-2"},
    )

    assert response.json()["role"] == "admin"
    assert response.json()["status"] == "approved"


def test_repeat_sign_in_keeps_existing_profile(api_client: TestClient, fake_repo) -> None:
    response = api_client.post(
        "/api/users/sign-in",
        json={"email": "changed@example.in"},
        headers={"X-User-Id": "employer-1"},
    )

    assert response.json()["email"] == "hr@greenfields.in"
    assert fake_repo.users["employer-1"]["status"] == "approved"


def test_sign_in_requires_identity_header(api_client: TestClient) -> None:
    response = api_client.post("/api/users/sign-in", json={"email": "a@b.in"})
    assert response.status_code == 401


def test_me_rejects_unknown_user(api_client: TestClient) -> None:
    response = api_client.get("/api/users/me", headers={"X-User-Id": "stranger"})
    assert response.status_code == 401
    assert response.json() == {"error": "unknown user; sign in first"}


def test_profile_completion_moves_to_pending(api_client: TestClient, fake_repo) -> None:
    fake_repo.seed_user("fresh", email="fresh@example.in", status="incomplete")

    response = api_client.put(
        "/api/users/me/profile",
        json={"displayName": "Fresh Co", "company": "Fresh Co", "phone": "9000000000", "location": "Bankura"},
        headers={"X-User-Id": "fresh"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["company"] == "Fresh Co"


def test_admin_lists_pending_users(api_client: TestClient) -> None:
    response = api_client.get("/api/admin/users", params={"status": "pending"}, headers=ADMIN)

    assert response.status_code == 200
    assert [user["uid"] for user in response.json()] == ["pending-1"]


def test_admin_approves_pending_user(api_client: TestClient, fake_repo) -> None:
    response = api_client.post("/api/admin/users/pending-1/approve", headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert fake_repo.users["pending-1"]["status"] == "approved"


def test_approval_only_from_pending(api_client: TestClient) -> None:
    response = api_client.post("/api/admin/users/employer-1/reject", headers=ADMIN)
    assert response.status_code == 409


def test_non_admin_cannot_approve(api_client: TestClient) -> None:
    response = api_client.post("/api/admin/users/pending-1/approve", headers={"X-User-Id": "employer-1"})
    assert response.status_code == 403


def test_admin_reviews_flagged_job(api_client: TestClient, fake_repo) -> None:
    job = fake_repo.seed_job(user_id="employer-1", status="pending", is_public=False, moderation_verdict="flagged")

    response = api_client.post(
        f"/api/admin/jobs/{job['id']}/review",
        json={"status": "approved", "reason": "Verified by phone"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["isPublic"] is True
    assert response.json()["moderationReason"] == "Verified by phone"


def test_admin_deletes_job(api_client: TestClient, fake_repo) -> None:
    job = fake_repo.seed_job(user_id="employer-1")

    assert api_client.delete(f"/api/admin/jobs/{job['id']}", headers=ADMIN).status_code == 200
    assert api_client.delete(f"/api/admin/jobs/{job['id']}", headers=ADMIN).status_code == 404
