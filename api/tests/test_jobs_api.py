from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

EMPLOYER = {"X-User-Id": "employer-1"}

JOB_PAYLOAD = {
    "title": "Paddy harvest helpers",
    "description": "Ten days of harvest work near Jhalda",
    "location": "Purulia",
    "district": "Purulia",
    "salary": "400/day",
    "requiredSkills": ["Farming"],
    "employmentType": "daily-wage",
}


def test_safe_job_is_published_immediately(api_client: TestClient, fake_repo) -> None:
    response = api_client.post("/api/jobs", json=JOB_PAYLOAD, headers=EMPLOYER)

    assert response.status_code == 201
    body = response.json()
    assert body["flagged"] is False
    assert body["moderation"] == {"safe": True, "reason": "Legitimate agricultural job"}
    assert body["job"]["status"] == "approved"
    assert body["job"]["isPublic"] is True
    assert body["job"]["moderationVerdict"] == "auto-approved"
    assert body["job"]["userId"] == "employer-1"


def test_flagged_job_waits_for_review(api_client: TestClient, moderation_client) -> None:
    moderation_client.replies[:] = ['{"safe": false, "reason": "Unrealistic pay"}']

    response = api_client.post("/api/jobs", json=JOB_PAYLOAD, headers=EMPLOYER)

    assert response.status_code == 201
    body = response.json()
    assert body["flagged"] is True
    assert body["job"]["status"] == "pending"
    assert body["job"]["isPublic"] is False
    assert body["job"]["moderationVerdict"] == "flagged"
    assert body["job"]["moderationReason"] == "Unrealistic pay"


def test_moderation_outage_routes_to_manual_review(api_client: TestClient, moderation_client) -> None:
    moderation_client._enabled = False

    response = api_client.post("/api/jobs", json=JOB_PAYLOAD, headers=EMPLOYER)

    body = response.json()
    assert body["flagged"] is True
    assert body["job"]["moderationVerdict"] == "manual"
    assert body["job"]["moderationReason"] == "Auto-moderation unavailable. Pending admin review."


def test_scheduled_safe_job_stays_hidden(api_client: TestClient) -> None:
    scheduled_at = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()

    response = api_client.post("/api/jobs", json={**JOB_PAYLOAD, "scheduledAt": scheduled_at}, headers=EMPLOYER)

    body = response.json()
    assert body["job"]["status"] == "approved"
    assert body["job"]["isPublic"] is False


def test_unapproved_employer_cannot_post(api_client: TestClient) -> None:
    response = api_client.post("/api/jobs", json=JOB_PAYLOAD, headers={"X-User-Id": "pending-1"})
    assert response.status_code == 403


def test_missing_title_is_400(api_client: TestClient) -> None:
    payload = {key: value for key, value in JOB_PAYLOAD.items() if key != "title"}

    response = api_client.post("/api/jobs", json=payload, headers=EMPLOYER)

    assert response.status_code == 400
    assert response.json()["error"].startswith("title")


def test_public_listing_hides_unpublished_jobs(api_client: TestClient, fake_repo) -> None:
    visible = fake_repo.seed_job(user_id="employer-1")
    fake_repo.seed_job(user_id="employer-1", status="pending", is_public=False)
    fake_repo.seed_job(user_id="employer-1", status="approved", is_public=False)

    response = api_client.get("/api/jobs/public")

    assert response.status_code == 200
    assert [job["id"] for job in response.json()] == [visible["id"]]


def test_hidden_job_is_404_for_other_users(api_client: TestClient, fake_repo) -> None:
    fake_repo.seed_user("employer-2", email="other@example.in")
    job = fake_repo.seed_job(user_id="employer-1", status="pending", is_public=False)

    assert api_client.get(f"/api/jobs/{job['id']}", headers={"X-User-Id": "employer-2"}).status_code == 404
    assert api_client.get(f"/api/jobs/{job['id']}", headers=EMPLOYER).status_code == 200


def test_editing_content_reruns_moderation(api_client: TestClient, fake_repo, moderation_client) -> None:
    job = fake_repo.seed_job(user_id="employer-1")
    moderation_client.replies[:] = ['{"safe": false, "reason": "Pay upfront fee"}']

    response = api_client.patch(
        f"/api/jobs/{job['id']}",
        json={"description": "Pay a registration fee to start"},
        headers=EMPLOYER,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["isPublic"] is False
    assert body["moderationVerdict"] == "flagged"


def test_editing_salary_keeps_moderation(api_client: TestClient, fake_repo, moderation_client) -> None:
    job = fake_repo.seed_job(user_id="employer-1")

    response = api_client.patch(f"/api/jobs/{job['id']}", json={"salary": "450/day"}, headers=EMPLOYER)

    assert response.status_code == 200
    assert response.json()["salary"] == "450/day"
    assert response.json()["status"] == "approved"
    assert moderation_client.calls == []


def test_only_owner_can_edit(api_client: TestClient, fake_repo) -> None:
    fake_repo.seed_user("employer-2", email="other@example.in")
    job = fake_repo.seed_job(user_id="employer-1")

    response = api_client.patch(f"/api/jobs/{job['id']}", json={"salary": "1"}, headers={"X-User-Id": "employer-2"})

    assert response.status_code == 403


def test_visibility_requires_approval(api_client: TestClient, fake_repo) -> None:
    job = fake_repo.seed_job(user_id="employer-1", status="pending", is_public=False)

    response = api_client.patch(f"/api/jobs/{job['id']}/visibility", json={"isPublic": True}, headers=EMPLOYER)

    assert response.status_code == 409


def test_visibility_toggle(api_client: TestClient, fake_repo) -> None:
    job = fake_repo.seed_job(user_id="employer-1")

    response = api_client.patch(f"/api/jobs/{job['id']}/visibility", json={"isPublic": False}, headers=EMPLOYER)

    assert response.status_code == 200
    assert response.json()["isPublic"] is False


def test_send_alerts_requires_job_data(api_client: TestClient) -> None:
    response = api_client.post("/api/jobs/send-alerts", json={"jobId": "job-1"}, headers=EMPLOYER)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing job data or jobId"}


def test_send_alerts_matches_skills_in_district(api_client: TestClient, fake_repo, fake_mailer) -> None:
    fake_repo.seed_worker(email="driver@example.in", skills=["Truck Driving"])
    fake_repo.seed_worker(email="tailor@example.in", skills=["Tailoring"])
    fake_repo.seed_worker(email=None, skills=["Driving"])
    fake_repo.seed_worker(email="far@example.in", district="Darjeeling", skills=["Driving"])
    fake_repo.seed_worker(email="bounce@example.in", skills=["driving"])
    fake_mailer.failing.add("bounce@example.in")

    response = api_client.post(
        "/api/jobs/send-alerts",
        json={
            "jobId": "job-1",
            "jobData": {"title": "Driver", "district": "Purulia", "requiredSkills": ["DRIVING"]},
        },
        headers=EMPLOYER,
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Job alerts sent to 1 workers",
        "emailsSent": 1,
        "emailsFailed": 1,
    }
    assert [mail["to"] for mail in fake_mailer.sent] == ["driver@example.in"]


def test_send_alerts_without_matches(api_client: TestClient, fake_repo, fake_mailer) -> None:
    fake_repo.seed_worker(email="tailor@example.in", skills=["Tailoring"])

    response = api_client.post(
        "/api/jobs/send-alerts",
        json={"jobId": "job-1", "jobData": {"title": "Mason", "location": "Purulia", "requiredSkills": ["Masonry"]}},
        headers=EMPLOYER,
    )

    assert response.json() == {
        "success": True,
        "message": "No matching workers found",
        "emailsSent": 0,
        "emailsFailed": 0,
    }
    assert fake_mailer.sent == []
