import pytest

from conftest import FakeBackend
from src.agents.state import ApplicationJob
from src.services.ai_provider import AIProvider
from src.services.application_repository import ApplicationRepository
from src.services.application_service import ApplicationService
from src.services.apply_service import ApplyService
from src.services.job_queue import JobQueue

CV = {"fullName": "Ada Lovelace", "email": "ada@example.com", "skills": ["Python"]}
POSTING = {
    "title": "Backend Engineer",
    "company": "Acme",
    "application_url": "https://boards.greenhouse.io/acme/jobs/123",
}


@pytest.fixture
def api(database_url):
    from src.api import server

    repo = ApplicationRepository(database_url=database_url)
    repo.create_schema()
    applications = ApplicationService(repo)
    queue = JobQueue("api-test", database_url, auto_reconnect=False)
    queue.create_schema()

    originals = (server.application_service, server.job_queue, server.apply_service, server.ai_provider)
    server.application_service = applications
    server.job_queue = queue
    server.apply_service = ApplyService(applications, queue, daily_limit=2)
    server.ai_provider = AIProvider(FakeBackend("openai"), None)

    try:
        yield server.app.test_client(), applications, queue
    finally:
        (server.application_service, server.job_queue, server.apply_service, server.ai_provider) = originals


def apply_body(**overrides):
    body = {"user_id": "user-1", "cv_snapshot": CV, "job_posting": POSTING, "resume_asset_ref": ""}
    body.update(overrides)
    return body


def test_apply_queues_application(api):
    client, applications, queue = api

    response = client.post("/api/apply/job-1", json=apply_body(delay_ms=0))

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["queue_job_id"] == ApplicationJob.idempotency_key_for("user-1", "job-1")
    assert applications.get(data["application_id"]).status == "queued"
    assert queue.get_job(ApplicationJob.idempotency_key_for("user-1", "job-1"))["data"]["job_posting"]["company"] == "Acme"


def test_apply_rejects_invalid_payload(api):
    client, applications, _ = api

    missing_cv = client.post("/api/apply/job-1", json=apply_body(cv_snapshot=None))
    bad_url = client.post("/api/apply/job-1", json=apply_body(job_posting={"application_url": "ftp://x"}))
    no_body = client.post("/api/apply/job-1", data="not json", content_type="text/plain")

    assert missing_cv.status_code == 400
    assert bad_url.status_code == 400
    assert "application_url" in bad_url.get_json()["error"]
    assert no_body.status_code == 400
    assert applications.list_for_user("user-1") == []


def test_duplicate_application_returns_conflict(api):
    client, _, _ = api
    first = client.post("/api/apply/job-1", json=apply_body())

    second = client.post("/api/apply/job-1", json=apply_body())

    assert second.status_code == 409
    assert second.get_json()["application_id"] == first.get_json()["application_id"]


def test_ids_containing_dashes_do_not_share_a_queue_key(api):
    client, _, _ = api

    first = client.post("/api/apply/c", json=apply_body(user_id="a-b"))
    second = client.post("/api/apply/b-c", json=apply_body(user_id="a"))

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.get_json()["queue_job_id"] != second.get_json()["queue_job_id"]


def test_queue_unavailable_returns_503_and_marks_record_failed(api):
    client, applications, queue = api
    queue._available = False

    response = client.post("/api/apply/job-1", json=apply_body())

    assert response.status_code == 503
    data = response.get_json()
    record = applications.get(data["application_id"])
    assert record.status == "failed"
    assert record.error_message == "Queue system unavailable"


def test_bulk_apply_respects_daily_limit(api):
    client, _, queue = api
    jobs = [{"job_id": f"job-{index}", "job_posting": POSTING} for index in range(3)]

    response = client.post("/api/apply/bulk", json={"user_id": "user-1", "cv_snapshot": CV, "jobs": jobs})

    assert response.status_code == 200
    data = response.get_json()
    assert data["applied"] == 2
    assert data["skipped"] == 1
    assert data["remaining"] == 0
    assert queue.get_job(ApplicationJob.idempotency_key_for("user-1", "job-0"))["priority"] == 10

    exhausted = client.post("/api/apply/bulk", json={"user_id": "user-1", "cv_snapshot": CV, "jobs": jobs})
    assert exhausted.status_code == 429
    assert exhausted.get_json()["applied_today"] == 2


def test_status_and_user_listing(api):
    client, _, _ = api
    application_id = client.post("/api/apply/job-1", json=apply_body()).get_json()["application_id"]

    status = client.get(f"/api/apply/status/{application_id}")
    listing = client.get("/api/apply/user/user-1")
    missing = client.get("/api/apply/status/nope")

    assert status.status_code == 200
    assert status.get_json()["application"]["job_id"] == "job-1"
    assert listing.get_json()["count"] == 1
    assert missing.status_code == 404


def test_health_and_queue_stats(api):
    client, _, _ = api
    client.post("/api/apply/job-1", json=apply_body())

    health = client.get("/api/health")
    stats = client.get("/api/queue/stats")

    assert health.status_code == 200
    assert health.get_json()["checks"]["database"] == "connected"
    assert health.get_json()["checks"]["ai"]["primary_configured"] is True
    assert stats.get_json()["counts"]["delayed"] == 1
