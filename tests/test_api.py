import pytest
from fastapi.testclient import TestClient

from sitecrawler.config import settings
from sitecrawler.dependencies import get_fetcher, get_job_store, get_redis_client, get_work_queue
from sitecrawler.main import app
from sitecrawler.utils.rate_limiter import rate_limit_store

client = TestClient(app)

SITE = {
    "https://example.com/": '<a href="/about">About</a><a href="/contact">Contact</a>',
    "https://example.com/about": "<p>About us</p>",
    "https://example.com/contact": "<p>Contact</p>",
}

@pytest.fixture(autouse=True)
def override_dependencies(work_queue, job_store, make_fetcher):
    """Serve the crawl endpoints from in-memory Redis and an in-memory website."""
    app.dependency_overrides[get_work_queue] = lambda: work_queue
    app.dependency_overrides[get_job_store] = lambda: job_store
    app.dependency_overrides[get_fetcher] = lambda: make_fetcher(SITE)
    rate_limit_store.clear()
    yield
    app.dependency_overrides.clear()
    rate_limit_store.clear()

def _start_crawl(url="https://example.com/"):
    return client.post("/api/crawl", json={"action": "start_crawl", "website_id": "website-1", "url": url})

def test_health_check():
    """Test the /health endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "timestamp" in response.json()
    assert response.json()["version"] == settings.APP_VERSION
    assert response.json()["max_depth"] == settings.CRAWL_MAX_DEPTH
    assert response.json()["backend_configured"] == bool(settings.REDIS_URL)

def test_start_crawl_success(work_queue):
    """Test POST /crawl with start_crawl creates a job and queues the seed."""
    response = _start_crawl()

    assert response.status_code == 200
    response_json = response.json()
    assert response_json["success"] is True
    assert response_json["data"]["message"] == "Crawl job started successfully"
    job_id = response_json["data"]["crawl_job_id"]

    item = work_queue.claim(work_queue.name, 30, 1)[0]
    assert item.job_id == job_id
    assert item.url == "https://example.com/"
    assert item.depth == 0

@pytest.mark.parametrize("payload", [
    {"action": "start_crawl", "website_id": "website-1"},
    {"action": "start_crawl", "url": "https://example.com/"},
    {"action": "start_crawl"},
])
def test_start_crawl_missing_parameters(payload, work_queue):
    response = client.post("/api/crawl", json=payload)

    assert response.status_code == 400
    response_json = response.json()
    assert response_json["success"] is False
    assert response_json["error"]["message"] == "website_id and url are required for start_crawl"
    assert work_queue.stats().total == 0

def test_start_crawl_rejects_non_http_url():
    response = _start_crawl("ftp://example.com/")
    assert response.status_code == 400
    assert "http://" in response.json()["error"]["message"]

def test_unknown_action():
    response = client.post("/api/crawl", json={"action": "purge"})
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Unknown action 'purge'"

def test_process_with_empty_queue():
    """Test POST /crawl without an action on an empty queue reports idleness."""
    response = client.post("/api/crawl")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "No messages in queue to process"}

def test_process_next_url():
    """Test POST /crawl without an action crawls one queued URL."""
    job_id = _start_crawl().json()["data"]["crawl_job_id"]

    response = client.post("/api/crawl", json={})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["processed_url"] == "https://example.com/"
    assert data["crawl_job_id"] == job_id
    assert data["links_found"] == 2
    assert data["processing_success"] is True
    assert data["error"] is None

def test_crawl_to_completion_and_status():
    """Test driving a crawl through the API until the job completes."""
    job_id = _start_crawl().json()["data"]["crawl_job_id"]

    processed = []
    for _ in range(10):
        response_json = client.post("/api/crawl").json()
        if "data" not in response_json:
            break
        processed.append(response_json["data"]["processed_url"])

    assert processed == [
        "https://example.com/",
        "https://example.com/about",
        "https://example.com/contact",
    ]

    response = client.get(f"/api/crawl/{job_id}")
    assert response.status_code == 200
    response_json = response.json()
    assert response_json["id"] == job_id
    assert response_json["website_id"] == "website-1"
    assert response_json["status"] == "completed"
    assert response_json["completed_at"] is not None
    assert response_json["pages_created"] == 3
    assert response_json["progress"]["urls_queued"] == 3
    assert response_json["progress"]["urls_processed"] == 3
    assert response_json["progress"]["urls_failed"] == 0

def test_get_job_status_not_found():
    """Test GET /crawl/{job_id} for a non-existent job."""
    response = client.get("/api/crawl/non_existent_job")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"message": "Job with ID 'non_existent_job' not found."},
    }

def test_queue_stats():
    _start_crawl()
    _start_crawl("https://example.com/about")

    response = client.get("/api/queue/stats")
    assert response.status_code == 200
    assert response.json() == {"queue_name": "crawl_queue", "ready": 2, "in_flight": 0, "total": 2}

def test_stuck_jobs_endpoint(job_store, redis_client):
    job_id = _start_crawl().json()["data"]["crawl_job_id"]
    assert client.get("/api/health/jobs").json() == []

    redis_client.hset(f"crawl_job:{job_id}", "last_heartbeat", "2000-01-01T00:00:00")
    response = client.get("/api/health/jobs")
    assert response.status_code == 200
    assert [job["id"] for job in response.json()] == [job_id]

def test_missing_redis_configuration(monkeypatch):
    """Test a missing REDIS_URL is reported as a configuration error envelope."""
    app.dependency_overrides.clear()
    monkeypatch.setattr(settings, "REDIS_URL", None)
    get_redis_client.cache_clear()

    try:
        response = client.post("/api/crawl")
    finally:
        get_redis_client.cache_clear()

    assert response.status_code == 500
    response_json = response.json()
    assert response_json["success"] is False
    assert response_json["error"]["message"] == "Crawler is not configured"

def test_rate_limited_crawl_returns_envelope():
    """Test exceeding the request rate of POST /crawl yields a 429 error envelope."""
    for _ in range(settings.RATE_LIMIT_REQUESTS):
        assert client.post("/api/crawl").status_code == 200

    response = client.post("/api/crawl")

    assert response.status_code == 429
    response_json = response.json()
    assert response_json["success"] is False
    assert response_json["error"]["message"] == "Rate limit exceeded"
    assert "Try again in" in response_json["error"]["details"]
