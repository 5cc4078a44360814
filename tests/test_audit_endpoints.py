import pytest

from app.features.audit.routes.audit import get_audit_service, get_diagnostics_service
from app.features.audit.services.audit import AuditService
from app.features.audit.services.diagnostics import DiagnosticsService
from app.platform.config import get_settings
from tests.fakes import FakeEngine, make_issues

FULL = "/api/v1/audit/full"
HEURISTIC = "/api/v1/audit/heuristic"
DIAGNOSTICS = "/api/v1/audit/diagnostics"
URL = "https://example.com/"


@pytest.fixture
def audit_client(client, test_app, fast_settings, browsers, engine, transport):
    """Client whose audit service runs on fake browsers, engine and origin."""

    def override_service():
        return AuditService(
            settings=fast_settings,
            driver_factory=browsers,
            engine_factory=engine.factory,
            transport=transport,
        )

    test_app.dependency_overrides[get_audit_service] = override_service
    test_app.dependency_overrides[get_settings] = lambda: fast_settings
    yield client
    test_app.dependency_overrides.pop(get_audit_service, None)
    test_app.dependency_overrides.pop(get_settings, None)


@pytest.mark.parametrize("path", [FULL, HEURISTIC])
def test_get_is_method_not_allowed(audit_client, path):
    response = audit_client.get(path)

    assert response.status_code == 405
    assert response.json()["error"] == "Method Not Allowed"


@pytest.mark.parametrize("path", [FULL, HEURISTIC])
def test_empty_body_is_missing_url(audit_client, path):
    response = audit_client.post(path, content=b"")

    assert response.status_code == 400
    assert response.json()["error"] == "Missing URL"


def test_invalid_json_is_rejected(audit_client):
    response = audit_client.post(HEURISTIC, content=b"{url:", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body", "code": "validation_error"}


def test_heuristic_audit_success(audit_client, site):
    site.pages[URL] = '<html><body><img src="x"></body></html>'

    response = audit_client.post(HEURISTIC, json={"url": URL})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert response.headers["cache-control"] == "public, max-age=300"

    body = response.json()
    assert body["url"] == URL
    assert body["standard"] == "WCAG 2.1 AA"
    assert body["score"] == 74
    assert body["counts"] == {"errors": 3, "warnings": 1, "notices": 0}
    assert [issue["code"] for issue in body["issues"]] == ["missing-alt", "missing-title", "missing-lang", "missing-h1"]
    assert body["meta"]["method"] == "heuristic"
    assert body["meta"]["truncated"] is False
    assert "durationMs" in body["meta"]
    assert "timestamp" in body["meta"]


def test_heuristic_fetch_failure(audit_client, site):
    site.status[URL] = 404

    response = audit_client.post(HEURISTIC, json={"url": URL})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "fetch_error"
    assert "HTTP 404" in body["error"]
    assert "troubleshooting" not in body


def test_full_audit_success(audit_client, engine, browsers):
    engine.issues = make_issues(errors=25, warnings=30, notices=2)

    response = audit_client.post(FULL, json={"url": URL, "timeoutMs": 1400})

    assert response.status_code == 200
    body = response.json()
    assert body["score"] == 50
    assert body["counts"] == {"errors": 25, "warnings": 30, "notices": 2}
    assert len(body["issues"]) == 20
    assert body["meta"]["truncated"] is True
    assert body["meta"]["method"] == "axe-full"
    assert browsers.launches == browsers.closes == 1


def test_full_audit_failure_points_to_heuristic(audit_client, engine, browsers):
    engine.mode = "error"

    response = audit_client.post(FULL, json={"url": URL})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "engine_error"
    assert body["error"].startswith("Full scan audit failed:")
    assert HEURISTIC in body["troubleshooting"]["fallback"]
    assert body["troubleshooting"]["suggestion"]
    assert "timeout" not in body["troubleshooting"]
    assert browsers.launches == browsers.closes == 1


def test_full_audit_timeout_is_distinguishable(audit_client, engine, browsers):
    engine.mode = "hang"

    response = audit_client.post(FULL, json={"url": URL, "timeoutMs": 300})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "audit_timeout"
    assert "timeout" in body["error"].lower()
    assert body["troubleshooting"]["timeout"]
    assert body["durationMs"] < 300 + 200 + 500


def test_malformed_url_is_rejected(audit_client):
    response = audit_client.post(HEURISTIC, json={"url": "https://[::1"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["error"].startswith("URL parsing error:")


def test_fractional_timeout_is_accepted(audit_client, site):
    site.pages[URL] = '<html lang="en"><head><title>T</title></head><body><h1>T</h1></body></html>'

    response = audit_client.post(HEURISTIC, json={"url": URL, "timeoutMs": 1200.5})

    assert response.status_code == 200
    assert response.json()["score"] == 100


def test_boolean_timeout_is_rejected(audit_client):
    response = audit_client.post(HEURISTIC, json={"url": URL, "timeoutMs": True})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid timeoutMs"


def test_unknown_path_returns_json_error(client):
    response = client.get("/api/v1/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


@pytest.fixture
def diagnostics_client(client, test_app, fast_settings, browsers):
    test_app.dependency_overrides[get_diagnostics_service] = lambda: DiagnosticsService(
        fast_settings, driver_factory=browsers
    )
    yield client
    test_app.dependency_overrides.pop(get_diagnostics_service, None)


def test_diagnostics_browser_step(diagnostics_client, browsers):
    response = diagnostics_client.post(DIAGNOSTICS, json={"step": "browser"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Diagnostics completed"
    assert payload["data"]["step"] == "browser"
    assert payload["data"]["tests"]["browser"]["ok"] is True
    assert "durationMs" in payload["data"]["tests"]["browser"]
    assert browsers.launches == browsers.closes == 1


def test_diagnostics_launch_failure_is_still_200(diagnostics_client, browsers):
    browsers.launch_error = RuntimeError("chrome not found")

    response = diagnostics_client.post(DIAGNOSTICS, json={"step": "browser"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Diagnostics found failures"
    assert payload["data"]["ok"] is False
    assert browsers.launches == browsers.closes == 0


def test_diagnostics_rejects_unknown_step(diagnostics_client):
    response = diagnostics_client.post(DIAGNOSTICS, json={"step": "pa11y"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid step"


def test_diagnostics_get_is_method_not_allowed(diagnostics_client):
    response = diagnostics_client.get(DIAGNOSTICS)

    assert response.status_code == 405
