import json
from pathlib import Path

from retailpos.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_error_envelope_is_documented():
    schema = app.openapi()
    login_responses = schema["paths"]["/auth/login"]["post"]["responses"]
    assert "401" in login_responses
    assert "429" in login_responses


def test_unknown_route_uses_error_envelope(test_context):
    client, _ = test_context
    res = client.get("/no-such-route", headers={"X-Request-ID": "trace-123"})
    assert res.status_code == 404
    body = res.json()["error"]
    assert body["code"] == "not_found"
    assert body["request_id"] == "trace-123"
    assert body["path"] == "/no-such-route"
    assert res.headers["X-Request-ID"] == "trace-123"


def test_health_and_ready(test_context):
    client, _ = test_context
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["docs"] == "/docs"
