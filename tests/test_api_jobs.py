import base64
import io
import json
from typing import Any, Dict

from PIL import Image

from print_bridge import create_app
from print_bridge.printing.errors import JobNotFound

JSON = {"Content-Type": "application/json"}


def _client(engine):
    app = create_app(engine=engine, start_engine=False)
    app.config.update(TESTING=True)
    return app.test_client()


def _post(client, payload: Dict[str, Any], path: str = "/api/v1/jobs"):
    return client.post(path, data=json.dumps(payload), headers=JSON)


def test_api_submit_job_accepted(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)

    payload = {
        "segments": [
            {"type": "text", "content": "Mesa 4", "alignment": "center", "emphasis": True},
            {"type": "qr", "payload": "https://example.com", "module_size": 4},
        ]
    }
    r = _post(client, payload)
    assert r.status_code == 202, r.get_data(as_text=True)
    body = r.get_json()
    assert body["id"] == 1
    assert body["status"] == "Pending"
    assert r.headers["Location"].endswith("/api/v1/jobs/1")
    assert body["links"]["self"] == "/api/v1/jobs/1"

    job = engine.get(1)
    seg = job.description.segments[0]
    assert seg.content == "Mesa 4" and seg.alignment == "center" and seg.emphasis


def test_api_submit_and_wait_returns_final_status(make_engine, fake_driver):
    engine = make_engine()
    client = _client(engine)

    r = _post(client, {"segments": [{"type": "text", "content": "Hello"}], "wait": 5})
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()
    assert body["status"] == "Completed"
    assert body["completedAt"]
    assert len(fake_driver.writes) == 1


def test_api_status_roundtrip(make_engine):
    engine = make_engine()
    client = _client(engine)

    job_id = _post(client, {"segments": [{"type": "text", "content": "x"}, {"type": "feed", "lines": 2}]}).get_json()["id"]
    engine.wait(job_id, timeout=5.0)

    r = client.get(f"/api/v1/jobs/{job_id}")
    assert r.status_code == 200
    body = r.get_json()
    assert body["id"] == job_id
    assert body["status"] == "Completed"
    assert body["segments"] == 2
    assert "failureReason" not in body


def test_api_failed_job_reports_reason(make_engine, fake_driver):
    fake_driver.fail_writes = 1
    engine = make_engine()
    client = _client(engine)

    r = _post(client, {"segments": [{"type": "text", "content": "x"}], "wait": 5})
    body = r.get_json()
    assert body["status"] == "Failed"
    assert body["failureReason"].startswith("WriteFailure")


def test_api_submit_job_validation(make_engine):
    engine = make_engine(start=False, qr_max_payload=200)
    client = _client(engine)

    r = _post(client, {})
    assert r.status_code == 400
    assert "error" in r.get_json()

    r = _post(client, {"segments": []})
    assert r.status_code == 400

    r = _post(client, {"segments": [{"type": "barcode", "data": "123"}]})
    assert r.status_code == 400

    r = _post(client, {"segments": [{"type": "qr", "payload": "x" * 5000}]})
    assert r.status_code == 400
    assert "QR payload too long" in r.get_json()["error"]

    r = _post(client, {"segments": [{"type": "text", "content": "bad\x07bell"}]})
    assert r.status_code == 400

    assert engine.registry.count() == 0


def test_api_rejects_non_json(make_engine):
    client = _client(make_engine(start=False))
    r = client.post("/api/v1/jobs", data="hello", headers={"Content-Type": "text/plain"})
    assert r.status_code == 415


def test_api_queue_full_returns_429(make_engine):
    engine = make_engine(start=False, queue_capacity=1)
    client = _client(engine)
    payload = {"segments": [{"type": "text", "content": "x"}]}

    assert _post(client, payload).status_code == 202
    r = _post(client, payload)
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "1"
    assert engine.dispatcher.pending_count() == 1


def test_api_unknown_job_404(make_engine):
    client = _client(make_engine(start=False))
    r = client.get("/api/v1/jobs/999")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"
    assert client.delete("/api/v1/jobs/999").status_code == 404


def test_api_cancel_pending_then_conflict(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)
    job_id = _post(client, {"segments": [{"type": "text", "content": "x"}]}).get_json()["id"]

    r = client.delete(f"/api/v1/jobs/{job_id}")
    assert r.status_code == 200
    assert r.get_json()["status"] == "Cancelled"

    r = client.delete(f"/api/v1/jobs/{job_id}")
    assert r.status_code == 409
    assert r.get_json()["status"] == "Cancelled"


def test_legacy_print_endpoint_accepts_jobs(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)
    r = _post(client, {"segments": [{"type": "text", "content": "legacy"}]}, path="/print")
    assert r.status_code == 202
    assert engine.get(r.get_json()["id"]).status.value == "Pending"


def test_image_segment_accepts_data_uri(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)

    buf = io.BytesIO()
    Image.new("L", (8, 8), 0).save(buf, format="PNG")
    data_uri = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")

    r = _post(client, {"segments": [{"type": "image", "data": data_uri}]})
    assert r.status_code == 202, r.get_data(as_text=True)
    seg = engine.get(r.get_json()["id"]).description.segments[0]
    assert seg.data == buf.getvalue()

    r = _post(client, {"segments": [{"type": "image", "data": "%%%not-base64%%%"}]})
    assert r.status_code == 400


def test_cors_headers_and_preflight(make_engine):
    client = _client(make_engine(start=False))
    r = client.options("/api/v1/jobs")
    assert r.status_code == 200
    assert r.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in r.headers["Access-Control-Allow-Methods"]


def test_healthz_reports_worker_and_link(make_engine):
    engine = make_engine()
    client = _client(engine)

    r = client.get("/healthz")
    assert r.status_code == 200
    body = r.get_json()
    assert body["worker_alive"] is True
    assert body["queue_size"] == 0
    # nothing has printed yet, so the link has never been opened
    assert body["printer_ok"] is False
    assert body["status"] == "degraded"
    assert body["link"]["state"] == "Disconnected"

    job_id = _post(client, {"segments": [{"type": "text", "content": "x"}]}).get_json()["id"]
    engine.wait(job_id, timeout=5.0)
    body = client.get("/healthz").get_json()
    assert body["printer_ok"] is True
    assert body["status"] == "ok"


def _png_data_uri() -> tuple:
    buf = io.BytesIO()
    Image.new("L", (16, 8), 0).save(buf, format="PNG")
    raw = buf.getvalue()
    return raw, "data:image/png;base64," + base64.b64encode(raw).decode("ascii")


def test_legacy_print_accepts_raw_base64_body(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)
    raw, data_uri = _png_data_uri()

    r = client.post("/print", data=data_uri, headers={"Content-Type": "text/plain"})
    assert r.status_code == 202, r.get_data(as_text=True)
    segments = engine.get(r.get_json()["id"]).description.segments
    assert len(segments) == 1
    assert segments[0].data == raw


def test_legacy_print_accepts_form_field(make_engine):
    engine = make_engine(start=False)
    client = _client(engine)
    raw, data_uri = _png_data_uri()

    r = client.post("/print", data={"data": data_uri})
    assert r.status_code == 202, r.get_data(as_text=True)
    assert engine.get(r.get_json()["id"]).description.segments[0].data == raw

    r = client.post("/print", data={"other": "x"})
    assert r.status_code == 400
    r = client.post("/print", data="not base64 at all!", headers={"Content-Type": "text/plain"})
    assert r.status_code == 400


def test_submit_wait_on_evicted_job_returns_404(make_engine, monkeypatch):
    engine = make_engine(start=False)
    client = _client(engine)

    def _gone(job_id, timeout=None):
        raise JobNotFound(f"job {job_id} not found")

    monkeypatch.setattr(engine, "wait", _gone)
    r = _post(client, {"segments": [{"type": "text", "content": "x"}], "wait": 1})
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"
