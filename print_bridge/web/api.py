from __future__ import annotations

"""
JSON API (v1) for Print Bridge.

Endpoints:
- POST   /api/v1/jobs          : Submit a print job. Returns 202 + Location,
                                 or 200 with the final status when "wait" is set
- GET    /api/v1/jobs/<job_id> : Fetch job status
- DELETE /api/v1/jobs/<job_id> : Cancel a pending job
- POST   /print                : Legacy alias of job submission

Payload shape (POST /api/v1/jobs):
{
  "segments": [
    {"type": "text", "content": str, "alignment": "left|center|right", "emphasis": bool, "double_size": bool},
    {"type": "qr", "payload": str, "module_size": int},
    {"type": "feed", "lines": int},
    {"type": "cut", "partial": bool},
    {"type": "image", "data": base64 str}
  ],
  "open_drawer": bool,
  "wait": number
}
"""

import os

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import ValidationError as SchemaError

from print_bridge.printing import JobNotFound, PrintEngine, QueueFull, ValidationError
from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")
legacy_bp = Blueprint("legacy", __name__)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


MAX_SEGMENTS = _env_int("PRINTBRIDGE_MAX_SEGMENTS", 200)
MAX_TEXT_LEN = _env_int("PRINTBRIDGE_MAX_TEXT_LEN", 512)


def _engine() -> PrintEngine:
    return current_app.extensions["print_bridge"]


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _limits(engine: PrintEngine) -> dict:
    return {
        "MAX_SEGMENTS": MAX_SEGMENTS,
        "MAX_TEXT_LEN": MAX_TEXT_LEN,
        "MAX_QR_LEN": engine.settings.qr_max_payload,
        "MAX_IMAGE_BYTES": engine.settings.max_image_bytes,
    }


def _submit(data=None):
    if data is None:
        if not request.is_json:
            return _json_error("Expected application/json body", 415)
        data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("invalid JSON payload", 400)

    engine = _engine()

    try:
        req = schemas.JobSubmitRequest.model_validate(data, context={"limits": _limits(engine)})
    except SchemaError as e:
        first_err = e.errors()[0]
        loc = ".".join(str(p) for p in first_err.get("loc", ()))
        msg = first_err.get("msg") or str(e)
        return _json_error(f"{loc}: {msg}" if loc else msg, 400)

    try:
        job_id = engine.submit(req.to_description())
    except ValidationError as e:
        return _json_error(str(e), 400)
    except QueueFull as e:
        current_app.logger.warning("Rejected job: %s", e)
        resp = jsonify({"error": str(e)})
        resp.status_code = 429
        resp.headers["Retry-After"] = "1"
        return resp

    api_href = url_for("api.job_status", job_id=job_id)
    if req.wait:
        try:
            job = engine.wait(job_id, timeout=req.wait)
        except JobNotFound:
            return _json_error("not_found", 404)
        resp = jsonify(job.to_dict())
        resp.status_code = 200 if job.status.terminal else 202
    else:
        accepted = schemas.JobAcceptedResponse(id=job_id, status="Pending", links=schemas.Links(self=api_href))
        resp = jsonify(accepted.model_dump())
        resp.status_code = 202
    resp.headers["Location"] = api_href
    return resp


@api_bp.post("/jobs")
def submit_job():
    """
    Accept a JSON job submission, validate, convert to a JobDescription, and enqueue.
    """
    return _submit()


@legacy_bp.post("/print")
def print_legacy():
    """
    Legacy print endpoint. Accepts the JSON job body, or a single base64 image
    (optionally a data URI) as the raw request body or a form field "data".
    """
    if request.is_json:
        return _submit()
    if request.mimetype in ("application/x-www-form-urlencoded", "multipart/form-data"):
        raw = request.form.get("data", "")
    else:
        raw = request.get_data(as_text=True)
    if not raw.strip():
        return _json_error("missing image data", 400)
    return _submit({"segments": [{"type": "image", "data": raw}]})


@api_bp.get("/jobs/<int:job_id>")
def job_status(job_id: int):
    """
    Return job status JSON, 404 if unknown or already evicted.
    """
    try:
        job = _engine().get(job_id)
    except JobNotFound:
        return _json_error("not_found", 404)
    return job.to_dict()


@api_bp.delete("/jobs/<int:job_id>")
def cancel_job(job_id: int):
    engine = _engine()
    try:
        cancelled = engine.cancel(job_id)
        job = engine.get(job_id)
    except JobNotFound:
        return _json_error("not_found", 404)
    if not cancelled:
        return jsonify({"error": "not_cancellable", "status": job.status.value}), 409
    current_app.logger.info("Job %s cancelled via API", job_id)
    return job.to_dict()
