import pytest

from print_bridge.printing.models import Cut, Feed, QRBlock, TextLine
from print_bridge.web import schemas as s


def _limits(**over):
    base = {
        "MAX_SEGMENTS": 200,
        "MAX_TEXT_LEN": 512,
        "MAX_QR_LEN": 512,
        "MAX_IMAGE_BYTES": 1024,
    }
    base.update(over)
    return {"limits": base}


def test_schema_accepts_valid_payload():
    data = {
        "segments": [
            {"type": "text", "content": "Factura 001", "alignment": "CENTER", "emphasis": True},
            {"type": "qr", "payload": "https://example.com"},
            {"type": "feed", "lines": 2},
            {"type": "cut", "partial": True},
        ],
        "open_drawer": True,
    }
    req = s.JobSubmitRequest.model_validate(data, context=_limits())
    desc = req.to_description()
    assert desc.segments == (
        TextLine("Factura 001", "center", True, False),
        QRBlock("https://example.com", 4),
        Feed(2),
        Cut(True),
    )
    assert desc.open_drawer is True


def test_schema_limits_enforced_by_context():
    data = {"segments": [{"type": "text", "content": "a"}, {"type": "text", "content": "b"}]}
    with pytest.raises(Exception):
        s.JobSubmitRequest.model_validate(data, context=_limits(MAX_SEGMENTS=1))

    with pytest.raises(Exception):
        s.JobSubmitRequest.model_validate(
            {"segments": [{"type": "qr", "payload": "x" * 201}]},
            context=_limits(MAX_QR_LEN=200),
        )


def test_schema_alignment_invalid():
    data = {"segments": [{"type": "text", "content": "a", "alignment": "justify"}]}
    with pytest.raises(Exception):
        s.JobSubmitRequest.model_validate(data, context=_limits())


def test_schema_feed_bounds():
    with pytest.raises(Exception):
        s.JobSubmitRequest.model_validate({"segments": [{"type": "feed", "lines": 0}]}, context=_limits())


def test_image_over_size_limit_rejected():
    import base64

    big = base64.b64encode(b"\x00" * 2048).decode("ascii")
    with pytest.raises(Exception):
        s.JobSubmitRequest.model_validate({"segments": [{"type": "image", "data": big}]}, context=_limits())


def test_wait_clamping_and_ignore_negative():
    # Negative becomes None; >30 clamps to 30
    req = s.JobSubmitRequest.model_validate(
        {"segments": [{"type": "cut"}], "wait": -1},
        context=_limits(),
    )
    assert req.wait is None

    req2 = s.JobSubmitRequest.model_validate(
        {"segments": [{"type": "cut"}], "wait": 120},
        context=_limits(),
    )
    assert req2.wait == 30.0
