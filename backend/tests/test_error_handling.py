# ruff: noqa

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from starlette.requests import Request

from reliefhub.core import error_handling
from reliefhub.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _relief_error_exception_handler,
    _request_validation_exception_handler,
    install_error_handling,
)
from reliefhub.core.errors import (
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    StoreTimeoutError,
    ValidationError,
)


def _app_raising(exc: Exception) -> FastAPI:
    app = FastAPI()
    install_error_handling(app)

    @app.get("/fail")
    def fail() -> None:
        raise exc

    return app


def test_validation_error_maps_to_400_with_code() -> None:
    client = TestClient(_app_raising(ValidationError("title is required")))
    resp = client.get("/fail")

    assert resp.status_code == 400
    body = resp.json()
    assert body["detail"] == "title is required"
    assert body["code"] == "validation_error"
    assert body["retryable"] is False
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_not_found_error_maps_to_404() -> None:
    client = TestClient(_app_raising(NotFoundError("Disaster abc not found")))
    resp = client.get("/fail")

    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_provider_error_exposes_underlying_detail() -> None:
    client = TestClient(_app_raising(ProviderError("nominatim geocode failed", detail="HTTP 503")))
    resp = client.get("/fail")

    assert resp.status_code == 502
    body = resp.json()
    assert body["detail"] == "nominatim geocode failed"
    assert body["details"] == "HTTP 503"
    assert body["code"] == "provider_error"


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (StoreTimeoutError("Store get on disasters timed out"), "store_timeout"),
        (ProviderTimeoutError("gemini extract_location timed out"), "provider_timeout"),
    ],
)
def test_timeouts_are_distinct_and_retryable(exc: Exception, code: str) -> None:
    client = TestClient(_app_raising(exc))
    resp = client.get("/fail")

    assert resp.status_code == 504
    body = resp.json()
    assert body["code"] == code
    assert body["retryable"] is True


def test_request_validation_error_includes_request_id() -> None:
    app = FastAPI()
    install_error_handling(app)

    @app.get("/needs-float")
    def needs_float(lat: float) -> dict[str, float]:
        return {"lat": lat}

    client = TestClient(app)
    resp = client.get("/needs-float?lat=north")

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body.get("detail"), list)
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_http_exception_keeps_detail() -> None:
    client = TestClient(_app_raising(HTTPException(status_code=401, detail="Unknown caller")))
    resp = client.get("/fail")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Unknown caller"


def test_unhandled_exception_returns_500_with_request_id() -> None:
    client = TestClient(_app_raising(RuntimeError("boom")), raise_server_exceptions=False)
    resp = client.get("/fail")

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_client_provided_request_id_is_trimmed_and_preserved() -> None:
    client = TestClient(_app_raising(NotFoundError("missing")))
    resp = client.get("/fail", headers={REQUEST_ID_HEADER: "  req-123  "})

    assert resp.json()["request_id"] == "req-123"
    assert resp.headers.get(REQUEST_ID_HEADER) == "req-123"


def test_slow_request_emits_slow_log(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    perf_ticks = iter((50.0, 52.5))

    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 1000)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(perf_ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    app = FastAPI()
    install_error_handling(app)

    @app.get("/slow")
    def slow() -> dict[str, str]:
        return {"ok": "1"}

    resp = TestClient(app).get("/slow")

    assert resp.status_code == 200
    assert any(
        message == "http.request.slow"
        and extra.get("slow_threshold_ms") == 1000
        and extra.get("elapsed_ms") == 2500.0
        for message, extra in warnings
    )


def test_health_route_skips_request_logs_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    infos: list[str] = []
    monkeypatch.setattr(error_handling.settings, "request_log_include_health", False)
    monkeypatch.setattr(
        error_handling.logger,
        "info",
        lambda message, *args, **kwargs: infos.append(message),
    )

    app = FastAPI()
    install_error_handling(app)

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    resp = TestClient(app).get("/healthz")

    assert resp.status_code == 200
    assert isinstance(resp.headers.get(REQUEST_ID_HEADER), str)
    assert "http.request.complete" not in infos


def test_get_request_id_returns_none_for_missing_or_invalid_state() -> None:
    assert _get_request_id(Request({"type": "http", "headers": [], "state": {}})) is None
    req = Request({"type": "http", "headers": [], "state": {"request_id": 123}})
    assert _get_request_id(req) is None


def test_error_payload_omits_request_id_when_none() -> None:
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}


@pytest.mark.asyncio
async def test_request_validation_exception_wrapper_rejects_wrong_exception() -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match="Expected RequestValidationError"):
        await _request_validation_exception_handler(req, Exception("x"))


@pytest.mark.asyncio
async def test_domain_error_wrapper_rejects_wrong_exception() -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match="Expected ReliefHubError"):
        await _relief_error_exception_handler(req, Exception("x"))


def test_json_safe_decodes_bytes_and_falls_back_to_str() -> None:
    assert error_handling._json_safe(b"\xff") == "\ufffd"
    assert error_handling._json_safe({"k": (1, b"a")}) == {"k": [1, "a"]}

    class Weird:
        def __str__(self) -> str:
            return "weird"

    assert error_handling._json_safe(Weird()) == "weird"
