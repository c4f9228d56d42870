"""
Test Streaming REST Client
==========================

Request shapes and error mapping, served by httpx.MockTransport.

Usage:
    pytest test_api_client.py
"""

import io
import json
import re

import httpx
import pytest

from platestream_api import (
    ApiConnectionError,
    ApiTimeoutError,
    DownloadError,
    StreamingApiClient,
    StreamingApiError,
    UploadError,
    result_filename,
)
from platestream_ws import StreamingOptions


@pytest.fixture
def sent_requests():
    return []


def make_api(logger, sent_requests, handler):
    def recording(request):
        request.read()
        sent_requests.append(request)
        return handler(request)

    return StreamingApiClient(
        base_url="http://alpr.test:8000",
        logger=logger,
        transport=httpx.MockTransport(recording),
    )


def test_result_filename():
    assert result_filename("session_1_abc", "csv", 1700000000000) == \
        "streaming_results_session_1_abc_1700000000000.csv"


# ─────────────────────────────────────────────────────────────────────────────
# Upload
# ─────────────────────────────────────────────────────────────────────────────

def test_upload_sends_multipart_form(logger, sent_requests, tmp_path):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    api = make_api(logger, sent_requests, lambda r: httpx.Response(
        200, json={"success": True, "message": "Video uploaded", "session_id": "s1"}
    ))

    response = api.upload_video("s1", video, StreamingOptions(frame_skip=3))

    assert response['success'] is True
    request = sent_requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/streaming/upload"
    assert request.headers['content-type'].startswith("multipart/form-data")

    body = request.content
    assert b'name="session_id"\r\n\r\ns1\r\n' in body
    assert b'name="frame_skip"\r\n\r\n3\r\n' in body
    assert b'name="send_all_frames"\r\n\r\nfalse\r\n' in body
    assert b'name="adaptive_quality"\r\n\r\ntrue\r\n' in body
    assert b'filename="clip.mp4"' in body
    assert b"ftypmp42" in body


def test_upload_accepts_file_object(logger, sent_requests):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(200, json={"success": True}))
    source = io.BytesIO(b"video-bytes")

    api.upload_video("s1", source)

    assert b"video-bytes" in sent_requests[0].content
    assert b'filename="upload.bin"' in sent_requests[0].content


@pytest.mark.parametrize("body, expected", [
    ({"detail": {"message": "Unsupported codec"}, "message": "ignored"}, "Unsupported codec"),
    ({"message": "Session not connected"}, "Session not connected"),
    ({"detail": "plain string"}, "Error uploading video"),
    ("not json at all", "Error uploading video"),
])
def test_upload_error_message_precedence(logger, sent_requests, body, expected):
    def handler(request):
        if isinstance(body, dict):
            return httpx.Response(400, json=body)
        return httpx.Response(400, text=body)

    api = make_api(logger, sent_requests, handler)

    with pytest.raises(UploadError) as exc_info:
        api.upload_video("s1", io.BytesIO(b"x"))

    assert exc_info.value.message == expected
    assert exc_info.value.status_code == 400
    assert str(exc_info.value) == f"{expected} (HTTP 400)"


def test_upload_missing_file(logger, sent_requests, tmp_path):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(200, json={}))

    with pytest.raises(UploadError):
        api.upload_video("s1", tmp_path / "missing.mp4")

    assert sent_requests == []


# ─────────────────────────────────────────────────────────────────────────────
# Download
# ─────────────────────────────────────────────────────────────────────────────

def test_download_writes_result_file(logger, sent_requests, tmp_path):
    payload = {"session_id": "s1", "plates": [{"plate_text": "ABC123"}]}
    api = make_api(logger, sent_requests, lambda r: httpx.Response(200, json=payload))

    path = api.download_results("s1", fmt="json", dest_dir=tmp_path / "results")

    assert re.fullmatch(r"streaming_results_s1_\d+\.json", path.name)
    assert path.parent == tmp_path / "results"
    assert json.loads(path.read_text()) == payload

    request = sent_requests[0]
    assert request.url.path == "/api/v1/streaming/sessions/s1/download"
    assert request.url.params['format'] == "json"
    assert request.url.params['include_timeline'] == "true"


def test_download_rejects_unknown_format(logger, sent_requests, tmp_path):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(200))

    with pytest.raises(ValueError):
        api.download_results("s1", fmt="xml", dest_dir=tmp_path)

    assert sent_requests == []


def test_download_http_error(logger, sent_requests, tmp_path):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(404, json={"detail": "Session not found"}))

    with pytest.raises(DownloadError) as exc_info:
        api.download_results("s1", fmt="csv", dest_dir=tmp_path)

    assert exc_info.value.status_code == 404
    assert exc_info.value.details == {"detail": "Session not found"}
    assert list(tmp_path.iterdir()) == []


# ─────────────────────────────────────────────────────────────────────────────
# Session management
# ─────────────────────────────────────────────────────────────────────────────

def test_session_endpoints(logger, sent_requests):
    def handler(request):
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={"path": request.url.path})

    api = make_api(logger, sent_requests, handler)

    assert api.get_active_sessions() == {"path": "/api/v1/streaming/sessions"}
    assert api.get_session_info("s1") == {"path": "/api/v1/streaming/sessions/s1"}
    assert api.get_health() == {"path": "/api/v1/streaming/health"}
    assert api.test_connection() == {"path": "/api/v1/streaming/test-connection"}
    api.disconnect_session("s1")

    assert [(r.method, r.url.path) for r in sent_requests][-1] == ("DELETE", "/api/v1/streaming/sessions/s1")


def test_non_json_response_is_an_error(logger, sent_requests):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(200, text="<html>"))

    with pytest.raises(StreamingApiError):
        api.get_health()


def test_server_error_is_mapped(logger, sent_requests):
    api = make_api(logger, sent_requests, lambda r: httpx.Response(503, json={"detail": "down"}))

    with pytest.raises(StreamingApiError) as exc_info:
        api.get_health()

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "Streaming health check failed"


# ─────────────────────────────────────────────────────────────────────────────
# Transport failures
# ─────────────────────────────────────────────────────────────────────────────

def test_connection_refused(logger, sent_requests):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = make_api(logger, sent_requests, handler)

    with pytest.raises(ApiConnectionError) as exc_info:
        api.get_active_sessions()

    assert exc_info.value.status_code is None
    assert not isinstance(exc_info.value, ApiTimeoutError)


def test_timeout(logger, sent_requests):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    api = make_api(logger, sent_requests, handler)

    with pytest.raises(ApiTimeoutError):
        api.get_health()


def test_upload_connection_error_propagates(logger, sent_requests):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = make_api(logger, sent_requests, handler)

    with pytest.raises(ApiConnectionError):
        api.upload_video("s1", io.BytesIO(b"x"))


def test_context_manager(logger, sent_requests):
    with make_api(logger, sent_requests, lambda r: httpx.Response(200, json={})) as api:
        api.get_health()

    assert api._client.is_closed
