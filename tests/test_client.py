import json

import httpx
import pytest

from voxsync.client import ApplicationError, ServiceClient, TransportError


def make_client(handler):
    return ServiceClient("https://voice.example/", transport=httpx.MockTransport(handler))


def test_login_posts_email_and_returns_request_id():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"auth_request_id": "r1"})

    assert make_client(handler).login("a@b.com") == "r1"
    assert seen == {"method": "POST", "path": "/api/auth/login", "body": {"email": "a@b.com"}, "auth": None}


def test_verify_code_returns_token():
    def handler(request):
        assert request.url.path == "/api/auth/verify-code"
        assert json.loads(request.content) == {"auth_request_id": "r1", "code": "123456"}
        return httpx.Response(200, json={"jwt_token": "t1"})

    assert make_client(handler).verify_code("r1", "123456") == "t1"


def test_structured_error_becomes_application_error():
    def handler(request):
        return httpx.Response(200, json={"error": True, "message": "Invalid code"})

    with pytest.raises(ApplicationError, match="Invalid code"):
        make_client(handler).verify_code("r1", "000000")


def test_http_failure_status_uses_message_from_body():
    def handler(request):
        return httpx.Response(401, json={"error": True, "message": "Token expired"})

    with pytest.raises(ApplicationError) as excinfo:
        make_client(handler).list_uploads("t1")
    assert str(excinfo.value) == "Token expired"
    assert excinfo.value.status_code == 401


def test_network_failure_becomes_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        make_client(handler).login("a@b.com")


def test_non_json_success_is_transport_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(TransportError):
        make_client(handler).login("a@b.com")


def test_missing_base_url_is_transport_error():
    with pytest.raises(TransportError):
        ServiceClient("").login("a@b.com")


def test_list_uploads_sends_bearer_token_and_parses_payload():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/api/uploads/obsidian"
        assert request.headers["Authorization"] == "Bearer t1"
        return httpx.Response(
            200,
            json=[
                {"id": 7, "userId": "u1", "label": "Standup", "url": "https://a/7.m4a", "transcription": "hi",
                 "createdAt": "2024-05-01T09:30:00Z", "extra": "ignored"},
                {"id": "8", "user_id": "u1", "url": "https://a/8.m4a", "transcription": "there"},
            ],
        )

    uploads = make_client(handler).list_uploads("t1")
    assert [u.id for u in uploads] == ["7", "8"]
    assert uploads[0].user_id == "u1"
    assert uploads[0].title == "Standup"
    assert uploads[0].created_at.year == 2024
    assert uploads[1].label is None
    assert uploads[1].title == "Voice note 8"


def test_list_uploads_empty_array():
    assert make_client(lambda request: httpx.Response(200, json=[])).list_uploads("t1") == []


def test_acknowledge_posts_to_sync_path():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.headers["Authorization"]))
        return httpx.Response(200, json={"success": True})

    make_client(handler).acknowledge("t1", "42")
    assert seen == [("POST", "/api/uploads/obsidian/sync/42", "Bearer t1")]


def test_list_uploads_skips_invalid_items():
    def handler(request):
        return httpx.Response(
            200,
            json=[
                {"id": "1", "transcription": "ok", "url": "u"},
                {"label": "missing id"},
                {"id": "3", "transcription": "also ok", "url": "u"},
            ],
        )

    errors = []
    uploads = make_client(handler).list_uploads("t1", errors=errors)

    assert [u.id for u in uploads] == ["1", "3"]
    assert len(errors) == 1 and "#1" in errors[0]
