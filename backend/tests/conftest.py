"""Shared test fixtures."""

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from services.auth_service import create_jwt_token

WEBHOOK_URL = "https://automation.example.com/webhook/trigger-tool"


def make_response(status_code=200, body=None, text=None, content_type="application/json"):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(body if body is not None else {}).encode("utf-8")
    if content_type:
        response.headers["Content-Type"] = content_type
    response.encoding = "utf-8"
    return response


@pytest.fixture
def settings() -> Settings:
    return Settings(
        n8n_webhook_url=WEBHOOK_URL,
        n8n_webhook_token="webhook-secret",
        jwt_secret_key="test-jwt-secret",
        relay_timeout_seconds=5,
    )


@pytest.fixture
def session():
    return fake_session()


@pytest.fixture
def client(settings, session):
    with TestClient(create_app(settings, session=session)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    def _headers(user_id="user-1", email="user-1@example.com"):
        token = create_jwt_token(user_id, email, settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers


def fake_session():
    """Mocked requests.Session with a real cookie jar."""
    fake = MagicMock(spec=requests.Session)
    fake.cookies = requests.cookies.RequestsCookieJar()
    fake.post.return_value = make_response(200, {"result": "ok"})
    return fake


def respond(handler, status_code, body, headers=None):
    payload = json.dumps(body).encode("utf-8")
    handler.send_response(status_code)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(len(payload)))
    for name, value in (headers or {}).items():
        handler.send_header(name, value)
    handler.end_headers()
    handler.wfile.write(payload)


class _WebhookHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        body = json.loads(self.rfile.read(length) or b"null")
        self.server.seen.append({
            "authorization": self.headers.get("Authorization"),
            "cookie": self.headers.get("Cookie"),
            "body": body,
        })
        self.server.behaviour(self, body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def webhook_server():
    """A real local HTTP server standing in for the n8n webhook."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _WebhookHandler)
    server.seen = []
    server.closing = threading.Event()
    server.behaviour = lambda handler, body: respond(handler, 200, {"result": "ok"})
    server.url = f"http://127.0.0.1:{server.server_address[1]}/webhook/trigger-tool"

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.closing.set()
        server.shutdown()
        server.server_close()


def drip(handler, body, size=12, interval=0.4):
    """Announce a small body, then send it one byte at a time."""
    handler.send_response(200)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(size))
    handler.end_headers()
    try:
        for _ in range(size):
            if handler.server.closing.is_set():
                return
            handler.wfile.write(b" ")
            handler.wfile.flush()
            time.sleep(interval)
    except OSError:
        pass  # relay hung up
