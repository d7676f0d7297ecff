"""Shared fixtures: a scripted fake Orchestrator behind a real requests session."""

import configparser
import json
from collections import defaultdict, deque

import pytest

import velocloud_api

HOST = "vco.example.net"
API_URL = f"https://{HOST}/portal/rest"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, body=None, content_type="application/json", raw=None, set_cookie=False):
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        if raw is None:
            raw = json.dumps(body) if body is not None else ""
        self.text = raw
        self.content = raw.encode("utf-8")
        self.set_cookie = set_cookie

    def json(self):
        return json.loads(self.text)


def login_ok():
    return FakeResponse(body={}, set_cookie=True)


def login_rejected():
    return FakeResponse(raw="<!DOCTYPE html><html><body>Login</body></html>", content_type="text/html")


def html_page():
    return FakeResponse(raw="<html><body>Session expired</body></html>", content_type="text/html;charset=UTF-8")


def token_expired():
    return FakeResponse(body={"error": {"code": -32000, "message": "tokenError [expired session cookie]"}})


def api_error(message="Permission denied"):
    return FakeResponse(body={"error": {"code": -32603, "message": message}})


class FakeOrchestrator:
    """
    Replaces session.post. Responses are queued per API method; the last
    queued response for a method is repeated once the queue runs dry.
    """

    def __init__(self, session):
        self.session = session
        self.calls = []
        self._responses = defaultdict(deque)
        session.post = self

    def respond(self, method, *responses):
        self._responses[method].extend(responses)
        return self

    def methods(self):
        return [method for method, _payload in self.calls]

    def count(self, method):
        return self.methods().count(method)

    def __call__(self, url, json=None, timeout=None):
        method = url.split("/portal/rest/", 1)[1]
        self.calls.append((method, json))
        queue = self._responses.get(method)
        if not queue:
            raise AssertionError(f"Unexpected call to {method}")
        response = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if response.set_cookie:
            self.session.cookies.set(velocloud_api.SESSION_COOKIE, "c0ffee", domain=HOST)
        return response


@pytest.fixture
def session():
    return velocloud_api.create_session(verify_ssl=True)


@pytest.fixture
def orchestrator(session):
    return FakeOrchestrator(session)


@pytest.fixture
def config():
    parser = configparser.ConfigParser()
    parser.read_dict({
        "General": {"ssl_verify": "true", "log_file": "", "timeout_seconds": "5"},
        "VeloCloud": {
            "hostname": HOST,
            "username": "monitor@example.net",
            "password": "s3cret",
            "login_type": "enterprise",
            "enterprise_ids": "101",
            "metrics_window_minutes": "15",
        },
        "Proxy": {"enabled": "false"},
    })
    return parser
