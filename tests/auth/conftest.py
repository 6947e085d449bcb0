from typing import Any
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from misskey_auth.config import MisskeyOAuthSettings
from misskey_auth.context import FlowContext


def make_request(
    path: str = "/auth/misskey",
    query: str = "",
    cookies: dict[str, str] | None = None,
    host: str = "app.example.com",
) -> Request:
    """Build a Starlette request for the callback route."""
    headers = [(b"host", host.encode())]
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode()))
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "https",
        "server": (host, 443),
        "path": path,
        "root_path": "",
        "query_string": query.encode(),
        "headers": headers,
    }
    return Request(scope)


def make_context(**kwargs: Any) -> FlowContext:
    return FlowContext(make_request(**kwargs))


def mock_response(status_code: int = 200, json_data: Any = None) -> MagicMock:
    """Mock httpx response with a JSON body."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    return response


@pytest.fixture
def settings() -> MisskeyOAuthSettings:
    """Settings that ignore the process environment and any .env file."""
    return MisskeyOAuthSettings.model_construct()


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def context_factory():
    return make_context


@pytest.fixture
def response_factory():
    return mock_response
