import json
import time
from unittest import mock
from uuid import uuid4

import jwt
import pytest
import requests

from blinkdebit import BlinkDebitClient, BlinkPayConfig


def make_response(status_code: int, body=None, headers: dict = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = b"" if body is None else json.dumps(body).encode()
    resp.headers.update(headers or {})
    return resp


def make_jwt(exp: float) -> str:
    return jwt.encode({"sub": "merchant", "exp": int(exp)}, "test-secret", algorithm="HS256")


@pytest.fixture
def config() -> BlinkPayConfig:
    return BlinkPayConfig(
        client_id="client-id",
        client_secret="client-secret",
        debit_url="https://debit.test",
        retry_enabled=False,
    )


@pytest.fixture
def authenticator():
    auth = mock.Mock()
    auth.get_auth_header.return_value = "Bearer test-token"
    return auth


@pytest.fixture
def session():
    s = mock.Mock()
    s.headers = {}
    return s


@pytest.fixture
def client(config, session, authenticator) -> BlinkDebitClient:
    return BlinkDebitClient(config, session=session, authenticator=authenticator)


@pytest.fixture
def sleeps(monkeypatch):
    """Record poll sleeps instead of sleeping."""
    calls = []
    monkeypatch.setattr("blinkdebit.poller.time.sleep", calls.append)
    return calls


@pytest.fixture
def resource_id():
    return uuid4()


@pytest.fixture
def now():
    return time.time()
