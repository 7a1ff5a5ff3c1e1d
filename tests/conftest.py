import json as jsonlib
from unittest.mock import Mock

import pytest
import requests

from photobridge.credentials import Credential, CredentialCache
from photobridge.transport import RetryingTransport


class FakeResponse:
    """Just enough of requests.Response for the clients."""

    def __init__(self, status_code=200, json=None, text=None, content=b"", headers=None, reason=""):
        self.status_code = status_code
        self._json = json
        self.text = text if text is not None else (jsonlib.dumps(json) if json is not None else "")
        self.content = content
        self.headers = headers or {}
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._json


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def transport(session, sleeps):
    return RetryingTransport(session=session, sleep=sleeps.append)


@pytest.fixture
def token_cache():
    return CredentialCache(credential=Credential(token="tok", account_id=173128))
