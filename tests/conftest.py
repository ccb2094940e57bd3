import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

from sanity_client.clients.http import RetryPolicy
from sanity_client.clients.sanity import SanityClient

BASE_HOST = "http://sanity.test"


def make_response(status_code: int = 200, body: Any = None) -> requests.Response:
    """Build a requests.Response carrying ``body`` (bytes, str or JSON data)."""
    resp = requests.Response()
    resp.status_code = status_code
    if body is None:
        content = b""
    elif isinstance(body, bytes):
        content = body
    elif isinstance(body, str):
        content = body.encode("utf-8")
    else:
        content = json.dumps(body).encode("utf-8")
    resp._content = content
    resp.encoding = "utf-8"
    return resp


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: Dict[str, str]
    data: Optional[bytes]
    timeout: Any

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> List[tuple]:
        return parse_qsl(urlsplit(self.url).query, keep_blank_values=True)

    @property
    def params(self) -> Dict[str, str]:
        return dict(self.query)

    def json(self) -> Any:
        return json.loads(self.data)


class FakeSession:
    """Stands in for requests.Session, replaying queued responses in order.

    A queued item may be a Response, an exception to raise, or a callable
    taking the RecordedCall and returning a Response.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[RecordedCall] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def request(self, method, url, headers=None, data=None, timeout=None, **kwargs):
        call = RecordedCall(method=method, url=url, headers=dict(headers or {}), data=data, timeout=timeout)
        self.calls.append(call)
        if not self.responses:
            raise AssertionError(f"unexpected request {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(call)
        return item


NO_WAIT = RetryPolicy(min_wait=0.0, max_wait=0.0, jitter=False)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return SanityClient(
        "myProject",
        "myDataset",
        api_version="1",
        api_host=BASE_HOST,
        retry_policy=NO_WAIT,
        session=session,
    )
