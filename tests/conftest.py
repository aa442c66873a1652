# shared fakes so no test ever touches the network

import json
import threading
from pathlib import Path

import pytest

DATA = Path(__file__).parent / "data"


def load(name):
    return json.loads((DATA / name).read_text(encoding="utf-8"))


class FakeResponse:
    # the slice of requests.Response that the client uses
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        return json.loads(self.text)


class FakeSession:
    # stands in for requests.Session; handler(url, params) returns a FakeResponse or raises
    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, params=None, timeout=None):
        with self._lock:
            self.calls.append((url, dict(params or {})))
        return self.handler(url, params or {})


def attach(client, session):
    # every thread gets the same fake instead of a thread-local requests.Session
    client._session = lambda: session
    return session


@pytest.fixture
def search_payload():
    return load("portland_search.json")


@pytest.fixture
def forecast_payload():
    return load("portland_forecast.json")
