from datetime import datetime

import pytest


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test inside an empty working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class FakeFetcher:
    """Returns queued payloads; an Exception in the queue is raised instead."""

    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.calls = []

    def __call__(self, url, **kw):
        self.calls.append((url, kw))
        item = self.payloads.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClock:
    def __init__(self, *moments):
        self.moments = list(moments) or [datetime(2024, 3, 7, 9, 5, 1)]

    def __call__(self):
        if len(self.moments) > 1:
            return self.moments.pop(0)
        return self.moments[0]


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def fake_clock():
    return FakeClock
