"""Shared fixtures for the ingestion test-suite."""

import io
import logging
from datetime import datetime, timedelta, timezone

import pytest
import requests
from requests.structures import CaseInsensitiveDict


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _rss_item(item):
    fields = []
    for tag in ("title", "link", "author", "pubDate"):
        if tag in item:
            fields.append(f"<{tag}>{item[tag]}</{tag}>")
    if "description" in item:
        fields.append(f"<description><![CDATA[{item['description']}]]></description>")
    return "<item>" + "".join(fields) + "</item>"


def build_rss(items):
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        "<title>Test Feed</title><link>http://example.com/</link>"
        "<description>Test feed</description>"
        + "".join(_rss_item(i) for i in items)
        + "</channel></rss>"
    ).encode("utf-8")


def make_response(status=200, content=b"", headers=None, reason="OK"):
    """Build a real ``requests.Response`` without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp._content = content
    resp._content_consumed = True
    resp.raw = io.BytesIO(content)
    resp.headers = CaseInsensitiveDict(
        headers if headers is not None else {"Content-Type": "application/rss+xml; charset=utf-8"}
    )
    return resp


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rss():
    """Factory: ``rss([{title, link, description, pubDate, author}, ...]) -> bytes``."""
    return build_rss


@pytest.fixture
def response():
    """Factory for fake HTTP responses."""
    return make_response


@pytest.fixture
def restore_root_logger():
    """Undo ``configure_logging`` side effects on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
