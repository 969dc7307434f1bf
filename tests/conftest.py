import json

import pytest

from sheet_analyst.dataset import DataSet


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)


class StubSession:
    """Stands in for ``requests.Session``; replays canned responses in order."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if not self.responses:
            raise AssertionError("unexpected network call")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def answer_body(*texts):
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": t}]}} for t in texts
        ]
    }


@pytest.fixture
def make_session():
    def _make(*responses):
        return StubSession(responses)

    return _make


@pytest.fixture
def ok_response():
    def _make(text="Revenue grows 50 per month."):
        return FakeResponse(200, answer_body(text))

    return _make


@pytest.fixture
def error_response():
    def _make(status_code, status, message="error"):
        return FakeResponse(status_code, {"error": {"code": status_code, "status": status, "message": message}})

    return _make


@pytest.fixture
def raw_response():
    return FakeResponse


@pytest.fixture
def sales_dataset():
    return DataSet.from_grid(
        [
            ["Date", "Revenue", "Region"],
            ["2024-01", 100, "US"],
            ["2024-02", 150, "US"],
            ["2024-03", 200, "EU"],
        ],
        sheet_name="Sales",
    )
