"""Tests for Invoke-RestMethod — mocked HTTP."""

from unittest.mock import patch, MagicMock

import httpx
import pytest

from posh_runtime.commands import CommandContext
from posh_runtime.config import _reset_config
from posh_runtime.data import invoke_rest_method
from posh_runtime.exceptions import InvalidOperationError
from posh_runtime.types import PoshObject


@pytest.fixture(autouse=True)
def clean_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _reset_config()
    yield
    _reset_config()


def _mock_response(status_code=200, json_data=None, text="", content_type="application/json"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = {"content-type": content_type}
    resp.json.return_value = json_data
    resp.text = text
    resp.raise_for_status = MagicMock()
    if status_code >= 400:
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"{status_code}", request=MagicMock(), response=resp
        )
    return resp


def fetch(*arguments, **parameters):
    ctx = CommandContext(parameters=dict(parameters), arguments=list(arguments))
    return invoke_rest_method.execute(ctx, None)


def test_fetch_json_object():
    mock_resp = _mock_response(json_data={"id": 1, "name": "x"})
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp):
        [result] = fetch("https://api.example.com/item")
    assert isinstance(result, PoshObject)
    assert result["ID"] == 1.0


def test_fetch_json_array_is_unrolled():
    mock_resp = _mock_response(json_data=[{"id": 1}, {"id": 2}])
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp):
        result = fetch(Uri="https://api.example.com/items")
    assert [r["id"] for r in result] == [1.0, 2.0]


def test_fetch_text():
    mock_resp = _mock_response(text="plain body", content_type="text/plain")
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp):
        assert fetch("https://example.com") == ["plain body"]


def test_fetch_default_call():
    mock_resp = _mock_response(json_data={})
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp) as mock_request:
        fetch("https://api.example.com")
    mock_request.assert_called_once_with(
        "GET",
        "https://api.example.com",
        headers={},
        timeout=30,
    )


def test_fetch_post_with_json_body_and_headers():
    mock_resp = _mock_response(json_data={"ok": True})
    body = PoshObject(name="x", tags=["a"])
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp) as mock_request:
        fetch(
            Uri="https://api.example.com",
            Method="post",
            Body=body,
            Headers=PoshObject({"X-Key": "abc"}),
        )
    mock_request.assert_called_once_with(
        "POST",
        "https://api.example.com",
        headers={"X-Key": "abc"},
        timeout=30,
        json={"name": "x", "tags": ["a"]},
    )


def test_fetch_text_body():
    mock_resp = _mock_response(json_data={})
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp) as mock_request:
        fetch("https://api.example.com", Method="PUT", Body="raw")
    assert mock_request.call_args.kwargs["content"] == "raw"


def test_fetch_uses_config(tmp_path):
    (tmp_path / "posh.config").write_text(
        "http:\n  timeout: 5\n  headers:\n    User-Agent: posh-test\n"
    )
    mock_resp = _mock_response(json_data={})
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp) as mock_request:
        fetch("https://api.example.com")
    assert mock_request.call_args.kwargs["timeout"] == 5
    assert mock_request.call_args.kwargs["headers"] == {"User-Agent": "posh-test"}


def test_fetch_http_error():
    mock_resp = _mock_response(status_code=404)
    with patch("posh_runtime.data.httpx.request", return_value=mock_resp):
        with pytest.raises(InvalidOperationError, match="HTTP 404"):
            fetch("https://api.example.com/missing")


def test_fetch_connection_error():
    error = httpx.ConnectError("refused")
    with patch("posh_runtime.data.httpx.request", side_effect=error):
        with pytest.raises(InvalidOperationError, match="Request failed"):
            fetch("https://unreachable.example.com")


def test_fetch_requires_uri():
    with pytest.raises(InvalidOperationError, match="requires -Uri"):
        fetch()


def test_fetch_bad_headers():
    with pytest.raises(InvalidOperationError, match="hashtable"):
        fetch("https://api.example.com", Headers="nope")


def test_fetch_invalid_uri():
    with pytest.raises(InvalidOperationError, match="Invalid URI"):
        fetch("https://[::1")


def test_fetch_non_ascii_header():
    with pytest.raises(InvalidOperationError, match="Invalid request"):
        fetch("http://127.0.0.1:9/", Headers=PoshObject(X="é☃"))
