"""Tests for the Sheets REST client, driven through httpx.MockTransport."""

import json

import httpx
import pytest

from spa_ledger.domain.errors import RemoteUnavailableError
from spa_ledger.infrastructure.sheets.auth import (
    ServiceAccountTokenProvider,
    StaticTokenProvider,
    normalize_private_key,
)
from spa_ledger.infrastructure.sheets.client import SheetsAPIError, SheetsClient


def _client(handler, **kwargs) -> SheetsClient:
    return SheetsClient(
        spreadsheet_id="sheet-123",
        token_provider=StaticTokenProvider("tok"),
        base_url="https://sheets.test/v4",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_get_values_sends_range_and_token(event_loop):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.raw_path.decode()
        seen["auth"] = request.headers["Authorization"]
        seen["render"] = request.url.params["valueRenderOption"]
        return httpx.Response(200, json={"range": "Invoices!A2:X3", "values": [["2025-26/000001", "D1"]]})

    rows = event_loop.run_until_complete(_client(handler).get_values("Invoices!A2:X"))

    assert rows == [["2025-26/000001", "D1"]]
    assert seen["auth"] == "Bearer tok"
    assert seen["render"] == "UNFORMATTED_VALUE"
    assert seen["path"].startswith("/v4/spreadsheets/sheet-123/values/Invoices%21A2%3AX")


def test_empty_range_returns_no_rows(event_loop):
    client = _client(lambda request: httpx.Response(200, json={"range": "Invoices!A2:X"}))
    assert event_loop.run_until_complete(client.get_values("Invoices!A2:X")) == []


def test_update_uses_raw_input(event_loop):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["option"] = request.url.params["valueInputOption"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"updatedRows": 1})

    event_loop.run_until_complete(_client(handler).update_values("Invoices!A5:X5", [["2025-26/000003"]]))

    assert seen["method"] == "PUT"
    assert seen["option"] == "RAW"
    assert seen["body"]["values"] == [["2025-26/000003"]]


def test_append_returns_updated_range(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith(":append")
        assert request.url.params["insertDataOption"] == "INSERT_ROWS"
        return httpx.Response(200, json={"updates": {"updatedRange": "Invoices!A14:X14"}})

    updated = event_loop.run_until_complete(_client(handler).append_values("Invoices!A2:X", [["x"]]))

    assert updated == "Invoices!A14:X14"


def test_append_without_updated_range_is_an_error(event_loop):
    client = _client(lambda request: httpx.Response(200, json={"updates": {}}))
    with pytest.raises(SheetsAPIError):
        event_loop.run_until_complete(client.append_values("Invoices!A2:X", [["x"]]))


def test_http_error_becomes_remote_unavailable(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": 429, "message": "Quota exceeded"}})

    with pytest.raises(RemoteUnavailableError) as exc_info:
        event_loop.run_until_complete(_client(handler).get_values("Invoices!A2:X"))

    assert isinstance(exc_info.value, SheetsAPIError)
    assert exc_info.value.status_code == 429
    assert exc_info.value.response["error"]["message"] == "Quota exceeded"


def test_transport_failure_becomes_remote_unavailable(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SheetsAPIError):
        event_loop.run_until_complete(_client(handler).clear_values("Invoices!A2:X"))


def test_delete_rows_resolves_sheet_id(event_loop):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"sheets": [{"properties": {"sheetId": 77, "title": "Invoices"}}]})
        requests.append(json.loads(request.content))
        return httpx.Response(200, json={})

    event_loop.run_until_complete(_client(handler).delete_rows("Invoices", 5))

    dimension = requests[0]["requests"][0]["deleteDimension"]["range"]
    assert dimension == {"sheetId": 77, "dimension": "ROWS", "startIndex": 4, "endIndex": 5}


def test_delete_rows_on_unknown_sheet(event_loop):
    client = _client(lambda request: httpx.Response(200, json={"sheets": []}))
    with pytest.raises(SheetsAPIError):
        event_loop.run_until_complete(client.delete_rows("Nope", 2))


def test_missing_spreadsheet_id_rejected(monkeypatch):
    monkeypatch.setattr("spa_ledger.infrastructure.sheets.client.settings.GOOGLE_SHEETS_ID", "")
    with pytest.raises(SheetsAPIError):
        SheetsClient(token_provider=StaticTokenProvider("tok"))


class TestServiceAccountTokens:
    def test_private_key_newlines_restored(self):
        assert normalize_private_key("-----BEGIN-----\\nabc\\n-----END-----") == "-----BEGIN-----\nabc\n-----END-----"

    def test_missing_credentials(self, event_loop):
        provider = ServiceAccountTokenProvider(client_email="", private_key="")
        with pytest.raises(RemoteUnavailableError):
            event_loop.run_until_complete(provider.get_token())

    def test_cached_token_is_reused(self, event_loop):
        provider = ServiceAccountTokenProvider(client_email="svc@example.iam", private_key="unused")
        provider._token = "cached"
        provider._expires_at = float("inf")
        assert event_loop.run_until_complete(provider.get_token()) == "cached"
