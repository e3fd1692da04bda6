from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.integrations.wix_bookings import WIX_OAUTH_URL, WixBookingsAdapter


def _mock_client(*responses) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(side_effect=list(responses))
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None
    return mock_client


def _adapter(**config) -> WixBookingsAdapter:
    return WixBookingsAdapter({"api_key": "IST.key", "site_id": "site-1", **config})


@pytest.mark.asyncio
async def test_confirm_booking_posts_with_api_key_headers():
    mock_client = _mock_client(httpx.Response(200, text='{"booking":{"id":"B1"}}'))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("confirm_booking", {"booking_id": "B1"})

    assert result["success"] is True
    assert result["status"] == 200
    url = mock_client.post.call_args.args[0]
    headers = mock_client.post.call_args.kwargs["headers"]
    assert url == "https://www.wixapis.com/bookings/v2/bookings/B1/confirm"
    assert headers["Authorization"] == "IST.key"
    assert headers["wix-site-id"] == "site-1"


@pytest.mark.asyncio
async def test_cancel_booking_sends_reason_and_notification_flag():
    mock_client = _mock_client(httpx.Response(200, text="{}"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        await _adapter().execute("cancel_booking", {"booking_id": "B1", "reason": "OPERATOR_CANCELLED"})

    body = mock_client.post.call_args.kwargs["json"]
    assert body == {"participantNotification": {"notifyParticipants": False}, "reason": "OPERATOR_CANCELLED"}


@pytest.mark.asyncio
async def test_error_body_is_returned_verbatim():
    raw = '{"message":"Booking B1 is not in a payable state","details":{"applicationError":{"code":"X"}}}'
    mock_client = _mock_client(httpx.Response(409, text=raw))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("mark_paid", {"booking_id": "B1"})

    assert result["success"] is False
    assert result["status"] == 409
    assert result["body"] == raw
    assert result["error"] == "wix_http_409"


@pytest.mark.asyncio
async def test_timeout_is_reported_without_status():
    mock_client = _mock_client(httpx.ReadTimeout("read timed out"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("decline_booking", {"booking_id": "B1"})

    assert result["success"] is False
    assert result["status"] is None
    assert result["error"].startswith("timeout")


@pytest.mark.asyncio
async def test_missing_booking_id_and_unknown_action():
    adapter = _adapter()
    assert (await adapter.execute("confirm_booking", {}))["error"] == "booking_id is required"
    assert (await adapter.execute("refund", {"booking_id": "B1"}))["error"] == "Unknown action: refund"


@pytest.mark.asyncio
async def test_path_override():
    mock_client = _mock_client(httpx.Response(200, text="{}"))
    adapter = _adapter(paths={"mark_paid": "/bookings/v1/bookings/{booking_id}/payment"})

    with patch("httpx.AsyncClient", return_value=mock_client):
        await adapter.execute("mark_paid", {"booking_id": "B1"})

    assert mock_client.post.call_args.args[0].endswith("/bookings/v1/bookings/B1/payment")


@pytest.mark.asyncio
async def test_refresh_token_is_exchanged_for_bearer():
    mock_client = _mock_client(
        httpx.Response(200, json={"access_token": "acc-1", "refresh_token": "ref-2"}),
        httpx.Response(200, text="{}"),
    )
    adapter = WixBookingsAdapter({"client_id": "cid", "client_secret": "cs", "refresh_token": "ref-1"})

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await adapter.execute("confirm_booking", {"booking_id": "B1"})

    assert result["success"] is True
    token_call, api_call = mock_client.post.call_args_list
    assert token_call.args[0] == WIX_OAUTH_URL
    assert token_call.kwargs["data"]["grant_type"] == "refresh_token"
    assert api_call.kwargs["headers"]["Authorization"] == "Bearer acc-1"
    assert "wix-site-id" not in api_call.kwargs["headers"]


@pytest.mark.asyncio
async def test_refresh_failure_becomes_failed_result():
    mock_client = _mock_client(httpx.Response(400, text='{"error":"invalid_grant"}'))
    adapter = WixBookingsAdapter({"client_id": "cid", "client_secret": "cs", "refresh_token": "bad"})

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await adapter.execute("mark_paid", {"booking_id": "B1"})

    assert result["success"] is False
    assert result["status"] == 400
    assert result["body"] == '{"error":"invalid_grant"}'
    assert mock_client.post.call_count == 1


@pytest.mark.asyncio
async def test_missing_credentials_makes_no_call():
    with patch("httpx.AsyncClient") as client_cls:
        result = await WixBookingsAdapter({}).execute("confirm_booking", {"booking_id": "B1"})

    assert result["success"] is False
    assert "WIX_REFRESH_TOKEN" in result["error"]
    client_cls.assert_not_called()


@pytest.mark.asyncio
async def test_query_bookings_extracts_extended_bookings():
    body = {
        "extendedBookings": [
            {"booking": {"id": "B1", "createdDate": "2026-03-01T08:00:00Z"}},
            {"booking": {"id": "B2", "createdDate": "2026-03-01T09:00:00Z"}},
        ]
    }
    mock_client = _mock_client(httpx.Response(200, text=json.dumps(body)))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("query_bookings", {"since": "2026-03-01T07:00:00Z", "limit": 10})

    assert result["success"] is True
    assert [b["id"] for b in result["bookings"]] == ["B1", "B2"]
    query = mock_client.post.call_args.kwargs["json"]["query"]
    assert query["filter"] == {"createdDate": {"$gt": "2026-03-01T07:00:00Z"}}
    assert query["paging"] == {"limit": 10}


@pytest.mark.asyncio
async def test_query_bookings_failure_has_empty_list():
    mock_client = _mock_client(httpx.Response(503, text="unavailable"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("query_bookings", {})

    assert result["success"] is False
    assert result["bookings"] == []


@pytest.mark.asyncio
async def test_query_services_posts_empty_query_and_extracts_services():
    body = {"services": [{"_id": "S1", "name": "Баня"}, "junk"]}
    mock_client = _mock_client(httpx.Response(200, text=json.dumps(body)))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await _adapter().execute("query_services", {})

    assert result["success"] is True
    assert result["services"] == [{"_id": "S1", "name": "Баня"}]
    assert mock_client.post.call_args.args[0].endswith("/bookings/v1/services/query")
    assert mock_client.post.call_args.kwargs["json"] == {"query": {}}


@pytest.mark.asyncio
async def test_query_services_reads_items_key():
    body = {"items": [{"id": "S2"}]}
    with patch("httpx.AsyncClient", return_value=_mock_client(httpx.Response(200, text=json.dumps(body)))):
        result = await _adapter().execute("query_services", {})

    assert result["services"] == [{"id": "S2"}]


@pytest.mark.asyncio
async def test_query_services_failure_keeps_body():
    error = '{"message":"Not authorized","details":{"applicationError":{"code":"FORBIDDEN"}}}'
    with patch("httpx.AsyncClient", return_value=_mock_client(httpx.Response(403, text=error))):
        result = await _adapter().execute("query_services", {})

    assert result["success"] is False
    assert result["status"] == 403
    assert result["body"] == error
    assert result["services"] == []
