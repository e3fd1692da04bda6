"""
Wix Bookings Integration — booking status changes and booking queries.

Auth: either a site API key (sent as-is with wix-site-id) or an OAuth app
refresh token exchanged for a short-lived access token on each call. Token
acquisition and rotation of the refresh token happen outside this service.

Endpoint paths can be overridden per action via config["paths"]; the live
API contract for mark-as-paid in particular should be checked before rollout.
"""

from __future__ import annotations

import json
import logging

import httpx

from src.integrations.base import IntegrationAdapter, remote_result

logger = logging.getLogger(__name__)

WIX_API_BASE = "https://www.wixapis.com"
WIX_OAUTH_URL = "https://www.wix.com/oauth/access"

DEFAULT_PATHS: dict[str, str] = {
    "confirm_booking": "/bookings/v2/bookings/{booking_id}/confirm",
    "decline_booking": "/bookings/v2/bookings/{booking_id}/decline",
    "cancel_booking": "/bookings/v2/bookings/{booking_id}/cancel",
    "mark_paid": "/bookings/v2/bookings/{booking_id}/mark-as-paid",
    "query_bookings": "/bookings/v2/extended-bookings/query",
    "query_services": "/bookings/v1/services/query",
}


class WixAuthError(Exception):
    """Access token could not be obtained. Carries the upstream response verbatim."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class WixTokenProvider:
    """
    Supplies a ready-to-use Authorization header value.

    Config keys:
        api_key: str - site API key (preferred when set)
        client_id / client_secret / refresh_token: str - OAuth app credentials
    """

    def __init__(self, config: dict, timeout: float = 10.0):
        self.api_key: str = config.get("api_key", "")
        self.client_id: str = config.get("client_id", "")
        self.client_secret: str = config.get("client_secret", "")
        self.refresh_token: str = config.get("refresh_token", "")
        self.timeout = timeout

    async def authorization(self) -> str:
        if self.api_key:
            return self.api_key

        if not self.client_id or not self.client_secret or not self.refresh_token:
            raise WixAuthError("Missing WIX_CLIENT_ID / WIX_CLIENT_SECRET / WIX_REFRESH_TOKEN")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                WIX_OAUTH_URL,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                },
            )

        if not resp.is_success:
            raise WixAuthError("refresh_token exchange failed", status=resp.status_code, body=resp.text)

        access_token = (resp.json() or {}).get("access_token")
        if not access_token:
            raise WixAuthError("refresh_token exchange returned no access_token", status=resp.status_code, body=resp.text)
        return f"Bearer {access_token}"


class WixBookingsAdapter(IntegrationAdapter):
    """
    Wix Bookings REST integration.

    Config keys:
        api_key, client_id, client_secret, refresh_token: see WixTokenProvider
        site_id: str - required with api_key auth
        timeout: float - HTTP timeout in seconds (default 10)
        paths: dict - per-action endpoint overrides
    """

    integration_type = "wix_bookings"

    def __init__(self, config: dict, token_provider: WixTokenProvider | None = None):
        super().__init__(config)
        self.site_id: str = config.get("site_id", "")
        self.timeout: float = float(config.get("timeout", 10.0))
        self.paths: dict[str, str] = {**DEFAULT_PATHS, **(config.get("paths") or {})}
        self.tokens = token_provider or WixTokenProvider(config, timeout=self.timeout)

    async def execute(self, action: str, params: dict) -> dict:
        """
        Dispatch to the appropriate bookings action.

        Actions:
            confirm_booking: params = {"booking_id": str, "revision": str (optional)}
            decline_booking: params = {"booking_id": str, "revision": str (optional)}
            cancel_booking: params = {"booking_id": str, "reason": str, "notify": bool}
            mark_paid: params = {"booking_id": str}
            query_bookings: params = {"since": str (ISO datetime), "limit": int}
            query_services: params = {}
        """
        if action in ("confirm_booking", "decline_booking"):
            return await self._transition(action, params, self._revision_body(params))
        elif action == "cancel_booking":
            body = self._revision_body(params)
            body["participantNotification"] = {"notifyParticipants": bool(params.get("notify", False))}
            if params.get("reason"):
                body["reason"] = params["reason"]
            return await self._transition(action, params, body)
        elif action == "mark_paid":
            return await self._transition(action, params, {})
        elif action == "query_bookings":
            return await self.query_bookings(params)
        elif action == "query_services":
            return await self.query_services()
        else:
            return remote_result(False, error=f"Unknown action: {action}")

    async def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": await self.tokens.authorization(),
            "Content-Type": "application/json",
        }
        if self.site_id:
            headers["wix-site-id"] = self.site_id
        return headers

    async def _post(self, action: str, path: str, body: dict) -> dict:
        """POST to the Wix API; never raises, upstream status and body are kept verbatim."""
        try:
            headers = await self._headers()
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{WIX_API_BASE}{path}", headers=headers, json=body)
        except WixAuthError as e:
            logger.error("Wix auth failed for %s: %s %s", action, e.status, e.body)
            return remote_result(False, status=e.status, body=e.body, error=str(e))
        except httpx.TimeoutException as e:
            logger.error("Wix %s timed out: %s", action, e)
            return remote_result(False, error=f"timeout: {e}")
        except httpx.HTTPError as e:
            logger.error("Wix %s transport error: %s", action, e)
            return remote_result(False, error=f"transport: {e}")

        if resp.is_success:
            return remote_result(True, status=resp.status_code, body=resp.text)

        logger.warning("Wix %s error: %s %s", action, resp.status_code, resp.text)
        return remote_result(False, status=resp.status_code, body=resp.text, error=f"wix_http_{resp.status_code}")

    async def _transition(self, action: str, params: dict, body: dict) -> dict:
        booking_id = str(params.get("booking_id") or "").strip()
        if not booking_id:
            return remote_result(False, error="booking_id is required")

        path = self.paths[action].format(booking_id=booking_id)
        result = await self._post(action, path, body)
        if result["success"]:
            logger.info("Wix %s ok for booking %s", action, booking_id)
        return result

    @staticmethod
    def _revision_body(params: dict) -> dict:
        body: dict = {}
        if params.get("revision"):
            body["revision"] = str(params["revision"])
        return body

    async def query_bookings(self, params: dict) -> dict:
        """
        Query bookings created after `since`, oldest first.

        Returns:
            {"success": True, "bookings": [dict, ...], ...} or a failure result.
        """
        query: dict = {
            "sort": [{"fieldName": "createdDate", "order": "ASC"}],
            "paging": {"limit": int(params.get("limit", 50))},
        }
        if params.get("since"):
            query["filter"] = {"createdDate": {"$gt": params["since"]}}

        result = await self._post("query_bookings", self.paths["query_bookings"], {"query": query})
        if not result["success"]:
            return {**result, "bookings": []}

        bookings = _extract_bookings(result["body"])
        return {**result, "bookings": bookings}

    async def query_services(self) -> dict:
        """
        List the site's bookable services.

        Also the quickest check that the credentials carry the bookings scope:
        a failure keeps the upstream status and body verbatim.

        Returns:
            {"success": True, "services": [dict, ...], ...} or a failure result.
        """
        result = await self._post("query_services", self.paths["query_services"], {"query": {}})
        if not result["success"]:
            return {**result, "services": []}

        data = _load_json(result["body"], "query_services")
        services = data.get("services") or data.get("items") or []
        return {**result, "services": [s for s in services if isinstance(s, dict)]}


def _extract_bookings(body: str) -> list[dict]:
    """Pull booking objects out of an extended-bookings query response."""
    data = _load_json(body, "query_bookings")
    items = data.get("extendedBookings") or data.get("bookings") or data.get("items") or []
    bookings: list[dict] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        booking = item.get("booking") if isinstance(item.get("booking"), dict) else item
        bookings.append(booking)
    return bookings


def _load_json(body: str, action: str) -> dict:
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        logger.warning("Wix %s: response is not JSON", action)
        return {}
    return data if isinstance(data, dict) else {}
