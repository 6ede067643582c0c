"""Booking store backed by the bookings REST API.

Endpoints (JSON, camelCase fields)::

    POST   /api/bookings        -> 201 created booking | 400 {"errors": [...]}
    GET    /api/bookings        -> bookings, newest first
    GET    /api/bookings/{id}   -> booking | 404
    DELETE /api/bookings/{id}   -> 200 | 404
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from reservations.config import settings
from reservations.errors import ExternalServiceError, ValidationError
from reservations.models.reservation import Reservation, ReservationRequest
from reservations.storage.base import BookingStore

logger = logging.getLogger(__name__)


class HttpBookingStore(BookingStore):
    """BookingStore talking to a remote bookings API over httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = (base_url or settings.bookings_api_url).rstrip("/")
        if not self._base_url:
            raise ValueError(
                "Bookings API URL must be provided via constructor argument "
                "or BOOKINGS_API_URL env var."
            )
        self._timeout = timeout or settings.http_timeout
        self._client = client

    # ------------------------------------------------------------------
    # BookingStore interface
    # ------------------------------------------------------------------

    async def create(self, request: ReservationRequest) -> Reservation:
        payload = request.model_dump(mode="json", by_alias=True)
        resp = await self._request("POST", "/api/bookings", json=payload)
        if resp.status_code == 400:
            raise ValidationError(self._error_messages(resp))
        self._raise_for_status(resp)
        created = Reservation.model_validate(resp.json())
        logger.info("Booking %s created via API", created.booking_id)
        return created

    async def list(self) -> list[Reservation]:
        resp = await self._request("GET", "/api/bookings")
        self._raise_for_status(resp)
        return [Reservation.model_validate(item) for item in resp.json()]

    async def get(self, booking_id: str) -> Optional[Reservation]:
        resp = await self._request("GET", f"/api/bookings/{booking_id}")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        return Reservation.model_validate(resp.json())

    async def delete(self, booking_id: str) -> bool:
        resp = await self._request("DELETE", f"/api/bookings/{booking_id}")
        if resp.status_code == 404:
            return False
        self._raise_for_status(resp)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Bookings API {method} {path} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_error:
            raise ExternalServiceError(
                f"Bookings API returned status {resp.status_code}"
            )

    @staticmethod
    def _error_messages(resp: httpx.Response) -> list[str]:
        try:
            body = resp.json()
        except ValueError:
            return ["Booking was rejected by the bookings API."]
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            return [str(e) for e in errors]
        message = body.get("message") if isinstance(body, dict) else None
        return [message or "Booking was rejected by the bookings API."]
