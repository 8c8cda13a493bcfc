"""Async HTTP client for the Swift Invoice API.

Unwraps the success envelope and raises :class:`ApiError` carrying the
standardized error code for any non-2xx response.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .draft import Draft

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class InvoiceApiClient:
    """Thin async wrapper around the invoice and auth routes.

    Pass `transport` (e.g. ``httpx.ASGITransport(app=app)``) to talk to an
    in-process app; otherwise requests go over the network to `base_url`.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.token = token
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "InvoiceApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._http.request(method, API_PREFIX + path, headers=self._headers(), **kwargs)
        if response.is_success:
            return response
        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}
        logger.warning("API %s %s failed with %s", method, path, response.status_code)
        raise ApiError(
            response.status_code,
            error.get("code", "HTTP_ERROR"),
            str(error.get("message", response.text)),
        )

    async def _data(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, path, **kwargs)
        return response.json()["data"]

    # Auth

    async def register(self, email: str, password: str, full_name: str,
                       business_details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = await self._data("POST", "/auth/register", json={
            "email": email,
            "password": password,
            "fullName": full_name,
            "businessDetails": business_details,
        })
        self.token = data["access_token"]
        return data["user"]

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._data("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data["user"]

    async def me(self) -> Dict[str, Any]:
        return await self._data("GET", "/auth/me")

    async def update_business_details(self, details: Dict[str, Any]) -> Dict[str, Any]:
        return await self._data("PUT", "/auth/me/business", json=details)

    # Invoices

    async def save(self, draft: Draft, is_draft: bool = True) -> Dict[str, Any]:
        """Create the invoice, or replace it when the draft was loaded from the API."""
        payload = draft.to_payload(is_draft)
        if draft.is_editing:
            return await self._data("PUT", f"/invoices/{draft.invoice_id}", json=payload)
        return await self._data("POST", "/invoices", json=payload)

    async def save_draft(self, draft: Draft) -> Dict[str, Any]:
        return await self.save(draft, is_draft=True)

    async def submit(self, draft: Draft) -> Dict[str, Any]:
        return await self.save(draft, is_draft=False)

    async def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._data("GET", f"/invoices/{invoice_id}")

    async def list_invoices(self, status: Optional[str] = None,
                            search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in {"status": status, "search": search}.items() if v}
        return await self._data("GET", "/invoices", params=params)

    async def set_status(self, invoice_id: str, status: str) -> Dict[str, Any]:
        return await self._data("PATCH", f"/invoices/{invoice_id}/status", json={"status": status})

    async def delete_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._data("DELETE", f"/invoices/{invoice_id}")

    async def download_pdf(self, invoice_id: str) -> bytes:
        response = await self._request("GET", f"/invoices/{invoice_id}/download")
        return response.content


__all__ = ["ApiError", "InvoiceApiClient"]
