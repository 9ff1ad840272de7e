"""Synchronous Python client for the sync endpoints.

Every call takes the bearer ``token`` explicitly so one client instance can
serve several accounts without sharing mutable auth state.

Example:
    >>> with NoteSyncClient("http://localhost:8000") as api:
    ...     record = api.create_sync_record(token, sync_type="incremental", direction="bidirectional")
    ...     changes = api.pending_changes(token, "notes", last_sync_version=12)
"""

import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import httpx

from notesync.constants import API_PREFIX

logger = logging.getLogger(__name__)


class APIResponseError(Exception):
    """Raised when the server answers with a non-2xx status or is unreachable."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class AuthenticationError(APIResponseError):
    """Raised on 401 responses (missing, invalid or expired token)."""


class NoteSyncClient:
    def __init__(self, base_url: str = "", *, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        # An injected client (e.g. FastAPI's TestClient) is used as-is and
        # stays owned by the caller.
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    # Context management ------------------------------------------------

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "NoteSyncClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Transport ---------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._client.request(method, f"{API_PREFIX}{path}", params=params, json=json, headers=headers)
        except httpx.RequestError as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise APIResponseError(0, f"Request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            if response.status_code == 401:
                raise AuthenticationError(response.status_code, detail)
            raise APIResponseError(response.status_code, detail)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Sync API ----------------------------------------------------------

    def pending_changes(self, token: str, kind: str, last_sync_version: int = 0) -> Dict[str, Any]:
        """Items of *kind* (``notes``/``categories``) above the watermark."""

        return self._request(
            "GET", f"/sync/pending/{kind}", token, params={"lastSyncVersion": last_sync_version}
        )

    def full_snapshot(self, token: str) -> Dict[str, Any]:
        return self._request("GET", "/sync/full", token)

    def create_sync_record(
        self,
        token: str,
        *,
        sync_type: str,
        direction: str,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"sync_type": sync_type, "direction": direction}
        if device_info:
            body["device_info"] = device_info
        return self._request("POST", "/sync/record", token, json=body)

    def update_sync_record(
        self,
        token: str,
        record_id: int,
        *,
        status: Optional[str] = None,
        sync_details: Optional[Dict[str, int]] = None,
        error_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            key: value
            for key, value in (("status", status), ("sync_details", sync_details), ("error_message", error_message))
            if value is not None
        }
        return self._request("PUT", f"/sync/record/{record_id}", token, json=body)

    def list_sync_records(
        self,
        token: str,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page}
        if status is not None:
            params["status"] = status
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", "/sync/records", token, params=params)

    def resolve_conflicts(self, token: str, conflicts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Submit a conflict batch; returns one result per item, in order."""

        return self._request("POST", "/sync/resolve-conflicts", token, json={"conflicts": conflicts})["results"]


__all__ = [
    "APIResponseError",
    "AuthenticationError",
    "NoteSyncClient",
]
