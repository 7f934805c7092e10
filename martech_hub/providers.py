"""Live data providers and thin proxies to Braze / Airtable.

The hub never stores anything it fetches. Handlers call these functions with
credentials taken from the request body, and the answer pipeline gets a
:class:`LiveSnapshot` from a :class:`LiveDataProvider`.

Provider tiers:

1. **Required**: ``health``, ``list_campaigns``.
2. **Optional with a default**: ``snapshot`` (wraps ``list_campaigns``).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote

import requests

from .config import log, AIRTABLE_API, PROXY_TIMEOUT_SEC
from .errors import InputError, UpstreamError
from .live_data import LiveSnapshot, normalize_records

BRAZE_ENDPOINT_RE = re.compile(r"^https://rest\..+\.braze\.(com|eu)$")


class LiveDataProvider(ABC):
    """Source of live campaign records for one request."""

    @abstractmethod
    def health(self) -> bool:
        """``True`` if the platform is configured and reachable."""
        ...

    @abstractmethod
    def list_campaigns(self, **params) -> list[dict]:
        """Raw campaign dicts as the platform returns them.

        Raises:
            UpstreamError: the platform answered with a failure.
        """
        ...

    def snapshot(self) -> LiveSnapshot:
        """Normalized records; an unreachable platform yields an empty snapshot."""
        try:
            raw = self.list_campaigns()
        except UpstreamError as e:
            log.warning("%s: live data unavailable: %s", self.name, e)
            return LiveSnapshot()
        records = tuple(normalize_records([_campaign_to_record(c) for c in raw]))
        return LiveSnapshot(records=records, braze_connected=True)

    @property
    def name(self) -> str:
        return self.__class__.__name__


def _campaign_to_record(c) -> dict:
    if not isinstance(c, dict):
        return {}
    return {
        "name": c.get("name", ""),
        "createdAt": c.get("created_at") or c.get("createdAt"),
        "lastEdited": c.get("last_edited") or c.get("lastEdited"),
        "isDraft": bool(c.get("draft") or c.get("isDraft")),
    }


class StaticProvider(LiveDataProvider):
    """Fixed in-memory campaigns, for tests and offline CLI runs."""

    def __init__(self, campaigns: Optional[list[dict]] = None):
        self._campaigns = list(campaigns or [])

    def health(self) -> bool:
        return True

    def list_campaigns(self, **params) -> list[dict]:
        return list(self._campaigns)

    @property
    def name(self) -> str:
        return "Static"


def validate_braze_credentials(api_key: str, rest_endpoint: str) -> str:
    """Format check only; Braze has no cheap credential probe.

    Returns:
        The endpoint without a trailing slash.
    """
    if not api_key or not rest_endpoint:
        raise InputError("Missing required fields: apiKey and restEndpoint are required")
    endpoint = rest_endpoint.rstrip("/")
    if not BRAZE_ENDPOINT_RE.match(endpoint):
        raise InputError("Invalid Braze REST endpoint format")
    return endpoint


class BrazeProvider(LiveDataProvider):
    """Braze REST API (``GET /campaigns/list``)."""

    def __init__(self, api_key: str, rest_endpoint: str, timeout: float = PROXY_TIMEOUT_SEC):
        self.api_key = api_key
        self.rest_endpoint = (rest_endpoint or "").rstrip("/")
        self.timeout = timeout

    def health(self) -> bool:
        return bool(self.api_key) and bool(BRAZE_ENDPOINT_RE.match(self.rest_endpoint))

    def list_campaigns_page(self, page=None, include_archived=None, sort_direction=None,
                            last_edit_gt=None, last_edit_lt=None) -> dict:
        """One page of ``/campaigns/list``; the Braze payload as-is."""
        params = {}
        if page is not None:
            params["page"] = page
        if include_archived is not None:
            params["include_archived"] = str(include_archived).lower()
        if sort_direction:
            params["sort_direction"] = sort_direction
        if last_edit_gt:
            params["last_edit.time[gt]"] = last_edit_gt
        if last_edit_lt:
            params["last_edit.time[lt]"] = last_edit_lt

        try:
            r = requests.get(
                f"{self.rest_endpoint}/campaigns/list",
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(500, "Internal server error", str(e)) from e

        try:
            data = r.json()
        except ValueError:
            data = {"raw": (r.text or "")[:240]}
        if not r.ok:
            raise UpstreamError(r.status_code, "Braze API error", data)
        return data

    def list_campaigns(self, **params) -> list[dict]:
        data = self.list_campaigns_page(**params)
        campaigns = data.get("campaigns") if isinstance(data, dict) else None
        return campaigns or []

    @property
    def name(self) -> str:
        return "Braze"


# ── Airtable ──

def _airtable_get(api_key: str, base_id: str, table: str, params: dict) -> requests.Response:
    url = f"{AIRTABLE_API}/{base_id}/{quote(table, safe='')}"
    try:
        return requests.get(
            url,
            headers={"Authorization": f"Bearer {api_key}"},
            params=params,
            timeout=PROXY_TIMEOUT_SEC,
        )
    except requests.RequestException as e:
        raise UpstreamError(500, f"Failed to connect to Airtable: {e}") from e


def _airtable_error(r: requests.Response) -> dict:
    try:
        data = r.json()
    except ValueError:
        return {}
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, str):
        return {"type": err, "message": ""}
    return err or {}


def check_airtable_connection(api_key: str, base_id: str, table_name: str = "") -> dict:
    """Check an Airtable key + base, and optionally access to one table.

    Without a table, a probe table is requested: ``TABLE_NOT_FOUND`` proves
    the key and base are valid.
    """
    if not api_key or not base_id:
        raise InputError("API Key and Base ID are required")

    if table_name:
        r = _airtable_get(api_key, base_id, table_name, {"maxRecords": 1})
        if r.ok:
            return {"success": True, "message": "Connection successful",
                    "tableName": table_name, "note": "Successfully connected to table"}
        err = _airtable_error(r)
        raise UpstreamError(500, err.get("message") or "Failed to access table", err)

    r = _airtable_get(api_key, base_id, "__connection_test__", {"maxRecords": 1})
    if r.ok:
        return {"success": True, "message": "Connection successful"}

    err = _airtable_error(r)
    err_type = err.get("type", "")
    err_msg = err.get("message", "") or ""

    if err_type == "TABLE_NOT_FOUND" or "Could not find table" in err_msg:
        return {"success": True, "message": "Connection successful",
                "note": "Base and API key verified. Enter a table name to test full access."}
    if err_type == "AUTHENTICATION_REQUIRED" or r.status_code == 401:
        raise UpstreamError(401, "Invalid API key - check your Personal Access Token")
    if err_type == "NOT_FOUND" or "Could not find base" in err_msg:
        raise UpstreamError(404, 'Base not found - check your Base ID (starts with "app")')
    if err_type == "INVALID_PERMISSIONS_OR_MODEL_NOT_FOUND":
        raise UpstreamError(
            403,
            f'Permission denied. Airtable says: "{err_msg}". Base ID used: {base_id[:6]}...',
        )
    raise UpstreamError(500, f"{err_type}: {err_msg}")


def fetch_airtable_records(api_key: str, base_id: str, table_name: str,
                           max_records=None, filter_formula: str = "", view: str = "") -> list[dict]:
    """Records flattened to ``{id, **fields, _createdTime}``."""
    if not api_key or not base_id or not table_name:
        raise InputError("API Key, Base ID, and Table Name are required")

    params = {}
    if max_records:
        params["maxRecords"] = max_records
    if filter_formula:
        params["filterByFormula"] = filter_formula
    if view:
        params["view"] = view

    r = _airtable_get(api_key, base_id, table_name, params)
    if not r.ok:
        err = _airtable_error(r)
        raise UpstreamError(r.status_code, err.get("message") or "Airtable API error", err)

    records = r.json().get("records", []) or []
    log.info("airtable: %d records from %s", len(records), table_name)
    return [
        {"id": rec.get("id"), **(rec.get("fields") or {}), "_createdTime": rec.get("createdTime")}
        for rec in records
    ]
