"""Minimal Supabase PostgREST client used by backend repositories only."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from backend.errors import StoreError


logger = logging.getLogger(__name__)

Query = dict[str, str | int] | list[tuple[str, str | int]]


@dataclass(slots=True)
class SupabaseSettings:
    url: str
    service_role_key: str


def _store_message(body: str) -> str:
    """Return the PostgREST error message from a response body."""

    try:
        payload = json.loads(body)
    except ValueError:
        return body
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error_description") or payload.get("error")
        if isinstance(message, str) and message:
            return message
    return body


class SupabaseClient:
    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings

    def _request(
        self,
        *,
        method: str,
        table: str,
        query: Query | None = None,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        prefer: str = "return=representation",
    ) -> tuple[Any, Any]:
        api_key = self.settings.service_role_key

        url = f"{self.settings.url.rstrip('/')}/rest/v1/{table}"
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "Prefer": prefer,
        }
        if data is not None:
            headers["Content-Type"] = "application/json"

        request = Request(url=url, data=data, headers=headers, method=method)
        try:
            with urlopen(request) as response:  # noqa: S310 - URL comes from trusted env config
                raw_body = response.read().decode("utf-8")
                rows = json.loads(raw_body) if raw_body.strip() else []
                return rows, response.headers
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")[:500]
            logger.warning(
                "supabase_request_failed method=%s table=%s status=%s",
                method,
                table,
                exc.code,
            )
            raise StoreError(_store_message(body), status_code=exc.code) from exc
        except URLError as exc:
            logger.warning("supabase_unreachable method=%s table=%s reason=%s", method, table, exc.reason)
            raise StoreError(f"Supabase is unreachable: {exc.reason}") from exc

    def get_rows(
        self,
        *,
        table: str,
        query: Query,
        with_count: bool,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Fetch rows from PostgREST and optionally parse exact row count."""

        rows, headers = self._request(
            method="GET",
            table=table,
            query=query,
            prefer="count=exact" if with_count else "return=representation",
        )
        total: int | None = None
        if with_count:
            content_range = headers.get("content-range") if headers else None
            if content_range and "/" in content_range:
                _, total_str = content_range.split("/", maxsplit=1)
                if total_str.isdigit():
                    total = int(total_str)
        return rows, total

    def post_rows(
        self,
        *,
        table: str,
        payload: dict[str, Any] | list[dict[str, Any]],
        query: Query | None = None,
        prefer: str = "return=representation",
    ) -> list[dict[str, Any]]:
        """Insert rows and return the created representation."""

        rows, _ = self._request(method="POST", table=table, query=query, payload=payload, prefer=prefer)
        return rows

    def patch_rows(
        self,
        *,
        table: str,
        query: Query,
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching `query` and return their new representation."""

        rows, _ = self._request(method="PATCH", table=table, query=query, payload=payload)
        return rows

    def delete_rows(self, *, table: str, query: Query) -> list[dict[str, Any]]:
        """Delete rows matching `query` and return the deleted representation."""

        rows, _ = self._request(method="DELETE", table=table, query=query)
        return rows
