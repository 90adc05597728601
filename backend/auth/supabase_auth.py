"""Supabase Auth (GoTrue) access: token validation and account flows."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from shared import config


logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """Raised when a bearer token cannot be validated."""


class AuthServiceError(Exception):
    """Raised when Supabase Auth rejects or fails an account operation."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


REQUIRED_AUTH_USER_ID_FIELD = "id"


def _is_uuid_like(value: str) -> bool:
    try:
        UUID(value)
    except (ValueError, TypeError):
        return False
    return True


def get_user_from_bearer_token(token: str) -> dict[str, object]:
    """Return the Supabase auth user payload for a bearer token."""

    supabase_url = (config.supabase_url() or "").rstrip("/")
    anon_key = config.supabase_anon_key()
    if not supabase_url or not anon_key:
        raise UnauthorizedError("Supabase auth is not configured")

    request = Request(
        url=f"{supabase_url}/auth/v1/user",
        headers={
            "apikey": anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        },
        method="GET",
    )

    try:
        with urlopen(request) as response:  # noqa: S310 - trusted Supabase URL from env
            if response.status != 200:
                raise UnauthorizedError("Unauthorized")
            payload = json.loads(response.read().decode("utf-8"))
            if not isinstance(payload, dict):
                raise UnauthorizedError("Unauthorized")
            user_id = payload.get(REQUIRED_AUTH_USER_ID_FIELD)
            if not isinstance(user_id, str) or not _is_uuid_like(user_id):
                raise UnauthorizedError("Unauthorized")
            return payload
    except HTTPError as exc:
        raise UnauthorizedError("Unauthorized") from exc
    except URLError as exc:
        raise UnauthorizedError("Unauthorized") from exc


def _auth_error_message(body: str) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return body or "Authentication request failed"
    if isinstance(payload, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return "Authentication request failed"


@dataclass(slots=True)
class AuthResult:
    """User plus session returned by GoTrue; `session` is None until confirmed."""

    user: dict[str, Any]
    session: dict[str, Any] | None


def _split_session(payload: dict[str, Any]) -> AuthResult:
    if "access_token" in payload:
        user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
        session = {key: value for key, value in payload.items() if key != "user"}
        session["user"] = user
        return AuthResult(user=user, session=session)
    return AuthResult(user=payload, session=None)


class SupabaseAuthClient:
    """Thin client over the GoTrue REST endpoints used by the auth routes."""

    def __init__(self, *, url: str, anon_key: str) -> None:
        self._url = url.rstrip("/")
        self._anon_key = anon_key

    def _call(
        self,
        *,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        query: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self._url}/auth/v1/{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        request = Request(
            url=url,
            data=json.dumps(body).encode("utf-8") if body is not None else None,
            headers={
                "apikey": self._anon_key,
                "Authorization": f"Bearer {access_token or self._anon_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            method=method,
        )
        try:
            with urlopen(request) as response:  # noqa: S310 - trusted Supabase URL from env
                raw_body = response.read().decode("utf-8")
                payload = json.loads(raw_body) if raw_body.strip() else {}
                return payload if isinstance(payload, dict) else {}
        except HTTPError as exc:
            body_text = exc.read().decode("utf-8", errors="replace")[:500]
            logger.info("supabase_auth_rejected path=%s status=%s", path, exc.code)
            raise AuthServiceError(_auth_error_message(body_text), status_code=exc.code) from exc
        except URLError as exc:
            raise AuthServiceError(f"Supabase Auth is unreachable: {exc.reason}") from exc

    def sign_up(self, *, email: str, password: str, full_name: str = "") -> AuthResult:
        payload = self._call(
            method="POST",
            path="signup",
            body={"email": email, "password": password, "data": {"full_name": full_name}},
        )
        return _split_session(payload)

    def sign_in_with_password(self, *, email: str, password: str) -> AuthResult:
        payload = self._call(
            method="POST",
            path="token",
            query={"grant_type": "password"},
            body={"email": email, "password": password},
        )
        return _split_session(payload)

    def refresh_session(self, *, refresh_token: str) -> AuthResult:
        payload = self._call(
            method="POST",
            path="token",
            query={"grant_type": "refresh_token"},
            body={"refresh_token": refresh_token},
        )
        return _split_session(payload)

    def sign_out(self, *, access_token: str) -> None:
        self._call(method="POST", path="logout", access_token=access_token)

    def reset_password_for_email(self, *, email: str, redirect_to: str) -> None:
        self._call(method="POST", path="recover", query={"redirect_to": redirect_to}, body={"email": email})

    def update_password(self, *, access_token: str, password: str) -> dict[str, Any]:
        return self._call(method="PUT", path="user", access_token=access_token, body={"password": password})

    def update_user_metadata(self, *, access_token: str, data: dict[str, Any]) -> dict[str, Any]:
        return self._call(method="PUT", path="user", access_token=access_token, body={"data": data})
