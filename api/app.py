"""FastAPI entrypoint for the finance tracker HTTP endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import UUID

from fastapi import Body, FastAPI, Header, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from backend.auth.supabase_auth import (
    AuthResult,
    AuthServiceError,
    SupabaseAuthClient,
    UnauthorizedError,
    get_user_from_bearer_token,
)
from backend.factory import build_finance_service
from backend.services.finance_service import FinanceService
from shared import config as _config
from shared.models import ApiError, ErrorCode


logger = logging.getLogger(__name__)


_ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.BACKEND_ERROR: 500,
}


class RegisterPayload(BaseModel):
    """Payload for account creation."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    full_name: str = Field(default="", validation_alias=AliasChoices("full_name", "fullName"))


class LoginPayload(BaseModel):
    """Payload for password sign-in."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshPayload(BaseModel):
    refresh_token: str = Field(min_length=1)


class ResetPasswordPayload(BaseModel):
    email: str = Field(min_length=1)


class UpdatePasswordPayload(BaseModel):
    password: str = Field(min_length=1)
    access_token: str = Field(min_length=1)


class ProfileUpdatePayload(BaseModel):
    full_name: str = Field(validation_alias=AliasChoices("full_name", "fullName"))


@lru_cache(maxsize=1)
def get_finance_service() -> FinanceService:
    """Create and cache the finance service once per process."""

    return build_finance_service()


@lru_cache(maxsize=1)
def get_auth_client() -> SupabaseAuthClient | None:
    """Create and cache the Supabase Auth client, or None when unconfigured."""

    supabase_url = _config.supabase_url()
    anon_key = _config.supabase_anon_key()
    if not supabase_url or not anon_key:
        return None
    return SupabaseAuthClient(url=supabase_url, anon_key=anon_key)


def _require_auth_client() -> SupabaseAuthClient:
    client = get_auth_client()
    if client is None:
        raise HTTPException(status_code=503, detail="Supabase auth is not configured")
    return client


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


def _resolve_authenticated_user(authorization: str | None) -> tuple[UUID, dict[str, Any]]:
    """Resolve the authenticated user id and auth payload from the header."""

    token = _extract_bearer_token(authorization)
    try:
        user_payload = get_user_from_bearer_token(token)
    except UnauthorizedError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc

    user_id = user_payload.get("id")
    if not isinstance(user_id, str):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        return UUID(user_id), dict(user_payload)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc


class ApiErrorResponse(Exception):
    """Carries a service `ApiError` up to the HTTP error handler."""

    def __init__(self, error: ApiError) -> None:
        super().__init__(error.message)
        self.error = error


def _unwrap(result: Any) -> Any:
    if isinstance(result, ApiError):
        raise ApiErrorResponse(result)
    return result


def _ok(data: Any = None, *, message: str | None = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    content: dict[str, Any] = {"success": True}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = jsonable_encoder(data)
    content.update(jsonable_encoder(extra))
    return JSONResponse(status_code=status_code, content=content)


def _user_summary(user: dict[str, Any]) -> dict[str, Any]:
    metadata = user.get("user_metadata") if isinstance(user.get("user_metadata"), dict) else {}
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "full_name": metadata.get("full_name"),
    }


def _auth_response(result: AuthResult, *, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "message": message,
                "user": _user_summary(result.user),
                "session": result.session,
            }
        ),
    )


app = FastAPI(title="Finance Tracker API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

logger.info("cors_allow_origins=%s", ALLOW_ORIGINS)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return malformed requests as 400 with a readable message."""

    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        message = str(error.get("msg", "Invalid input")).removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    logger.info("request_validation_failed method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "Invalid request"})


@app.exception_handler(ApiErrorResponse)
async def handle_api_error(request: Request, exc: ApiErrorResponse) -> JSONResponse:
    """Return service errors with their code and, when present, their details."""

    error = exc.error
    content: dict[str, Any] = {"detail": error.message, "code": error.code.value}
    if error.details:
        content["details"] = jsonable_encoder(error.details)
    logger.info(
        "api_error_returned method=%s path=%s code=%s",
        request.method,
        request.url.path,
        error.code.value,
    )
    return JSONResponse(status_code=_ERROR_STATUS_CODES[error.code], content=content)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/api/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {
        "status": "ok",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": _config.app_env(),
    }


# Auth


@app.post("/api/auth/register")
def register(payload: RegisterPayload) -> JSONResponse:
    client = _require_auth_client()
    try:
        result = client.sign_up(email=payload.email, password=payload.password, full_name=payload.full_name)
    except AuthServiceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("auth_user_registered user_id=%s", result.user.get("id"))
    return _auth_response(result, message="User registered successfully", status_code=201)


@app.post("/api/auth/login")
def login(payload: LoginPayload) -> JSONResponse:
    client = _require_auth_client()
    try:
        result = client.sign_in_with_password(email=payload.email, password=payload.password)
    except AuthServiceError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return _auth_response(result, message="Login successful")


@app.post("/api/auth/logout")
def logout(authorization: str | None = Header(default=None)) -> dict[str, str]:
    """Sign out remotely when possible; local logout always succeeds."""

    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :].strip() or None

    client = get_auth_client()
    if token and client is not None:
        try:
            client.sign_out(access_token=token)
        except AuthServiceError as exc:
            logger.warning("auth_remote_sign_out_failed status=%s message=%s", exc.status_code, exc)
    return {"message": "Logout successful"}


@app.post("/api/auth/refresh")
def refresh(payload: RefreshPayload) -> JSONResponse:
    client = _require_auth_client()
    try:
        result = client.refresh_session(refresh_token=payload.refresh_token)
    except AuthServiceError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return JSONResponse(
        content=jsonable_encoder({"message": "Token refreshed successfully", "session": result.session})
    )


@app.post("/api/auth/reset-password")
def reset_password(payload: ResetPasswordPayload) -> dict[str, str]:
    client = _require_auth_client()
    try:
        client.reset_password_for_email(
            email=payload.email,
            redirect_to=f"{_config.frontend_url()}/reset-password",
        )
    except AuthServiceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"message": "Password reset email sent successfully"}


@app.post("/api/auth/update-password")
def update_password(payload: UpdatePasswordPayload) -> JSONResponse:
    client = _require_auth_client()
    try:
        user = client.update_password(access_token=payload.access_token, password=payload.password)
    except AuthServiceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(content=jsonable_encoder({"message": "Password updated successfully", "user": _user_summary(user)}))


# Profile


@app.get("/api/protected/profile")
def get_profile(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    _, user = _resolve_authenticated_user(authorization)
    return {
        "message": "Profile retrieved successfully",
        "user": {
            **_user_summary(user),
            "created_at": user.get("created_at"),
            "last_sign_in_at": user.get("last_sign_in_at"),
        },
    }


@app.put("/api/protected/profile")
def update_profile(payload: ProfileUpdatePayload, authorization: str | None = Header(default=None)) -> dict[str, Any]:
    _resolve_authenticated_user(authorization)
    client = _require_auth_client()
    try:
        user = client.update_user_metadata(
            access_token=_extract_bearer_token(authorization),
            data={"full_name": payload.full_name},
        )
    except AuthServiceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"message": "Profile updated successfully", "user": _user_summary(user)}


@app.get("/api/protected/test")
def protected_test(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    user_id, user = _resolve_authenticated_user(authorization)
    return {
        "message": "This is a protected route",
        "user_id": str(user_id),
        "user_email": user.get("email"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Transactions


@app.get("/api/transactions/stats/summary")
def get_transaction_summary(
    authorization: str | None = Header(default=None),
    start_date: str | None = None,
    end_date: str | None = None,
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    summary = _unwrap(
        get_finance_service().transaction_summary(user_id, {"start_date": start_date, "end_date": end_date})
    )
    return _ok(summary)


@app.get("/api/transactions/stats/categories")
def get_category_stats(
    authorization: str | None = Header(default=None),
    start_date: str | None = None,
    end_date: str | None = None,
    transaction_type: str | None = None,
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    stats = _unwrap(
        get_finance_service().category_stats(
            user_id,
            {"start_date": start_date, "end_date": end_date, "transaction_type": transaction_type},
        )
    )
    return _ok(stats)


@app.get("/api/transactions")
def list_transactions(
    authorization: str | None = Header(default=None),
    category: str | None = None,
    transaction_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    result = _unwrap(
        get_finance_service().list_transactions(
            user_id,
            {
                "category": category,
                "transaction_type": transaction_type,
                "start_date": start_date,
                "end_date": end_date,
                "limit": limit,
                "offset": offset,
            },
        )
    )
    return _ok(result.items, pagination=result.pagination)


@app.get("/api/transactions/{transaction_id}")
def get_transaction(transaction_id: UUID, authorization: str | None = Header(default=None)) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    transaction = _unwrap(get_finance_service().get_transaction(user_id, transaction_id))
    return _ok(transaction)


@app.post("/api/transactions")
def create_transaction(
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    transaction = _unwrap(get_finance_service().create_transaction(user_id, payload))
    return _ok(transaction, message="Transaction created successfully", status_code=201)


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: UUID,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    transaction = _unwrap(get_finance_service().update_transaction(user_id, transaction_id, payload))
    return _ok(transaction, message="Transaction updated successfully")


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: UUID, authorization: str | None = Header(default=None)) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    _unwrap(get_finance_service().delete_transaction(user_id, transaction_id))
    return _ok(message="Transaction deleted successfully")


# Categories


@app.get("/api/categories")
def list_categories(authorization: str | None = Header(default=None)) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    result = _unwrap(get_finance_service().list_categories(user_id))
    return _ok(result.items)


@app.get("/api/categories/default")
def list_default_categories(authorization: str | None = Header(default=None)) -> JSONResponse:
    _resolve_authenticated_user(authorization)
    result = _unwrap(get_finance_service().list_default_categories())
    return _ok(result.items)


@app.get("/api/categories/custom")
def list_custom_categories(authorization: str | None = Header(default=None)) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    result = _unwrap(get_finance_service().list_custom_categories(user_id))
    return _ok(result.items)


@app.post("/api/categories/custom")
def create_custom_category(
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    category = _unwrap(get_finance_service().create_custom_category(user_id, payload))
    return _ok(category, message="Custom category created successfully", status_code=201)


@app.put("/api/categories/custom/{category_id}")
def update_custom_category(
    category_id: UUID,
    payload: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    category = _unwrap(get_finance_service().update_custom_category(user_id, category_id, payload))
    return _ok(category, message="Custom category updated successfully")


@app.delete("/api/categories/custom/{category_id}")
def delete_custom_category(category_id: UUID, authorization: str | None = Header(default=None)) -> JSONResponse:
    user_id, _ = _resolve_authenticated_user(authorization)
    _unwrap(get_finance_service().delete_custom_category(user_id, category_id))
    return _ok(message="Custom category deleted successfully")
