import json
import logging
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from binding_sync import CallerIdentity
from schemas.auth import AuthPayload, TokenResponse
from settings import settings
from telegram_auth import AuthError, create_token, subject_of, telegram_user_id, verify_init_data

log = logging.getLogger("whitelist")

auth_router = APIRouter()


def _get_access_token(request: Request) -> str | None:
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    return request.cookies.get("access_token")


def get_caller(request: Request) -> CallerIdentity:
    """Resolve the Telegram user behind the request's access token."""
    token = _get_access_token(request)
    if not token:
        raise HTTPException(401, "Missing access token")
    try:
        return CallerIdentity(platform_user_id=subject_of(token, "access"))
    except AuthError as e:
        raise HTTPException(e.status_code, e.detail)


def _token_response(tg_user_id: int | None, subject: str) -> JSONResponse:
    access_token = create_token(token_type="access", subject=subject, ttl_seconds=settings.access_token_ttl_seconds)
    refresh_token = create_token(token_type="refresh", subject=subject, ttl_seconds=settings.refresh_token_ttl_seconds)

    body = TokenResponse(
        tg_user_id=tg_user_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_ttl_seconds,
    )
    resp = JSONResponse(body.model_dump())

    for name, value, max_age in (
        ("access_token", access_token, settings.access_token_ttl_seconds),
        ("refresh_token", refresh_token, settings.refresh_token_ttl_seconds),
    ):
        resp.set_cookie(
            name,
            value,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
            max_age=max_age,
            path="/",
        )
    return resp


@auth_router.post("/auth/telegram-webapp")
async def auth_telegram_webapp(payload: AuthPayload):
    log.info("AUTH_META %s", json.dumps(payload.meta or {}, ensure_ascii=False))
    try:
        verified = verify_init_data(payload.initData, settings.bot_token, settings.initdata_max_age_seconds)
        tg_user_id = telegram_user_id(verified)
    except AuthError as e:
        log.warning("AUTH_REJECTED %s %s", e.status_code, e.detail)
        raise HTTPException(e.status_code, e.detail)

    log.info("AUTH_OK tg_user_id=%s", tg_user_id)
    return _token_response(tg_user_id, str(tg_user_id))


@auth_router.post("/auth/refresh")
async def refresh_tokens(request: Request):
    refresh_token = request.cookies.get("refresh_token")
    if not refresh_token:
        raise HTTPException(401, "No refresh_token cookie")

    try:
        subject = subject_of(refresh_token, "refresh")
    except AuthError as e:
        raise HTTPException(e.status_code, e.detail)

    return _token_response(None, str(subject))
