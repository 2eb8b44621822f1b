"""Telegram WebApp login: initData verification and our own access tokens."""
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Literal
from urllib.parse import parse_qsl

import jwt

from settings import settings

TokenType = Literal["access", "refresh"]


class AuthError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def _now() -> int:
    return int(time.time())


def _webapp_secret_key(bot_token: str) -> bytes:
    return hmac.new(b"WebAppData", bot_token.encode("utf-8"), hashlib.sha256).digest()


def _data_check_string(fields: Dict[str, str]) -> str:
    return "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))


def sign_init_data(fields: Dict[str, str], bot_token: str) -> str:
    """Hash Telegram would attach to ``fields``."""
    secret_key = _webapp_secret_key(bot_token)
    return hmac.new(secret_key, _data_check_string(fields).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_init_data(init_data: str, bot_token: str, max_age_seconds: int) -> Dict[str, str]:
    data = dict(parse_qsl(init_data, keep_blank_values=True))
    received_hash = data.pop("hash", None)
    if not received_hash:
        raise AuthError(400, "initData missing hash")

    try:
        auth_date = int(data.get("auth_date", "0"))
    except ValueError:
        raise AuthError(400, "initData invalid auth_date")
    if auth_date <= 0:
        raise AuthError(400, "initData missing auth_date")

    age = _now() - auth_date
    if age < 0:
        raise AuthError(400, "auth_date in future")
    if age > max_age_seconds:
        raise AuthError(401, "initData too old")

    if not hmac.compare_digest(sign_init_data(data, bot_token), received_hash):
        raise AuthError(401, "bad signature")

    return data


def telegram_user_id(verified: Dict[str, str]) -> int:
    """Pull the numeric Telegram user id out of verified initData."""
    if "user" not in verified:
        raise AuthError(400, "initData missing user")
    try:
        tg_user = json.loads(verified["user"])
    except ValueError:
        raise AuthError(400, "user is not valid JSON")
    try:
        return int(tg_user["id"])
    except (KeyError, TypeError, ValueError):
        raise AuthError(400, "Telegram user id missing")


def create_token(*, token_type: TokenType, subject: str, ttl_seconds: int) -> str:
    payload: Dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": _now(),
        "exp": _now() + int(ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def subject_of(token: str, expected_type: TokenType) -> int:
    """Decode one of our tokens and return its numeric subject."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise AuthError(401, f"Invalid {expected_type} token")

    if payload.get("type") != expected_type:
        raise AuthError(401, f"Wrong token type, expected {expected_type}")

    sub = str(payload.get("sub") or "").strip()
    if not sub.isdigit():
        raise AuthError(401, "Invalid sub")
    return int(sub)
