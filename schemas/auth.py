from pydantic import BaseModel
from typing import Any, Dict, Optional


class AuthPayload(BaseModel):
    initData: str
    meta: Optional[Dict[str, Any]] = None


class TokenResponse(BaseModel):
    ok: bool = True
    tg_user_id: Optional[int] = None
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
