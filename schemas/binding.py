from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class BindRequest(BaseModel):
    # emptiness is checked by the binding core so it answers 400, not 422
    game_account_name: Optional[str] = Field(None, max_length=256)


class BindingResponse(BaseModel):
    ok: bool
    kind: str
    message: str
    result: Dict[str, Any]
