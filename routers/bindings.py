import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from binding_store import BindingStore
from binding_sync import BindingSynchronizer, CallerIdentity
from db import get_db
from errors import InvalidInput, StoreError
from notifier import MirrorFailureNotifier
from presenter import STORE_FAILURE_MESSAGE, render
from rcon_client import RconClient, RconConfig
from routers.auth import get_caller
from schemas.binding import BindRequest, BindingResponse
from settings import settings

log = logging.getLogger("whitelist")

bindings_router = APIRouter()

# Read-only for the lifetime of the process
rcon_client = RconClient()
rcon_config = RconConfig.from_settings(settings)
mirror_failure_webhook_url = str(settings.mirror_failure_webhook_url) if settings.mirror_failure_webhook_url else None

_NEGATIVE_KINDS = {"not_bound", "already_bound", "account_taken"}


def get_synchronizer(db: AsyncSession = Depends(get_db)) -> BindingSynchronizer:
    return BindingSynchronizer(
        BindingStore(db),
        rcon_client,
        rcon_config,
        notifier=MirrorFailureNotifier(mirror_failure_webhook_url),
    )


def _respond(result) -> BindingResponse:
    return BindingResponse(
        ok=result.kind not in _NEGATIVE_KINDS,
        kind=result.kind,
        message=render(result),
        result=result.model_dump(),
    )


async def _run(request: Request, operation):
    try:
        result = await operation
    except InvalidInput as e:
        raise HTTPException(400, str(e))
    except StoreError:
        log.exception("STORE_FAILURE %s %s", request.method, request.url.path)
        raise HTTPException(503, STORE_FAILURE_MESSAGE)
    log.info("BINDING_RESULT %s %s -> %s", request.method, request.url.path, result.kind)
    return _respond(result)


@bindings_router.get("/bindings/me", response_model=BindingResponse)
async def query_mine(
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    sync: BindingSynchronizer = Depends(get_synchronizer),
):
    return await _run(request, sync.query(caller))


@bindings_router.get("/bindings/by-account/{game_account_name}", response_model=BindingResponse)
async def query_by_account(
    game_account_name: str,
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    sync: BindingSynchronizer = Depends(get_synchronizer),
):
    return await _run(request, sync.query(caller, game_account_name))


@bindings_router.post("/bindings", response_model=BindingResponse)
async def bind(
    body: BindRequest,
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    sync: BindingSynchronizer = Depends(get_synchronizer),
):
    return await _run(request, sync.bind(caller, body.game_account_name))


@bindings_router.delete("/bindings/me", response_model=BindingResponse)
async def unbind(
    request: Request,
    caller: CallerIdentity = Depends(get_caller),
    sync: BindingSynchronizer = Depends(get_synchronizer),
):
    return await _run(request, sync.unbind(caller))
