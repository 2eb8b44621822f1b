"""Keep the binding table and the game server whitelist in step.

The binding table is authoritative. Every mutation is committed to the store
first and only then mirrored to the server; a failed mirror is reported in the
result, never rolled back. Store failures abort before the server is touched.
"""
import logging
import time
from typing import Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from binding_store import BindingStore
from errors import InvalidInput, RemoteCommandError
from models.binding import GAME_ACCOUNT_NAME_MAX_LENGTH
from notifier import MirrorAction, MirrorFailureNotifier
from rcon_client import RconClient, RconConfig

log = logging.getLogger("whitelist")


class CallerIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform_user_id: int


class BindingInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    platform_user_id: int
    game_account_name: str
    registered_at_millis: int


class BindingFound(BaseModel):
    kind: Literal["found"] = "found"
    binding: BindingInfo


class NotBound(BaseModel):
    kind: Literal["not_bound"] = "not_bound"
    # whichever key was looked up
    platform_user_id: Optional[int] = None
    game_account_name: Optional[str] = None


class AlreadyBound(BaseModel):
    kind: Literal["already_bound"] = "already_bound"
    game_account_name: str


class AccountTaken(BaseModel):
    kind: Literal["account_taken"] = "account_taken"
    platform_user_id: int


class BoundSuccessfully(BaseModel):
    kind: Literal["bound"] = "bound"
    binding: BindingInfo


class BoundButMirrorFailed(BaseModel):
    kind: Literal["bound_mirror_failed"] = "bound_mirror_failed"
    binding: BindingInfo
    error_detail: str


class UnboundSuccessfully(BaseModel):
    kind: Literal["unbound"] = "unbound"
    platform_user_id: int
    game_account_name: str


class UnboundButMirrorFailed(BaseModel):
    kind: Literal["unbound_mirror_failed"] = "unbound_mirror_failed"
    platform_user_id: int
    game_account_name: str
    error_detail: str


QueryResult = Union[BindingFound, NotBound]
BindResult = Union[BoundSuccessfully, BoundButMirrorFailed, AlreadyBound, AccountTaken]
UnbindResult = Union[UnboundSuccessfully, UnboundButMirrorFailed, NotBound]


def _now_millis() -> int:
    return int(time.time() * 1000)


def normalize_game_account_name(raw: Optional[str]) -> str:
    """Return a name safe to interpolate into a console command, or raise InvalidInput."""
    name = (raw or "").strip()
    if not name:
        raise InvalidInput("game account name is required")
    if len(name) > GAME_ACCOUNT_NAME_MAX_LENGTH:
        raise InvalidInput(f"game account name is longer than {GAME_ACCOUNT_NAME_MAX_LENGTH} characters")
    if any(ch.isspace() or not ch.isprintable() for ch in name):
        raise InvalidInput("game account name must not contain whitespace or control characters")
    return name


class BindingSynchronizer:
    def __init__(
        self,
        store: BindingStore,
        remote: RconClient,
        remote_config: RconConfig,
        notifier: Optional[MirrorFailureNotifier] = None,
        clock: Callable[[], int] = _now_millis,
    ):
        self.store = store
        self.remote = remote
        self.remote_config = remote_config
        self.notifier = notifier
        self.clock = clock

    async def query(self, caller: CallerIdentity, game_account_name: Optional[str] = None) -> QueryResult:
        name = (game_account_name or "").strip()
        if name:
            record = await self.store.find_by_game_account(name)
            if record is None:
                return NotBound(game_account_name=name)
        else:
            record = await self.store.find_by_platform_user(caller.platform_user_id)
            if record is None:
                return NotBound(platform_user_id=caller.platform_user_id)
        return BindingFound(binding=BindingInfo.model_validate(record))

    async def bind(self, caller: CallerIdentity, game_account_name: Optional[str]) -> BindResult:
        name = normalize_game_account_name(game_account_name)
        user_id = caller.platform_user_id

        existing = await self.store.find_by_platform_user(user_id)
        if existing is not None:
            return AlreadyBound(game_account_name=existing.game_account_name)

        holder = await self.store.find_by_game_account(name)
        if holder is not None:
            return AccountTaken(platform_user_id=holder.platform_user_id)

        record = await self.store.insert(user_id, name, self.clock())
        binding = BindingInfo.model_validate(record)
        log.info("BOUND user=%s account=%s", user_id, name)

        try:
            await self.remote.execute(self.remote_config, f"whitelist add {name}")
        except RemoteCommandError as e:
            detail = str(e) or type(e).__name__
            await self._report_mirror_failure("add", user_id, name, detail)
            return BoundButMirrorFailed(binding=binding, error_detail=detail)

        return BoundSuccessfully(binding=binding)

    async def unbind(self, caller: CallerIdentity) -> UnbindResult:
        user_id = caller.platform_user_id

        existing = await self.store.find_by_platform_user(user_id)
        if existing is None:
            return NotBound(platform_user_id=user_id)

        name = existing.game_account_name
        await self.store.delete_by_platform_user(user_id)
        log.info("UNBOUND user=%s account=%s", user_id, name)

        try:
            await self.remote.execute(self.remote_config, f"whitelist remove {name}")
        except RemoteCommandError as e:
            detail = str(e) or type(e).__name__
            await self._report_mirror_failure("remove", user_id, name, detail)
            return UnboundButMirrorFailed(platform_user_id=user_id, game_account_name=name, error_detail=detail)

        return UnboundSuccessfully(platform_user_id=user_id, game_account_name=name)

    async def _report_mirror_failure(self, action: MirrorAction, user_id: int, name: str, detail: str) -> None:
        log.error("MIRROR_FAILED whitelist %s %s (user=%s): %s", action, name, user_id, detail)
        if self.notifier is not None:
            await self.notifier.notify(
                action=action,
                platform_user_id=user_id,
                game_account_name=name,
                error=detail,
            )
