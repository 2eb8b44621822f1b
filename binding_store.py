import logging

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from errors import StoreReadError, StoreWriteError
from models.binding import Binding

log = logging.getLogger("whitelist")


class BindingStore:
    """Binding table access over a single request-scoped session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_platform_user(self, platform_user_id: int) -> Binding | None:
        return await self._first(select(Binding).where(Binding.platform_user_id == platform_user_id))

    async def find_by_game_account(self, game_account_name: str) -> Binding | None:
        return await self._first(select(Binding).where(Binding.game_account_name == game_account_name))

    async def insert(self, platform_user_id: int, game_account_name: str, registered_at_millis: int) -> Binding:
        record = Binding(
            platform_user_id=platform_user_id,
            game_account_name=game_account_name,
            registered_at_millis=registered_at_millis,
        )
        try:
            self.db.add(record)
            # flush assigns the id; expire_on_commit=False keeps the loaded attributes
            await self.db.flush()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("BINDING_INSERT_FAILED user=%s account=%s: %s", platform_user_id, game_account_name, e)
            raise StoreWriteError(f"could not save binding: {e}") from e
        return record

    async def delete_by_platform_user(self, platform_user_id: int) -> int:
        try:
            result = await self.db.execute(delete(Binding).where(Binding.platform_user_id == platform_user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("BINDING_DELETE_FAILED user=%s: %s", platform_user_id, e)
            raise StoreWriteError(f"could not remove binding: {e}") from e
        return result.rowcount or 0

    async def _first(self, statement) -> Binding | None:
        try:
            result = await self.db.execute(statement)
        except SQLAlchemyError as e:
            log.error("BINDING_READ_FAILED: %s", e)
            raise StoreReadError(f"could not read bindings: {e}") from e
        return result.scalars().first()
