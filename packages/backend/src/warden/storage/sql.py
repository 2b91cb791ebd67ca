"""SQLAlchemy-backed implementation of every store interface.

Each call opens its own short-lived session from the factory, so one
SqlStorage instance is safe to share between concurrent requests and
the background confirmation delivery.

Driver errors are re-raised as StoreUnavailableError carrying only the
operation name and the exception class — SQLAlchemy's own messages
include bound parameters (password hashes, codes) and must not reach
the logs. The original exception stays chained for debugging.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warden.db.models import App as AppRow
from warden.db.models import ConfirmationCode as CodeRow
from warden.db.models import User as UserRow
from warden.domain.models import App, ConfirmationCode, User
from warden.errors import (
    AppNotFoundError,
    CodeExistsError,
    CodeNotFoundError,
    StoreUnavailableError,
    UserExistsError,
    UserNotFoundError,
)
from warden.storage.base import (
    AppProvider,
    ConfirmationStore,
    UserProvider,
    UserSaver,
)


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        pass_hash=row.pass_hash,
        date_of_birth=row.date_of_birth,
        full_name=row.full_name,
        phone_number=row.phone_number,
        telegram_name=row.telegram_name,
        is_admin=row.is_admin,
    )


class SqlStorage(UserSaver, UserProvider, AppProvider, ConfirmationStore):
    """Relational store for users, apps and confirmation codes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    @asynccontextmanager
    async def _session(self, op: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"{op}: {type(e).__name__}") from e

    # ─── Users ──────────────────────────────────────────

    async def save_user(
        self,
        email: str,
        pass_hash: bytes,
        date_of_birth: str,
        full_name: str,
        phone_number: str,
        telegram_name: str,
    ) -> int:
        op = "storage.save_user"
        async with self._session(op) as session:
            row = UserRow(
                email=email,
                pass_hash=pass_hash,
                date_of_birth=date_of_birth,
                full_name=full_name,
                phone_number=phone_number,
                telegram_name=telegram_name,
            )
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                # Either the email or the Telegram handle is taken
                raise UserExistsError(f"{op}: user already exists") from e
            return row.id

    async def user(self, email: str) -> User:
        op = "storage.user"
        async with self._session(op) as session:
            result = await session.execute(
                select(UserRow).where(UserRow.email == email)
            )
            row = result.scalars().first()
        if row is None:
            raise UserNotFoundError(f"{op}: user not found")
        return _to_user(row)

    async def user_by_telegram(self, telegram_name: str) -> User:
        op = "storage.user_by_telegram"
        async with self._session(op) as session:
            result = await session.execute(
                select(UserRow).where(UserRow.telegram_name == telegram_name)
            )
            row = result.scalars().first()
        if row is None:
            raise UserNotFoundError(f"{op}: user not found")
        return _to_user(row)

    async def is_admin(self, user_id: int) -> bool:
        op = "storage.is_admin"
        async with self._session(op) as session:
            result = await session.execute(
                select(UserRow.is_admin).where(UserRow.id == user_id)
            )
            flag = result.scalar_one_or_none()
        if flag is None:
            raise UserNotFoundError(f"{op}: user not found")
        return bool(flag)

    # ─── Apps ───────────────────────────────────────────

    async def app(self, app_id: int) -> App:
        op = "storage.app"
        async with self._session(op) as session:
            row = await session.get(AppRow, app_id)
        if row is None:
            raise AppNotFoundError(f"{op}: app not found")
        return App(id=row.id, name=row.name, secret=row.secret)

    # ─── Confirmation codes ─────────────────────────────

    async def save_code(self, user_id: int, code: str) -> int:
        op = "storage.save_code"
        async with self._session(op) as session:
            row = CodeRow(user_id=user_id, code=code, confirmed=False)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise CodeExistsError(f"{op}: code already exists") from e
            return row.id

    async def confirmation(self, user_id: int) -> ConfirmationCode:
        op = "storage.confirmation"
        async with self._session(op) as session:
            result = await session.execute(
                select(CodeRow).where(CodeRow.user_id == user_id)
            )
            row = result.scalars().first()
        if row is None:
            raise CodeNotFoundError(f"{op}: confirmation code not found")
        return ConfirmationCode(
            user_id=row.user_id, code=row.code, confirmed=row.confirmed
        )

    async def mark_confirmed(self, user_id: int, code: str) -> bool:
        # Single conditional UPDATE: the database serializes racing
        # writers, and only the first one still matches confirmed = false.
        async with self._session("storage.mark_confirmed") as session:
            result = await session.execute(
                update(CodeRow)
                .where(
                    CodeRow.user_id == user_id,
                    CodeRow.code == code,
                    CodeRow.confirmed.is_(False),
                )
                .values(confirmed=True, confirmed_at=func.now())
            )
            await session.commit()
        return result.rowcount == 1

    async def confirm_user(self, user_id: int) -> bool:
        async with self._session("storage.confirm_user") as session:
            result = await session.execute(
                update(CodeRow)
                .where(CodeRow.user_id == user_id, CodeRow.confirmed.is_(False))
                .values(confirmed=True, confirmed_at=func.now())
            )
            await session.commit()
        return result.rowcount == 1

    async def replace_code(self, user_id: int, code: str) -> bool:
        op = "storage.replace_code"
        async with self._session(op) as session:
            result = await session.execute(
                update(CodeRow)
                .where(CodeRow.user_id == user_id, CodeRow.confirmed.is_(False))
                .values(code=code)
            )
            if result.rowcount == 1:
                await session.commit()
                return True

            existing = await session.execute(
                select(CodeRow.id).where(CodeRow.user_id == user_id)
            )
            if existing.scalar_one_or_none() is not None:
                # Present but already confirmed
                return False

            session.add(CodeRow(user_id=user_id, code=code, confirmed=False))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise CodeExistsError(f"{op}: code already exists") from e
            return True

    # ─── Provisioning (admin CLI) ───────────────────────

    async def create_app(self, name: str, secret: str) -> int:
        """Register a relying party. Raises ValueError on a duplicate name."""
        async with self._session("storage.create_app") as session:
            row = AppRow(name=name, secret=secret)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ValueError(f"App {name!r} already exists") from e
            return row.id

    async def set_admin(self, user_id: int, is_admin: bool) -> None:
        op = "storage.set_admin"
        async with self._session(op) as session:
            result = await session.execute(
                update(UserRow)
                .where(UserRow.id == user_id)
                .values(is_admin=is_admin)
            )
            await session.commit()
        if result.rowcount == 0:
            raise UserNotFoundError(f"{op}: user not found")
