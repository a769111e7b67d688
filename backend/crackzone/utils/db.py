"""Database connection, session management and transaction helpers."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import Select, event, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from crackzone.config import Settings, get_settings
from crackzone.models.user import User
from crackzone.utils.errors import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    PersistenceError,
    PersistenceErrorKind,
)

if TYPE_CHECKING:
    from crackzone.schemas.common import PaginationParams

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

OUTBOX_KEY = "event_outbox"


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    # SQLite ships with foreign key enforcement switched off
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    SQLite (local runs and tests) does not accept pool sizing, and an
    in-memory database must share a single connection.
    """
    if settings.is_sqlite:
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in settings.database_url or settings.database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_async_engine(settings.database_url, echo=False, **kwargs)
        event.listen(sqlite_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        echo=False,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(get_settings())
async_session_factory = build_session_factory(engine)


async def _after_commit(session: AsyncSession) -> None:
    outbox = session.info.pop(OUTBOX_KEY, None)
    if outbox is not None:
        await outbox.dispatch()


def _after_rollback(session: AsyncSession) -> None:
    outbox = session.info.pop(OUTBOX_KEY, None)
    if outbox is not None:
        outbox.discard()


async def finish_session(session: AsyncSession, failed: bool) -> None:
    """Commit or roll back a unit of work and settle its event outbox.

    Events staged during the request are dispatched only once the commit
    succeeded and are dropped otherwise.
    """
    if failed:
        await session.rollback()
        _after_rollback(session)
        return

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        _after_rollback(session)
        raise PersistenceError.from_exception(exc) from exc
    except Exception:
        await session.rollback()
        _after_rollback(session)
        raise
    await _after_commit(session)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting an async database session.

    Usage:
        @router.get("/items")
        async def get_items(db: DbSession):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await finish_session(session, failed=True)
            raise
        else:
            await finish_session(session, failed=False)


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for work outside a request (websocket gateway, scripts)."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await finish_session(session, failed=True)
            raise
        else:
            await finish_session(session, failed=False)


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a multi-statement unit that succeeds or fails as a whole.

    On success the pending changes are flushed and become durable with the
    request commit. Any exception rolls the whole session back; database
    errors surface as a classified :class:`PersistenceError`.

    Usage:
        async with atomic(self.db):
            await guarded_debit(self.db, user.id, amount)
            self.db.add(order)
    """
    try:
        yield session
        await session.flush()
    except SQLAlchemyError as exc:
        await session.rollback()
        _after_rollback(session)
        logger.warning(f"Transaction rolled back: {type(exc).__name__}: {exc}")
        raise PersistenceError.from_exception(exc) from exc
    except Exception:
        await session.rollback()
        _after_rollback(session)
        raise


@asynccontextmanager
async def unique_insert(session: AsyncSession, conflict_message: str) -> AsyncIterator[AsyncSession]:
    """``atomic`` for rows guarded by a unique constraint.

    A concurrent request can pass the same existence check and commit
    first; the losing insert then reports the conflict instead of a
    database error.
    """
    try:
        async with atomic(session):
            yield session
    except PersistenceError as exc:
        if exc.kind == PersistenceErrorKind.UNIQUE_VIOLATION:
            raise ConflictError(conflict_message) from exc
        raise


async def get_or_404(
    session: AsyncSession,
    model: type[ModelT],
    ident: str,
    message: str | None = None,
) -> ModelT:
    """Load a row by primary key or raise NotFoundError."""
    instance = await session.get(model, ident)
    if instance is None:
        raise NotFoundError(message or f"{model.__name__} not found")
    return instance


async def guarded_debit(session: AsyncSession, user_id: str, amount: int) -> None:
    """Subtract coins only if the balance covers the amount.

    The balance check and the write are one conditional UPDATE, so the
    balance never goes below zero.
    """

    result = await session.execute(
        update(User)
        .where(User.id == user_id, User.coins >= amount)
        .values(coins=User.coins - amount)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise InsufficientBalanceError(
            details={"userId": user_id, "required": amount},
        )


async def credit(session: AsyncSession, user_id: str, coins: int = 0, experience: int = 0) -> None:
    """Add coins and/or experience to a user."""

    values: dict[str, Any] = {}
    if coins:
        values["coins"] = User.coins + coins
    if experience:
        values["experience"] = User.experience + experience
    if not values:
        return
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise NotFoundError("User not found")


async def create_tables() -> None:
    from crackzone.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Check database connectivity (and create tables when configured)."""
    async with engine.begin() as conn:
        await conn.run_sync(lambda _: None)
    if get_settings().db_create_tables:
        await create_tables()


async def close_db() -> None:
    """Close database connection pool."""
    await engine.dispose()


async def paginate(
    session: AsyncSession,
    stmt: Select,
    params: "PaginationParams",
    options: tuple = (),
) -> tuple[list[Any], int]:
    """Return one page of ``stmt`` plus the total row count.

    Loader ``options`` are applied to the page query only.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = await session.scalar(count_stmt) or 0
    page_stmt = stmt.offset(params.offset).limit(params.limit)
    if options:
        page_stmt = page_stmt.options(*options)
    rows = (await session.scalars(page_stmt)).all()
    return list(rows), total
