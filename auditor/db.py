"""SQLite store for agent memories and the per-agent cache.

The store is a single ``db.sqlite`` file. Release builds publish it as a
release asset so the learning persona keeps what it has seen across runs.
"""

from __future__ import annotations

import datetime
import json
import logging
import uuid
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from auditor.models.memory import Account, Base, CacheEntry, Memory, Participant, Room
from auditor.models.schemas import Character

logger = logging.getLogger(__name__)

DB_FILENAME = "db.sqlite"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite drops tzinfo on the way back out
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class SqliteDatabaseAdapter:
    """Async access to the memory store."""

    def __init__(self, file_path: Path) -> None:
        self.file_path = file_path
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{file_path}", echo=False)
        self.session = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def init(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Initialized store at %s", self.file_path)

    async def close(self) -> None:
        await self.engine.dispose()

    # -- Accounts and rooms --

    async def ensure_account(self, account_id: uuid.UUID, name: str, username: str | None = None) -> None:
        async with self.session() as session:
            if await session.get(Account, str(account_id)) is None:
                session.add(Account(id=str(account_id), name=name, username=username or name))
                await session.commit()

    async def ensure_room(self, room_id: uuid.UUID) -> None:
        async with self.session() as session:
            if await session.get(Room, str(room_id)) is None:
                session.add(Room(id=str(room_id)))
                await session.commit()

    async def ensure_participant(self, user_id: uuid.UUID, room_id: uuid.UUID) -> None:
        async with self.session() as session:
            result = await session.execute(
                select(Participant).where(
                    Participant.user_id == str(user_id),
                    Participant.room_id == str(room_id),
                )
            )
            if result.scalar_one_or_none() is None:
                session.add(Participant(user_id=str(user_id), room_id=str(room_id)))
                await session.commit()

    # -- Memories --

    async def create_memory(
        self,
        *,
        memory_id: uuid.UUID,
        table_name: str,
        agent_id: uuid.UUID,
        user_id: uuid.UUID,
        room_id: uuid.UUID,
        content: dict[str, Any],
        created_at: datetime.datetime | None = None,
    ) -> None:
        async with self.session() as session:
            session.add(
                Memory(
                    id=str(memory_id),
                    type=table_name,
                    agent_id=str(agent_id),
                    user_id=str(user_id),
                    room_id=str(room_id),
                    content=content,
                    created_at=created_at or _utcnow(),
                )
            )
            await session.commit()

    async def get_memories(self, room_id: uuid.UUID, table_name: str, count: int = 10) -> list[Memory]:
        """Return the latest ``count`` memories of a room, oldest first."""
        async with self.session() as session:
            result = await session.execute(
                select(Memory)
                .where(Memory.room_id == str(room_id), Memory.type == table_name)
                .order_by(Memory.created_at.desc())
                .limit(count)
            )
            return list(reversed(result.scalars().all()))

    async def count_memories(self, room_id: uuid.UUID, table_name: str) -> int:
        async with self.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Memory)
                .where(Memory.room_id == str(room_id), Memory.type == table_name)
            )
            return result.scalar_one()

    # -- Cache --

    async def get_cache(self, key: str, agent_id: uuid.UUID) -> CacheEntry | None:
        async with self.session() as session:
            return await session.get(CacheEntry, {"key": key, "agent_id": str(agent_id)})

    async def set_cache(
        self,
        key: str,
        agent_id: uuid.UUID,
        value: str,
        expires_at: datetime.datetime | None = None,
    ) -> None:
        async with self.session() as session:
            entry = await session.get(CacheEntry, {"key": key, "agent_id": str(agent_id)})
            if entry is None:
                session.add(CacheEntry(key=key, agent_id=str(agent_id), value=value, expires_at=expires_at))
            else:
                entry.value = value
                entry.expires_at = expires_at
            await session.commit()

    async def delete_cache(self, key: str, agent_id: uuid.UUID) -> None:
        async with self.session() as session:
            await session.execute(
                delete(CacheEntry).where(
                    CacheEntry.key == key, CacheEntry.agent_id == str(agent_id)
                )
            )
            await session.commit()


class DbCacheAdapter:
    """Cache storage in the store's ``cache`` table, scoped to one agent."""

    def __init__(self, db: SqliteDatabaseAdapter, agent_id: uuid.UUID) -> None:
        self.db = db
        self.agent_id = agent_id

    async def get(self, key: str) -> tuple[str, datetime.datetime | None] | None:
        entry = await self.db.get_cache(key, self.agent_id)
        if entry is None:
            return None
        return entry.value, entry.expires_at

    async def set(self, key: str, value: str, expires_at: datetime.datetime | None = None) -> None:
        await self.db.set_cache(key, self.agent_id, value, expires_at)

    async def delete(self, key: str) -> None:
        await self.db.delete_cache(key, self.agent_id)


class CacheManager:
    """JSON value cache with optional expiry on top of a cache adapter."""

    def __init__(self, adapter: DbCacheAdapter) -> None:
        self.adapter = adapter

    async def get(self, key: str) -> Any | None:
        cached = await self.adapter.get(key)
        if cached is None:
            return None
        value, expires_at = cached
        if expires_at is not None and _as_utc(expires_at) <= _utcnow():
            await self.adapter.delete(key)
            return None
        return json.loads(value)

    async def set(self, key: str, value: Any, expires: datetime.timedelta | None = None) -> None:
        expires_at = _utcnow() + expires if expires is not None else None
        await self.adapter.set(key, json.dumps(value, default=str), expires_at)

    async def delete(self, key: str) -> None:
        await self.adapter.delete(key)


def initialize_database(data_dir: str | Path) -> SqliteDatabaseAdapter:
    """Open the store at ``<data_dir>/db.sqlite``. Call ``init()`` before use."""
    try:
        file_path = Path(data_dir).resolve() / DB_FILENAME
        return SqliteDatabaseAdapter(file_path)
    except Exception:
        logger.exception("Error initializing database")
        raise


def initialize_db_cache(character: Character, db: SqliteDatabaseAdapter) -> CacheManager:
    """Wrap the store in a cache manager keyed by the character id."""
    try:
        if character.id is None:
            raise ValueError(f"character {character.name} has no id")
        return CacheManager(DbCacheAdapter(db, character.id))
    except Exception:
        logger.exception("Error initializing database cache")
        raise
