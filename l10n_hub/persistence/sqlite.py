# l10n_hub/persistence/sqlite.py
"""`TmHandler` 协议的 SQLite 实现（SQLAlchemy asyncio + aiosqlite）。"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from l10n_hub._nstr.parts import flatten_ordinal
from l10n_hub.core.exceptions import DatabaseError
from l10n_hub.core.types import TranslationUnit
from l10n_hub.db.schema import Base, LhJobs, LhTus

logger = structlog.get_logger(__name__)

# 以独立列存储的 TU 字段；其余白名单字段进入 tu_props
_COLUMN_FIELDS = frozenset(
    {"guid", "rid", "sid", "nsrc", "ntgt", "notes", "q", "ts", "inflight",
     "jobGuid", "translationProvider"}
)
_GUID_QUERY_CHUNK = 500


class SQLiteTmHandler:
    """把 TM 条目与作业状态行保存在一个 SQLite 数据库中。"""

    def __init__(
        self,
        engine: AsyncEngine,
        sessionmaker: async_sessionmaker[AsyncSession],
        db_path: str,
    ):
        self._engine = engine
        self._sessionmaker = sessionmaker
        self.db_path = db_path
        self._flat_src_index_ready = False
        self._index_lock = asyncio.Lock()

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        return self._sessionmaker

    async def connect(self) -> None:
        """建立连接、创建表，并为 SQLite 设置必要的 PRAGMA。"""
        try:
            async with self._engine.begin() as conn:
                if self.db_path != ":memory:":
                    await conn.execute(text("PRAGMA journal_mode=WAL;"))
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError(f"初始化 SQLite 数据库失败: {e}") from e
        logger.info("SQLite 数据库连接已建立", db_path=self.db_path)

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("持久化层引擎已关闭。")

    # --- 写入 ---

    async def save_job_block(
        self, job_row: dict[str, Any], entries: list[TranslationUnit]
    ) -> None:
        """
        在单个事务中写入一个作业的全部 TM 条目与作业状态行。

        条目以 (job_guid, guid) 为键 upsert；该作业在库中已有、但不在本次条目中的
        记录被删除，使拆分后的作业保持精确。
        """
        job_guid = job_row["job_guid"]
        guids = [entry.guid for entry in entries]
        try:
            async with self._sessionmaker.begin() as session:
                await session.execute(
                    delete(LhTus).where(LhTus.job_guid == job_guid, LhTus.guid.not_in(guids))
                )
                for order, entry in enumerate(entries):
                    values = self._tu_values(job_row, entry, order)
                    stmt = sqlite_insert(LhTus).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[LhTus.job_guid, LhTus.guid],
                        set_={
                            key: stmt.excluded[key]
                            for key in values
                            if key not in ("job_guid", "guid")
                        },
                    )
                    await session.execute(stmt)

                job_stmt = sqlite_insert(LhJobs).values(**job_row)
                job_stmt = job_stmt.on_conflict_do_update(
                    index_elements=[LhJobs.job_guid],
                    set_={key: job_stmt.excluded[key] for key in job_row if key != "job_guid"},
                )
                await session.execute(job_stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(f"写入作业 '{job_guid}' 的 TM 条目失败: {e}") from e

    @staticmethod
    def _tu_values(job_row: dict[str, Any], entry: TranslationUnit, order: int) -> dict[str, Any]:
        wire = entry.to_wire()
        assert entry.nsrc is not None
        return {
            "job_guid": job_row["job_guid"],
            "guid": entry.guid,
            "source_lang": job_row["source_lang"],
            "target_lang": job_row["target_lang"],
            "rid": entry.rid,
            "sid": entry.sid,
            "flat_src": flatten_ordinal(entry.nsrc),
            "nsrc": wire["nsrc"],
            "ntgt": wire.get("ntgt"),
            "notes": wire.get("notes"),
            "q": entry.q or 0,
            "ts": entry.ts or 0,
            "inflight": bool(entry.inflight),
            "translation_provider": entry.translation_provider,
            "tu_order": order,
            "tu_props": {k: v for k, v in wire.items() if k not in _COLUMN_FIELDS} or None,
        }

    @staticmethod
    def _row_to_tu(row: LhTus) -> TranslationUnit:
        fields: dict[str, Any] = dict(row.tu_props or {})
        fields.update(
            guid=row.guid,
            rid=row.rid,
            sid=row.sid,
            nsrc=row.nsrc,
            q=row.q,
            ts=row.ts,
            jobGuid=row.job_guid,
        )
        if row.ntgt is not None:
            fields["ntgt"] = row.ntgt
        if row.notes is not None:
            fields["notes"] = row.notes
        if row.inflight:
            fields["inflight"] = True
        if row.translation_provider:
            fields["translationProvider"] = row.translation_provider
        return TranslationUnit.model_validate(fields)

    # --- 查询 ---

    async def get_best_entry(
        self, source_lang: str, target_lang: str, guid: str
    ) -> TranslationUnit | None:
        stmt = (
            select(LhTus)
            .where(
                LhTus.source_lang == source_lang,
                LhTus.target_lang == target_lang,
                LhTus.guid == guid,
            )
            .order_by(LhTus.q.desc(), LhTus.ts.desc())
            .limit(1)
        )
        try:
            async with self._sessionmaker() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"按 guid 查询 TM 失败: {e}") from e
        return self._row_to_tu(row) if row else None

    async def get_entries_by_guids(
        self, source_lang: str, target_lang: str, guids: list[str]
    ) -> dict[str, TranslationUnit]:
        best: dict[str, TranslationUnit] = {}
        try:
            async with self._sessionmaker() as session:
                for start in range(0, len(guids), _GUID_QUERY_CHUNK):
                    chunk = guids[start : start + _GUID_QUERY_CHUNK]
                    stmt = (
                        select(LhTus)
                        .where(
                            LhTus.source_lang == source_lang,
                            LhTus.target_lang == target_lang,
                            LhTus.guid.in_(chunk),
                        )
                        .order_by(LhTus.guid, LhTus.q.desc(), LhTus.ts.desc())
                    )
                    for row in (await session.execute(stmt)).scalars():
                        if row.guid not in best:
                            best[row.guid] = self._row_to_tu(row)
        except SQLAlchemyError as e:
            raise DatabaseError(f"批量查询 TM 失败: {e}") from e
        return best

    async def _ensure_flat_src_index(self) -> None:
        if self._flat_src_index_ready:
            return
        async with self._index_lock:
            if self._flat_src_index_ready:
                return
            try:
                async with self._engine.begin() as conn:
                    await conn.execute(
                        text(
                            "CREATE INDEX IF NOT EXISTS ix_lh_tus_flat_src "
                            "ON lh_tus (source_lang, target_lang, flat_src)"
                        )
                    )
            except SQLAlchemyError as e:
                raise DatabaseError(f"创建精确匹配索引失败: {e}") from e
            self._flat_src_index_ready = True
            logger.debug("精确匹配索引已创建")

    async def get_entries_by_flat_src(
        self, source_lang: str, target_lang: str, flat_src: str
    ) -> list[TranslationUnit]:
        await self._ensure_flat_src_index()
        stmt = (
            select(LhTus)
            .where(
                LhTus.source_lang == source_lang,
                LhTus.target_lang == target_lang,
                LhTus.flat_src == flat_src,
                LhTus.inflight.is_(False),
                LhTus.ntgt.is_not(None),
            )
            .order_by(LhTus.q.desc(), LhTus.ts.desc())
        )
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"精确匹配查询失败: {e}") from e
        return [self._row_to_tu(row) for row in rows]

    async def get_entries_by_job(self, job_guid: str) -> list[TranslationUnit]:
        stmt = select(LhTus).where(LhTus.job_guid == job_guid).order_by(LhTus.tu_order)
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"按作业查询 TM 失败: {e}") from e
        return [self._row_to_tu(row) for row in rows]

    async def get_job_row(self, job_guid: str) -> dict[str, Any] | None:
        try:
            async with self._sessionmaker() as session:
                row = await session.get(LhJobs, job_guid)
        except SQLAlchemyError as e:
            raise DatabaseError(f"查询作业 '{job_guid}' 失败: {e}") from e
        if row is None:
            return None
        return {
            "job_guid": row.job_guid,
            "source_lang": row.source_lang,
            "target_lang": row.target_lang,
            "status": row.status,
            "translation_provider": row.translation_provider,
            "updated_at": row.updated_at,
            "original_job_guid": row.original_job_guid,
        }

    async def get_available_lang_pairs(self) -> list[tuple[str, str]]:
        stmt = (
            select(LhJobs.source_lang, LhJobs.target_lang)
            .distinct()
            .order_by(LhJobs.source_lang, LhJobs.target_lang)
        )
        try:
            async with self._sessionmaker() as session:
                return [(src, tgt) for src, tgt in (await session.execute(stmt)).all()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"查询语言对失败: {e}") from e

    async def get_job_status_by_lang_pair(
        self, source_lang: str, target_lang: str
    ) -> dict[str, tuple[str, str | None]]:
        stmt = select(LhJobs.job_guid, LhJobs.status, LhJobs.updated_at).where(
            LhJobs.source_lang == source_lang, LhJobs.target_lang == target_lang
        )
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"查询作业状态失败: {e}") from e
        return {job_guid: (status, updated_at) for job_guid, status, updated_at in rows}

    async def get_tm_stats(self) -> list[dict[str, Any]]:
        stmt = (
            select(
                LhTus.source_lang,
                LhTus.target_lang,
                LhTus.translation_provider,
                func.count().label("entries"),
                func.sum(LhTus.inflight).label("inflight"),
            )
            .group_by(LhTus.source_lang, LhTus.target_lang, LhTus.translation_provider)
            .order_by(LhTus.source_lang, LhTus.target_lang, LhTus.translation_provider)
        )
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"统计 TM 失败: {e}") from e
        return [
            {
                "source_lang": src,
                "target_lang": tgt,
                "provider": provider,
                "entries": entries,
                "inflight": int(inflight or 0),
            }
            for src, tgt, provider, entries, inflight in rows
        ]
