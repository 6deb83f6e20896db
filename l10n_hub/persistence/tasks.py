# l10n_hub/persistence/tasks.py
"""`TaskStore` 协议的 SQL 实现，与 TM 共用同一个数据库。"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from l10n_hub.core.exceptions import DatabaseError
from l10n_hub.db.schema import LhOps


class SqlTaskStore:
    """每次保存都在一个事务中整体替换任务的操作列表。"""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def save_ops(self, task_name: str, ops: list[dict[str, Any]]) -> None:
        try:
            async with self._sessionmaker.begin() as session:
                await session.execute(delete(LhOps).where(LhOps.task_name == task_name))
                if ops:
                    await session.execute(
                        insert(LhOps),
                        [
                            {
                                "task_name": task_name,
                                "op_id": op["opId"],
                                "op_name": op["opName"],
                                "state": op["state"],
                                "payload": op,
                            }
                            for op in ops
                        ],
                    )
        except SQLAlchemyError as e:
            raise DatabaseError(f"保存任务 '{task_name}' 失败: {e}") from e

    async def get_task(self, task_name: str) -> AsyncIterator[dict[str, Any]]:
        stmt = select(LhOps.payload).where(LhOps.task_name == task_name).order_by(LhOps.op_id)
        try:
            async with self._sessionmaker() as session:
                payloads = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"读取任务 '{task_name}' 失败: {e}") from e
        for payload in payloads:
            yield payload

    async def list_tasks(self) -> list[str]:
        stmt = select(LhOps.task_name).distinct().order_by(LhOps.task_name)
        try:
            async with self._sessionmaker() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(f"列出任务失败: {e}") from e
