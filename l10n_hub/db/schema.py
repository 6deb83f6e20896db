# l10n_hub/db/schema.py
"""翻译记忆库与任务存储的 ORM 模型。"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LhJobs(Base):
    """作业状态行。与该作业的 TM 条目在同一事务中写入。"""

    __tablename__ = "lh_jobs"
    job_guid: Mapped[str] = mapped_column(String, primary_key=True)
    source_lang: Mapped[str] = mapped_column(String, nullable=False)
    target_lang: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    translation_provider: Mapped[str | None] = mapped_column(String)
    updated_at: Mapped[str | None] = mapped_column(String)
    original_job_guid: Mapped[str | None] = mapped_column(String)

    __table_args__ = (Index("ix_lh_jobs_pair", "source_lang", "target_lang"),)


class LhTus(Base):
    """
    TM 条目。以 (job_guid, guid) 为键；同一 guid 的多个条目按质量与时间排序，
    被取代的条目保留而不删除。`flat_src` 是序数化原文，用于精确匹配。
    """

    __tablename__ = "lh_tus"
    job_guid: Mapped[str] = mapped_column(String, primary_key=True)
    guid: Mapped[str] = mapped_column(String, primary_key=True)
    source_lang: Mapped[str] = mapped_column(String, nullable=False)
    target_lang: Mapped[str] = mapped_column(String, nullable=False)
    rid: Mapped[str] = mapped_column(String, nullable=False)
    sid: Mapped[str] = mapped_column(String, nullable=False)
    flat_src: Mapped[str] = mapped_column(Text, nullable=False)
    nsrc: Mapped[list[Any]] = mapped_column(JSON, nullable=False)
    ntgt: Mapped[list[Any] | None] = mapped_column(JSON(none_as_null=True))
    notes: Mapped[Any | None] = mapped_column(JSON(none_as_null=True))
    q: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inflight: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    translation_provider: Mapped[str | None] = mapped_column(String)
    tu_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tu_props: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True))

    __table_args__ = (Index("ix_lh_tus_pair_guid", "source_lang", "target_lang", "guid"),)


class LhOps(Base):
    """持久化的任务操作，每行一个序列化的操作。"""

    __tablename__ = "lh_ops"
    task_name: Mapped[str] = mapped_column(String, primary_key=True)
    op_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    op_name: Mapped[str] = mapped_column(String, nullable=False)
    state: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
