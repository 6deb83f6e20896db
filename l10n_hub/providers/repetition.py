# l10n_hub/providers/repetition.py
"""
重复内容提供者：复用 TM 中的精确匹配，以及同一请求内部的重复原文。

1. TM 精确匹配（任意 sid）按惩罚后的质量挑选，达到 TU 的 `min_q` 即直接采用。
2. 其余 TU 中原文相同的分组按贪心策略选择供体：供体继续流向后续提供者，
   受体以在途状态留在本作业中，等待供体的译文进入 TM 后由 `continue_job` 补齐。
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import Field

from l10n_hub._nstr.compat import remap_translation
from l10n_hub.core.exceptions import ConfigurationError
from l10n_hub.core.types import Job, JobStatus, TranslationUnit
from l10n_hub.policies.repetition import RepetitionPolicy, pick_best_match, plan_holdback
from l10n_hub.providers.base import (
    STATUS_DESCRIPTIONS,
    BaseTranslationProvider,
    ExecutionMode,
    ProviderConfig,
    ProviderFamily,
)

logger = structlog.get_logger(__name__)


class RepetitionProviderConfig(ProviderConfig):
    expected_quality: int = Field(default=0, ge=0, description="供体译文的预期质量")
    qualified_penalty: int = Field(default=0, ge=0)
    unqualified_penalty: int = Field(default=0, ge=0)
    notes_mismatch_penalty: int = Field(default=0, ge=0)
    group_penalty: int = Field(default=0, ge=0)
    hold_back: bool = Field(default=True, description="是否对请求内部的重复原文做复用")


class RepetitionProvider(BaseTranslationProvider[RepetitionProviderConfig]):
    CONFIG_MODEL = RepetitionProviderConfig
    FAMILY = ProviderFamily.REPETITION
    EXECUTION = ExecutionMode.LEVERAGE

    def __init__(self, config: RepetitionProviderConfig):
        if config.quality is not None:
            raise ConfigurationError("Repetition 提供者不支持固定的 quality")
        super().__init__(config)
        self.policy = RepetitionPolicy(
            expected_quality=config.expected_quality,
            qualified_penalty=config.qualified_penalty,
            unqualified_penalty=config.unqualified_penalty,
            notes_mismatch_penalty=config.notes_mismatch_penalty,
            group_penalty=config.group_penalty,
        )

    async def get_accepted_tus(self, job: Job) -> list[TranslationUnit]:
        tm = self.p_context.tm_manager.get_tm(job.source_lang, job.target_lang)
        ts = self.now_ts()
        matched: list[TranslationUnit] = []
        unmatched: list[TranslationUnit] = []
        for tu in job.tus:
            best = None
            if tu.nsrc is not None:
                candidates = [c for c in await tm.get_exact_matches(tu.nsrc) if c.guid != tu.guid]
                best = pick_best_match(self.policy, tu, candidates)
            if best is None:
                unmatched.append(tu)
                continue
            candidate, quality = best
            ntgt = remap_translation(tu.nsrc or [], candidate.ntgt or []) or candidate.ntgt
            matched.append(
                tu.model_copy(
                    update={"ntgt": ntgt, "q": quality, "ts": ts, "parent_guid": candidate.guid}
                )
            )

        if not self.config.hold_back:
            return matched
        plan = plan_holdback(self.policy, unmatched)
        if plan.holdouts:
            logger.info(
                "请求内部的重复原文已复用",
                provider=self.id,
                donors=len(plan.donors),
                holdouts=len(plan.holdouts),
            )
        return matched + plan.holdouts

    async def create(
        self,
        job: Job,
        *,
        skip_quality_check: bool = False,
        skip_group_check: bool = False,
    ) -> Job:
        """在基础创建流程之上，把受体与其供体的关系记录到作业信封中。"""
        created = await super().create(
            job, skip_quality_check=skip_quality_check, skip_group_check=skip_group_check
        )
        donors = {tu.guid: tu for tu in job.tus}
        holdouts: dict[str, dict[str, Any]] = {}
        for tu in created.tus:
            if not tu.inflight or tu.parent_guid is None:
                continue
            donor = donors.get(tu.parent_guid)
            penalty = self.policy.penalty(tu, donor) if donor is not None else 0
            holdouts[tu.guid] = {"parentGuid": tu.parent_guid, "penalty": penalty}
        if holdouts:
            created.envelope = {**(created.envelope or {}), "holdouts": holdouts}
        return created

    async def resume_job(self, job: Job) -> Job:
        """用供体在 TM 中的最新译文补齐受体；供体尚未完成的受体继续在途。"""
        holdouts: dict[str, dict[str, Any]] = (job.envelope or {}).get("holdouts", {})
        inflight_guids = list(job.inflight or [])
        tm = self.p_context.tm_manager.get_tm(job.source_lang, job.target_lang)
        receivers = await tm.get_entries_by_guids(inflight_guids)
        parents = await tm.get_entries_by_guids(
            sorted({holdouts[guid]["parentGuid"] for guid in inflight_guids if guid in holdouts})
        )

        ts = self.now_ts()
        resolved: list[TranslationUnit] = []
        still_inflight: list[str] = []
        for guid in inflight_guids:
            holdout = holdouts.get(guid)
            receiver = receivers.get(guid)
            parent = parents.get(holdout["parentGuid"]) if holdout else None
            if parent is None or parent.inflight or parent.ntgt is None or receiver is None:
                still_inflight.append(guid)
                continue
            ntgt = remap_translation(receiver.nsrc or [], parent.ntgt)
            if ntgt is None:
                logger.warning("供体译文与受体原文不兼容", guid=guid, parent_guid=parent.guid)
                still_inflight.append(guid)
                continue
            resolved.append(
                TranslationUnit(
                    guid=guid,
                    ntgt=ntgt,
                    q=max(0, (parent.q or 0) - holdout.get("penalty", 0)),
                    ts=ts,
                )
            )

        status = JobStatus.PENDING if still_inflight else JobStatus.DONE
        return job.model_copy(
            update={
                "tus": resolved,
                "inflight": still_inflight or None,
                "status": status,
                "status_description": STATUS_DESCRIPTIONS[status],
            }
        )
