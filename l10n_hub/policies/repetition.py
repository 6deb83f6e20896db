# l10n_hub/policies/repetition.py
"""
重复内容复用策略。

当多个 TU 的归一化原文完全相同时，只翻译其中一个“供体”，其余“受体”在供体完成后
复用其译文。供体能为受体提供的有效质量为 `expected_quality - penalty`，
惩罚项由 sid 不同、注释不同、分组不同累加而成；有效质量低于受体 `min_q` 的受体
不能被覆盖，必须单独发送。复数形式的 TU 不参与复用。
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from l10n_hub._nstr.parts import flatten_ordinal
from l10n_hub.core.types import TranslationUnit, notes_description


class RepetitionPolicy(BaseModel):
    expected_quality: int = Field(default=0, ge=0, description="供体译文的预期质量")
    qualified_penalty: int = Field(default=0, ge=0, description="sid 相同时的惩罚")
    unqualified_penalty: int = Field(default=0, ge=0, description="sid 不同时的惩罚")
    notes_mismatch_penalty: int = Field(default=0, ge=0)
    group_penalty: int = Field(default=0, ge=0)

    def penalty(self, receiver: TranslationUnit, donor: TranslationUnit) -> int:
        total = self.qualified_penalty if receiver.sid == donor.sid else self.unqualified_penalty
        receiver_desc = notes_description(receiver.notes)
        if receiver_desc and receiver_desc != notes_description(donor.notes):
            total += self.notes_mismatch_penalty
        if receiver.group != donor.group:
            total += self.group_penalty
        return total

    def effective_quality(
        self, receiver: TranslationUnit, donor: TranslationUnit, base_quality: int | None = None
    ) -> int:
        base = self.expected_quality if base_quality is None else base_quality
        return max(0, base - self.penalty(receiver, donor))

    def covers(self, receiver: TranslationUnit, donor: TranslationUnit) -> bool:
        return self.effective_quality(receiver, donor) >= (receiver.min_q or 0)


def pick_best_match(
    policy: RepetitionPolicy, tu: TranslationUnit, candidates: Iterable[TranslationUnit]
) -> tuple[TranslationUnit, int] | None:
    """
    从 TM 精确匹配中选出调整后质量最高的候选（质量相同时取较新的）。
    调整后质量低于 `tu.min_q` 时返回 None。
    """
    best: tuple[TranslationUnit, int] | None = None
    for candidate in candidates:
        quality = policy.effective_quality(tu, candidate, base_quality=candidate.q or 0)
        if best is None or quality > best[1] or (
            quality == best[1] and (candidate.ts or 0) > (best[0].ts or 0)
        ):
            best = (candidate, quality)
    if best is None or best[1] < (tu.min_q or 0):
        return None
    return best


@dataclass
class HoldbackPlan:
    """一次复用规划的结果。`forwarded` 保持输入顺序。"""

    forwarded: list[TranslationUnit] = field(default_factory=list)
    holdouts: list[TranslationUnit] = field(default_factory=list)
    donors: list[str] = field(default_factory=list)


def plan_holdback(policy: RepetitionPolicy, tus: list[TranslationUnit]) -> HoldbackPlan:
    """
    为每个相同原文的分组贪心地选择供体：每轮选择能覆盖最多剩余受体的供体，
    覆盖数相同时取输入顺序靠前者；未被覆盖的 TU 进入下一轮，直到无法再覆盖。
    """
    buckets: dict[str, list[TranslationUnit]] = {}
    for tu in tus:
        if tu.is_pluralized or tu.nsrc is None:
            continue
        buckets.setdefault(flatten_ordinal(tu.nsrc), []).append(tu)

    plan = HoldbackPlan()
    held: set[str] = set()
    for bucket in buckets.values():
        remaining = list(bucket)
        while len(remaining) > 1:
            donor: TranslationUnit | None = None
            covered: list[TranslationUnit] = []
            for candidate in remaining:
                cover = [
                    receiver
                    for receiver in remaining
                    if receiver is not candidate and policy.covers(receiver, candidate)
                ]
                if len(cover) > len(covered):
                    donor, covered = candidate, cover
            if donor is None:
                break
            plan.donors.append(donor.guid)
            for receiver in covered:
                plan.holdouts.append(
                    receiver.model_copy(
                        update={
                            "inflight": True,
                            "q": policy.effective_quality(receiver, donor),
                            "parent_guid": donor.guid,
                        }
                    )
                )
                held.add(receiver.guid)
            covered_ids = {id(receiver) for receiver in covered}
            remaining = [
                tu for tu in remaining if tu is not donor and id(tu) not in covered_ids
            ]

    plan.forwarded = [tu for tu in tus if tu.guid not in held]
    return plan
