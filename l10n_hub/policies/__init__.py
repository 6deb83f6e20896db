# l10n_hub/policies/__init__.py
"""翻译复用策略。"""

from .repetition import HoldbackPlan, RepetitionPolicy, pick_best_match, plan_holdback

__all__ = ["HoldbackPlan", "RepetitionPolicy", "pick_best_match", "plan_holdback"]
