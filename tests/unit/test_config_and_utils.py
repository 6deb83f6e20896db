# tests/unit/test_config_and_utils.py
"""针对配置加载、运行时上下文与通用工具函数的单元测试。"""

import re
from pathlib import Path

import pytest
from pydantic import ValidationError

from l10n_hub.config import L10nHubConfig
from l10n_hub.context import REGRESSION_MILLIS, L10nContext
from l10n_hub.core.exceptions import ConfigurationError
from l10n_hub.persistence import create_tm_handler
from l10n_hub.utils import batched, current_millis, random_letters, validate_lang_codes


def test_defaults() -> None:
    config = L10nHubConfig(_env_file=None)
    assert config.source_lang == "en"
    assert config.provider_pipeline == []
    assert config.retry_policy.max_attempts == 2
    assert config.retry_policy.base_delay == 3.0
    assert config.scheduler.parallelism == 1
    assert config.scheduler.save_failed_jobs is False
    assert config.tm.warmup_workers == 8
    assert config.regression is False


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """测试带前缀的环境变量与 `__` 分隔的嵌套配置。"""
    monkeypatch.setenv("L10N_HUB_SOURCE_LANG", "de")
    monkeypatch.setenv("L10N_HUB_TARGET_LANGS", '["fr", "ja"]')
    monkeypatch.setenv("L10N_HUB_SCHEDULER__PARALLELISM", "4")
    monkeypatch.setenv("L10N_HUB_LOGGING__FORMAT", "json")

    config = L10nHubConfig(_env_file=None)

    assert config.source_lang == "de"
    assert config.target_langs == ["fr", "ja"]
    assert config.scheduler.parallelism == 4
    assert config.logging.format == "json"


def test_invalid_language_codes_are_rejected() -> None:
    with pytest.raises(ValidationError):
        L10nHubConfig(_env_file=None, target_langs=["fr", "123"])


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("sqlite+aiosqlite:///tm.db", "tm.db"),
        ("sqlite+aiosqlite:////var/lib/tm.db", "/var/lib/tm.db"),
        ("sqlite+aiosqlite:///:memory:", ":memory:"),
    ],
)
def test_db_path(url: str, expected: str) -> None:
    assert L10nHubConfig(_env_file=None, database_url=url).db_path == expected


def test_db_path_requires_sqlite() -> None:
    config = L10nHubConfig(_env_file=None, database_url="postgresql://localhost/tm")
    with pytest.raises(ValueError):
        _ = config.db_path
    with pytest.raises(ConfigurationError):
        create_tm_handler(config)


def test_regression_context_is_deterministic(tmp_path: Path) -> None:
    ctx = L10nContext.from_config(L10nHubConfig(_env_file=None, regression=True), tmp_path)

    assert ctx.now_ms() == REGRESSION_MILLIS
    assert ctx.now_iso() == "2023-11-14T22:13:20Z"
    assert [ctx.make_job_guid() for _ in range(3)] == ["xxx1xxx", "xxx2xxx", "xxx3xxx"]
    assert ctx.resolve("jobs") == tmp_path / "jobs"
    assert ctx.resolve(tmp_path / "abs") == tmp_path / "abs"


def test_live_context_uses_real_clock_and_random_guids() -> None:
    ctx = L10nContext.from_config(L10nHubConfig(_env_file=None))
    assert ctx.now_ms() > REGRESSION_MILLIS
    assert ctx.make_job_guid() != ctx.make_job_guid()


def test_batched() -> None:
    assert list(batched([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    assert list(batched([], 3)) == []
    with pytest.raises(ValueError):
        list(batched([1], 0))


def test_random_letters_and_millis() -> None:
    assert re.fullmatch(r"[a-z]{3}", random_letters())
    assert len(random_letters(8)) == 8
    assert current_millis() > REGRESSION_MILLIS


@pytest.mark.parametrize("codes", [["en"], ["zh-CN"], ["de", "fr", "es-419"], ["en_GB"]])
def test_validate_lang_codes_accepts_valid_tags(codes: list[str]) -> None:
    validate_lang_codes(codes)


@pytest.mark.parametrize("invalid_code", ["german", "123", "zh-CN-"])
def test_validate_lang_codes_rejects_invalid_tags(invalid_code: str) -> None:
    with pytest.raises(ValueError) as excinfo:
        validate_lang_codes([invalid_code])
    assert f"提供的语言代码 '{invalid_code}' 格式无效" in str(excinfo.value)
