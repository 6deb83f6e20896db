# l10n_hub/core/exceptions.py
"""
本模块定义了 l10n-hub 项目中所有自定义的、语义化的异常类型。

异常按照错误的影响范围分层：构造错误立即抛出；兼容性错误只影响单个 TU；
提供者错误按是否可重试分类；调度器错误对所属任务是致命的。
"""

from __future__ import annotations


class L10nHubError(Exception):
    """
    所有 l10n-hub 自定义异常的通用基类。
    捕获此异常可以处理所有源自本项目的预期错误。
    """

    pass


class ConfigurationError(L10nHubError):
    """表示在加载、解析或验证配置时发生的错误。"""

    pass


class TUValidationError(L10nHubError, ValueError):
    """
    表示一个翻译单元 (TU) 缺少必填字段或字段类型不正确。
    属于构造错误，必须立即失败，绝不静默修正。
    """

    pass


class PlaceholderError(L10nHubError):
    """所有与占位符编解码、兼容性相关错误的基类。作用域仅限单个 TU。"""

    pass


class PlaceholderExtractionError(PlaceholderError):
    """在提供者返回的字符串中遇到了占位符映射表中不存在的占位符引用。"""

    pass


class IncompatibleTranslationError(PlaceholderError):
    """译文的占位符集合无法与原文对应（未匹配或数量不一致）。"""

    pass


class ProviderError(L10nHubError):
    """
    表示与翻译提供者交互时发生的错误。

    `status_code` 为远端返回的状态码（未知时为 None）；`retryable` 为 None 时
    由重试策略根据状态码自行判断。
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ProviderNotFoundError(L10nHubError, KeyError):
    """
    表示尝试访问一个未注册或不可用的翻译提供者。
    继承自 KeyError 是为了保持与字典查找行为的一致性。
    """

    pass


class JobStateError(L10nHubError):
    """表示对作业执行了其当前状态不允许的生命周期操作。"""

    pass


class ImmutableArtifactError(L10nHubError):
    """尝试覆盖一个已经写入的 (jobGuid, status) 作业工件。这是致命错误。"""

    pass


class ChunkCardinalityError(L10nHubError):
    """提供者为某个分块返回的译文数量与该分块的 TU 数量不一致。"""

    pass


class SchedulerError(L10nHubError):
    """操作图调度器相关错误的基类。"""

    pass


class OpRegistryError(SchedulerError):
    """操作注册表错误，例如以同一名称注册了不同的回调。"""

    pass


class MissingDependencyError(SchedulerError):
    """操作在其输入依赖尚未完成时被执行。"""

    pass


class TaskExecutionError(SchedulerError):
    """任务执行结束时根操作仍未完成。任务状态已持久化以便事后排查。"""

    def __init__(self, message: str, *, task_name: str, op_id: int | None, state: str | None):
        super().__init__(message)
        self.task_name = task_name
        self.op_id = op_id
        self.state = state


class DatabaseError(L10nHubError):
    """
    表示在持久化层操作（如数据库连接、查询）中发生的错误。
    通常是底层数据库驱动异常的包装。
    """

    pass
