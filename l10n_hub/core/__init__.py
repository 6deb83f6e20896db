# l10n_hub/core/__init__.py
"""
本核心包定义了 l10n-hub 系统中最基础、最稳定的构建块。

这里包含了系统的核心数据类型、接口协议和自定义异常，它们共同构成了
整个应用的“契约”。本包不依赖于项目中的任何其他模块。
"""

from .exceptions import (
    ChunkCardinalityError,
    ConfigurationError,
    DatabaseError,
    ImmutableArtifactError,
    IncompatibleTranslationError,
    JobStateError,
    L10nHubError,
    MissingDependencyError,
    OpRegistryError,
    PlaceholderError,
    PlaceholderExtractionError,
    ProviderError,
    ProviderNotFoundError,
    SchedulerError,
    TaskExecutionError,
    TUValidationError,
)
from .interfaces import JobStore, ResourceFilter, TaskStore, TmHandler
from .types import (
    Job,
    JobStatus,
    JobSummary,
    NormalizedString,
    OpState,
    Part,
    Placeholder,
    PlaceholderType,
    Segment,
    StructuredNotes,
    TranslationUnit,
)

__all__ = [
    # from exceptions.py
    "L10nHubError",
    "ConfigurationError",
    "TUValidationError",
    "PlaceholderError",
    "PlaceholderExtractionError",
    "IncompatibleTranslationError",
    "ProviderError",
    "ProviderNotFoundError",
    "JobStateError",
    "ImmutableArtifactError",
    "ChunkCardinalityError",
    "SchedulerError",
    "OpRegistryError",
    "MissingDependencyError",
    "TaskExecutionError",
    "DatabaseError",
    # from interfaces.py
    "TmHandler",
    "TaskStore",
    "JobStore",
    "ResourceFilter",
    # from types.py
    "PlaceholderType",
    "Placeholder",
    "Part",
    "NormalizedString",
    "StructuredNotes",
    "Segment",
    "TranslationUnit",
    "Job",
    "JobStatus",
    "JobSummary",
    "OpState",
]
