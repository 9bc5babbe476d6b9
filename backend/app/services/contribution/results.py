"""
核心引擎的错误分类与返回值

公开接口一律以返回值表达失败，不向调用方抛出异常；
内部协作方（持久化层、草稿修改）通过下面的异常上报，再由引擎转换为 Outcome。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from app.schemas.suggestion import FieldSuggestion


class ContributionError(Exception):
    """科研成果引擎基础异常"""
    pass


class PersistenceError(ContributionError):
    """后端调用失败；调用方可重试"""
    pass


class SuggestionAlreadyResolvedError(PersistenceError):
    """后端报告该建议已被处理（重复点击 / 重复请求 / 其他会话抢先处理）"""
    pass


class ImmutableFieldError(ContributionError):
    """试图修改创建后不可变的字段（publicationType、conferenceSubType）"""

    def __init__(self, field_name: str):
        super().__init__(f"{field_name} cannot be changed after creation")
        self.field_name = field_name


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    ALREADY_RESOLVED = "already_resolved"
    PERSISTENCE = "persistence_error"
    IMMUTABLE_FIELD = "immutable_field_error"
    NOT_FOUND = "not_found"
    PENDING_SUGGESTIONS = "pending_suggestions"


class ViolationReason(str, Enum):
    MISSING = "missing"
    BELOW_THRESHOLD = "below_threshold"
    ABOVE_THRESHOLD = "above_threshold"
    INVALID_TYPE = "invalid_type"


@dataclass(frozen=True)
class FieldViolation:
    field: str
    reason: ViolationReason
    message: str


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    violations: List[FieldViolation] = field(default_factory=list)

    def for_field(self, field_name: str) -> Optional[FieldViolation]:
        for violation in self.violations:
            if violation.field == field_name:
                return violation
        return None


@dataclass(frozen=True)
class Outcome:
    """
    引擎操作结果

    - ok=False 时 error 指明失败类别，message 为可读说明
    - changes: 本次操作写入草稿的字段（表单命名），包括 cleared 字段
    - violations: 校验失败时的逐字段说明
    """

    ok: bool
    error: Optional[ErrorKind] = None
    message: str = ""
    suggestion: Optional[FieldSuggestion] = None
    changes: Dict[str, Any] = field(default_factory=dict)
    violations: List[FieldViolation] = field(default_factory=list)

    @classmethod
    def success(cls, message: str = "", **kwargs: Any) -> "Outcome":
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failure(cls, error: ErrorKind, message: str, **kwargs: Any) -> "Outcome":
        return cls(ok=False, error=error, message=message, **kwargs)
