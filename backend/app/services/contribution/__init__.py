"""
科研成果申报核心引擎

- codec: 展示值 / 规范值 / 存储值转换
- requirements: 必填字段规则表
- record: 不可变草稿与校验
- ledger: 审稿建议台账
- reconciliation: 修改建议协调控制器
- store: 持久化协作方接口与 HTTP 实现
"""
from app.services.contribution.codec import parse_list, to_canonical, to_display
from app.services.contribution.ledger import SuggestionLedger
from app.services.contribution.reconciliation import ReconciliationController
from app.services.contribution.record import (
    ContributionDraft,
    build_submit_data,
    draft_from_payload,
    new_draft,
    update_fields,
    validate,
)
from app.services.contribution.requirements import Constraint, RequiredFieldSet, compute_required
from app.services.contribution.results import (
    ErrorKind,
    FieldViolation,
    ImmutableFieldError,
    Outcome,
    PersistenceError,
    SuggestionAlreadyResolvedError,
    ValidationResult,
    ViolationReason,
)
from app.services.contribution.store import ContributionStore, HttpContributionStore

__all__ = [
    "parse_list",
    "to_canonical",
    "to_display",
    "SuggestionLedger",
    "ReconciliationController",
    "ContributionDraft",
    "build_submit_data",
    "draft_from_payload",
    "new_draft",
    "update_fields",
    "validate",
    "Constraint",
    "RequiredFieldSet",
    "compute_required",
    "ErrorKind",
    "FieldViolation",
    "ImmutableFieldError",
    "Outcome",
    "PersistenceError",
    "SuggestionAlreadyResolvedError",
    "ValidationResult",
    "ViolationReason",
    "ContributionStore",
    "HttpContributionStore",
]
