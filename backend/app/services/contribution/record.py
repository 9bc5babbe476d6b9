"""
科研成果草稿（Contribution Record）

草稿是一个不可变值：每次修改返回新的 ContributionDraft，
规则计算、校验、建议应用都显式接收并返回草稿，而不是共享一个可变表单对象。
字段一律使用表单命名，与后端规范命名的转换只发生在 draft_from_payload / build_submit_data。
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

from app.services.contribution.codec import from_storage, parse_list, parse_number, to_canonical, to_storage
from app.services.contribution.field_names import (
    IMMUTABLE_FIELDS,
    LIST_FIELDS,
    partition_for,
    to_backend_name,
    to_form_name,
)
from app.services.contribution.requirements import RequiredFieldSet, compute_required
from app.services.contribution.results import (
    FieldViolation,
    ImmutableFieldError,
    ValidationResult,
    ViolationReason,
)

# 变化时需要同步应用 cleared 集合的选择类字段
SELECTION_FIELDS = frozenset({"indexingCategories", "targetedResearchType"})

FIELD_LABELS: Dict[str, str] = {
    "targetedResearchType": "Targeted Research Type",
    "indexingCategories": "Indexing Categories",
    "quartile": "Quartile",
    "sjr": "SJR",
    "impactFactor": "Impact Factor",
    "naasRating": "NAAS Rating",
    "publisherName": "Publisher Name",
    "isbn": "ISBN",
    "publicationDate": "Publication Date",
    "nationalInternational": "National/International",
    "bookIndexingType": "Book Indexing Type",
    "bookPublicationType": "Book Publication Type",
    "personalEmail": "Personal Email",
    "conferenceSubType": "Conference Sub-Type",
    "conferenceType": "Conference Type",
    "proceedingsQuartile": "Proceedings Quartile",
    "venue": "Venue",
    "topic": "Topic",
    "conferenceDate": "Conference Date",
    "eventCategory": "Event Category",
    "title": "Title",
    "submittedAmount": "Submitted Amount",
}


def _label(field_name: str) -> str:
    return FIELD_LABELS.get(field_name, field_name)


def _token(value: Any) -> str:
    if value is None:
        return ""
    return str(getattr(value, "value", value)).strip()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


@dataclass(frozen=True)
class ContributionDraft:
    """正在编辑的科研成果草稿"""

    id: Optional[str]
    publication_type: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def get(self, field_name: str, default: Any = "") -> Any:
        return self.fields.get(field_name, default)

    @property
    def active_fields(self):
        return partition_for(self.publication_type)


def new_draft(
    publication_type: Any,
    fields: Optional[Mapping[str, Any]] = None,
    contribution_id: Optional[str] = None,
) -> ContributionDraft:
    """按表单命名的字段构造草稿；列表字段统一转为集合"""
    normalized: Dict[str, Any] = {}
    for name, value in (fields or {}).items():
        normalized[name] = parse_list(value) if name in LIST_FIELDS else value
    return ContributionDraft(
        id=contribution_id,
        publication_type=_token(publication_type),
        fields=normalized,
    )


def requirements_for(draft: ContributionDraft) -> RequiredFieldSet:
    return compute_required(
        draft.publication_type,
        draft.get("indexingCategories", frozenset()),
        draft.get("targetedResearchType"),
        communicated_with_official_id=draft.get("communicatedWithOfficialId"),
        conference_sub_type=draft.get("conferenceSubType"),
    )


def plan_changes(draft: ContributionDraft, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    计算一次修改实际写入草稿的字段

    - 不可变字段取值不同则抛 ImmutableFieldError（取值相同视为无操作）
    - 列表字段统一解析为集合
    - 修改收录类别 / 目标检索类型时，把新的 cleared 集合一并置空
    """
    planned: Dict[str, Any] = {}
    for name, value in changes.items():
        if name in IMMUTABLE_FIELDS:
            current = draft.publication_type if name == "publicationType" else draft.get(name)
            if _token(current) and _token(value) != _token(current):
                raise ImmutableFieldError(name)
            if name == "publicationType" or _token(current):
                continue
        planned[name] = parse_list(value) if name in LIST_FIELDS else value

    if SELECTION_FIELDS & planned.keys():
        preview = _with_fields(draft, planned)
        for name in requirements_for(preview).cleared:
            planned[name] = ""
    return planned


def _with_fields(draft: ContributionDraft, changes: Mapping[str, Any]) -> ContributionDraft:
    merged = dict(draft.fields)
    merged.update(changes)
    return replace(draft, fields=merged)


def update_fields(draft: ContributionDraft, changes: Mapping[str, Any]) -> ContributionDraft:
    """返回应用修改（含 cleared 副作用）后的新草稿"""
    return _with_fields(draft, plan_changes(draft, changes))


def apply_planned(draft: ContributionDraft, planned: Mapping[str, Any]) -> ContributionDraft:
    """应用已由 plan_changes 算好的字段，不再重复计算"""
    return _with_fields(draft, planned)


def validate(draft: ContributionDraft) -> ValidationResult:
    """
    校验草稿是否可提交

    报告所有违规字段（而不只是第一个），原因为 missing / below_threshold /
    above_threshold / invalid_type 之一。分区外的字段不参与校验。
    """
    requirements = requirements_for(draft)
    partition = draft.active_fields
    violations = []

    for name, constraint in requirements.required.items():
        if name not in partition:
            continue
        value = draft.get(name)
        label = _label(name)

        if _is_empty(value):
            violations.append(FieldViolation(name, ViolationReason.MISSING, f"{label} is required"))
            continue
        if constraint is None:
            continue

        if constraint.kind == "enum":
            token = to_canonical(name, value)
            if token not in (constraint.choices or ()):
                violations.append(FieldViolation(
                    name,
                    ViolationReason.INVALID_TYPE,
                    f"{label} must be {constraint.describe()}",
                ))
            continue

        number = parse_number(value)
        if number is None:
            violations.append(FieldViolation(name, ViolationReason.INVALID_TYPE, f"{label} must be a number"))
        elif constraint.minimum is not None and (
            number <= constraint.minimum if constraint.exclusive_minimum else number < constraint.minimum
        ):
            violations.append(FieldViolation(
                name,
                ViolationReason.BELOW_THRESHOLD,
                f"{label} must be {constraint.describe()}",
            ))
        elif constraint.maximum is not None and number > constraint.maximum:
            violations.append(FieldViolation(
                name,
                ViolationReason.ABOVE_THRESHOLD,
                f"{label} must be {constraint.describe()}",
            ))

    return ValidationResult(ok=not violations, violations=violations)


def draft_from_payload(payload: Any) -> ContributionDraft:
    """后端 payload（判别联合之一）→ 草稿"""
    data = payload.model_dump(
        by_alias=True,
        exclude={"id", "status", "publication_type", "edit_suggestions"},
    )
    fields: Dict[str, Any] = {}
    for backend_name, value in data.items():
        form_name = to_form_name(backend_name)
        fields[form_name] = from_storage(form_name, value)
    return ContributionDraft(
        id=payload.id,
        publication_type=payload.publication_type,
        fields=fields,
    )


def build_submit_data(draft: ContributionDraft) -> Dict[str, Any]:
    """
    草稿 → 后端部分更新数据（后端规范命名 + 存储编码）

    只包含该成果类型分区内、草稿中出现过的字段。conferenceSubType 随更新提交，
    后端对相同取值视为无操作，对已设置后的不同取值拒绝。
    已清空的字段以 None 提交，保证旧值不会残留在后端。
    """
    data: Dict[str, Any] = {}
    for name in sorted(draft.active_fields):
        if name not in draft.fields:
            continue
        data[to_backend_name(name)] = to_storage(name, draft.fields[name])
    return data
