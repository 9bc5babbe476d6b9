"""
科研成果服务层

- 统一管理 ResearchContribution 的创建 / 更新 / 提交 / 退回 / 重新提交
- 审稿建议的创建与响应（接受时在同一事务内把建议值写回成果字段）
- 所有字段以后端规范命名 + 存储编码保存在 ResearchContribution.fields
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.contribution import (
    ContributionEditSuggestion,
    ContributionStatusHistory,
    ResearchContribution,
)
from app.schemas.contribution import ContributionCreate, parse_contribution_payload
from app.schemas.suggestion import FieldSuggestion, RequestChangesRequest
from app.services.contribution.codec import to_canonical, to_display, from_storage, to_storage
from app.services.contribution.field_names import IMMUTABLE_FIELDS, partition_for, to_backend_name, to_form_name
from app.services.contribution.record import draft_from_payload, validate
from app.services.contribution.requirements import CLEARED_BY_RESEARCH_TYPE
from app.services.contribution.results import FieldViolation, ImmutableFieldError

logger = logging.getLogger(__name__)


class ContributionServiceError(Exception):
    """服务层基础异常"""
    pass


class ContributionNotFoundError(ContributionServiceError):
    pass


class SuggestionNotFoundError(ContributionServiceError):
    pass


class InvalidStatusError(ContributionServiceError):
    """当前工作流状态不允许该操作"""
    pass


class SuggestionAlreadyRespondedError(ContributionServiceError):
    pass


class DuplicatePendingSuggestionError(ContributionServiceError):
    """同一字段已存在待处理建议"""
    pass


class InvalidSuggestionFieldError(ContributionServiceError):
    """建议字段不是该成果类型下的后端规范字段名"""

    def __init__(self, field_name: str):
        super().__init__(f"Field {field_name} cannot receive suggestions for this contribution")
        self.field_name = field_name


class PendingSuggestionsError(ContributionServiceError):
    """仍有待处理建议，不能重新提交"""

    def __init__(self, pending_count: int):
        super().__init__(f"Please resolve all {pending_count} pending suggestion(s) before resubmitting.")
        self.pending_count = pending_count


class ContributionValidationError(ContributionServiceError):
    def __init__(self, violations: List[FieldViolation]):
        super().__init__("; ".join(v.message for v in violations))
        self.violations = violations


APPLICATION_PREFIX = {
    "research_paper": "RP",
    "book": "BK",
    "book_chapter": "BC",
    "conference_paper": "CP",
    "grant": "GR",
}

REVIEWABLE_STATUSES = ("submitted", "under_review", "resubmitted")


def _normalize_fields(publication_type: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """后端命名的字段 → 存储编码；分区外字段丢弃"""
    partition = partition_for(publication_type)
    normalized: Dict[str, Any] = {}
    for backend_name, value in fields.items():
        form_name = to_form_name(backend_name)
        if form_name not in partition:
            logger.debug("[ContributionService] ignore field outside partition: %s", backend_name)
            continue
        normalized[backend_name] = to_storage(form_name, value)
    return normalized


def _display_value(backend_name: str, stored: Any) -> Optional[str]:
    form_name = to_form_name(backend_name)
    value = to_display(form_name, from_storage(form_name, stored))
    return str(value) if value not in (None, "") else None


class ContributionService:

    @staticmethod
    def _record_transition(
        db: Session,
        contribution: ResearchContribution,
        to_status: str,
        changed_by_id: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> None:
        db.add(ContributionStatusHistory(
            contribution_id=contribution.id,
            from_status=contribution.status,
            to_status=to_status,
            changed_by_id=changed_by_id,
            comments=comments,
        ))
        contribution.status = to_status

    @staticmethod
    def _next_application_number(db: Session, publication_type: str) -> str:
        prefix = APPLICATION_PREFIX.get(publication_type, "RC")
        count = db.query(func.count(ResearchContribution.id)).filter(
            ResearchContribution.publication_type == publication_type
        ).scalar() or 0
        return f"{prefix}-{datetime.utcnow().year}-{count + 1:05d}"

    @staticmethod
    def get_contribution(db: Session, contribution_id: str) -> Optional[ResearchContribution]:
        return db.query(ResearchContribution).filter(ResearchContribution.id == contribution_id).first()

    @staticmethod
    def require_contribution(db: Session, contribution_id: str) -> ResearchContribution:
        contribution = ContributionService.get_contribution(db, contribution_id)
        if not contribution:
            raise ContributionNotFoundError(f"Research contribution {contribution_id} not found")
        return contribution

    @staticmethod
    def create_contribution(db: Session, payload: ContributionCreate) -> ResearchContribution:
        """新建草稿，publication_type 此后不可修改"""
        publication_type = payload.publication_type.value
        fields = _normalize_fields(publication_type, payload.fields)

        contribution = ResearchContribution(
            publication_type=publication_type,
            application_number=ContributionService._next_application_number(db, publication_type),
            title=fields.get("title"),
            fields=fields,
            status="draft",
            applicant_user_id=payload.applicant_user_id,
        )
        db.add(contribution)
        db.flush()
        db.add(ContributionStatusHistory(
            contribution_id=contribution.id,
            from_status=None,
            to_status="draft",
            changed_by_id=payload.applicant_user_id,
            comments="Draft created",
        ))
        db.commit()
        db.refresh(contribution)
        logger.info(
            "[ContributionService] created contribution id=%s type=%s",
            contribution.id,
            publication_type,
        )
        return contribution

    @staticmethod
    def to_payload_dict(contribution: ResearchContribution) -> Dict[str, Any]:
        """ORM → 后端契约（camelCase + editSuggestions）"""
        data: Dict[str, Any] = dict(contribution.fields or {})
        data.update({
            "id": contribution.id,
            "publicationType": contribution.publication_type,
            "status": contribution.status,
            "editSuggestions": [
                ContributionService.suggestion_to_schema(s).model_dump(by_alias=True, mode="json")
                for s in contribution.edit_suggestions
            ],
        })
        return data

    @staticmethod
    def suggestion_to_schema(row: ContributionEditSuggestion) -> FieldSuggestion:
        return FieldSuggestion(
            id=row.id,
            field_name=row.field_name,
            original_value=row.original_value,
            suggested_value=row.suggested_value,
            suggestion_note=row.suggestion_note,
            status=row.status,
            reviewer_id=row.reviewer_id,
            created_at=row.created_at,
        )

    @staticmethod
    def update_contribution(
        db: Session,
        contribution_id: str,
        partial_fields: Mapping[str, Any],
    ) -> ResearchContribution:
        """
        部分更新字段（后端命名）

        - 仅允许在 draft / changes_required / resubmitted 状态下编辑
        - publicationType / conferenceSubType 取值变化直接拒绝
        - 值为 None 表示清空该字段
        """
        contribution = ContributionService.require_contribution(db, contribution_id)
        if contribution.status not in get_settings().EDITABLE_STATUSES:
            raise InvalidStatusError(f"Cannot edit contribution in status: {contribution.status}")

        stored = dict(contribution.fields or {})
        for name in IMMUTABLE_FIELDS:
            if name not in partial_fields:
                continue
            current = contribution.publication_type if name == "publicationType" else stored.get(name)
            if current and partial_fields[name] and partial_fields[name] != current:
                raise ImmutableFieldError(name)

        updates = _normalize_fields(contribution.publication_type, {
            k: v for k, v in partial_fields.items() if k not in IMMUTABLE_FIELDS or not stored.get(k)
        })
        stored.update(updates)
        contribution.fields = stored
        if "title" in updates:
            contribution.title = updates["title"]

        db.commit()
        db.refresh(contribution)
        logger.info(
            "[ContributionService] updated contribution id=%s fields=%s",
            contribution_id,
            sorted(updates),
        )
        return contribution

    @staticmethod
    def validate_contribution(db: Session, contribution_id: str):
        contribution = ContributionService.require_contribution(db, contribution_id)
        payload = parse_contribution_payload(ContributionService.to_payload_dict(contribution))
        return validate(draft_from_payload(payload))

    @staticmethod
    def submit_contribution(
        db: Session,
        contribution_id: str,
        user_id: Optional[str] = None,
    ) -> ResearchContribution:
        """草稿提交：必须通过必填校验"""
        contribution = ContributionService.require_contribution(db, contribution_id)
        if contribution.status != "draft":
            raise InvalidStatusError(f"Cannot submit contribution in status: {contribution.status}")

        result = ContributionService.validate_contribution(db, contribution_id)
        if not result.ok:
            raise ContributionValidationError(result.violations)

        ContributionService._record_transition(db, contribution, "submitted", user_id, "Submitted for review")
        contribution.submitted_at = datetime.utcnow()
        db.commit()
        db.refresh(contribution)
        return contribution

    @staticmethod
    def pending_count(db: Session, contribution_id: str) -> int:
        return db.query(func.count(ContributionEditSuggestion.id)).filter(
            ContributionEditSuggestion.contribution_id == contribution_id,
            ContributionEditSuggestion.status == "pending",
        ).scalar() or 0

    @staticmethod
    def request_changes(
        db: Session,
        contribution_id: str,
        request: RequestChangesRequest,
    ) -> List[ContributionEditSuggestion]:
        """
        审稿人退回修改并附带字段建议

        同一字段同一时间只允许存在一条待处理建议。
        """
        contribution = ContributionService.require_contribution(db, contribution_id)
        if contribution.status not in REVIEWABLE_STATUSES:
            raise InvalidStatusError(f"Cannot request changes for contribution in status: {contribution.status}")

        pending_fields = {
            s.field_name for s in contribution.edit_suggestions if s.status == "pending"
        }
        partition = partition_for(contribution.publication_type)
        stored = contribution.fields or {}
        created: List[ContributionEditSuggestion] = []
        for item in request.suggestions:
            if to_form_name(item.field_name) in IMMUTABLE_FIELDS or item.field_name in IMMUTABLE_FIELDS:
                raise ImmutableFieldError(item.field_name)
            if to_backend_name(item.field_name) != item.field_name or to_form_name(item.field_name) not in partition:
                raise InvalidSuggestionFieldError(item.field_name)
            if item.field_name in pending_fields:
                raise DuplicatePendingSuggestionError(
                    f"A pending suggestion already exists for field {item.field_name}"
                )
            pending_fields.add(item.field_name)
            row = ContributionEditSuggestion(
                contribution_id=contribution.id,
                field_name=item.field_name,
                original_value=_display_value(item.field_name, stored.get(item.field_name)),
                suggested_value=item.suggested_value,
                suggestion_note=item.suggestion_note,
                status="pending",
                reviewer_id=request.reviewer_id,
            )
            db.add(row)
            created.append(row)

        ContributionService._record_transition(
            db,
            contribution,
            "changes_required",
            request.reviewer_id,
            request.comments or "Changes requested by reviewer",
        )
        db.commit()
        for row in created:
            db.refresh(row)
        logger.info(
            "[ContributionService] changes requested id=%s suggestions=%d",
            contribution_id,
            len(created),
        )
        return created

    @staticmethod
    def _apply_suggestion(contribution: ResearchContribution, suggestion: ContributionEditSuggestion) -> None:
        form_name = to_form_name(suggestion.field_name)
        canonical = to_canonical(form_name, suggestion.suggested_value)

        updates = {suggestion.field_name: canonical}
        if form_name == "targetedResearchType":
            for cleared in CLEARED_BY_RESEARCH_TYPE.get(canonical, ()):
                updates[to_backend_name(cleared)] = None

        stored = dict(contribution.fields or {})
        stored.update(_normalize_fields(contribution.publication_type, updates))
        contribution.fields = stored
        if suggestion.field_name == "title":
            contribution.title = stored.get("title")

    @staticmethod
    def respond_to_suggestion(
        db: Session,
        suggestion_id: str,
        accept: bool,
        response: Optional[str] = None,
    ) -> Tuple[ContributionEditSuggestion, int]:
        """
        申请人接受 / 拒绝建议

        状态只能从 pending 流转一次；接受时在同一事务内写回字段。

        Returns:
            (建议记录, 该成果剩余待处理建议数)
        """
        suggestion = db.query(ContributionEditSuggestion).filter(
            ContributionEditSuggestion.id == suggestion_id
        ).first()
        if not suggestion:
            raise SuggestionNotFoundError(f"Suggestion {suggestion_id} not found")
        if suggestion.status != "pending":
            raise SuggestionAlreadyRespondedError("This suggestion has already been responded to")

        suggestion.status = "accepted" if accept else "rejected"
        suggestion.applicant_response = response
        suggestion.responded_at = datetime.utcnow()
        # 空建议值只记录接受状态，不清空字段
        if accept and suggestion.suggested_value is not None:
            ContributionService._apply_suggestion(suggestion.contribution, suggestion)

        db.commit()
        db.refresh(suggestion)
        remaining = ContributionService.pending_count(db, suggestion.contribution_id)
        logger.info(
            "[ContributionService] suggestion %s %s, pending=%d",
            suggestion_id,
            suggestion.status,
            remaining,
        )
        return suggestion, remaining

    @staticmethod
    def resubmit_contribution(
        db: Session,
        contribution_id: str,
        user_id: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> ResearchContribution:
        """changes_required → resubmitted；仍有待处理建议时拒绝"""
        contribution = ContributionService.require_contribution(db, contribution_id)
        if contribution.status != "changes_required":
            raise InvalidStatusError(f"Cannot resubmit contribution in status: {contribution.status}")

        pending = ContributionService.pending_count(db, contribution_id)
        if pending:
            raise PendingSuggestionsError(pending)

        ContributionService._record_transition(
            db,
            contribution,
            "resubmitted",
            user_id,
            comments or "Resubmitted after making requested changes",
        )
        contribution.revision_count = (contribution.revision_count or 0) + 1
        db.commit()
        db.refresh(contribution)
        return contribution

    @staticmethod
    def get_status_history(db: Session, contribution_id: str) -> List[ContributionStatusHistory]:
        contribution = ContributionService.require_contribution(db, contribution_id)
        return list(contribution.status_history)


contribution_service = ContributionService()
