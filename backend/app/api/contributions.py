"""
科研成果申报 API 路由

- 草稿创建 / 读取 / 部分更新 / 校验 / 提交
- 审稿人退回修改（附字段建议），申请人逐条响应
- 处理完所有建议后重新提交
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.contribution import (
    ConstraintSchema,
    ContributionCreate,
    ContributionEnvelope,
    FieldViolationSchema,
    RequiredFieldSetResponse,
    StatusHistoryItem,
    ValidationResponse,
)
from app.schemas.suggestion import (
    RequestChangesRequest,
    SuggestionRespondRequest,
    SuggestionRespondResponse,
)
from app.services.contribution.requirements import compute_required
from app.services.contribution.results import ImmutableFieldError, ValidationResult
from app.services.contribution_service import (
    ContributionNotFoundError,
    ContributionServiceError,
    ContributionValidationError,
    DuplicatePendingSuggestionError,
    InvalidStatusError,
    InvalidSuggestionFieldError,
    PendingSuggestionsError,
    SuggestionAlreadyRespondedError,
    SuggestionNotFoundError,
    contribution_service,
)

router = APIRouter(prefix="/api/research", tags=["research"])


def _violations(violations) -> List[FieldViolationSchema]:
    return [
        FieldViolationSchema(field=v.field, reason=v.reason.value, message=v.message)
        for v in violations
    ]


def _http_error(exc: Exception) -> HTTPException:
    """服务层异常 → HTTP 状态码"""
    if isinstance(exc, (ContributionNotFoundError, SuggestionNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SuggestionAlreadyRespondedError, DuplicatePendingSuggestionError, PendingSuggestionsError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ContributionValidationError):
        return HTTPException(
            status_code=422,
            detail={
                "message": str(exc),
                "violations": [v.model_dump() for v in _violations(exc.violations)],
            },
        )
    if isinstance(exc, (InvalidStatusError, InvalidSuggestionFieldError, ImmutableFieldError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _envelope(contribution, message: Optional[str] = None) -> ContributionEnvelope:
    return ContributionEnvelope(
        success=True,
        data=contribution_service.to_payload_dict(contribution),
        message=message,
    )


@router.post("", response_model=ContributionEnvelope)
def create_contribution(
    payload: ContributionCreate,
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    """新建草稿"""
    contribution = contribution_service.create_contribution(db, payload)
    return _envelope(contribution, "Draft created")


@router.get("/requirements", response_model=RequiredFieldSetResponse)
def get_requirements(
    publication_type: str = Query(..., alias="publicationType"),
    categories: Optional[str] = Query(default=None, description="逗号分隔的收录类别"),
    research_type: Optional[str] = Query(default=None, alias="researchType"),
    communicated_with_official_id: Optional[str] = Query(default=None, alias="communicatedWithOfficialId"),
    conference_sub_type: Optional[str] = Query(default=None, alias="conferenceSubType"),
) -> RequiredFieldSetResponse:
    """
    查询必填字段集合

    与提交校验共用同一份规则，界面据此标注必填项。
    """
    result = compute_required(
        publication_type,
        categories,
        research_type,
        communicated_with_official_id=communicated_with_official_id,
        conference_sub_type=conference_sub_type,
    )
    required: Dict[str, Optional[ConstraintSchema]] = {}
    for name, constraint in result.required.items():
        if constraint is None:
            required[name] = None
            continue
        required[name] = ConstraintSchema(
            kind=constraint.kind,
            minimum=constraint.minimum,
            exclusive_minimum=constraint.exclusive_minimum,
            maximum=constraint.maximum,
            choices=sorted(constraint.choices) if constraint.choices else None,
        )
    return RequiredFieldSetResponse(required=required, cleared=sorted(result.cleared))


@router.get("/{contribution_id}", response_model=ContributionEnvelope)
def get_contribution(
    contribution_id: str,
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    contribution = contribution_service.get_contribution(db, contribution_id)
    if not contribution:
        raise HTTPException(status_code=404, detail="Research contribution not found")
    return _envelope(contribution)


@router.put("/{contribution_id}", response_model=ContributionEnvelope)
def update_contribution(
    contribution_id: str,
    fields: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    """部分更新（后端规范命名）；值为 null 表示清空"""
    try:
        contribution = contribution_service.update_contribution(db, contribution_id, fields)
    except (ContributionServiceError, ImmutableFieldError) as e:
        raise _http_error(e)
    return _envelope(contribution, "Contribution updated")


@router.post("/{contribution_id}/validate", response_model=ValidationResponse)
def validate_contribution(
    contribution_id: str,
    db: Session = Depends(get_db),
) -> ValidationResponse:
    try:
        result: ValidationResult = contribution_service.validate_contribution(db, contribution_id)
    except ContributionServiceError as e:
        raise _http_error(e)
    return ValidationResponse(ok=result.ok, violations=_violations(result.violations))


@router.post("/{contribution_id}/submit", response_model=ContributionEnvelope)
def submit_contribution(
    contribution_id: str,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    try:
        contribution = contribution_service.submit_contribution(db, contribution_id, user_id)
    except ContributionServiceError as e:
        raise _http_error(e)
    return _envelope(contribution, "Contribution submitted")


@router.post("/{contribution_id}/request-changes", response_model=ContributionEnvelope)
def request_changes(
    contribution_id: str,
    request: RequestChangesRequest,
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    """审稿人退回修改"""
    try:
        contribution_service.request_changes(db, contribution_id, request)
    except (ContributionServiceError, ImmutableFieldError) as e:
        db.rollback()
        raise _http_error(e)
    contribution = contribution_service.require_contribution(db, contribution_id)
    return _envelope(contribution, "Changes requested")


@router.post("/suggestions/{suggestion_id}/respond", response_model=SuggestionRespondResponse)
def respond_to_suggestion(
    suggestion_id: str,
    request: SuggestionRespondRequest,
    db: Session = Depends(get_db),
) -> SuggestionRespondResponse:
    """申请人接受 / 拒绝建议；已处理的建议返回 409"""
    try:
        suggestion, pending = contribution_service.respond_to_suggestion(
            db, suggestion_id, request.accept, request.response
        )
    except ContributionServiceError as e:
        raise _http_error(e)
    return SuggestionRespondResponse(
        success=True,
        message=f"Suggestion {suggestion.status} successfully",
        status=suggestion.status,
        pending_count=pending,
    )


@router.post("/{contribution_id}/resubmit", response_model=ContributionEnvelope)
def resubmit_contribution(
    contribution_id: str,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    comments: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> ContributionEnvelope:
    try:
        contribution = contribution_service.resubmit_contribution(db, contribution_id, user_id, comments)
    except ContributionServiceError as e:
        raise _http_error(e)
    return _envelope(contribution, "Contribution resubmitted for review")


@router.get("/{contribution_id}/history", response_model=List[StatusHistoryItem])
def get_status_history(
    contribution_id: str,
    db: Session = Depends(get_db),
) -> List[StatusHistoryItem]:
    try:
        history = contribution_service.get_status_history(db, contribution_id)
    except ContributionServiceError as e:
        raise _http_error(e)
    return [StatusHistoryItem.model_validate(h) for h in history]
