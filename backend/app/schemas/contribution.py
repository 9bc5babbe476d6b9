"""
ResearchContribution 相关的 Pydantic schemas

后端契约按 publicationType 建模为判别联合（discriminated union），
每种成果类型的字段都显式声明，字段别名即后端规范字段名（camelCase）。
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from app.schemas.suggestion import FieldSuggestion


class PublicationType(str, Enum):
    """成果类型"""
    RESEARCH_PAPER = "research_paper"
    BOOK = "book"
    BOOK_CHAPTER = "book_chapter"
    CONFERENCE_PAPER = "conference_paper"
    GRANT = "grant"


class ContributionStatus(str, Enum):
    """工作流状态"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    CHANGES_REQUIRED = "changes_required"
    RESUBMITTED = "resubmitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class IndexingCategory(str, Enum):
    """期刊收录类别（可多选）"""
    NATURE_SCIENCE_LANCET_CELL_NEJM = "nature_science_lancet_cell_nejm"
    SUBSIDIARY_IF_ABOVE_20 = "subsidiary_if_above_20"
    SCOPUS = "scopus"
    SCIE_WOS = "scie_wos"
    PUBMED = "pubmed"
    UGC = "ugc"
    NAAS_RATING_6_PLUS = "naas_rating_6_plus"
    ABDC_SCOPUS_WOS = "abdc_scopus_wos"
    SGTU_IN_HOUSE = "sgtu_in_house"
    CASE_CENTRE_UK = "case_centre_uk"
    OTHER_INDEXED = "other_indexed"
    NON_INDEXED_REPUTED = "non_indexed_reputed"


class TargetedResearchType(str, Enum):
    SCOPUS = "scopus"
    WOS = "wos"
    BOTH = "both"


class Quartile(str, Enum):
    TOP1 = "top1"
    TOP5 = "top5"
    Q1 = "q1"
    Q2 = "q2"
    Q3 = "q3"
    Q4 = "q4"


class ConferenceSubType(str, Enum):
    PAPER_INDEXED_SCOPUS = "paper_indexed_scopus"
    PAPER_NOT_INDEXED = "paper_not_indexed"
    KEYNOTE_SPEAKER_INVITED_TALKS = "keynote_speaker_invited_talks"
    ORGANIZER_COORDINATOR_MEMBER = "organizer_coordinator_member"


# === 后端契约：按成果类型区分的 payload ===

class _PayloadBase(BaseModel):
    """所有成果类型共有的字段"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: Optional[str] = None
    status: Optional[ContributionStatus] = None
    title: Optional[str] = None
    publication_date: Optional[str] = None
    sdg_goals: Optional[List[str]] = Field(default=None, alias="sdg_goals")
    edit_suggestions: List[FieldSuggestion] = Field(default_factory=list)


class _AuthoredPayload(_PayloadBase):
    """论文 / 图书共用的作者合作信息"""
    international_author: Optional[bool] = None
    foreign_collaborations_count: Optional[int] = None
    interdisciplinary_from_sgt: Optional[bool] = None
    students_from_sgt: Optional[bool] = None
    weblink: Optional[str] = None


class ResearchPaperPayload(_AuthoredPayload):
    publication_type: Literal["research_paper"] = "research_paper"
    targeted_research_type: Optional[str] = None
    indexing_categories: Optional[List[str]] = None
    impact_factor: Optional[float] = None
    sjr: Optional[float] = None
    naas_rating: Optional[float] = None
    subsidiary_impact_factor: Optional[float] = None
    quartile: Optional[str] = None
    journal_name: Optional[str] = None
    paperweblink: Optional[str] = None
    issue: Optional[str] = None
    page_numbers: Optional[str] = None
    doi: Optional[str] = None
    issn: Optional[str] = None
    publisher_name: Optional[str] = None
    publisher_location: Optional[str] = None
    publication_status: Optional[str] = None


class _BookPayloadBase(_AuthoredPayload):
    book_indexing_type: Optional[str] = None
    communicated_with_official_id: Optional[bool] = None
    personal_email: Optional[str] = None
    editors: Optional[str] = None
    national_international: Optional[str] = None
    isbn: Optional[str] = None
    publisher_name: Optional[str] = None
    faculty_remarks: Optional[str] = None


class BookPayload(_BookPayloadBase):
    publication_type: Literal["book"] = "book"
    book_publication_type: Optional[str] = None


class BookChapterPayload(_BookPayloadBase):
    publication_type: Literal["book_chapter"] = "book_chapter"
    book_title: Optional[str] = None
    chapter_number: Optional[str] = None
    page_numbers: Optional[str] = None


class ConferencePaperPayload(_PayloadBase):
    publication_type: Literal["conference_paper"] = "conference_paper"
    conference_sub_type: Optional[str] = None
    conference_name: Optional[str] = None
    conference_type: Optional[str] = None
    proceedings_title: Optional[str] = None
    proceedings_quartile: Optional[str] = None
    indexed_in: Optional[str] = None
    conference_held_location: Optional[str] = None
    event_category: Optional[str] = None
    total_presenters: Optional[int] = None
    is_presenter: Optional[bool] = None
    full_paper: Optional[bool] = None
    paper_doi: Optional[str] = None
    issn_isbn_issue_no: Optional[str] = None
    priority_funding_area: Optional[str] = None
    conference_date: Optional[str] = None
    conference_best_paper_award: Optional[bool] = None
    virtual_conference: Optional[bool] = None
    conference_held_at_sgt: Optional[bool] = None
    interdisciplinary_from_sgt: Optional[bool] = None
    students_from_sgt: Optional[bool] = None
    industry_collaboration: Optional[bool] = None
    central_facility_used: Optional[bool] = None
    conference_role: Optional[str] = None
    venue: Optional[str] = None
    topic: Optional[str] = None
    organizer_role: Optional[str] = None
    attended_virtual: Optional[bool] = None
    communicated_with_official_id: Optional[bool] = None
    personal_email: Optional[str] = None


class GrantPayload(_PayloadBase):
    publication_type: Literal["grant"] = "grant"
    funding_agency: Optional[str] = None
    project_type: Optional[str] = None
    project_category: Optional[str] = None
    submitted_amount: Optional[float] = None


ContributionPayload = Annotated[
    Union[
        ResearchPaperPayload,
        BookPayload,
        BookChapterPayload,
        ConferencePaperPayload,
        GrantPayload,
    ],
    Field(discriminator="publication_type"),
]

_payload_adapter: TypeAdapter = TypeAdapter(ContributionPayload)


def parse_contribution_payload(data: Dict[str, Any]):
    """按 publicationType 解析后端返回的 contribution 数据"""
    return _payload_adapter.validate_python(data)


# === API 请求 / 响应模型 ===

class ContributionCreate(BaseModel):
    """新建草稿（首次保存）"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    publication_type: PublicationType = Field(..., description="成果类型，创建后不可修改")
    applicant_user_id: Optional[str] = Field(default=None, description="申请人 ID")
    fields: Dict[str, Any] = Field(default_factory=dict, description="初始字段（后端规范命名）")


class ContributionEnvelope(BaseModel):
    """统一响应包装：{success, data, message}"""
    success: bool
    data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class ConstraintSchema(BaseModel):
    kind: str
    minimum: Optional[float] = None
    exclusive_minimum: bool = False
    maximum: Optional[float] = None
    choices: Optional[List[str]] = None


class RequiredFieldSetResponse(BaseModel):
    """必填字段集合"""
    required: Dict[str, Optional[ConstraintSchema]]
    cleared: List[str]


class FieldViolationSchema(BaseModel):
    field: str
    reason: str
    message: str


class ValidationResponse(BaseModel):
    ok: bool
    violations: List[FieldViolationSchema]


class StatusHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[str] = None
    to_status: str
    changed_by_id: Optional[str] = None
    comments: Optional[str] = None
    created_at: datetime
