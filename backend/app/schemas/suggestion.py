"""
EditSuggestion 相关的 Pydantic schemas
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SuggestionStatus(str, Enum):
    """建议状态枚举（单向：pending → accepted / rejected）"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FieldSuggestion(BaseModel):
    """
    审稿人对单个字段的修改建议

    - field_name: 后端规范字段名（不是表单字段名）
    - original_value / suggested_value: 审稿人提交时的原始字符串，未做任何转换
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    field_name: str
    original_value: Optional[str] = None
    suggested_value: Optional[str] = None
    suggestion_note: Optional[str] = None
    status: SuggestionStatus = SuggestionStatus.PENDING
    reviewer_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == SuggestionStatus.PENDING


class SuggestionCreate(BaseModel):
    """审稿人提交单条建议"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field_name: str = Field(..., description="后端规范字段名", min_length=1)
    suggested_value: Optional[str] = Field(default=None, description="建议值（原始字符串）")
    suggestion_note: Optional[str] = Field(default=None, description="建议说明")


class RequestChangesRequest(BaseModel):
    """审稿人退回修改：附带若干字段建议"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reviewer_id: str = Field(..., description="审稿人 ID")
    comments: Optional[str] = Field(default=None, description="退回说明")
    suggestions: List[SuggestionCreate] = Field(default_factory=list)


class SuggestionRespondRequest(BaseModel):
    """申请人对建议的接受 / 拒绝"""
    accept: bool
    response: Optional[str] = Field(default=None, description="申请人回复")


class SuggestionRespondResponse(BaseModel):
    """响应结果"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    status: SuggestionStatus
    pending_count: int = 0
