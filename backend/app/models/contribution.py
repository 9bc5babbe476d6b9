"""
科研成果（Research Contribution）数据模型
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ResearchContribution(Base):
    """
    科研成果草稿 / 申报记录

    - publication_type 创建时确定，之后不可修改
    - fields 保存所有类型相关字段（后端规范命名 + 存储编码），
      例如 {"quartile": "Top_1_", "internationalAuthor": true}
    - 工作流：draft → submitted → under_review → changes_required → resubmitted → approved / rejected → completed
    """
    __tablename__ = "research_contributions"

    id = Column(String(36), primary_key=True, default=_new_id)
    application_number = Column(String(50), unique=True, index=True)

    publication_type = Column(String(30), nullable=False, index=True)
    title = Column(String(500))
    fields = Column(JSON, default=dict)

    status = Column(String(30), default="draft", index=True)
    applicant_user_id = Column(String(64), index=True)
    revision_count = Column(Integer, default=0)

    # 时间戳
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    submitted_at = Column(DateTime)

    # 关系
    edit_suggestions = relationship(
        "ContributionEditSuggestion",
        back_populates="contribution",
        cascade="all, delete-orphan",
        order_by="ContributionEditSuggestion.created_at",
    )
    status_history = relationship(
        "ContributionStatusHistory",
        back_populates="contribution",
        cascade="all, delete-orphan",
        order_by="ContributionStatusHistory.created_at",
    )

    def __repr__(self):
        return f"<ResearchContribution(id={self.id}, type='{self.publication_type}', status='{self.status}')>"


class ContributionEditSuggestion(Base):
    """
    审稿人针对单个字段提出的修改建议

    - field_name 使用后端规范字段名
    - status: pending / accepted / rejected，只能从 pending 单向流转
    - 永不删除，作为审计记录保留
    """
    __tablename__ = "contribution_edit_suggestions"

    id = Column(String(36), primary_key=True, default=_new_id)
    contribution_id = Column(
        String(36),
        ForeignKey("research_contributions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    field_name = Column(String(100), nullable=False, index=True)
    original_value = Column(Text)
    suggested_value = Column(Text)
    suggestion_note = Column(Text)

    status = Column(String(20), default="pending", index=True)
    reviewer_id = Column(String(64), index=True)
    applicant_response = Column(Text)
    responded_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    contribution = relationship("ResearchContribution", back_populates="edit_suggestions")

    def __repr__(self):
        return f"<ContributionEditSuggestion(id={self.id}, field='{self.field_name}', status='{self.status}')>"


class ContributionStatusHistory(Base):
    """工作流状态变更记录"""
    __tablename__ = "contribution_status_history"

    id = Column(Integer, primary_key=True, index=True)
    contribution_id = Column(
        String(36),
        ForeignKey("research_contributions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = Column(String(30))
    to_status = Column(String(30), nullable=False)
    changed_by_id = Column(String(64))
    comments = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    contribution = relationship("ResearchContribution", back_populates="status_history")
