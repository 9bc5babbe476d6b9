"""
数据库模型模块
"""
from app.models.contribution import (
    ResearchContribution,
    ContributionEditSuggestion,
    ContributionStatusHistory,
)

__all__ = [
    "ResearchContribution",
    "ContributionEditSuggestion",
    "ContributionStatusHistory",
]
