"""
Pydantic schemas for API request/response validation
"""
from .contribution import (
    PublicationType,
    ContributionStatus,
    IndexingCategory,
    TargetedResearchType,
    Quartile,
    ConferenceSubType,
    ResearchPaperPayload,
    BookPayload,
    BookChapterPayload,
    ConferencePaperPayload,
    GrantPayload,
    ContributionPayload,
    parse_contribution_payload,
    ContributionCreate,
    ContributionEnvelope,
    RequiredFieldSetResponse,
    ValidationResponse,
    StatusHistoryItem,
)
from .suggestion import (
    SuggestionStatus,
    FieldSuggestion,
    SuggestionCreate,
    RequestChangesRequest,
    SuggestionRespondRequest,
    SuggestionRespondResponse,
)

__all__ = [
    # contribution
    "PublicationType",
    "ContributionStatus",
    "IndexingCategory",
    "TargetedResearchType",
    "Quartile",
    "ConferenceSubType",
    "ResearchPaperPayload",
    "BookPayload",
    "BookChapterPayload",
    "ConferencePaperPayload",
    "GrantPayload",
    "ContributionPayload",
    "parse_contribution_payload",
    "ContributionCreate",
    "ContributionEnvelope",
    "RequiredFieldSetResponse",
    "ValidationResponse",
    "StatusHistoryItem",
    # suggestion
    "SuggestionStatus",
    "FieldSuggestion",
    "SuggestionCreate",
    "RequestChangesRequest",
    "SuggestionRespondRequest",
    "SuggestionRespondResponse",
]
