"""
审稿建议台账

- 建议状态只能单向流转：pending → accepted / rejected
- 响应时先持久化，成功后才更新本地状态并返回要写入草稿的字段
- 同一建议的响应在途时，重复响应直接返回 ALREADY_RESOLVED
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from app.schemas.suggestion import FieldSuggestion, SuggestionStatus
from app.services.contribution.codec import parse_number, to_canonical
from app.services.contribution.field_names import INTEGER_FIELDS, to_form_name
from app.services.contribution.record import ContributionDraft, plan_changes
from app.services.contribution.results import (
    ErrorKind,
    ImmutableFieldError,
    Outcome,
    PersistenceError,
    SuggestionAlreadyResolvedError,
)

logger = logging.getLogger(__name__)


def coerce_suggested_value(form_field: str, raw_value: str) -> Any:
    """审稿人填写的原始字符串 → 表单规范值"""
    if form_field in INTEGER_FIELDS:
        number = parse_number(raw_value)
        return str(int(number)) if number is not None else raw_value
    return to_canonical(form_field, raw_value)


class SuggestionLedger:
    """某个科研成果当前加载的全部审稿建议"""

    def __init__(self, suggestions: Iterable[FieldSuggestion] = ()):
        self._suggestions: Dict[str, FieldSuggestion] = {}
        self._order: Dict[str, int] = {}
        self._in_flight: Set[str] = set()
        for suggestion in suggestions:
            self._store_loaded(suggestion)

    def _store_loaded(self, suggestion: FieldSuggestion) -> None:
        if suggestion.id not in self._order:
            self._order[suggestion.id] = len(self._order)
        self._suggestions[suggestion.id] = suggestion

    def __iter__(self) -> Iterator[FieldSuggestion]:
        return iter(self._suggestions.values())

    def __len__(self) -> int:
        return len(self._suggestions)

    def get(self, suggestion_id: str) -> Optional[FieldSuggestion]:
        return self._suggestions.get(suggestion_id)

    def _sort_key(self, suggestion: FieldSuggestion):
        created = suggestion.created_at
        return (created is None, created or datetime.min, self._order[suggestion.id])

    def all_pending(self) -> List[FieldSuggestion]:
        return sorted((s for s in self if s.is_pending), key=self._sort_key)

    def pending_for(self, field_name: str) -> Optional[FieldSuggestion]:
        """
        按后端字段名查找待处理建议

        如果后端数据里同一字段存在多条待处理建议，返回最早的一条；
        其余建议仍然出现在 all_pending() 中，必须逐条处理。
        """
        for suggestion in self.all_pending():
            if suggestion.field_name == field_name:
                return suggestion
        return None

    def add(self, suggestion: FieldSuggestion) -> bool:
        """加入一条建议；同一字段已有待处理建议时拒绝并返回 False"""
        if suggestion.id in self._suggestions:
            return False
        if suggestion.is_pending and self.pending_for(suggestion.field_name) is not None:
            logger.warning(
                "[SuggestionLedger] refuse second pending suggestion for field %s",
                suggestion.field_name,
            )
            return False
        self._store_loaded(suggestion)
        return True

    def record_resolution(self, suggestion: FieldSuggestion) -> None:
        """写入已在服务端落定的响应结果；台账中没有该建议时忽略"""
        if suggestion.id in self._suggestions and not suggestion.is_pending:
            self._suggestions[suggestion.id] = suggestion

    async def respond(
        self,
        suggestion_id: str,
        accept: bool,
        store,
        draft: ContributionDraft,
    ) -> Outcome:
        """
        接受 / 拒绝一条建议

        Args:
            suggestion_id: 建议 ID
            accept: True 接受，False 拒绝
            store: ContributionStore，用于持久化响应
            draft: 当前草稿，仅用于计算接受后要写入的字段

        Returns:
            Outcome；接受成功时 changes 为要写入草稿的字段（表单命名）
        """
        suggestion = self.get(suggestion_id)
        if suggestion is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Suggestion {suggestion_id} not found")
        if not suggestion.is_pending or suggestion_id in self._in_flight:
            return Outcome.failure(
                ErrorKind.ALREADY_RESOLVED,
                "This suggestion has already been responded to",
                suggestion=suggestion,
            )

        changes: Dict[str, Any] = {}
        if accept and suggestion.suggested_value is not None:
            form_field = to_form_name(suggestion.field_name)
            value = coerce_suggested_value(form_field, suggestion.suggested_value)
            try:
                changes = plan_changes(draft, {form_field: value})
            except ImmutableFieldError as e:
                return Outcome.failure(ErrorKind.IMMUTABLE_FIELD, str(e), suggestion=suggestion)

        self._in_flight.add(suggestion_id)
        try:
            await store.respond_to_suggestion(suggestion_id, accept)
        except SuggestionAlreadyResolvedError as e:
            logger.info("[SuggestionLedger] suggestion %s already resolved on server: %s", suggestion_id, e)
            return Outcome.failure(
                ErrorKind.ALREADY_RESOLVED,
                "This suggestion has already been responded to",
                suggestion=suggestion,
            )
        except PersistenceError as e:
            logger.error("[SuggestionLedger] respond to suggestion %s failed: %s", suggestion_id, e)
            return Outcome.failure(ErrorKind.PERSISTENCE, str(e) or "Failed to save response", suggestion=suggestion)
        finally:
            self._in_flight.discard(suggestion_id)

        resolved = suggestion.model_copy(update={
            "status": SuggestionStatus.ACCEPTED if accept else SuggestionStatus.REJECTED,
        })
        self._suggestions[suggestion_id] = resolved
        return Outcome.success(
            "Suggestion accepted" if accept else "Suggestion rejected",
            suggestion=resolved,
            changes=changes,
        )
