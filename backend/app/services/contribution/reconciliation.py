"""
修改建议协调控制器

申请人处理 changes_required 状态的成果时使用：
加载草稿与建议 → 逐条接受 / 拒绝 → 编辑 → 保存 → 重新提交。
所有公开方法以返回值表达结果，不向调用方抛异常，也不做隐式重试。
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Set

from app.schemas.suggestion import FieldSuggestion
from app.services.contribution.field_names import to_backend_name
from app.services.contribution.ledger import SuggestionLedger
from app.services.contribution.record import (
    ContributionDraft,
    apply_planned,
    build_submit_data,
    draft_from_payload,
    plan_changes,
    requirements_for,
    validate,
)
from app.services.contribution.requirements import RequiredFieldSet
from app.services.contribution.results import (
    ErrorKind,
    ImmutableFieldError,
    Outcome,
    PersistenceError,
    ValidationResult,
)
from app.services.contribution.store import ContributionStore

logger = logging.getLogger(__name__)

_NOT_LOADED = "Contribution has not been loaded"


class ReconciliationController:

    def __init__(self, store: ContributionStore, contribution_id: str):
        self.store = store
        self.contribution_id = contribution_id
        self.draft: Optional[ContributionDraft] = None
        self.ledger = SuggestionLedger()
        self.status: Optional[str] = None
        # 本地已修改但尚未保存的字段，refresh 时保留本地值
        self._unsaved: Set[str] = set()

    @property
    def loaded(self) -> bool:
        return self.draft is not None

    async def _fetch(self) -> Outcome:
        try:
            payload = await self.store.fetch_contribution(self.contribution_id)
        except PersistenceError as e:
            logger.error("[Reconciliation] load %s failed: %s", self.contribution_id, e)
            return Outcome.failure(ErrorKind.PERSISTENCE, str(e) or "Failed to load contribution")

        fetched = draft_from_payload(payload)
        if self.draft is not None and self._unsaved:
            local = {name: self.draft.fields[name] for name in self._unsaved if name in self.draft.fields}
            fetched = apply_planned(fetched, local)
        self.draft = fetched
        self.ledger = SuggestionLedger(payload.edit_suggestions)
        self.status = getattr(payload.status, "value", payload.status)
        return Outcome.success()

    async def load(self) -> Outcome:
        self._unsaved.clear()
        self.draft = None
        return await self._fetch()

    async def refresh(self) -> Outcome:
        """重新拉取后端数据；未保存的本地修改保留"""
        return await self._fetch()

    def compute_required(self) -> RequiredFieldSet:
        if self.draft is None:
            return RequiredFieldSet()
        return requirements_for(self.draft)

    def validate(self) -> ValidationResult:
        if self.draft is None:
            return ValidationResult(ok=False)
        return validate(self.draft)

    def edit(self, changes: Mapping[str, Any]) -> Outcome:
        """本地编辑（表单命名），包含 cleared 副作用"""
        if self.draft is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, _NOT_LOADED)
        try:
            planned = plan_changes(self.draft, changes)
        except ImmutableFieldError as e:
            return Outcome.failure(ErrorKind.IMMUTABLE_FIELD, str(e))
        self.draft = apply_planned(self.draft, planned)
        self._unsaved.update(planned)
        return Outcome.success(changes=planned)

    def pending_suggestion_for(self, field_name: str) -> Optional[FieldSuggestion]:
        """表单字段名或后端字段名均可"""
        return self.ledger.pending_for(to_backend_name(field_name))

    async def accept(self, suggestion_id: str) -> Outcome:
        return await self._respond(suggestion_id, True)

    async def reject(self, suggestion_id: str) -> Outcome:
        return await self._respond(suggestion_id, False)

    async def _respond(self, suggestion_id: str, accept: bool) -> Outcome:
        if self.draft is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, _NOT_LOADED)

        outcome = await self.ledger.respond(suggestion_id, accept, self.store, self.draft)
        if not outcome.ok:
            return outcome
        # 等待期间其他响应的 refresh 可能已替换台账
        self.ledger.record_resolution(outcome.suggestion)

        if outcome.changes:
            # 并发响应时 self.draft 可能已被其他响应更新，在最新草稿上叠加
            self.draft = apply_planned(self.draft, outcome.changes)
            self._unsaved.difference_update(outcome.changes)

        if accept:
            refreshed = await self.refresh()
            if not refreshed.ok:
                logger.warning(
                    "[Reconciliation] suggestion %s accepted but refresh failed: %s",
                    suggestion_id,
                    refreshed.message,
                )
        return outcome

    def can_resubmit(self) -> bool:
        return self.draft is not None and not self.ledger.all_pending()

    async def save(self) -> Outcome:
        if self.draft is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, _NOT_LOADED)
        try:
            await self.store.update_contribution(self.contribution_id, build_submit_data(self.draft))
        except PersistenceError as e:
            logger.error("[Reconciliation] save %s failed: %s", self.contribution_id, e)
            return Outcome.failure(ErrorKind.PERSISTENCE, str(e) or "Failed to save contribution")
        self._unsaved.clear()
        return Outcome.success("Contribution saved")

    async def resubmit(self) -> Outcome:
        """
        重新提交

        顺序：待处理建议为零 → 必填校验 → 保存字段 → 状态流转，
        任一步失败即停止，不会在字段未保存时发生状态流转。
        """
        if self.draft is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, _NOT_LOADED)

        pending = self.ledger.all_pending()
        if pending:
            return Outcome.failure(
                ErrorKind.PENDING_SUGGESTIONS,
                f"Please resolve all {len(pending)} pending suggestion(s) before resubmitting.",
            )

        result = validate(self.draft)
        if not result.ok:
            return Outcome.failure(
                ErrorKind.VALIDATION,
                "; ".join(v.message for v in result.violations),
                violations=list(result.violations),
            )

        saved = await self.save()
        if not saved.ok:
            return saved

        try:
            await self.store.resubmit_contribution(self.contribution_id)
        except PersistenceError as e:
            logger.error("[Reconciliation] resubmit %s failed: %s", self.contribution_id, e)
            return Outcome.failure(ErrorKind.PERSISTENCE, str(e) or "Failed to resubmit contribution")

        logger.info("[Reconciliation] contribution %s resubmitted", self.contribution_id)
        refreshed = await self.refresh()
        if not refreshed.ok:
            logger.warning("[Reconciliation] resubmitted but refresh failed: %s", refreshed.message)
        return Outcome.success("Contribution resubmitted for review")
