"""
进程内持久化实现：直接通过 ContributionService 读写数据库
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.schemas.contribution import parse_contribution_payload
from app.services.contribution.results import (
    ImmutableFieldError,
    PersistenceError,
    SuggestionAlreadyResolvedError,
)
from app.services.contribution.store import ContributionStore
from app.services.contribution_service import (
    ContributionService,
    ContributionServiceError,
    SuggestionAlreadyRespondedError,
)

logger = logging.getLogger(__name__)


class SqlContributionStore(ContributionStore):
    """
    使用 SQLAlchemy Session 的 ContributionStore

    session_factory 每次调用返回一个新 Session（例如 SessionLocal），
    每个操作独立开启、提交并关闭会话。
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _run(self, operation: str, func: Callable[[Session], Any]) -> Any:
        db = self.session_factory()
        try:
            return func(db)
        except SuggestionAlreadyRespondedError as e:
            db.rollback()
            raise SuggestionAlreadyResolvedError(str(e)) from e
        except (ContributionServiceError, ImmutableFieldError) as e:
            db.rollback()
            logger.warning("[SqlContributionStore] %s rejected: %s", operation, e)
            raise PersistenceError(str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("[SqlContributionStore] %s failed: %s", operation, e)
            raise PersistenceError(f"Database error during {operation}") from e
        finally:
            db.close()

    async def fetch_contribution(self, contribution_id: str):
        def _fetch(db: Session):
            contribution = ContributionService.require_contribution(db, contribution_id)
            return parse_contribution_payload(ContributionService.to_payload_dict(contribution))

        return self._run("fetch", _fetch)

    async def update_contribution(self, contribution_id: str, partial_fields: Mapping[str, Any]) -> None:
        self._run(
            "update",
            lambda db: ContributionService.update_contribution(db, contribution_id, partial_fields),
        )

    async def respond_to_suggestion(self, suggestion_id: str, accept: bool) -> None:
        self._run(
            "respond",
            lambda db: ContributionService.respond_to_suggestion(db, suggestion_id, accept),
        )

    async def resubmit_contribution(self, contribution_id: str) -> None:
        self._run(
            "resubmit",
            lambda db: ContributionService.resubmit_contribution(db, contribution_id),
        )
