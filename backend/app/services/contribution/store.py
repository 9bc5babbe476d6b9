"""
持久化协作方

ContributionStore 是引擎访问后端的唯一入口：
- HttpContributionStore: 通过 REST 接口访问远端门户
- SqlContributionStore（sql_store.py）: 进程内直接调用 ContributionService

约定：失败一律抛 PersistenceError（后端报告建议已被处理时抛 SuggestionAlreadyResolvedError），
由控制器 / 台账转换为 Outcome，不向外层抛出。
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.schemas.contribution import ContributionEnvelope, parse_contribution_payload
from app.services.contribution.results import PersistenceError, SuggestionAlreadyResolvedError

logger = logging.getLogger(__name__)


class ContributionStore(ABC):
    """科研成果后端访问接口"""

    @abstractmethod
    async def fetch_contribution(self, contribution_id: str):
        """读取成果，返回按 publicationType 解析后的 payload（含 editSuggestions）"""
        raise NotImplementedError

    @abstractmethod
    async def update_contribution(self, contribution_id: str, partial_fields: Mapping[str, Any]) -> None:
        """部分更新字段（后端规范命名 + 存储编码）"""
        raise NotImplementedError

    @abstractmethod
    async def respond_to_suggestion(self, suggestion_id: str, accept: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    async def resubmit_contribution(self, contribution_id: str) -> None:
        raise NotImplementedError


class HttpContributionStore(ContributionStore):
    """
    基于 httpx.AsyncClient 的远端实现

    接口路径（相对 PORTAL_API_BASE_URL）：
    - GET  /research/{id}
    - PUT  /research/{id}
    - POST /research/suggestions/{id}/respond
    - POST /research/{id}/resubmit
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if self.settings.PORTAL_API_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.PORTAL_API_TOKEN}"
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.PORTAL_API_BASE_URL,
            timeout=self.settings.PORTAL_API_TIMEOUT,
            headers=headers,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "HttpContributionStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("detail") or f"HTTP {resp.status_code}")
        return f"HTTP {resp.status_code}"

    async def _request(
        self,
        method: str,
        url: str,
        conflict_means_resolved: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        logger.info("[HttpContributionStore] %s %s", method, url)
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("[HttpContributionStore] 请求失败: %s", e)
            raise PersistenceError(f"Request failed: {e}") from e

        if resp.status_code >= 400:
            message = self._error_message(resp)
            logger.warning("[HttpContributionStore] %s %s -> %d %s", method, url, resp.status_code, message)
            if conflict_means_resolved and resp.status_code == 409:
                raise SuggestionAlreadyResolvedError(message)
            raise PersistenceError(message)
        return resp

    async def fetch_contribution(self, contribution_id: str):
        resp = await self._request("GET", f"/research/{contribution_id}")
        try:
            envelope = ContributionEnvelope.model_validate(resp.json())
            if not envelope.success or envelope.data is None:
                raise PersistenceError(envelope.message or "Contribution not available")
            return parse_contribution_payload(envelope.data)
        except (ValueError, ValidationError) as e:
            raise PersistenceError(f"Malformed contribution payload: {e}") from e

    async def update_contribution(self, contribution_id: str, partial_fields: Mapping[str, Any]) -> None:
        body: Dict[str, Any] = dict(partial_fields)
        await self._request("PUT", f"/research/{contribution_id}", json=body)

    async def respond_to_suggestion(self, suggestion_id: str, accept: bool) -> None:
        await self._request(
            "POST",
            f"/research/suggestions/{suggestion_id}/respond",
            conflict_means_resolved=True,
            json={"accept": accept},
        )

    async def resubmit_contribution(self, contribution_id: str) -> None:
        await self._request("POST", f"/research/{contribution_id}/resubmit", json={})
