"""タスクストアのHTTPクライアント

オーケストレーターが使うのは成功/失敗の真偽値だけです。
"""

import logging
from typing import Optional

import httpx

from .interfaces import TaskStoreError

logger = logging.getLogger(__name__)


class HttpTaskStore:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def complete_all(self, user_id: str, priority: Optional[str] = None) -> bool:
        return await self._post("complete-all", {"userId": user_id, "priority": priority})

    async def delete_all(self, user_id: str, priority: Optional[str] = None) -> bool:
        return await self._post("delete-all", {"userId": user_id, "priority": priority})

    async def create_task(self, user_id: str, title: str, priority: str) -> bool:
        return await self._post("", {"userId": user_id, "title": title, "priority": priority})

    async def _post(self, action: str, body: dict) -> bool:
        url = f"{self.base_url}/{action}" if action else self.base_url
        body = {k: v for k, v in body.items() if v is not None}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, json=body)
        except httpx.HTTPError as e:
            raise TaskStoreError(f"Task store request failed: {e}") from e

        if r.is_error:
            logger.error(f"Task store {url} returned {r.status_code}")
            return False
        try:
            data = r.json()
        except ValueError:
            # 本文なしの 2xx は成功扱い
            return True
        if isinstance(data, dict):
            return bool(data.get("success", True))
        return True
