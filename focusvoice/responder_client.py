"""
応答生成サービスのHTTPクライアント

コマンドと会話コンテキストをJSONでPOSTし、応答文を受け取ります。
コンテキストは毎回リクエストに明示的に含めて送ります（サーバー側の
プロセス共有状態には頼りません）。

失敗（HTTPエラー・success=false・不正なJSON）はすべて ResponderError として送出し、
呼び出し側で固定のフォールバック文に置き換えます。リトライはしません。
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from .interfaces import ResponderError
from .schema import ResponseReply, ResponseRequest

logger = logging.getLogger(__name__)


class HttpResponseGenerator:
    """
    応答生成エンドポイント（POST /api/voice-command 形式）のクライアント

    Attributes:
        url (str): エンドポイントURL
        timeout (float): タイムアウト（秒）
    """
    def __init__(self, url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self.logger = logging.getLogger(__name__)

    async def generate(self, request: ResponseRequest) -> ResponseReply:
        """
        応答を生成する

        Args:
            request: コマンドとコンテキスト

        Returns:
            ResponseReply

        Raises:
            ResponderError: 通信失敗、HTTPエラー、success=false、不正な応答の場合
        """
        payload = request.to_payload()
        self.logger.debug(f"POST {self.url} command='{request.command}'")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.url, json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise ResponderError(f"Response generator request failed: {e}") from e
        except ValueError as e:
            raise ResponderError(f"Response generator returned invalid JSON: {e}") from e

        try:
            reply = ResponseReply.model_validate(data)
        except ValidationError as e:
            raise ResponderError(f"Malformed response generator reply: {e}") from e

        if not reply.success:
            raise ResponderError(f"Response generator reported failure: {reply.error or 'unknown error'}")
        if not reply.response.strip():
            raise ResponderError("Response generator returned an empty response")

        return reply
