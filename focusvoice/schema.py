"""応答生成サービスとのリクエスト/レスポンス形式"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ConversationEntry(BaseModel):
    type: str
    message: str
    timestamp: Optional[str] = None


class RequestContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_topic: str = Field(default="general", alias="lastTopic")
    last_response: str = Field(default="", alias="lastResponse")
    last_command: str = Field(default="", alias="lastCommand")
    full_conversation: List[ConversationEntry] = Field(default_factory=list, alias="fullConversation")


class Continuation(BaseModel):
    """継続コマンド用の指示（previous は「これを繰り返さない」ためのアンカー）"""
    topic: str
    previous: str


class ResponseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    command: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    context: RequestContext = Field(default_factory=RequestContext)
    continuation: Optional[Continuation] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResponseReply(BaseModel):
    model_config = ConfigDict(extra="ignore")

    response: str
    success: bool = True
    context: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
