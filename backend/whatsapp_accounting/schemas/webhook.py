from typing import List, Optional

from pydantic import BaseModel


class WebhookReply(BaseModel):
    success: bool
    message: str


class BotBizMessageStatus(BaseModel):
    id: Optional[str] = None
    status: str
    response: Optional[str] = None
    messageId: Optional[str] = None
    error: Optional[str] = None


class BotBizBatch(BaseModel):
    processed: int
    messages: List[BotBizMessageStatus]


class BotBizWebhookReply(BaseModel):
    success: bool
    message: str
    data: BotBizBatch
