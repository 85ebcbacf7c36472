from typing import Optional

from phishnet_app.schemas.common import CamelModel


class ChatRequest(CamelModel):
    message: Optional[str] = None


class ChatReply(CamelModel):
    reply: str
    source: str  # "llm" or "rules"
