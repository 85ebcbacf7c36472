from typing import Optional

from fastapi import APIRouter, Depends

from phishnet_app.dependencies import get_chatbot_service, get_optional_user
from phishnet_app.models.user import User
from phishnet_app.schemas.chatbot import ChatReply, ChatRequest
from phishnet_app.schemas.common import APIResponse
from phishnet_app.services.chatbot_service import ChatbotService
from phishnet_app.services.errors import ValidationError

router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.post("/message", response_model=APIResponse[ChatReply])
async def send_message(
    data: ChatRequest,
    _user: Optional[User] = Depends(get_optional_user),
    chatbot_service: ChatbotService = Depends(get_chatbot_service)
):
    if not data.message or not data.message.strip():
        raise ValidationError("Message is required")
    return APIResponse(data=await chatbot_service.reply(data.message.strip()))
