"""
PhishNet Assistant.

Messages go to Gemini when an API key is configured. Without a key, or when
the call fails, the reply comes from the first matching canned rule.
"""

import logging
import re
from typing import Optional

import httpx

from phishnet_app.config import settings
from phishnet_app.schemas.chatbot import ChatReply

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

SYSTEM_INSTRUCTION = """\
ROLE: You are the "PhishNet Assistant", a friendly and knowledgeable cybersecurity expert.

BEHAVIOR GUIDELINES:
1. Be conversational. If the user greets you or talks about general topics, answer politely
   and briefly, then ask how you can help with their security.
2. Phishing analysis. If the user sends a URL or email text, analyze it seriously for red
   flags such as urgency, misspellings and look-alike domains.
3. Tone. Professional but warm. Use emojis occasionally (🛡️, 🎣, ✅).
4. Goal. Protect the user and guide off-topic conversations back to PhishNet's tools.
"""

# Checked in order; the first match wins
CANNED_RULES = [
    (
        re.compile(r"\b(hi|hello|hey|good (morning|afternoon|evening))\b", re.IGNORECASE),
        "Hello! 👋 I'm the PhishNet Assistant. I can help you spot phishing links, "
        "suspicious emails and other online scams. What would you like to check?",
    ),
    (
        re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE),
        "I see a link in your message. 🔍 Paste it into the PhishNet URL scanner for a full "
        "safety check. Until then, don't enter credentials on that page and check that the "
        "domain is spelled exactly as expected.",
    ),
    (
        re.compile(r"\b(e-?mail|inbox|sender)\b", re.IGNORECASE),
        "Suspicious email? 📧 Look at the sender's real address, hover over links before "
        "clicking, and be wary of urgent requests for money or credentials. You can also run "
        "the email through PhishNet's email scanner.",
    ),
    (
        re.compile(r"\bpass(word|words|phrase)?\b", re.IGNORECASE),
        "Strong passwords are long and unique for every account. 🔑 Use a password manager, "
        "never reuse passwords, and never share them by email or chat, even with \"support\".",
    ),
    (
        re.compile(r"\b(2fa|mfa|two[- ]factor|multi[- ]factor|authenticator)\b", re.IGNORECASE),
        "Two-factor authentication adds a second lock to your account. 🛡️ Prefer an "
        "authenticator app over SMS, and never read your codes out to anyone who calls you.",
    ),
    (
        re.compile(r"\b(phish\w*|scam\w*|fraud\w*|spoof\w*)\b", re.IGNORECASE),
        "Phishing tries to trick you into handing over information. 🎣 Red flags include "
        "urgency, generic greetings, look-alike domains and unexpected attachments. When in "
        "doubt, go to the website directly instead of following the link.",
    ),
    (
        re.compile(r"\b(thanks|thank you|thx|cheers)\b", re.IGNORECASE),
        "You're welcome! ✅ Stay safe out there, and come back any time you need a second opinion.",
    ),
]

DEFAULT_REPLY = (
    "I'm here to help you stay safe online. 🛡️ You can ask me about phishing, suspicious "
    "links or emails, passwords or two-factor authentication, or scan a URL with PhishNet."
)


def canned_reply(message: str) -> str:
    for pattern, reply in CANNED_RULES:
        if pattern.search(message):
            return reply
    return DEFAULT_REPLY


class ChatbotService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or settings.gemini_model
        self.transport = transport

    async def _ask_gemini(self, message: str) -> str:
        payload = {
            "system_instruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": [{"text": message}]}],
        }
        async with httpx.AsyncClient(timeout=settings.gemini_timeout, transport=self.transport) as client:
            response = await client.post(
                GEMINI_ENDPOINT.format(model=self.model),
                headers={"x-goog-api-key": self.api_key},
                json=payload,
            )
            response.raise_for_status()
            data = response.json()

        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise ValueError("empty completion")
        return text

    async def reply(self, message: str) -> ChatReply:
        if self.api_key:
            try:
                return ChatReply(reply=await self._ask_gemini(message), source="llm")
            except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
                logger.warning("⚠️  Gemini request failed, using canned reply: %s", e)

        return ChatReply(reply=canned_reply(message), source="rules")
