"""
Normalized inbound messages.

Session ids are unique per (channel, counterpart):
- chat: the raw sender address, e.g. "whatsapp:+972533403449"
- sms: "sms:<number>", so a number texting and chatting keeps two sessions
- voice: the call sid
"""

from dataclasses import dataclass

from core.types import Channel
from personalization.customer_directory import normalize_phone

SMS_SESSION_PREFIX = "sms:"


@dataclass(frozen=True)
class InboundMessage:
    """The tuple the orchestrator consumes."""
    text: str
    session_id: str
    channel: Channel
    user_phone: str

    @classmethod
    def from_chat(cls, from_address: str, body: str) -> "InboundMessage":
        return cls(
            text=(body or "").strip(),
            session_id=from_address,
            channel=Channel.CHAT,
            user_phone=normalize_phone(from_address),
        )

    @classmethod
    def from_sms(cls, from_number: str, body: str) -> "InboundMessage":
        return cls(
            text=(body or "").strip(),
            session_id=f"{SMS_SESSION_PREFIX}{from_number}",
            channel=Channel.SMS,
            user_phone=normalize_phone(from_number),
        )

    @classmethod
    def from_voice(cls, call_sid: str, from_number: str, speech: str) -> "InboundMessage":
        return cls(
            text=(speech or "").strip(),
            session_id=call_sid,
            channel=Channel.VOICE,
            user_phone=normalize_phone(from_number),
        )
