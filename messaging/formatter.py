"""
Channel-specific reply formatting and fixed system messages.

- voice: plain speakable text (no markdown, no emoji, single line)
- chat:  WhatsApp markup (*bold*, _italic_), headings and links flattened
- sms:   plain text with compact line breaks
"""

import logging
import re
from typing import Optional

from config import load_messages
from core.interfaces import ReplyFormatter
from core.types import Channel

logger = logging.getLogger(__name__)

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__", re.DOTALL)
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")
_BULLET_RE = re.compile(r"^\s*[-*•]\s+", re.MULTILINE)
# Single-delimiter emphasis; a delimiter touching a word character (snake_case,
# URLs) is left alone
_ITALIC_RE = re.compile(r"(?<![\w*])([*_])(?![\s*_])(.+?)(?<![\s*_])\1(?![\w*])")
_CODE_RE = re.compile(r"`([^`\n]+)`")
_STRIKE_RE = re.compile(r"~~(.+?)~~")
_EMOJI_RE = re.compile(
    "[\U0001F300-\U0001FAFF\U00002600-\U000027BF\U0001F1E6-\U0001F1FF\uFE0F\u200D]+"
)
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_SPACES_RE = re.compile(r"[ \t]{2,}")


def _strip_emphasis(text: str) -> str:
    """Remove paired markdown emphasis, keeping the wrapped text."""
    text = _BOLD_RE.sub(lambda m: m.group(1) or m.group(2), text)
    text = _STRIKE_RE.sub(r"\1", text)
    text = _CODE_RE.sub(r"\1", text)
    return _ITALIC_RE.sub(r"\2", text)


class ChannelReplyFormatter(ReplyFormatter):
    """Formats model text per channel and serves fixed messages."""

    def __init__(self, messages: Optional[dict] = None):
        """
        Args:
            messages: {key: {channel|"default": text}}; defaults to
                config/messages.yaml
        """
        self.messages = messages if messages is not None else load_messages()

    def format(self, text: str, channel: Channel) -> str:
        channel = Channel(channel)
        text = (text or "").strip()
        if not text:
            return text

        if channel == Channel.VOICE:
            return self._for_voice(text)
        if channel == Channel.CHAT:
            return self._for_chat(text)
        return self._for_sms(text)

    def fixed_message(self, key: str, channel: Channel) -> str:
        """
        Look up a fixed system message.

        Raises:
            KeyError: unknown message key
        """
        variants = self.messages.get(key)
        if not variants:
            raise KeyError(f"Unknown message key: {key}")
        channel = Channel(channel)
        return variants.get(channel.value) or variants["default"]

    def _for_voice(self, text: str) -> str:
        text = _LINK_RE.sub(r"\1", text)
        text = _HEADING_RE.sub("", text)
        text = _BULLET_RE.sub("", text)
        text = _strip_emphasis(text)
        text = _EMOJI_RE.sub("", text)
        text = re.sub(r"\s*\n\s*", " ", text)
        return _SPACES_RE.sub(" ", text).strip()

    def _for_chat(self, text: str) -> str:
        text = _BOLD_RE.sub(lambda m: f"*{m.group(1) or m.group(2)}*", text)
        text = _HEADING_RE.sub("", text)
        text = _LINK_RE.sub(r"\1: \2", text)
        text = _BULLET_RE.sub("• ", text)
        return _BLANK_LINES_RE.sub("\n\n", text).strip()

    def _for_sms(self, text: str) -> str:
        text = _LINK_RE.sub(r"\1: \2", text)
        text = _HEADING_RE.sub("", text)
        text = _BULLET_RE.sub("- ", text)
        text = _strip_emphasis(text)
        text = _SPACES_RE.sub(" ", text)
        text = re.sub(r"\n{2,}", "\n", text)
        return text.strip()
