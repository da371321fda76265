"""Reply formatting for voice, chat and SMS."""

from messaging.formatter import ChannelReplyFormatter

__all__ = ["ChannelReplyFormatter"]
