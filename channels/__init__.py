"""Inbound message normalization for the transport layer."""

from channels.inbound import InboundMessage, SMS_SESSION_PREFIX

__all__ = ["InboundMessage", "SMS_SESSION_PREFIX"]
