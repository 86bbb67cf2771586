"""
qqgate - QQ Bot Gateway Client

A long-lived asyncio client for the QQ bot platform: caches the bot access
token, keeps a gateway WebSocket alive with heartbeats and delivers
message-create events as normalized ChannelMessage objects.
"""

from qqgate.auth import TokenCache
from qqgate.client import QQClient
from qqgate.config import QQGateConfig
from qqgate.errors import (
    AuthError,
    GatewayConnectionError,
    ParseError,
    ProtocolError,
    QQGateError,
    SinkClosed,
)
from qqgate.models import (
    ChannelMessage,
    Credential,
    GatewayFrame,
    Opcode,
)
from qqgate.session import GatewaySession, GatewayState
from qqgate.sink import MessageSink, QueueSink

__all__ = [
    # Clients
    "QQClient",
    "TokenCache",
    # Session
    "GatewaySession",
    "GatewayState",
    "MessageSink",
    "QueueSink",
    # Config
    "QQGateConfig",
    # Models
    "ChannelMessage",
    "Credential",
    "GatewayFrame",
    "Opcode",
    # Errors
    "QQGateError",
    "AuthError",
    "ProtocolError",
    "ParseError",
    "GatewayConnectionError",
    "SinkClosed",
]

__version__ = "0.1.0"
