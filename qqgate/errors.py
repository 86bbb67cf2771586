"""Exceptions raised by qqgate."""


class QQGateError(Exception):
    """Base class for all qqgate errors."""


class AuthError(QQGateError):
    """An access token could not be obtained, or a request was rejected as unauthorized."""


class ProtocolError(QQGateError):
    """A response was well-formed but did not carry what the protocol requires."""


class ParseError(ProtocolError):
    """A gateway frame could not be decoded."""

    def __init__(self, payload: str, reason: str) -> None:
        self.payload = payload
        self.reason = reason
        super().__init__(f"Malformed gateway frame ({reason}): {payload[:200]!r}")


class GatewayConnectionError(QQGateError):
    """Transport-level failure talking to the REST API or the gateway stream."""


class SinkClosed(QQGateError):
    """Raised by a message sink whose consumer has gone away."""
