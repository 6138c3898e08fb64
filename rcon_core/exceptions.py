"""
Custom Exception Hierarchy for the RCON client

Provides structured exceptions so callers can tell transport trouble,
protocol violations and rejected credentials apart.
All custom exceptions inherit from RconError base class.
"""
from typing import Optional


class RconError(Exception):
    """
    Base exception for all RCON client errors.

    All custom exceptions should inherit from this class to allow
    catching every client error with a single except clause.
    """
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Configuration Errors

class ConfigurationError(RconError):
    """
    Invalid configuration or settings.

    Raised when a setting is malformed or a required value (such as the
    port of a game without a standard one) is missing.
    """
    pass


# Network and Transport Errors

class TransportError(RconError):
    """
    Network transport failures.

    Base class for all network communication errors.
    """
    pass


class ConnectionError(TransportError):
    """Failed to establish connection to the server."""
    pass


class ConnectionRefusedError(ConnectionError):
    """Server actively refused connection (ECONNREFUSED)."""
    pass


class ConnectionTimeoutError(TransportError):
    """Connection attempt timed out."""
    pass


class SendError(TransportError):
    """Failed to send data to the server."""
    pass


class ReceiveError(TransportError):
    """Failed to receive data from the server."""
    pass


class ReceiveTimeoutError(ReceiveError):
    """No response arrived within the response timeout."""
    pass


# Protocol Errors

class ProtocolError(RconError):
    """
    Protocol-related errors.

    Base class for everything the server sends that the client cannot accept.
    """
    pass


class ProtocolViolation(ProtocolError):
    """
    Server broke the expected exchange.

    Unexpected packet type, id or ordering, an impossible length field,
    or a missing/malformed challenge token.
    """
    pass


# Authentication Errors

class AuthenticationFailed(RconError):
    """Server explicitly rejected the RCON password."""
    pass
