"""ollie -- streaming chat client for local and remote model servers."""

from ollie.errors import (
    DecodeError,
    OllieError,
    ServerError,
    SessionBusyError,
    ToolArgumentParseError,
    TransportError,
    TruncatedStreamError,
)
from ollie.llm import Client, Message, Options, Role, ToolCall, Tools
from ollie.session import Session

__version__ = "0.1.0"

__all__ = [
    "Client",
    "DecodeError",
    "Message",
    "OllieError",
    "Options",
    "Role",
    "ServerError",
    "Session",
    "SessionBusyError",
    "ToolArgumentParseError",
    "ToolCall",
    "Tools",
    "TransportError",
    "TruncatedStreamError",
    "__version__",
]
