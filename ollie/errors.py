"""Error taxonomy shared by the streaming engine, transport and session."""

from __future__ import annotations


class ErrorCode:
    DECODE_ERROR = "decode_error"
    SERVER_ERROR = "server_error"
    TRUNCATED = "truncated"
    TOOL_ARGUMENT_PARSE_ERROR = "tool_argument_parse_error"
    TRANSPORT_ERROR = "transport_error"
    SESSION_BUSY = "session_busy"


class OllieError(Exception):
    """Base class for every error raised by ollie."""

    default_code = ""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code or self.default_code


class DecodeError(OllieError):
    """
    A record from the wire could not be turned into a frame.

    Terminates the current stream.  *record* holds (a prefix of) the
    offending text for diagnostics.
    """

    default_code = ErrorCode.DECODE_ERROR

    def __init__(self, message: str, record: str = "", code: str = ""):
        super().__init__(message, code)
        self.record = record


class ServerError(DecodeError):
    """The server reported an error inside the response stream."""

    default_code = ErrorCode.SERVER_ERROR


class TruncatedStreamError(OllieError):
    """The byte stream ended before a ``done`` frame arrived."""

    default_code = ErrorCode.TRUNCATED


class ToolArgumentParseError(OllieError):
    """
    The accumulated argument buffer of one tool call is not a JSON object.

    Never raised by the reducer: it is attached to the offending
    ``ToolCall`` so sibling calls in the same turn still succeed.
    """

    default_code = ErrorCode.TOOL_ARGUMENT_PARSE_ERROR

    def __init__(self, message: str, index: int, raw: str = ""):
        super().__init__(message)
        self.index = index
        self.raw = raw


class TransportError(OllieError):
    """Connection failure or non-success HTTP status from the server."""

    default_code = ErrorCode.TRANSPORT_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionBusyError(OllieError):
    """``Session.update`` was called while another update is in flight."""

    default_code = ErrorCode.SESSION_BUSY
