"""LLM subsystem -- providers, stream decoding, and streamed reply assembly."""

from ollie.llm.types import (
    Message,
    ResponseFrame,
    Role,
    ToolCall,
    ToolCallDelta,
    Usage,
)
from ollie.llm.client import Client
from ollie.llm.options import Options
from ollie.llm.reducer import StreamingReducer
from ollie.llm.stream import StreamDecoder
from ollie.llm.tool_call_assembler import (
    ToolCallAssembler,
    finalize_tool_calls,
    merge_tool_calls,
)
from ollie.llm.tools import FunctionParameter, FunctionSpec, Tools
from ollie.llm.transport import HttpTransport

__all__ = [
    "Client",
    "FunctionParameter",
    "FunctionSpec",
    "HttpTransport",
    "Message",
    "Options",
    "ResponseFrame",
    "Role",
    "StreamDecoder",
    "StreamingReducer",
    "ToolCall",
    "ToolCallAssembler",
    "ToolCallDelta",
    "Tools",
    "Usage",
    "finalize_tool_calls",
    "merge_tool_calls",
]
