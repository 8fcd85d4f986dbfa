"""
Function/tool schema sent with requests.

Static request-time data: the streaming machinery never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import jsonschema

from ollie.llm.types import ToolCall


@dataclass(frozen=True)
class FunctionParameter:
    name: str
    type: str
    description: str = ""
    required: bool = False


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    description: str
    parameters: tuple[FunctionParameter, ...] = ()

    def json_schema(self) -> dict:
        properties = {
            p.name: {"type": p.type, "description": p.description}
            for p in self.parameters
        }
        return {
            "type": "object",
            "properties": properties,
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def to_gemini_schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.json_schema(),
        }


@dataclass
class Tools:
    """An ordered collection of callable functions offered to the model."""

    functions: list[FunctionSpec] = field(default_factory=list)

    def add_function(
        self,
        name: str,
        description: str,
        parameters: list[FunctionParameter] | None = None,
    ) -> FunctionSpec:
        if self.get(name) is not None:
            raise ValueError(f"Function {name!r} is already declared")
        fn = FunctionSpec(name, description, tuple(parameters or ()))
        self.functions.append(fn)
        return fn

    def get(self, name: str) -> FunctionSpec | None:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None

    def __len__(self) -> int:
        return len(self.functions)

    def __bool__(self) -> bool:
        return bool(self.functions)

    def to_openai_schema(self) -> list[dict]:
        """The ``tools`` array used by OpenAI-compatible servers and Ollama."""
        return [f.to_openai_schema() for f in self.functions]

    def to_gemini_schema(self) -> list[dict]:
        if not self.functions:
            return []
        return [{"functionDeclarations": [f.to_gemini_schema() for f in self.functions]}]

    def validate(self, call: ToolCall) -> tuple[bool, str | None]:
        """
        Check a finalized call against the declared function schema.

        Returns ``(ok, error_message)``.
        """
        if call.error is not None:
            return False, str(call.error)
        fn = self.get(call.name)
        if fn is None:
            return False, f"Unknown function: {call.name!r}"
        try:
            jsonschema.validate(instance=call.parsed or {}, schema=fn.json_schema())
        except jsonschema.ValidationError as e:
            return False, str(e.message)
        return True, None
