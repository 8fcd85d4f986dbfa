"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ollie.llm.types import Message, ToolCall, Usage


class OutputFormatter:
    """Rich-based output formatting for the ollie CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def stream_delta(self, delta: str) -> None:
        """Sink used while a reply is streaming."""
        self.console.print(delta, end="", markup=False, highlight=False)

    def format_model_list(self, models: list[str]) -> None:
        if not models:
            self.console.print("[dim]No models found.[/dim]")
            return

        table = Table(title="Models")
        table.add_column("Name", style="cyan", no_wrap=True)
        for name in models:
            table.add_row(name)
        self.console.print(table)

    def format_tool_calls(self, tool_calls: tuple[ToolCall, ...]) -> None:
        for tc in tool_calls:
            if tc.error is not None:
                self.console.print(
                    f"  [red]tool call {tc.name or '?'} (#{tc.index}) has malformed arguments:[/red] "
                    f"{escape(tc.arguments[:200])}",
                    markup=True,
                )
                continue
            self.console.print(Panel(
                Syntax(json.dumps(tc.parsed, indent=2), "json", theme="monokai"),
                title=f"Tool call: {tc.name}",
            ))

    def format_usage(self, message: Message) -> None:
        usage: Usage | None = message.usage
        if usage is None:
            return
        parts = [f"model: {message.model or 'unknown model'}"]
        if usage.completion_tokens is not None:
            parts.append(f"tokens: {usage.completion_tokens}")
        if usage.eval_duration_ns:
            parts.append(f"eval time: {usage.eval_duration_ns / 1e9:.1f}s")
        rate = usage.tokens_per_second
        if rate is not None:
            parts.append(f"token rate: {rate:.1f}/sec")
        self.console.print(f"[dim]-> {' | '.join(parts)}[/dim]")

    def format_transcript(self, transcript: tuple[Message, ...]) -> None:
        if not transcript:
            self.console.print("[dim]Transcript is empty.[/dim]")
            return

        table = Table(title="Transcript", show_lines=True)
        table.add_column("#", no_wrap=True)
        table.add_column("Role", style="cyan", no_wrap=True)
        table.add_column("Content")

        for i, msg in enumerate(transcript):
            content = msg.content
            if msg.tool_calls:
                names = ", ".join(tc.name for tc in msg.tool_calls)
                content = f"{content}\n[tool calls: {names}]".strip()
            table.add_row(str(i), msg.role.value, escape(content[:500]))

        self.console.print(table)

    def format_config(self, config: dict[str, Any]) -> None:
        self.console.print(Syntax(json.dumps(config, indent=2), "json", theme="monokai"))
