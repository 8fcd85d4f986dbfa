"""Interactive chat session handler."""

from __future__ import annotations

import asyncio

from rich.console import Console

from ollie.cli.output import OutputFormatter
from ollie.errors import OllieError
from ollie.session.session import Session


class ChatHandler:
    """
    Manages the interactive chat loop.

    Handles streaming output and inline commands.  Tool calls proposed by
    the model are displayed, not executed.
    """

    def __init__(
        self,
        session: Session,
        console: Console | None = None,
        show_stats: bool = False,
    ) -> None:
        self.session = session
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self.show_stats = show_stats
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/history":
            self.formatter.format_transcript(self.session.transcript)
            return True

        if cmd == "/system":
            if not arg:
                self.console.print("  [red]Usage:[/red] /system <text>")
            else:
                self.session.append_system(arg)
                self.console.print("  [dim]System message added.[/dim]")
            return True

        if cmd == "/retry":
            await self.run_turn()
            return True

        if cmd == "/stats":
            self.show_stats = not self.show_stats
            state = "on" if self.show_stats else "off"
            self.console.print(f"  [dim]Stats {state}.[/dim]")
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /quit     - Exit the chat\n"
                "  /history  - Show the transcript\n"
                "  /system   - Add a system message\n"
                "  /retry    - Re-send the transcript (after a failed turn)\n"
                "  /stats    - Toggle token statistics\n"
                "  /help     - Show this help\n"
            )
            return True

        return False

    async def run_turn(self) -> None:
        """Run one ``update`` and stream the reply to the console."""
        self.console.print("[dim]assistant>[/dim] ", end="")
        try:
            reply = await self.session.update(self.formatter.stream_delta)
        except OllieError as e:
            self.console.print(f"\n[red]Error ({e.code}):[/red] {e}")
            self.console.print("[dim]Nothing was recorded; /retry to send again.[/dim]")
            return

        # Newline after streaming
        self.console.print()
        if reply.tool_calls:
            self.formatter.format_tool_calls(reply.tool_calls)
        if self.show_stats:
            self.formatter.format_usage(reply)

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            f"[bold]ollie[/bold] - chatting with [cyan]{self.session.model}[/cyan] "
            f"at {self.session.endpoint}\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        while self._running:
            try:
                user_input = await asyncio.get_running_loop().run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            self.session.append_user(user_input)
            await self.run_turn()
