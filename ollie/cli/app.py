"""
Main CLI application for ollie.

Usage:
    ollie chat [--model NAME] [--provider NAME] [--endpoint URL] [--profile NAME]
    ollie generate PROMPT [--model NAME] [--system TEXT]
    ollie models
    ollie config show|validate
    ollie version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ollie import __version__
from ollie.config import OllieConfig, load_config
from ollie.errors import OllieError

app = typer.Typer(name="ollie", help="ollie - streaming chat with model servers")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "ollie.yaml",
        Path.cwd() / "ollie.yml",
        Path.home() / ".config" / "ollie" / "config.yaml",
        Path.home() / ".ollie" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _load(
    profile: str | None = None,
    provider: str | None = None,
    model: str | None = None,
    endpoint: str | None = None,
) -> OllieConfig:
    return load_config(
        _get_config_path(),
        profile=profile,
        cli_overrides={
            "provider.name": provider,
            "provider.model": model,
            "provider.endpoint": endpoint,
        },
    )


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    model: Optional[str] = typer.Option(None, help="Model name"),
    provider: Optional[str] = typer.Option(None, help="Provider: ollama, openai, gemini"),
    endpoint: Optional[str] = typer.Option(None, help="Server endpoint URL"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    system: Optional[str] = typer.Option(None, help="System prompt"),
    stats: bool = typer.Option(False, help="Show token statistics after each reply"),
):
    """Start an interactive chat session."""
    from ollie.cli.chat import ChatHandler
    from ollie.llm.client import Client
    from ollie.session.session import Session

    cfg = _load(profile, provider, model, endpoint)

    async def _run():
        async with Client.from_config(cfg) as client:
            session = Session(client, system=system or cfg.session.system_prompt or None)
            handler = ChatHandler(session, console=console, show_stats=stats)
            await handler.run_loop()

    asyncio.run(_run())


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="Prompt text"),
    model: Optional[str] = typer.Option(None, help="Model name"),
    provider: Optional[str] = typer.Option(None, help="Provider: ollama, openai, gemini"),
    endpoint: Optional[str] = typer.Option(None, help="Server endpoint URL"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    system: Optional[str] = typer.Option(None, help="System prompt"),
    stats: bool = typer.Option(False, help="Show token statistics"),
):
    """Single-shot generation, streamed to stdout."""
    from ollie.cli.output import OutputFormatter
    from ollie.llm.client import Client

    cfg = _load(profile, provider, model, endpoint)
    formatter = OutputFormatter(console)

    async def _run():
        async with Client.from_config(cfg) as client:
            return await client.generate(prompt, formatter.stream_delta, system=system)

    try:
        reply = asyncio.run(_run())
    except OllieError as e:
        console.print(f"\n[red]Error ({e.code}):[/red] {e}")
        raise typer.Exit(1)

    console.print()
    if stats:
        formatter.format_usage(reply)


@app.command()
def models(
    provider: Optional[str] = typer.Option(None, help="Provider: ollama, openai, gemini"),
    endpoint: Optional[str] = typer.Option(None, help="Server endpoint URL"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
):
    """List models available on the server."""
    from ollie.cli.output import OutputFormatter
    from ollie.llm.client import Client

    cfg = _load(profile, provider, None, endpoint)

    async def _run():
        async with Client.from_config(cfg) as client:
            return await client.list_models()

    try:
        names = asyncio.run(_run())
    except OllieError as e:
        console.print(f"[red]Error ({e.code}):[/red] {e}")
        raise typer.Exit(1)

    OutputFormatter(console).format_model_list(names)


@config_app.command("show")
def config_show():
    """Show effective config."""
    from ollie.cli.output import OutputFormatter

    cfg = load_config(_get_config_path())
    formatter = OutputFormatter(console)
    formatter.format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show any type issues."""
    from ollie.llm.providers import PROVIDERS

    config_path = _get_config_path()
    try:
        cfg = load_config(config_path)
        if cfg.provider.name not in PROVIDERS:
            raise ValueError(f"Unknown provider {cfg.provider.name!r}")
        console.print("[green]Config is valid.[/green]")
        if config_path:
            console.print(f"  Loaded from: {config_path}")
        else:
            console.print("  [dim]No config file found, using defaults.[/dim]")
        console.print(f"  Provider: {cfg.provider.name} ({cfg.provider.model})")
        console.print(f"  Endpoint: {cfg.provider.endpoint or '(provider default)'}")
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print(f"ollie v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
