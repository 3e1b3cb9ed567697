"""Audit agent CLI: run the action locally, check character files, chat with a persona."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from auditor.agents import start_agent
from auditor.characters import get_learning_audit_master, load_characters
from auditor.core.config import settings
from auditor.direct_client import DirectClient
from auditor.main import main as run_main
from auditor.main import provider_api_keys, provider_models
from auditor.models.schemas import ModelProviderName

app = typer.Typer(help="Sui Move audit agent: run the action, validate characters, chat locally.")

console = Console()


@app.command("run")
def run():
    """Run the action once, configured from the environment."""
    run_main()


@app.command("validate")
def validate(
    paths: str = typer.Argument(..., help="Comma-separated character JSON files"),
    provider: ModelProviderName = typer.Option(ModelProviderName.OPENAI, "--provider", "-p"),
):
    """Load character files and list the ones that pass validation."""
    characters = load_characters(paths, provider)
    if not characters:
        console.print("[red]No valid characters found.[/red]")
        raise typer.Exit(1)

    table = Table(title="Characters")
    table.add_column("Name", style="cyan bold")
    table.add_column("Provider")
    table.add_column("Examples", justify="right")
    table.add_column("Topics")

    for c in characters:
        table.add_row(
            c.name,
            c.model_provider.value,
            str(len(c.message_examples)),
            ", ".join(c.topics[:3]) or "[dim]none[/dim]",
        )

    console.print(table)


async def _chat_session(provider: ModelProviderName, data_dir: Path) -> None:
    direct_client = DirectClient()
    try:
        runtime = await start_agent(
            get_learning_audit_master(provider),
            direct_client,
            provider_api_keys(settings),
            data_dir,
            models=provider_models(settings),
        )
        console.print(f"[green]Chatting with {runtime.character.name}[/green] (type 'exit' to quit)")

        while True:
            message = await asyncio.to_thread(console.input, "[bold cyan]you>[/bold cyan] ")
            if message.strip().lower() in ("exit", "quit"):
                return
            if not message.strip():
                continue

            reply = await direct_client.comment(message)
            if reply is None:
                console.print("[red]No reply generated.[/red]")
                continue
            console.print(Markdown(reply))
    finally:
        await direct_client.stop()


@app.command("chat")
def chat(
    provider: ModelProviderName = typer.Option(ModelProviderName.OPENAI, "--provider", "-p"),
    data_dir: Path = typer.Option(Path("./"), "--data-dir", help="Directory holding db.sqlite"),
):
    """Interactive terminal chat with the learning persona on a local store."""
    try:
        asyncio.run(_chat_session(provider, data_dir))
    except (KeyboardInterrupt, EOFError):
        console.print()
    except Exception as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
