"""
huddle CLI.

Commands:
    huddle serve                 Run the HTTP API (uvicorn)
    huddle agents [--team ID]    List agents, or one team's specialist catalog
    huddle ask "question"        Run one chat turn and stream it to the terminal
"""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .agents import AgentNotFoundError, AgentRegistry, LLMAgentRunner, TeamResolutionError
from .llm import create_client
from .messages import ROLE_USER, ChatMessage
from .orchestration import (
    MODE_ALL,
    MODE_SPECIFIC,
    ChatOrchestrator,
    ChatTurnRequest,
    ConsultConfig,
    ConsultingStatus,
    Phase,
)
from .security import ValidationError

app = typer.Typer(help="Team-lead chat that privately consults specialist agents")
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# SERVE
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Reload on code changes (development)"),
):
    """Run the HTTP API."""
    import uvicorn

    console.print(f"\n[bold blue]huddle serve[/bold blue] http://{host}:{port}/docs\n")
    uvicorn.run(
        "huddle.api.gateway:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# =============================================================================
# AGENTS
# =============================================================================


@app.command()
def agents(
    team: str = typer.Option(None, help="Show this team's specialist catalog"),
    registry_path: Path = typer.Option(None, help="Registry JSON file"),
):
    """List agents, or the specialists one team may consult."""
    registry = AgentRegistry(persist_path=registry_path)

    if team:
        try:
            roster = registry.resolve_team(team)
        except TeamResolutionError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(1)
        table = Table(title=f"Team {team} (lead: {roster.lead.id})")
        table.add_column("Specialist", style="bold")
        table.add_column("Description")
        for descriptor in roster.catalog:
            table.add_row(descriptor.id, descriptor.description)
        console.print(table)
        return

    table = Table(title="Agents")
    table.add_column("ID", style="bold")
    table.add_column("Type")
    table.add_column("Tools")
    table.add_column("Memories", justify="right")
    for info in registry.list_info():
        label = info["id"] + (" [dim](built-in)[/dim]" if info["builtin"] else "")
        table.add_row(
            label,
            info["agent_type"],
            ", ".join(info["tools"]) or "-",
            str(info["memory_count"]),
        )
    console.print(table)


# =============================================================================
# ASK
# =============================================================================


async def _ask(orchestrator: ChatOrchestrator, request: ChatTurnRequest, as_json: bool) -> int:
    exit_code = 0
    async for event in orchestrator.stream_chat(request):
        if as_json:
            console.print_json(json.dumps(event.to_wire()))
            continue
        if event.error:
            console.print(f"\n[bold red]Error:[/bold red] {event.error}")
            exit_code = 1
        elif event.phase == Phase.PLANNING.value:
            console.print(f"[bold blue]{event.author}[/bold blue] {event.plan_text}")
        elif event.phase == Phase.CONSULTING.value:
            mark = "..." if event.consulting_status == ConsultingStatus.STARTED.value else "done"
            console.print(f"  [dim]consulting {event.consulting_agent} {mark}[/dim]")
        elif event.phase == Phase.ANSWERING.value:
            console.print(event.content, end="", markup=False, highlight=False)
        elif event.is_final:
            console.print()
    return exit_code


@app.command()
def ask(
    question: str = typer.Argument(..., help="Your message"),
    team: str = typer.Option(None, help="Team to consult (default team if omitted)"),
    agent: str = typer.Option(None, help="Talk to this agent directly instead of the team"),
    registry_path: Path = typer.Option(None, help="Registry JSON file"),
    as_json: bool = typer.Option(False, "--json", help="Print raw stream frames"),
):
    """Run one chat turn and stream it."""
    try:
        runner = LLMAgentRunner(create_client())
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] could not create LLM client: {e}")
        raise typer.Exit(1)

    orchestrator = ChatOrchestrator(
        runner,
        AgentRegistry(persist_path=registry_path),
        config=ConsultConfig.from_env(),
    )
    request = ChatTurnRequest(
        messages=[ChatMessage(role=ROLE_USER, content=question)],
        agent_mode=MODE_SPECIFIC if agent else MODE_ALL,
        selected_agent_id=agent,
        team_id=team,
    )

    try:
        exit_code = asyncio.run(_ask(orchestrator, request, as_json))
    except (ValidationError, AgentNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
