#!/usr/bin/env python3
"""
Interactive chat with the design agents.

Runs an OrchestrationSession against the configured Gemini key. Generated
assets are saved to disk instead of a canvas.

Commands:
    exit                - quit
    clear               - clear screen
    info                - session info
    attach <path>       - attach a file to the next message
    pick <proposal_id>  - execute a proposal from the last reply
    reset               - clear conversation and current task
"""

import asyncio
import base64
import logging
import uuid
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from design_agents.agents import get_agent_info
from design_agents.models import AgentType, Attachment, GeneratedAsset, ProjectContext, Proposal, Task
from design_agents.shell.collaborators import CanvasCollaborator, ChatCollaborator
from design_agents.shell.session import OrchestrationSession

console = Console()
logger = logging.getLogger(__name__)


class ConsoleCanvas(CanvasCollaborator):
    """Writes data-URL assets into an output directory, prints remote URLs."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def add_assets(self, assets: List[GeneratedAsset]) -> None:
        for asset in assets:
            if asset.url.startswith("data:"):
                header, encoded = asset.url.split(",", 1)
                ext = header.split(";")[0].split("/")[-1] or "bin"
                self.output_dir.mkdir(parents=True, exist_ok=True)
                path = self.output_dir / f"{asset.id}.{ext}"
                path.write_bytes(base64.b64decode(encoded))
                console.print(f"[green]Saved {asset.type.value}:[/green] {path}")
            else:
                console.print(f"[green]{asset.type.value}:[/green] {asset.url}")


class ConsoleChat(ChatCollaborator):
    def on_task_update(self, task: Task) -> None:
        console.print(f"[dim]{task.agent_id.value} · {task.status.value}[/dim]")

    def post_message(self, agent_id: AgentType, message: str, proposals: List[Proposal]) -> None:
        info = get_agent_info(agent_id)
        name = f"{info.avatar} {info.name}" if info else agent_id.value
        console.print(f"\n[blue]{name}:[/blue] {message}")
        if proposals:
            table = Table(title="Proposals")
            table.add_column("ID", style="cyan")
            table.add_column("Title", style="white")
            table.add_column("Result", style="green")
            for proposal in proposals:
                status = "generated" if proposal.generated_url else ("-" if not proposal.skill_calls else "no output")
                table.add_row(proposal.id, proposal.title, status)
            console.print(table)
        console.print()


async def chat_session(project_title: str, output_dir: Path) -> None:
    context = ProjectContext(project_id=f"local-{uuid.uuid4().hex[:8]}", project_title=project_title)
    session = OrchestrationSession(context, canvas=ConsoleCanvas(output_dir), chat=ConsoleChat())
    pending: List[Attachment] = []

    console.print(Panel(f"🎨 Project: {project_title}", style="bold green"))
    console.print("Commands: 'exit', 'clear', 'info', 'attach <path>', 'pick <id>', 'reset'\n")

    while True:
        try:
            message = Prompt.ask("[green]You[/green]")
            command = message.strip().lower()

            if command == "exit":
                break
            if command == "clear":
                console.clear()
                continue
            if command == "info":
                table = Table(title="Session Information")
                table.add_column("Field", style="cyan")
                table.add_column("Value", style="white")
                table.add_row("Project ID", context.project_id)
                table.add_row("Turns", str(len(session.history)))
                current = session.current_task
                table.add_row("Current Task", f"{current.id} ({current.status.value})" if current else "-")
                table.add_row("Pending Attachments", str(len(pending)))
                console.print(table)
                continue
            if command == "reset":
                session.reset()
                pending.clear()
                console.print("[yellow]Session reset.[/yellow]")
                continue
            if command.startswith("attach "):
                path = Path(message.strip()[7:].strip()).expanduser()
                if not path.is_file():
                    console.print(f"[red]No such file:[/red] {path}")
                    continue
                pending.append(Attachment(name=path.name, path=str(path)))
                console.print(f"[dim]Attached ATTACHMENT_{len(pending) - 1}: {path.name}[/dim]")
                continue
            if command.startswith("pick "):
                proposal_id = message.strip()[5:].strip()
                with console.status("[dim]Generating...[/dim]", spinner="dots"):
                    result = await session.execute_proposal(proposal_id)
                if result is None:
                    console.print(f"[red]No proposal {proposal_id} in the last reply.[/red]")
                continue

            with console.status("[dim]Thinking...[/dim]", spinner="dots"):
                await session.submit(message, attachments=list(pending))
            pending.clear()

        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted. Type 'exit' to quit.[/yellow]\n")
            continue


def main(project_title: Optional[str] = None, output_dir: str = "./outputs") -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    console.print(Panel("🎨 Design Studio Interactive Chat", style="bold magenta"))
    title = project_title or Prompt.ask("Project title", default="Untitled Project")
    asyncio.run(chat_session(title, Path(output_dir)))
    console.print("\n[bold]Goodbye! 👋[/bold]")


if __name__ == "__main__":
    main()
