#!/usr/bin/env python3
"""
Design Agents CLI.

Commands:
- route: Show which agent a message goes to (local rules, then the model)
- models: List registered image/video models
- agents: List the agent roster
- chat: Start the interactive chat

Usage:
    design-agents route "帮我做一张咖啡品牌海报"
    design-agents route "把背景换成白色" --local-only
    design-agents models
    design-agents chat --title "Coffee Launch"
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import click

from design_agents.agents import list_agent_infos
from design_agents.models import ProjectContext
from design_agents.providers import get_available_image_models, get_available_video_models
from design_agents.shell.local_router import local_pre_route
from design_agents.shell.orchestrator import route_to_agent


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def cli(verbose: bool):
    """Design Agents CLI - routing and generation pipeline tools."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command("route")
@click.argument("message")
@click.option("--local-only", is_flag=True, help="Only run the local keyword router")
@click.option("--title", default="", help="Project title passed to the model router")
def route(message: str, local_only: bool, title: str):
    """Print the routing decision for MESSAGE."""
    if local_only:
        agent = local_pre_route(message)
        click.echo(agent.value if agent else "(deferred)")
        return

    context = ProjectContext(project_id="cli", project_title=title)
    decision = asyncio.run(route_to_agent(message, context))
    if decision is None:
        click.echo("(no decision, caller default applies)")
        return
    click.echo(json.dumps(decision.to_dict(), ensure_ascii=False, indent=2))


@cli.command("models")
def models():
    """List available generation models."""
    click.echo("Image models:")
    for name in get_available_image_models():
        click.echo(f"  {name}")
    click.echo("Video models:")
    for name in get_available_video_models():
        click.echo(f"  {name}")


@cli.command("agents")
def agents():
    """List the agent roster."""
    for info in list_agent_infos():
        click.echo(f"{info.avatar} {info.id.value:<9} {info.name:<9} {info.description}")


@cli.command("chat")
@click.option("--title", default=None, help="Project title")
@click.option("--output-dir", default="./outputs", help="Where generated files are saved")
def chat(title: Optional[str], output_dir: str):
    """Start the interactive chat."""
    from design_agents.interactive_chat import main

    main(project_title=title, output_dir=output_dir)


if __name__ == "__main__":
    cli()
