"""Request-handling layer: local router, API router, orchestration session."""

from design_agents.shell.collaborators import CanvasCollaborator, ChatCollaborator
from design_agents.shell.local_router import (
    is_chat_message,
    is_edit_request,
    is_vague_request,
    local_pre_route,
)
from design_agents.shell.orchestrator import RouteConfig, route_to_agent
from design_agents.shell.session import OrchestrationSession

__all__ = [
    "CanvasCollaborator",
    "ChatCollaborator",
    "OrchestrationSession",
    "RouteConfig",
    "is_chat_message",
    "is_edit_request",
    "is_vague_request",
    "local_pre_route",
    "route_to_agent",
]
