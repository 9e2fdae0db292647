"""UI-side collaborators the session reports to.

Both default to no-ops so the pipeline runs headless.
"""

from __future__ import annotations

from typing import List

from design_agents.models import AgentType, GeneratedAsset, Proposal, Task


class CanvasCollaborator:
    """Places generated assets on the project canvas."""

    def add_assets(self, assets: List[GeneratedAsset]) -> None:
        pass


class ChatCollaborator:
    """Shows task progress and agent replies in the conversation."""

    def on_task_update(self, task: Task) -> None:
        pass

    def post_message(self, agent_id: AgentType, message: str, proposals: List[Proposal]) -> None:
        pass
