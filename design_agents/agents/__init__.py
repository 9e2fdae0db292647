"""
Agent registry.

One DesignAgent instance per AgentType, created on first use so the
per-agent caches live for the lifetime of the process.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from design_agents.agents.base_agent import (
    DesignAgent,
    ExecutionConfig,
    PlannerFn,
    SkillExecutor,
    StatusCallback,
)
from design_agents.agents.prompts import AGENT_INFOS, PREFERRED_SKILLS, SYSTEM_PROMPTS
from design_agents.errors import ErrorKind, error_handler
from design_agents.models import AgentInfo, AgentType, Task

logger = logging.getLogger(__name__)

AGENT_REGISTRY: Dict[AgentType, DesignAgent] = {}


def create_agent(
    agent_id: AgentType,
    planner: Optional[PlannerFn] = None,
    skill_executor: Optional[SkillExecutor] = None,
) -> DesignAgent:
    return DesignAgent(
        agent_id,
        SYSTEM_PROMPTS[agent_id],
        PREFERRED_SKILLS[agent_id],
        planner=planner,
        skill_executor=skill_executor,
    )


def get_agent(agent_id: Any) -> DesignAgent:
    """Registered agent for an id (case-insensitive). Raises AppError(VALIDATION) for unknown ids."""
    agent_type = AgentType.parse(agent_id)
    if agent_type is None:
        raise error_handler.create_error(ErrorKind.VALIDATION, f"未知的智能体: {agent_id}", retryable=False)
    if agent_type not in AGENT_REGISTRY:
        AGENT_REGISTRY[agent_type] = create_agent(agent_type)
    return AGENT_REGISTRY[agent_type]


def register_agent(agent: DesignAgent) -> None:
    AGENT_REGISTRY[agent.agent_id] = agent


def get_agent_info(agent_id: Any) -> Optional[AgentInfo]:
    agent_type = AgentType.parse(agent_id)
    return AGENT_INFOS.get(agent_type) if agent_type else None


def list_agent_infos() -> List[AgentInfo]:
    return [AGENT_INFOS[a] for a in AgentType]


async def execute_agent_task(
    agent_id: Any,
    task: Task,
    config: Optional[ExecutionConfig] = None,
    on_status: Optional[StatusCallback] = None,
) -> Task:
    return await get_agent(agent_id).execute(task, config, on_status)


def reset_agents() -> None:
    """Clear every agent cache and drop registered instances."""
    for agent in AGENT_REGISTRY.values():
        agent.reset()
    AGENT_REGISTRY.clear()


__all__ = [
    "AGENT_REGISTRY",
    "DesignAgent",
    "ExecutionConfig",
    "create_agent",
    "execute_agent_task",
    "get_agent",
    "get_agent_info",
    "list_agent_infos",
    "register_agent",
    "reset_agents",
]
