"""
API Router - Agent selection with local-first, model fallback.

Design principles:
- Local keyword router first; a hit never touches the network
- Classification model only for edits, chit-chat and unmatched requests
- Every model attempt raced against a timeout and retried with backoff
- "clarify" / "respond" actions fold into a route to the general agent
- Low confidence never fails routing: it adds fallback options
- None only when the local router deferred and the model path failed;
  callers pick their own default agent
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from design_agents.agents.planning import extract_first_json_object
from design_agents.agents.prompts import ROUTING_SYSTEM_PROMPT
from design_agents.config import (
    LOCAL_ROUTE_CONFIDENCE,
    ROUTE_CONFIDENCE_THRESHOLD,
    ROUTE_FALLBACK_AGENT,
    ROUTE_HISTORY_TURNS,
    ROUTE_MAX_RETRIES,
    ROUTE_RETRY_DELAY_SECS,
    ROUTE_TIMEOUT_SECS,
    ROUTER_MODEL,
    ROUTER_TEMPERATURE,
)
from design_agents.errors import ErrorKind, error_handler
from design_agents.libs.genai_client import generate_json_text
from design_agents.models import AgentType, ProjectContext, RoutingDecision
from design_agents.shell.local_router import is_vague_request, local_pre_route

logger = logging.getLogger(__name__)

ClassifierFn = Callable[[str], Awaitable[str]]

DEFAULT_HANDOFF = "正在处理您的请求..."
DEFAULT_ROUTE_CONFIDENCE = 0.8


@dataclass
class RouteConfig:
    max_retries: int = ROUTE_MAX_RETRIES
    timeout: float = ROUTE_TIMEOUT_SECS  # seconds, per attempt
    retry_delay: float = ROUTE_RETRY_DELAY_SECS
    confidence_threshold: float = ROUTE_CONFIDENCE_THRESHOLD
    fallback_agent: AgentType = field(default_factory=lambda: AgentType.parse(ROUTE_FALLBACK_AGENT) or AgentType.COCO)
    # Receives "clarify" and "respond" actions
    general_agent: AgentType = AgentType.COCO
    history_turns: int = ROUTE_HISTORY_TURNS


class UnusableRoutingResponse(ValueError):
    """Model answered, but not with a usable routing action."""


async def call_routing_model(prompt: str) -> str:
    return await generate_json_text(ROUTER_MODEL, [prompt], temperature=ROUTER_TEMPERATURE)


def build_routing_prompt(message: str, context: Optional[ProjectContext], history_turns: int) -> str:
    sections = [ROUTING_SYSTEM_PROMPT]
    if context:
        project = [f"Title: {context.project_title or 'Untitled'}"]
        if context.brand_info and context.brand_info.name:
            project.append(f"Brand: {context.brand_info.name}")
        sections.append("# Project\n" + "\n".join(project))
        history = context.recent_history(history_turns)
        if history:
            sections.append("# Recent Conversation\n" + "\n".join(f"{m.role}: {m.text}" for m in history))
    sections.append(f"# User Message\n{message}")
    return "\n\n".join(sections)


def _confidence(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return DEFAULT_ROUTE_CONFIDENCE


def parse_routing_response(text: str, config: RouteConfig) -> RoutingDecision:
    """Decision from model JSON. Raises UnusableRoutingResponse for anything else."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        span = extract_first_json_object(text or "")
        data = json.loads(span) if span else None
    if not isinstance(data, dict):
        raise UnusableRoutingResponse(f"Unusable routing response: {str(text)[:80]}")

    action = data.get("action")
    if action == "route":
        agent = AgentType.parse(data.get("targetAgent"))
        if agent is None:
            raise UnusableRoutingResponse(f"Unusable routing response: targetAgent={data.get('targetAgent')!r}")
        complexity = data.get("complexity")
        return RoutingDecision(
            target_agent=agent,
            task_type=str(data.get("taskType") or "general"),
            complexity=complexity if complexity in ("simple", "complex") else "simple",
            handoff_message=str(data.get("handoffMessage") or DEFAULT_HANDOFF),
            confidence=_confidence(data.get("confidence", DEFAULT_ROUTE_CONFIDENCE)),
            source="api",
            estimated_duration=data.get("estimatedDuration"),
            required_skills=[s for s in data.get("requiredSkills") or [] if isinstance(s, str)],
        )

    if action == "clarify":
        questions = [str(q) for q in data.get("questions") or [] if q]
        suggestions = [str(s) for s in data.get("suggestions") or [] if s]
        handoff = "\n".join(questions + suggestions) or DEFAULT_HANDOFF
        return RoutingDecision(
            target_agent=config.general_agent,
            task_type="clarify",
            handoff_message=handoff,
            confidence=_confidence(data.get("confidence", DEFAULT_ROUTE_CONFIDENCE)),
            source="api",
        )

    if action == "respond":
        return RoutingDecision(
            target_agent=config.general_agent,
            task_type="respond",
            handoff_message=str(data.get("message") or DEFAULT_HANDOFF),
            confidence=_confidence(data.get("confidence", DEFAULT_ROUTE_CONFIDENCE)),
            source="api",
        )

    raise UnusableRoutingResponse(f"Unusable routing response: action={action!r}")


async def route_to_agent(
    message: str,
    context: Optional[ProjectContext],
    config: Optional[RouteConfig] = None,
    classifier: Optional[ClassifierFn] = None,
) -> Optional[RoutingDecision]:
    """
    Main entry point for agent selection.
    Local rules first, then the classification model. Never raises.
    """
    config = config or RouteConfig()

    local = local_pre_route(message)
    if local is not None:
        return RoutingDecision(
            target_agent=local,
            task_type="local-routed",
            complexity="simple",
            handoff_message=DEFAULT_HANDOFF,
            confidence=LOCAL_ROUTE_CONFIDENCE,
            source="local",
        )

    if not message or not message.strip():
        return None
    if is_vague_request(message):
        logger.info("Vague request, deferring to model router: %s", message[:50])

    classify = classifier or call_routing_model
    prompt = build_routing_prompt(message, context, config.history_turns)
    log_context: Dict[str, Any] = {"stage": "routing", "message": message[:50]}

    async def attempt() -> RoutingDecision:
        text = await asyncio.wait_for(classify(prompt), timeout=config.timeout)
        try:
            return parse_routing_response(text, config)
        except (UnusableRoutingResponse, json.JSONDecodeError) as e:
            raise error_handler.create_error(
                ErrorKind.GENERIC_API, "路由响应无法解析", original_error=e, context=log_context, retryable=True,
            ) from e

    try:
        decision = await error_handler.with_retry(
            attempt,
            max_retries=config.max_retries,
            delay=config.retry_delay,
            backoff=True,
            context=log_context,
        )
    except Exception as e:
        app_error = error_handler.classify(e, log_context)
        logger.warning("API routing failed (%s): %s", app_error.kind.value, app_error.message)
        return None

    if decision.confidence < config.confidence_threshold:
        logger.warning("Low routing confidence %.2f for %s, adding fallback %s",
                       decision.confidence, decision.target_agent.value, config.fallback_agent.value)
        decision.fallback_options = [config.fallback_agent]

    logger.info("API ROUTE: '%s' → %s", message[:50], decision.to_context_string())
    return decision
