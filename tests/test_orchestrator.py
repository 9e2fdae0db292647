"""
API router tests: local-first routing, model classification, retries.

Usage:
    python -m pytest tests/test_orchestrator.py -v
"""

from __future__ import annotations

import asyncio
import json

import pytest

from design_agents.errors import AppError, ErrorKind
from design_agents.models import AgentType, BrandInfo, ChatMessage, ProjectContext
from design_agents.shell.orchestrator import (
    DEFAULT_HANDOFF,
    RouteConfig,
    UnusableRoutingResponse,
    build_routing_prompt,
    parse_routing_response,
    route_to_agent,
)


class FakeClassifier:
    """Routing model double: queued responses, the last one repeats."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response, ensure_ascii=False)
        return response


def _fast(**overrides) -> RouteConfig:
    settings = dict(max_retries=2, timeout=1, retry_delay=0)
    settings.update(overrides)
    return RouteConfig(**settings)


def _route(agent, confidence=0.9, **extra):
    return dict({"action": "route", "targetAgent": agent, "taskType": "design", "complexity": "simple",
                 "handoffMessage": "交给专家", "confidence": confidence}, **extra)


# ============================================================================
# 1. LOCAL FIRST
# ============================================================================

class TestLocalFirst:

    @pytest.mark.asyncio
    async def test_local_hit_skips_model(self, project_context):
        classifier = FakeClassifier(_route("vireo"))

        decision = await route_to_agent("帮我做一张咖啡品牌海报", project_context, _fast(), classifier)

        assert decision.target_agent == AgentType.POSTER
        assert decision.source == "local"
        assert decision.task_type == "local-routed"
        assert decision.confidence == 0.7
        assert decision.handoff_message == DEFAULT_HANDOFF
        assert classifier.prompts == []

    @pytest.mark.asyncio
    async def test_edit_request_goes_to_model(self, project_context):
        classifier = FakeClassifier(_route("poster", taskType="edit"))

        decision = await route_to_agent("把背景换成白色", project_context, _fast(), classifier)

        assert decision.target_agent == AgentType.POSTER
        assert decision.source == "api"
        assert decision.task_type == "edit"
        assert len(classifier.prompts) == 1

    @pytest.mark.asyncio
    async def test_empty_message(self, project_context):
        classifier = FakeClassifier(_route("poster"))
        assert await route_to_agent("  ", project_context, _fast(), classifier) is None
        assert classifier.prompts == []


# ============================================================================
# 2. RESPONSE PARSING
# ============================================================================

class TestParseRoutingResponse:

    def test_route(self):
        decision = parse_routing_response(
            json.dumps(_route("Vireo", requiredSkills=["generateImage", 3], estimatedDuration=30)), RouteConfig(),
        )
        assert decision.target_agent == AgentType.VIREO
        assert decision.task_type == "design"
        assert decision.handoff_message == "交给专家"
        assert decision.required_skills == ["generateImage"]
        assert decision.estimated_duration == 30

    def test_route_defaults(self):
        decision = parse_routing_response('{"action": "route", "targetAgent": "motion"}', RouteConfig())
        assert decision.confidence == 0.8
        assert decision.handoff_message == DEFAULT_HANDOFF
        assert decision.complexity == "simple"

    def test_confidence_clamped(self):
        decision = parse_routing_response(json.dumps(_route("poster", confidence=7)), RouteConfig())
        assert decision.confidence == 1.0

    def test_clarify_folds_to_general_agent(self):
        text = json.dumps({"action": "clarify", "questions": ["什么产品？"], "suggestions": ["比如咖啡杯"]})
        decision = parse_routing_response(text, RouteConfig())
        assert decision.target_agent == AgentType.COCO
        assert decision.task_type == "clarify"
        assert decision.handoff_message == "什么产品？\n比如咖啡杯"

    def test_respond_folds_to_general_agent(self):
        decision = parse_routing_response('{"action": "respond", "message": "你好！"}', RouteConfig())
        assert decision.target_agent == AgentType.COCO
        assert decision.task_type == "respond"
        assert decision.handoff_message == "你好！"

    def test_json_wrapped_in_prose(self):
        decision = parse_routing_response('Sure: {"action": "route", "targetAgent": "package"} ok', RouteConfig())
        assert decision.target_agent == AgentType.PACKAGE

    @pytest.mark.parametrize("text", [
        "not json",
        '{"action": "route", "targetAgent": "picasso"}',
        '{"action": "dance"}',
        "[1, 2]",
    ])
    def test_unusable(self, text):
        with pytest.raises(UnusableRoutingResponse):
            parse_routing_response(text, RouteConfig())


# ============================================================================
# 3. MODEL PATH
# ============================================================================

class TestModelRouting:

    @pytest.mark.asyncio
    async def test_low_confidence_adds_fallback(self, project_context):
        classifier = FakeClassifier(_route("cameron", confidence=0.3))

        decision = await route_to_agent("remove the logo", project_context, _fast(), classifier)

        assert decision.target_agent == AgentType.CAMERON
        assert decision.fallback_options == [AgentType.COCO]

    @pytest.mark.asyncio
    async def test_confident_decision_has_no_fallback(self, project_context):
        decision = await route_to_agent("remove the logo", project_context, _fast(),
                                        FakeClassifier(_route("poster", confidence=0.9)))
        assert decision.fallback_options == []

    @pytest.mark.asyncio
    async def test_custom_fallback_agent(self, project_context):
        decision = await route_to_agent("remove the logo", project_context,
                                        _fast(fallback_agent=AgentType.POSTER),
                                        FakeClassifier(_route("cameron", confidence=0.1)))
        assert decision.fallback_options == [AgentType.POSTER]

    @pytest.mark.asyncio
    async def test_garbage_retried_then_none(self, project_context):
        classifier = FakeClassifier("I think Vireo?")

        decision = await route_to_agent("你好", project_context, _fast(max_retries=2), classifier)

        assert decision is None
        assert len(classifier.prompts) == 3

    @pytest.mark.asyncio
    async def test_garbage_then_valid(self, project_context):
        classifier = FakeClassifier("???", _route("coco"))
        decision = await route_to_agent("你好", project_context, _fast(), classifier)
        assert decision.target_agent == AgentType.COCO
        assert len(classifier.prompts) == 2

    @pytest.mark.asyncio
    async def test_timeout_then_none(self, project_context):
        calls = []

        async def hanging(prompt):
            calls.append(prompt)
            await asyncio.sleep(1)
            return json.dumps(_route("poster"))

        decision = await route_to_agent("你好", project_context, _fast(timeout=0.05, max_retries=1), hanging)

        assert decision is None
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_api_key_returns_none(self, project_context):
        assert await route_to_agent("你好", project_context, _fast()) is None

    @pytest.mark.asyncio
    async def test_non_retryable_failure_single_attempt(self, project_context):
        classifier = FakeClassifier(AppError(ErrorKind.QUOTA_EXCEEDED, "quota"))
        assert await route_to_agent("你好", project_context, _fast(), classifier) is None
        assert len(classifier.prompts) == 1


# ============================================================================
# 4. PROMPT
# ============================================================================

class TestRoutingPrompt:

    def test_prompt_includes_project_and_recent_turns(self):
        context = ProjectContext(
            project_id="p",
            project_title="Tea Shop",
            brand_info=BrandInfo(name="Leaf"),
            conversation_history=[ChatMessage("user", f"turn {i}") for i in range(8)],
        )
        prompt = build_routing_prompt("换个颜色", context, history_turns=5)

        assert "Title: Tea Shop" in prompt
        assert "Brand: Leaf" in prompt
        assert "user: turn 3" in prompt
        assert "user: turn 2" not in prompt
        assert prompt.endswith("# User Message\n换个颜色")

    def test_prompt_without_context(self):
        prompt = build_routing_prompt("hi", None, history_turns=5)
        assert "# Project" not in prompt
        assert prompt.endswith("# User Message\nhi")
