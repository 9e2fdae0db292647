"""
Design Agent - plan-then-execute state machine shared by every agent.

execute(task):
    pending → analyzing
      validate                 (empty message / missing context → failed, no retry)
      cache lookup             (agent_id, message) → completed, no model calls
      retry(attempt)           (each retry re-plans from scratch)
        plan      → planning model, JSON plan   (within config.timeout)
        repair    → executable proposals
        → executing
        run calls → per-call isolation, soft failures yield no asset
                    (attempt budget grows to config.video_timeout when the
                    plan holds a generateVideo call)
    → completed | failed

INVARIANTS:
- Status only moves forward; every snapshot is a new Task
- Only completed outputs are cached
- A failed skill call never fails the task; once a plan is produced the task
  completes, with fewer assets when calls fail
- Assets come only from succeeded media calls with a non-empty URL

GOTCHAS:
- A timed-out attempt is cancelled; a provider call already in flight may
  still complete server-side, its result is discarded
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from google.genai import types

from design_agents.agents.planning import (
    DEFAULT_ADJUSTMENTS,
    AttachmentResolver,
    build_planning_prompt,
    extract_assets,
    parse_plan_response,
    prepare_skill_call,
    repair_proposals,
)
from design_agents.agents.prompts import AGENT_INFOS, SKILL_CATALOG
from design_agents.config import (
    AGENT_ENABLE_CACHE,
    AGENT_MAX_RETRIES,
    AGENT_RETRY_DELAY_SECS,
    AGENT_TIMEOUT_SECS,
    AGENT_VIDEO_TIMEOUT_SECS,
    PLANNER_MODEL,
    PLANNER_TEMPERATURE,
)
from design_agents.errors import AppError, ErrorKind, error_handler
from design_agents.libs.genai_client import generate_json_text
from design_agents.models import (
    AgentInfo,
    AgentType,
    Attachment,
    GeneratedAsset,
    ProjectContext,
    Proposal,
    SkillCall,
    Task,
    TaskOutput,
    TaskStatus,
)
from design_agents.skills import execute_skill, resolve_skill_name

logger = logging.getLogger(__name__)

PlannerFn = Callable[[str, List[Attachment]], Awaitable[str]]
SkillExecutor = Callable[[str, Dict[str, Any]], Awaitable[Any]]
StatusCallback = Callable[[Task], None]

DEFAULT_PROPOSAL_MESSAGE = "我为您准备了以下方案"
DEFAULT_DONE_MESSAGE = "任务已完成"


@dataclass
class ExecutionConfig:
    max_retries: int = AGENT_MAX_RETRIES
    timeout: float = AGENT_TIMEOUT_SECS  # seconds, per attempt
    video_timeout: float = AGENT_VIDEO_TIMEOUT_SECS  # seconds, per attempt whose plan generates video
    enable_cache: bool = AGENT_ENABLE_CACHE
    retry_delay: float = AGENT_RETRY_DELAY_SECS
    parallel_proposals: bool = False


async def call_planning_model(prompt: str, attachments: List[Attachment]) -> str:
    """Default planner: JSON-mode Gemini call with image attachments inline."""
    contents: List[Any] = [prompt]
    for attachment in attachments:
        if attachment.is_image:
            contents.append(types.Part.from_bytes(data=attachment.read_bytes(), mime_type=attachment.content_type))
    return await generate_json_text(PLANNER_MODEL, contents, temperature=PLANNER_TEMPERATURE)


def brand_context_for(context: Optional[ProjectContext]) -> Optional[Dict[str, Any]]:
    if not context or not context.brand_info:
        return None
    brand = context.brand_info
    if not brand.colors and not brand.style:
        return None
    return {"colors": list(brand.colors), "style": brand.style}


class DesignAgent:
    """One specialist agent. Holds only its result cache."""

    def __init__(
        self,
        agent_id: AgentType,
        system_prompt: str,
        preferred_skills: List[str],
        planner: Optional[PlannerFn] = None,
        skill_executor: Optional[SkillExecutor] = None,
    ):
        self.agent_id = agent_id
        self.system_prompt = system_prompt
        self.preferred_skills = list(preferred_skills)
        self._planner = planner or call_planning_model
        self._skill_executor = skill_executor or execute_skill
        self._cache: Dict[Tuple[str, str], TaskOutput] = {}

    @property
    def info(self) -> AgentInfo:
        return AGENT_INFOS[self.agent_id]

    def reset(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def execute(
        self,
        task: Task,
        config: Optional[ExecutionConfig] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> Task:
        config = config or ExecutionConfig()
        current = self._advance(task, TaskStatus.ANALYZING, on_status)

        validation_error = self._validate(task)
        if validation_error is not None:
            return self._fail(current, validation_error, on_status)

        cache_key = (self.agent_id.value, task.input.message)
        if config.enable_cache and cache_key in self._cache:
            logger.info("Cache hit: agent=%s task=%s", self.agent_id.value, task.id)
            return self._advance(current, TaskStatus.COMPLETED, on_status, output=self._cache[cache_key])

        state = {"task": current}

        async def attempt() -> TaskOutput:
            loop = asyncio.get_running_loop()
            started = loop.time()
            plan, proposals = await asyncio.wait_for(self._plan(state["task"]), timeout=config.timeout)
            remaining = self._attempt_budget(proposals, config) - (loop.time() - started)
            if remaining <= 0:
                raise asyncio.TimeoutError()
            return await asyncio.wait_for(
                self._run_plan(state, plan, proposals, config, on_status), timeout=remaining,
            )

        try:
            output = await error_handler.with_retry(
                attempt,
                max_retries=config.max_retries,
                delay=config.retry_delay,
                backoff=True,
                context={"agent": self.agent_id.value, "task": task.id},
            )
        except Exception as e:
            app_error = error_handler.classify(e, {"agent": self.agent_id.value, "task": task.id})
            logger.error("Task %s failed: agent=%s kind=%s", task.id, self.agent_id.value, app_error.kind.value)
            return self._fail(state["task"], app_error, on_status)

        done = self._advance(state["task"], TaskStatus.COMPLETED, on_status, output=output)
        if config.enable_cache:
            self._cache[cache_key] = output
        logger.info("Task %s completed: agent=%s proposals=%d assets=%d",
                    task.id, self.agent_id.value, len(output.proposals), len(output.assets))
        return done

    async def execute_proposal(
        self,
        proposal: Proposal,
        context: ProjectContext,
        attachments: Optional[List[Attachment]] = None,
        config: Optional[ExecutionConfig] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> Task:
        """Run a previously returned proposal. Proposals without calls are re-planned."""
        message = f"Execute proposal: {proposal.title}"
        if not proposal.skill_calls:
            if proposal.description:
                message = f"{message}. {proposal.description}"
            task = Task.create(self.agent_id, message, context, attachments, {"proposal_id": proposal.id})
            return await self.execute(task, config, on_status)

        task = Task.create(self.agent_id, message, context, attachments, {"proposal_id": proposal.id})
        current = self._advance(task, TaskStatus.ANALYZING, on_status)
        current = self._advance(current, TaskStatus.EXECUTING, on_status)

        resolver = AttachmentResolver(task.input.attachments)
        executed, assets, errors = await self._run_proposal(proposal, resolver, brand_context_for(context))
        if errors:
            logger.warning("Proposal %s: %d of %d calls failed",
                           proposal.id, len(errors), len(executed.skill_calls))

        output = TaskOutput(
            message=f"已完成方案：{proposal.title}",
            proposals=[executed],
            assets=assets,
            skill_calls=list(executed.skill_calls),
            adjustments=list(DEFAULT_ADJUSTMENTS),
        )
        return self._advance(current, TaskStatus.COMPLETED, on_status, output=output)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(task: Task) -> Optional[AppError]:
        if not task.input.message or not task.input.message.strip():
            return error_handler.create_error(ErrorKind.VALIDATION, "任务消息不能为空", retryable=False)
        if task.input.context is None:
            return error_handler.create_error(ErrorKind.VALIDATION, "任务上下文缺失", retryable=False)
        return None

    async def _plan(self, task: Task) -> Tuple[Dict[str, Any], List[Proposal]]:
        prompt = build_planning_prompt(
            self.system_prompt,
            task.input,
            [SKILL_CATALOG[s] for s in self.preferred_skills if s in SKILL_CATALOG],
        )
        raw = await self._planner(prompt, task.input.attachments)
        plan = parse_plan_response(raw)
        return plan, repair_proposals(plan, task.input.message)

    @staticmethod
    def _attempt_budget(proposals: List[Proposal], config: ExecutionConfig) -> float:
        """Seconds one attempt may take; video polling needs far longer than planning."""
        has_video = any(
            resolve_skill_name(call.skill_name) == "generateVideo"
            for p in proposals for call in p.skill_calls
        )
        return max(config.timeout, config.video_timeout) if has_video else config.timeout

    async def _run_plan(
        self,
        state: Dict[str, Task],
        plan: Dict[str, Any],
        proposals: List[Proposal],
        config: ExecutionConfig,
        on_status: Optional[StatusCallback],
    ) -> TaskOutput:
        task = state["task"]
        state["task"] = self._advance(task, TaskStatus.EXECUTING, on_status)

        if not proposals:
            message = plan.get("message") or plan.get("concept") or plan.get("analysis") or DEFAULT_DONE_MESSAGE
            return TaskOutput(message=str(message), analysis=plan.get("analysis"))

        resolver = AttachmentResolver(task.input.attachments)
        brand = brand_context_for(task.input.context)
        if config.parallel_proposals:
            results = await asyncio.gather(*(self._run_proposal(p, resolver, brand) for p in proposals))
        else:
            results = [await self._run_proposal(p, resolver, brand) for p in proposals]

        executed = [r[0] for r in results]
        assets: List[GeneratedAsset] = [a for r in results for a in r[1]]
        errors: List[AppError] = [e for r in results for e in r[2]]
        calls = [c for p in executed for c in p.skill_calls]
        if errors:
            logger.warning("Task %s: %d of %d skill calls failed", task.id, len(errors), len(calls))

        message = plan.get("analysis") or plan.get("message") or DEFAULT_PROPOSAL_MESSAGE
        return TaskOutput(
            message=str(message),
            analysis=plan.get("analysis"),
            proposals=executed,
            assets=assets,
            skill_calls=calls,
            adjustments=list(DEFAULT_ADJUSTMENTS),
        )

    async def _run_proposal(
        self,
        proposal: Proposal,
        resolver: AttachmentResolver,
        brand: Optional[Dict[str, Any]],
    ) -> Tuple[Proposal, List[GeneratedAsset], List[AppError]]:
        calls: List[SkillCall] = []
        errors: List[AppError] = []
        for call in proposal.skill_calls:
            result, error = await self._run_call(call, resolver, brand)
            calls.append(result)
            if error is not None:
                errors.append(error)

        assets = extract_assets(calls, self.agent_id)
        executed = Proposal(
            id=proposal.id,
            title=proposal.title,
            description=proposal.description,
            preview=proposal.preview,
            skill_calls=calls,
            generated_url=assets[0].url if assets else proposal.generated_url,
        )
        return executed, assets, errors

    async def _run_call(
        self,
        call: SkillCall,
        resolver: AttachmentResolver,
        brand: Optional[Dict[str, Any]],
    ) -> Tuple[SkillCall, Optional[AppError]]:
        try:
            prepared = prepare_skill_call(call, resolver, brand)
            result = await self._skill_executor(prepared.skill_name, prepared.params)
        except Exception as e:
            app_error = error_handler.classify(e, {"agent": self.agent_id.value, "skill": call.skill_name})
            logger.warning("Skill %s failed (%s): %s", call.skill_name, app_error.kind.value, app_error.message)
            return SkillCall(call.skill_name, call.params, error=app_error.message, success=False), app_error

        if result is None:
            logger.warning("Skill %s returned no result", prepared.skill_name)
        return SkillCall(prepared.skill_name, prepared.params, result=result, success=True), None

    # ------------------------------------------------------------------
    # Status helpers
    # ------------------------------------------------------------------

    def _advance(
        self,
        task: Task,
        status: TaskStatus,
        on_status: Optional[StatusCallback],
        output: Optional[TaskOutput] = None,
    ) -> Task:
        if task.status == status and output is None:
            return task
        updated = task.advance(status, output)
        logger.debug("Task %s: %s → %s", task.id, task.status.value, status.value)
        if on_status is not None:
            try:
                on_status(updated)
            except Exception as e:  # noqa: BLE001
                logger.warning("Status callback failed for task %s: %s", task.id, e)
        return updated

    def _fail(self, task: Task, error: AppError, on_status: Optional[StatusCallback]) -> Task:
        output = TaskOutput(message=f"执行失败: {error.message}", error=error)
        return self._advance(task, TaskStatus.FAILED, on_status, output=output)
