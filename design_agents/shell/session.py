"""
Orchestration Session - the UI-facing entry point.

submit(message):
    route (None → default agent)
    → pending task → agent.execute (status updates → chat)
    → failed + fallback options → next agent
    → assets → canvas, reply + proposals → chat
    → user/model turns appended to conversation history

INVARIANTS:
- At most one job in flight per session
- Jobs arriving while busy run in arrival order (FIFO)
- The queue keeps draining after a job succeeds or fails
- submit()/execute_proposal() never raise for pipeline failures; they
  return the final Task, or None when nothing ran
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from design_agents.agents import ExecutionConfig, get_agent
from design_agents.agents.base_agent import DesignAgent
from design_agents.errors import error_handler
from design_agents.models import (
    AgentType,
    Attachment,
    ChatMessage,
    ProjectContext,
    RoutingDecision,
    Task,
    TaskStatus,
)
from design_agents.shell.collaborators import CanvasCollaborator, ChatCollaborator
from design_agents.shell.orchestrator import RouteConfig, route_to_agent

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Optional[Task]]]
RouterFn = Callable[..., Awaitable[Optional[RoutingDecision]]]
AgentProvider = Callable[[AgentType], DesignAgent]


class OrchestrationSession:
    """Serializes user messages through routing and agent execution for one project."""

    def __init__(
        self,
        context: ProjectContext,
        canvas: Optional[CanvasCollaborator] = None,
        chat: Optional[ChatCollaborator] = None,
        default_agent: AgentType = AgentType.POSTER,
        execution_config: Optional[ExecutionConfig] = None,
        route_config: Optional[RouteConfig] = None,
        router: RouterFn = route_to_agent,
        agent_provider: AgentProvider = get_agent,
    ):
        self.context = context
        self.canvas = canvas or CanvasCollaborator()
        self.chat = chat or ChatCollaborator()
        self.default_agent = default_agent
        self.execution_config = execution_config
        self.route_config = route_config
        self._router = router
        self._agent_provider = agent_provider

        self._queue: Deque[Tuple[Job, "asyncio.Future[Optional[Task]]"]] = deque()
        self._processing = False
        self._drain_task: Optional["asyncio.Future[None]"] = None

        self.current_task: Optional[Task] = None
        self.last_decision: Optional[RoutingDecision] = None
        # Last message task that offered proposals; proposal runs don't replace it
        self._proposal_source: Optional[Task] = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def history(self) -> List[ChatMessage]:
        return list(self.context.conversation_history)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def submit(
        self,
        message: str,
        attachments: Optional[List[Attachment]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Task]:
        return await self._enqueue(lambda: self._process_message(message, attachments, metadata))

    async def execute_proposal(self, proposal_id: str) -> Optional[Task]:
        return await self._enqueue(lambda: self._process_proposal(proposal_id))

    def reset(self) -> None:
        """Drop queued jobs, the current task and the conversation history."""
        while self._queue:
            _, future = self._queue.popleft()
            if not future.done():
                future.set_result(None)
        self.current_task = None
        self.last_decision = None
        self._proposal_source = None
        self.context.conversation_history.clear()
        logger.info("Session reset: project=%s", self.context.project_id)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def _enqueue(self, job: Job) -> Optional[Task]:
        future: "asyncio.Future[Optional[Task]]" = asyncio.get_running_loop().create_future()
        self._queue.append((job, future))
        if self._processing:
            logger.info("Session busy, queued job (%d pending)", len(self._queue))
        else:
            self._processing = True
            self._drain_task = asyncio.ensure_future(self._drain())
        return await future

    async def _drain(self) -> None:
        try:
            while self._queue:
                job, future = self._queue.popleft()
                try:
                    result = await job()
                except Exception as e:
                    app_error = error_handler.classify(e, {"stage": "session", "project": self.context.project_id})
                    logger.error("Session job failed (%s): %s", app_error.kind.value, app_error.message)
                    result = None
                if not future.done():
                    future.set_result(result)
        finally:
            self._processing = False

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def _process_message(
        self,
        message: str,
        attachments: Optional[List[Attachment]],
        metadata: Optional[Dict[str, Any]],
    ) -> Optional[Task]:
        user_turn = ChatMessage(role="user", text=message)

        if self.route_config is not None:
            decision = await self._router(message, self.context, self.route_config)
        else:
            decision = await self._router(message, self.context)
        self.last_decision = decision

        agent_id = decision.target_agent if decision else self.default_agent
        if decision is None:
            logger.info("Routing unavailable, using default agent %s", agent_id.value)

        task_metadata = dict(metadata or {})
        if decision is not None:
            task_metadata["handoff_message"] = decision.handoff_message
            task_metadata["routing"] = decision.to_dict()

        result = await self._run_agent(agent_id, message, attachments, task_metadata)

        if result.status == TaskStatus.FAILED and decision is not None:
            for fallback in decision.fallback_options:
                if fallback == agent_id:
                    continue
                logger.info("Agent %s failed, trying fallback agent %s", agent_id.value, fallback.value)
                result = await self._run_agent(fallback, message, attachments, task_metadata)
                if result.status == TaskStatus.COMPLETED:
                    break

        if result.output is not None and result.output.proposals:
            self._proposal_source = result

        self._deliver(result)
        self._record_turns(user_turn, result)
        return result

    async def _process_proposal(self, proposal_id: str) -> Optional[Task]:
        source = self._proposal_source
        if source is None or source.output is None:
            logger.warning("No task to execute proposal %s from", proposal_id)
            return None
        proposal = next((p for p in source.output.proposals if p.id == proposal_id), None)
        if proposal is None:
            logger.warning("Proposal %s not found in task %s", proposal_id, source.id)
            return None

        agent = self._agent_provider(source.agent_id)
        result = await agent.execute_proposal(
            proposal,
            self.context,
            source.input.attachments,
            self.execution_config,
            on_status=self._publish,
        )
        self._deliver(result)
        self._record_turns(ChatMessage(role="user", text=f"选择方案: {proposal.title}"), result)
        return result

    async def _run_agent(
        self,
        agent_id: AgentType,
        message: str,
        attachments: Optional[List[Attachment]],
        metadata: Dict[str, Any],
    ) -> Task:
        task = Task.create(agent_id, message, self.context, attachments, metadata)
        self._publish(task)
        agent = self._agent_provider(agent_id)
        return await agent.execute(task, self.execution_config, on_status=self._publish)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _publish(self, task: Task) -> None:
        self.current_task = task
        self.chat.on_task_update(task)

    def _deliver(self, task: Task) -> None:
        output = task.output
        if output is None:
            return
        if output.assets:
            self.canvas.add_assets(list(output.assets))
        if task.status == TaskStatus.FAILED and output.error is not None:
            message = error_handler.get_error_message(output.error)
        else:
            message = output.message
        self.chat.post_message(task.agent_id, message, list(output.proposals))

    def _record_turns(self, user_turn: ChatMessage, task: Task) -> None:
        history = self.context.conversation_history
        history.append(user_turn)
        if task.output is not None:
            history.append(ChatMessage(role="model", text=task.output.message))
