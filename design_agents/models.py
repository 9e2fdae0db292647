"""
Data models for routing, tasks, proposals and generated assets.

Tasks are immutable snapshots: every status transition goes through
Task.advance(), which returns a new Task and rejects backwards moves.

    pending → analyzing → executing → completed
                    └──────────┴────→ failed
"""

from __future__ import annotations

import base64
import mimetypes
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from design_agents.errors import AppError


# ============================================================================
# Enums
# ============================================================================

class AgentType(str, Enum):
    """Design agent identifiers."""
    COCO = "coco"          # Front-desk / general conversation
    VIREO = "vireo"        # Brand identity & VI
    CAMERON = "cameron"    # Storyboards & scripts
    POSTER = "poster"      # Posters & single graphics (general-purpose default)
    PACKAGE = "package"    # Packaging design
    MOTION = "motion"      # Animation & video
    CAMPAIGN = "campaign"  # Marketing sets, e-commerce image series

    @classmethod
    def parse(cls, value: Any) -> Optional["AgentType"]:
        """Case-insensitive lookup, None for unknown ids."""
        if isinstance(value, AgentType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class TaskStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.ANALYZING: 1,
    TaskStatus.EXECUTING: 2,
    TaskStatus.COMPLETED: 3,
    TaskStatus.FAILED: 3,
}

TERMINAL_STATUSES = (TaskStatus.COMPLETED, TaskStatus.FAILED)


class AssetType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"


# ============================================================================
# Routing
# ============================================================================

@dataclass
class RoutingDecision:
    """Which agent handles a request, and how sure the router is."""
    target_agent: AgentType
    task_type: str = "general"
    complexity: str = "simple"  # "simple" | "complex"
    handoff_message: str = ""
    confidence: float = 0.0
    fallback_options: List[AgentType] = field(default_factory=list)
    source: str = "api"  # "local" | "api"
    estimated_duration: Optional[int] = None
    required_skills: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["target_agent"] = self.target_agent.value
        data["fallback_options"] = [a.value for a in self.fallback_options]
        return data

    def to_context_string(self) -> str:
        """Compact form for logs."""
        parts = [
            f"target={self.target_agent.value}",
            f"type={self.task_type}",
            f"confidence={self.confidence:.2f}",
            f"source={self.source}",
        ]
        if self.fallback_options:
            parts.append(f"fallback=[{','.join(a.value for a in self.fallback_options)}]")
        return f"(routing: {' '.join(parts)})"


# ============================================================================
# Project context
# ============================================================================

@dataclass
class BrandInfo:
    name: str = ""
    colors: List[str] = field(default_factory=list)
    fonts: List[str] = field(default_factory=list)
    style: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrandInfo":
        return cls(
            name=data.get("name", ""),
            colors=list(data.get("colors", [])),
            fonts=list(data.get("fonts", [])),
            style=data.get("style", ""),
        )


@dataclass
class ChatMessage:
    role: str  # "user" | "model"
    text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)


@dataclass
class ProjectContext:
    """Read-only project snapshot handed to routing and agents."""
    project_id: str
    project_title: str = ""
    brand_info: Optional[BrandInfo] = None
    existing_assets: List[Dict[str, Any]] = field(default_factory=list)
    conversation_history: List[ChatMessage] = field(default_factory=list)

    def recent_history(self, turns: int) -> List[ChatMessage]:
        if turns <= 0:
            return []
        return self.conversation_history[-turns:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_title": self.project_title,
            "brand_info": self.brand_info.to_dict() if self.brand_info else None,
            "existing_assets": self.existing_assets,
            "conversation_history": [asdict(m) for m in self.conversation_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectContext":
        brand = data.get("brand_info")
        return cls(
            project_id=data.get("project_id", ""),
            project_title=data.get("project_title", ""),
            brand_info=BrandInfo.from_dict(brand) if brand else None,
            existing_assets=list(data.get("existing_assets", [])),
            conversation_history=[ChatMessage(**m) for m in data.get("conversation_history", [])],
        )


# ============================================================================
# Attachments
# ============================================================================

@dataclass
class MarkerRegion:
    """Canvas region a cropped attachment was taken from."""
    x: float
    y: float
    width: float
    height: float
    element_id: Optional[str] = None

    def describe(self) -> str:
        text = f"x={self.x:.0f}, y={self.y:.0f}, w={self.width:.0f}, h={self.height:.0f}"
        if self.element_id:
            text += f", element={self.element_id}"
        return text


@dataclass
class Attachment:
    """A user-supplied file. Either `data` or `path` must be set."""
    name: str
    mime_type: Optional[str] = None
    data: Optional[bytes] = None
    path: Optional[str] = None
    marker: Optional[MarkerRegion] = None

    @property
    def content_type(self) -> str:
        if self.mime_type:
            return self.mime_type
        guessed, _ = mimetypes.guess_type(self.path or self.name)
        return guessed or "application/octet-stream"

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path:
            return Path(self.path).read_bytes()
        raise ValueError(f"Attachment {self.name} has no data")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.read_bytes()).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


# ============================================================================
# Plans, proposals, assets
# ============================================================================

@dataclass
class SkillCall:
    """One skill invocation requested by a plan, plus its outcome once run."""
    skill_name: str
    params: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None
    success: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skillName": self.skill_name,
            "params": self.params,
            "result": self.result,
            "error": self.error,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkillCall":
        name = data.get("skillName") or data.get("skill_name") or data.get("skill") or data.get("name") or ""
        params = data.get("params")
        if not isinstance(params, dict):
            params = data.get("parameters") if isinstance(data.get("parameters"), dict) else {}
        return cls(skill_name=str(name), params=dict(params))


@dataclass
class Proposal:
    id: str
    title: str
    description: str = ""
    preview: Optional[str] = None
    skill_calls: List[SkillCall] = field(default_factory=list)
    generated_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "preview": self.preview,
            "skillCalls": [c.to_dict() for c in self.skill_calls],
            "generatedUrl": self.generated_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "Proposal":
        calls = data.get("skillCalls") or data.get("skill_calls") or []
        return cls(
            id=str(data.get("id") or index + 1),
            title=str(data.get("title") or f"方案 {index + 1}"),
            description=str(data.get("description") or ""),
            preview=data.get("preview"),
            skill_calls=[SkillCall.from_dict(c) for c in calls if isinstance(c, dict)],
        )


@dataclass(frozen=True)
class GeneratedAsset:
    type: AssetType
    url: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"asset-{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type.value, "url": self.url, "metadata": dict(self.metadata)}


@dataclass
class AgentInfo:
    id: AgentType
    name: str
    avatar: str
    description: str
    capabilities: List[str] = field(default_factory=list)
    color: str = "#6366F1"


# ============================================================================
# Task
# ============================================================================

@dataclass
class TaskInput:
    message: str
    context: Optional[ProjectContext]
    attachments: List[Attachment] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TaskOutput:
    message: str
    analysis: Optional[str] = None
    proposals: List[Proposal] = field(default_factory=list)
    assets: List[GeneratedAsset] = field(default_factory=list)
    skill_calls: List[SkillCall] = field(default_factory=list)
    adjustments: List[str] = field(default_factory=list)
    error: Optional["AppError"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "analysis": self.analysis,
            "proposals": [p.to_dict() for p in self.proposals],
            "assets": [a.to_dict() for a in self.assets],
            "skillCalls": [c.to_dict() for c in self.skill_calls],
            "adjustments": list(self.adjustments),
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass(frozen=True)
class Task:
    id: str
    agent_id: AgentType
    input: TaskInput
    status: TaskStatus = TaskStatus.PENDING
    output: Optional[TaskOutput] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        agent_id: AgentType,
        message: str,
        context: Optional[ProjectContext],
        attachments: Optional[List[Attachment]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Task":
        now = time.time()
        return cls(
            id=f"task-{int(now * 1000)}-{uuid.uuid4().hex[:6]}",
            agent_id=agent_id,
            input=TaskInput(
                message=message,
                context=context,
                attachments=list(attachments or []),
                metadata=dict(metadata or {}),
            ),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(self, status: TaskStatus, output: Optional[TaskOutput] = None) -> "Task":
        """Return a copy in `status`. Raises ValueError on a backwards or post-terminal move."""
        if self.is_terminal:
            raise ValueError(f"Task {self.id} is already {self.status.value}")
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise ValueError(f"Task {self.id} cannot go from {self.status.value} to {status.value}")
        return replace(
            self,
            status=status,
            output=output if output is not None else self.output,
            updated_at=time.time(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id.value,
            "status": self.status.value,
            "input": {
                "message": self.input.message,
                "attachments": [a.name for a in self.input.attachments],
                "metadata": self.input.metadata,
            },
            "output": self.output.to_dict() if self.output else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
