"""
Data model tests: task lifecycle, serialization helpers.

Usage:
    python -m pytest tests/test_models.py -v
"""

from __future__ import annotations

import re

import pytest

from design_agents.models import (
    AgentType,
    Attachment,
    ChatMessage,
    ProjectContext,
    Proposal,
    RoutingDecision,
    SkillCall,
    Task,
    TaskOutput,
    TaskStatus,
)


# ============================================================================
# 1. TASK LIFECYCLE
# ============================================================================

class TestTaskLifecycle:

    def test_create(self, project_context):
        task = Task.create(AgentType.POSTER, "海报", project_context, metadata={"a": 1})
        assert re.match(r"^task-\d+-[0-9a-f]{6}$", task.id)
        assert task.status == TaskStatus.PENDING
        assert task.input.metadata == {"a": 1}
        assert task.input.attachments == []

    def test_forward_moves_return_new_snapshots(self, project_context):
        task = Task.create(AgentType.POSTER, "海报", project_context)
        analyzing = task.advance(TaskStatus.ANALYZING)
        executing = analyzing.advance(TaskStatus.EXECUTING)
        done = executing.advance(TaskStatus.COMPLETED, TaskOutput(message="ok"))

        assert task.status == TaskStatus.PENDING
        assert analyzing.status == TaskStatus.ANALYZING
        assert done.status == TaskStatus.COMPLETED
        assert done.output.message == "ok"
        assert done.id == task.id
        assert done.is_terminal

    def test_pending_can_fail_directly(self, project_context):
        failed = Task.create(AgentType.POSTER, "海报", project_context).advance(TaskStatus.FAILED)
        assert failed.is_terminal

    def test_no_backwards_move(self, project_context):
        executing = Task.create(AgentType.POSTER, "海报", project_context).advance(TaskStatus.EXECUTING)
        with pytest.raises(ValueError):
            executing.advance(TaskStatus.ANALYZING)
        with pytest.raises(ValueError):
            executing.advance(TaskStatus.PENDING)

    def test_terminal_is_final(self, project_context):
        done = Task.create(AgentType.POSTER, "海报", project_context).advance(TaskStatus.COMPLETED)
        with pytest.raises(ValueError):
            done.advance(TaskStatus.FAILED)
        with pytest.raises(ValueError):
            done.advance(TaskStatus.COMPLETED)

    def test_output_kept_when_not_replaced(self, project_context):
        output = TaskOutput(message="partial")
        task = Task.create(AgentType.POSTER, "海报", project_context).advance(TaskStatus.ANALYZING, output)
        assert task.advance(TaskStatus.EXECUTING).output is output

    def test_to_dict(self, project_context):
        task = Task.create(AgentType.VIREO, "logo", project_context,
                           attachments=[Attachment(name="a.png", data=b"x")])
        data = task.to_dict()
        assert data["agentId"] == "vireo"
        assert data["status"] == "pending"
        assert data["input"]["attachments"] == ["a.png"]
        assert data["output"] is None


# ============================================================================
# 2. VALUE TYPES
# ============================================================================

class TestValueTypes:

    @pytest.mark.parametrize("value,expected", [
        ("poster", AgentType.POSTER), ("POSTER", AgentType.POSTER), (" Vireo ", AgentType.VIREO),
        (AgentType.COCO, AgentType.COCO), ("picasso", None), (None, None), (3, None),
    ])
    def test_agent_type_parse(self, value, expected):
        assert AgentType.parse(value) == expected

    def test_routing_decision_serialization(self):
        decision = RoutingDecision(target_agent=AgentType.CAMERON, confidence=0.4,
                                   fallback_options=[AgentType.COCO])
        assert decision.to_dict()["target_agent"] == "cameron"
        assert decision.to_dict()["fallback_options"] == ["coco"]
        assert decision.to_context_string() == \
            "(routing: target=cameron type=general confidence=0.40 source=api fallback=[coco])"

    def test_attachment_content_type(self):
        assert Attachment(name="photo.jpg", data=b"x").content_type == "image/jpeg"
        assert Attachment(name="photo.jpg", data=b"x").is_image
        assert Attachment(name="blob", data=b"x").content_type == "application/octet-stream"
        assert Attachment(name="x", mime_type="image/webp", data=b"x").content_type == "image/webp"

    def test_attachment_from_path(self, tmp_path):
        path = tmp_path / "mug.png"
        path.write_bytes(b"\x89PNG")
        attachment = Attachment(name="mug.png", path=str(path))
        assert attachment.read_bytes() == b"\x89PNG"
        assert attachment.to_data_url() == "data:image/png;base64,iVBORw=="

    def test_attachment_without_data(self):
        with pytest.raises(ValueError):
            Attachment(name="empty.png").read_bytes()

    def test_proposal_from_dict_defaults(self):
        p = Proposal.from_dict({"skillCalls": [{"skillName": "generateImage", "params": {"prompt": "x"}}]}, 2)
        assert p.id == "3"
        assert p.title == "方案 3"
        assert p.skill_calls[0].skill_name == "generateImage"

    def test_skill_call_to_dict_is_camel_case(self):
        assert SkillCall("export", {"format": "json"}).to_dict() == {
            "skillName": "export", "params": {"format": "json"}, "result": None, "error": None, "success": False,
        }

    def test_project_context_round_trip(self, project_context):
        project_context.conversation_history.append(ChatMessage("user", "hi"))
        restored = ProjectContext.from_dict(project_context.to_dict())
        assert restored.brand_info == project_context.brand_info
        assert restored.conversation_history[0].text == "hi"
        assert restored.recent_history(0) == []
