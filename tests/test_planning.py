"""
Plan parsing, proposal repair and attachment resolution tests.

Usage:
    python -m pytest tests/test_planning.py -v
"""

from __future__ import annotations

import base64

import pytest

from design_agents.agents.planning import (
    VARIANT_SUFFIXES,
    AttachmentResolver,
    build_planning_prompt,
    detect_requested_count,
    extract_assets,
    extract_first_json_object,
    parse_plan_response,
    prepare_skill_call,
    repair_proposals,
)
from design_agents.models import (
    AgentType,
    AssetType,
    Attachment,
    MarkerRegion,
    SkillCall,
    TaskInput,
)

from helpers import PNG_BYTES, image_call, proposal

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


# ============================================================================
# 1. RESPONSE PARSING
# ============================================================================

class TestParsePlanResponse:

    def test_plain_json(self):
        assert parse_plan_response('{"analysis": "ok", "proposals": []}') == {"analysis": "ok", "proposals": []}

    def test_code_fence(self):
        text = 'Here you go:\n```json\n{"analysis": "fenced"}\n```\nEnjoy'
        assert parse_plan_response(text)["analysis"] == "fenced"

    def test_json_inside_prose(self):
        text = 'Sure! {"analysis": "a {curly} string", "skillCalls": []} hope this helps'
        assert parse_plan_response(text)["analysis"] == "a {curly} string"

    def test_top_level_list_becomes_skill_calls(self):
        plan = parse_plan_response('[{"skillName": "generateImage", "params": {"prompt": "cup"}}]')
        assert plan["skillCalls"][0]["params"]["prompt"] == "cup"

    def test_garbage_becomes_message(self):
        assert parse_plan_response("I cannot do that.") == {"message": "I cannot do that.", "skillCalls": []}

    def test_empty(self):
        assert parse_plan_response("")["skillCalls"] == []

    def test_extract_first_json_object(self):
        assert extract_first_json_object('no braces here') is None
        assert extract_first_json_object('{"a": {"b": 1}} tail') == '{"a": {"b": 1}}'


# ============================================================================
# 2. REQUESTED COUNT
# ============================================================================

class TestDetectRequestedCount:

    @pytest.mark.parametrize("message,expected", [
        ("帮我做5张咖啡海报", 5),
        ("生成三张产品图", 3),
        ("做十二张图", 10),
        ("两款包装", 2),
        ("做一套亚马逊副图", 5),
        ("来几张图", 5),
        ("make 4 images of a mug", 4),
        ("3 variations please", 3),
        ("给我3个方案", 3),
        ("做20张", 10),
    ])
    def test_multi_item(self, message, expected):
        assert detect_requested_count(message) == expected

    @pytest.mark.parametrize("message", ["画一张杯子", "做一个logo", "a poster", "", "做一个杯子"])
    def test_single_item(self, message):
        assert detect_requested_count(message) is None


# ============================================================================
# 3. PROPOSAL REPAIR
# ============================================================================

class TestRepairProposals:

    def test_proposals_with_calls_kept(self):
        plan = {"proposals": [proposal("a", "red cup"), proposal("b", "blue cup")]}
        repaired = repair_proposals(plan, "两款杯子")
        assert [p.id for p in repaired] == ["a", "b"]
        assert repaired[0].skill_calls[0].params["prompt"] == "red cup"

    def test_single_call_expanded_to_requested_variants(self):
        plan = {"analysis": "ok", "skillCalls": [image_call("coffee mug")]}
        repaired = repair_proposals(plan, "帮我做5张咖啡杯的亚马逊副图")

        assert len(repaired) == 5
        prompts = [p.skill_calls[0].params["prompt"] for p in repaired]
        assert len(set(prompts)) == 5
        assert all(prompt.startswith("coffee mug") for prompt in prompts)
        assert repaired[0].title == f"图 1: {VARIANT_SUFFIXES[0][0]}"
        assert all(p.skill_calls[0].params["aspectRatio"] == "1:1" for p in repaired)

    def test_variants_beyond_suffix_table_stay_distinct(self):
        plan = {"skillCalls": [image_call("mug")]}
        repaired = repair_proposals(plan, "做7张图")
        prompts = [p.skill_calls[0].params["prompt"] for p in repaired]
        assert len(prompts) == 7
        assert len(set(prompts)) == 7

    def test_text_only_proposals_paired_with_top_calls(self):
        plan = {
            "proposals": [{"id": "1", "title": "Warm"}, {"id": "2", "title": "Cool"}],
            "skillCalls": [image_call("warm cup"), image_call("cool cup")],
        }
        repaired = repair_proposals(plan, "两个方向的杯子")
        assert [p.title for p in repaired] == ["Warm", "Cool"]
        assert repaired[1].skill_calls[0].params["prompt"] == "cool cup"

    def test_mismatched_counts_wrap_each_call(self):
        plan = {
            "proposals": [{"title": "Only one"}],
            "skillCalls": [image_call("a"), image_call("b"), image_call("c")],
        }
        repaired = repair_proposals(plan, "make these")
        assert [p.title for p in repaired] == ["方案 1", "方案 2", "方案 3"]
        assert all(len(p.skill_calls) == 1 for p in repaired)

    def test_text_only_plan(self):
        assert repair_proposals({"message": "Hi!"}, "你好") == []

    def test_text_only_proposals_without_calls_kept(self):
        repaired = repair_proposals({"proposals": [{"title": "Idea"}]}, "ideas?")
        assert len(repaired) == 1
        assert repaired[0].skill_calls == []

    def test_skill_call_name_variants(self):
        plan = {"skillCalls": [{"skill": "generate_image", "parameters": {"prompt": "cup"}}]}
        repaired = repair_proposals(plan, "一个杯子")
        assert repaired[0].skill_calls[0].skill_name == "generate_image"
        assert repaired[0].skill_calls[0].params == {"prompt": "cup"}


# ============================================================================
# 4. ATTACHMENTS + CALL PREPARATION
# ============================================================================

class TestAttachmentResolution:

    def _attachments(self):
        return [
            Attachment(name="brief.pdf", mime_type="application/pdf", data=b"%PDF"),
            Attachment(name="mug.png", mime_type="image/png", data=PNG_BYTES),
        ]

    def test_sentinel_resolves_to_data_url(self):
        resolver = AttachmentResolver(self._attachments())
        params = resolver.resolve_params({"prompt": "x", "referenceImage": "ATTACHMENT_1"})
        assert params["referenceImage"] == PNG_DATA_URL

    def test_dangling_sentinel_dropped(self):
        resolver = AttachmentResolver(self._attachments())
        params = resolver.resolve_params({"prompt": "x", "sourceUrl": "ATTACHMENT_7"})
        assert "sourceUrl" not in params
        assert params["prompt"] == "x"

    def test_reference_images_list(self):
        resolver = AttachmentResolver(self._attachments())
        params = resolver.resolve_params({"referenceImages": ["ATTACHMENT_1", "ATTACHMENT_9", "https://x/y.png"]})
        assert params["referenceImages"] == [PNG_DATA_URL, "https://x/y.png"]

    def test_non_sentinel_values_untouched(self):
        resolver = AttachmentResolver([])
        params = {"referenceImage": "https://cdn/x.png", "prompt": "ATTACHMENT_0"}
        assert resolver.resolve_params(params) == params

    def test_each_attachment_read_once(self):
        reads = []

        class CountingAttachment(Attachment):
            def read_bytes(self):
                reads.append(self.name)
                return super().read_bytes()

        resolver = AttachmentResolver([CountingAttachment(name="a.png", mime_type="image/png", data=PNG_BYTES)])
        resolver.resolve_params({"referenceImage": "ATTACHMENT_0", "sourceUrl": "ATTACHMENT_0"})
        resolver.first_image_url()
        assert reads == ["a.png"]

    def test_generate_image_gets_first_image_injected(self):
        resolver = AttachmentResolver(self._attachments())
        prepared = prepare_skill_call(SkillCall("imageGen", {"prompt": "mug"}), resolver)
        assert prepared.skill_name == "generateImage"
        assert prepared.params["referenceImage"] == PNG_DATA_URL

    def test_other_skills_get_no_injection(self):
        resolver = AttachmentResolver(self._attachments())
        prepared = prepare_skill_call(SkillCall("generateCopy", {"topic": "mug"}), resolver)
        assert "referenceImage" not in prepared.params

    def test_brand_context_injected_for_media_only(self):
        brand = {"colors": ["#000"], "style": "bold"}
        resolver = AttachmentResolver([])
        image = prepare_skill_call(SkillCall("generateImage", {"prompt": "p"}), resolver, brand)
        copy = prepare_skill_call(SkillCall("generateCopy", {"topic": "p"}), resolver, brand)
        assert image.params["brandContext"] == brand
        assert "brandContext" not in copy.params

    def test_explicit_brand_context_kept(self):
        resolver = AttachmentResolver([])
        prepared = prepare_skill_call(
            SkillCall("generateImage", {"prompt": "p", "brandContext": {"style": "mine"}}),
            resolver,
            {"colors": [], "style": "brand"},
        )
        assert prepared.params["brandContext"] == {"style": "mine"}


# ============================================================================
# 5. PROMPT + ASSETS
# ============================================================================

class TestPromptAndAssets:

    def test_prompt_sections(self, project_context):
        task_input = TaskInput(
            message="做一张海报",
            context=project_context,
            attachments=[Attachment(name="crop.png", mime_type="image/png", data=PNG_BYTES,
                                    marker=MarkerRegion(10, 20, 100, 50, element_id="el-1"))],
            metadata={"handoff_message": "Poster for launch"},
        )
        prompt = build_planning_prompt("You are Poster.", task_input, ["generateImage: makes images"])

        assert prompt.startswith("You are Poster.")
        assert "Brand: Bean There" in prompt
        assert "Brand Colors: #3B2F2F, #F5E6CC" in prompt
        assert "ATTACHMENT_0: crop.png (image/png)" in prompt
        assert "element=el-1" in prompt
        assert "- generateImage: makes images" in prompt
        assert "# Handoff Notes\nPoster for launch" in prompt
        assert prompt.endswith("# User Request\n做一张海报")

    def test_extract_assets_only_successful_media(self):
        calls = [
            SkillCall("generateImage", {"prompt": "a", "model": "Nano Banana"}, result="data:image/png;base64,A",
                      success=True),
            SkillCall("generateImage", {"prompt": "b"}, result=None, success=True),
            SkillCall("generateImage", {"prompt": "c"}, error="boom", success=False),
            SkillCall("generateCopy", {"topic": "d"}, result=["copy"], success=True),
            SkillCall("generateVideo", {"prompt": "e"}, result="https://v/e.mp4", success=True),
        ]
        assets = extract_assets(calls, AgentType.MOTION)

        assert [a.type for a in assets] == [AssetType.IMAGE, AssetType.VIDEO]
        assert assets[0].metadata == {"prompt": "a", "model": "Nano Banana", "agentId": "motion"}
        assert assets[1].url == "https://v/e.mp4"
