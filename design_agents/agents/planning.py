"""
Plan parsing and repair.

A planning model answers with JSON that is frequently imperfect: wrapped in
code fences, surrounded by prose, or shaped as top-level skillCalls instead
of proposals. Everything here is pure and synchronous:

- parse_plan_response: fences → JSON → first balanced {...} → {"message": text}
- detect_requested_count: "5张" → 5, "一套"/"几张" → DEFAULT_VARIANT_COUNT
- repair_proposals: guarantees executable proposals when the plan has calls
- AttachmentResolver / prepare_skill_call: alias + ATTACHMENT_<n> resolution
- extract_assets: media results of succeeded calls only
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from design_agents.config import DEFAULT_VARIANT_COUNT, MAX_VARIANT_COUNT
from design_agents.models import (
    AgentType,
    AssetType,
    Attachment,
    GeneratedAsset,
    Proposal,
    ProjectContext,
    SkillCall,
    TaskInput,
)
from design_agents.skills import MEDIA_SKILLS, resolve_skill_name

logger = logging.getLogger(__name__)

DEFAULT_ADJUSTMENTS = ["调整配色", "更换风格", "修改构图", "生成更多变体"]

# (title, prompt suffix) per variant slot
VARIANT_SUFFIXES = [
    ("信息图", ", professional e-commerce infographic with feature callouts, clean white background, 8K"),
    ("多角度", ", studio product photography from a 3/4 angle, even soft lighting, gradient background"),
    ("场景图", ", lifestyle photography in a natural real-use setting, warm natural light, editorial quality"),
    ("细节特写", ", macro close-up of material and texture, sharp focus, studio lighting, premium detail"),
    ("尺寸参考", ", product shown with size reference objects, clean informative flat lay composition"),
]

ATTACHMENT_PARAM_KEYS = ("referenceImage", "sourceUrl", "startFrame", "endFrame", "imageData")
ATTACHMENT_SENTINEL = re.compile(r"^ATTACHMENT_(\d+)$")

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.S)

_CN_DIGITS = {"零": 0, "一": 1, "二": 2, "两": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 7, "八": 8, "九": 9}
COUNT_PATTERN = re.compile(
    r"(\d+|[零一二两三四五六七八九十几多]+)\s*"
    r"(张|幅|款|套|组|份|版|个(?:方案|版本|设计|变体)|images?|pictures?|pics?|photos?|variations?|versions?)",
    re.I,
)
SET_PATTERN = re.compile(r"(一套|一组|一系列|系列|套图|组图|a set of|series of)", re.I)


# ============================================================================
# Response parsing
# ============================================================================

def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span, honoring string literals."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def parse_plan_response(text: str) -> Dict[str, Any]:
    """Best-effort plan dict. Unparseable text becomes {"message": text}."""
    raw = (text or "").strip()
    fenced = _CODE_FENCE.search(raw)
    candidate = fenced.group(1).strip() if fenced else raw

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        data = None
        span = extract_first_json_object(candidate)
        if span:
            try:
                data = json.loads(span)
            except json.JSONDecodeError:
                data = None

    if isinstance(data, dict):
        return data
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return {"skillCalls": data}

    logger.warning("Plan response was not JSON, treating as message: %s", raw[:100])
    return {"message": raw, "skillCalls": []}


# ============================================================================
# Multi-item detection and proposal repair
# ============================================================================

def _parse_number(token: str) -> Optional[int]:
    if token.isdigit():
        return int(token)
    if "十" in token:
        tens_part, _, ones_part = token.partition("十")
        if (tens_part and tens_part not in _CN_DIGITS) or (ones_part and ones_part not in _CN_DIGITS):
            return None
        tens = _CN_DIGITS[tens_part] if tens_part else 1
        ones = _CN_DIGITS[ones_part] if ones_part else 0
        return tens * 10 + ones
    if len(token) == 1 and token in _CN_DIGITS:
        return _CN_DIGITS[token]
    return None


def detect_requested_count(message: str) -> Optional[int]:
    """Number of items the user asked for, or None for a single-item request."""
    for match in COUNT_PATTERN.finditer(message or ""):
        number = _parse_number(match.group(1))
        if number is None:
            return DEFAULT_VARIANT_COUNT
        if number >= 2:
            return min(number, MAX_VARIANT_COUNT)
    if SET_PATTERN.search(message or ""):
        return DEFAULT_VARIANT_COUNT
    return None


def build_variant_proposals(call: SkillCall, count: int) -> List[Proposal]:
    """N proposals from one call, each prompt given a different purpose suffix."""
    base_prompt = str(call.params.get("prompt") or "")
    proposals = []
    for i in range(count):
        title, suffix = VARIANT_SUFFIXES[i % len(VARIANT_SUFFIXES)]
        prompt = base_prompt + suffix
        if i >= len(VARIANT_SUFFIXES):
            prompt += f", variation {i // len(VARIANT_SUFFIXES) + 1}"
        params = dict(call.params)
        params["prompt"] = prompt
        proposals.append(Proposal(
            id=str(i + 1),
            title=f"图 {i + 1}: {title}",
            description=prompt[:120],
            skill_calls=[SkillCall(skill_name=call.skill_name, params=params)],
        ))
    return proposals


def _describe_call(call: SkillCall) -> str:
    prompt = call.params.get("prompt")
    return str(prompt)[:120] if prompt else call.skill_name


def repair_proposals(plan: Dict[str, Any], message: str) -> List[Proposal]:
    """Turn a parsed plan into proposals that carry skill calls wherever the plan has any."""
    proposals = [
        Proposal.from_dict(p, i)
        for i, p in enumerate(plan.get("proposals") or [])
        if isinstance(p, dict)
    ]
    top_calls = [SkillCall.from_dict(c) for c in plan.get("skillCalls") or [] if isinstance(c, dict)]

    if any(p.skill_calls for p in proposals) or not top_calls:
        return proposals

    requested = detect_requested_count(message)
    if requested and len(top_calls) == 1:
        logger.info("Expanding single skill call into %d variant proposals", requested)
        return build_variant_proposals(top_calls[0], requested)

    if proposals and len(proposals) == len(top_calls):
        # Text-only proposals line up one-to-one with the top-level calls
        for proposal, call in zip(proposals, top_calls):
            proposal.skill_calls = [call]
        return proposals

    return [
        Proposal(id=str(i + 1), title=f"方案 {i + 1}", description=_describe_call(call), skill_calls=[call])
        for i, call in enumerate(top_calls)
    ]


# ============================================================================
# Prompt
# ============================================================================

def describe_attachments(attachments: List[Attachment]) -> str:
    lines = []
    for i, attachment in enumerate(attachments):
        line = f"ATTACHMENT_{i}: {attachment.name} ({attachment.content_type})"
        if attachment.marker:
            line += f" - cropped from canvas marker at {attachment.marker.describe()}"
        lines.append(line)
    return "\n".join(lines)


def build_planning_prompt(
    system_prompt: str,
    task_input: TaskInput,
    skill_descriptions: List[str],
) -> str:
    context: Optional[ProjectContext] = task_input.context
    sections = [system_prompt.strip()]

    if context:
        project = [f"Title: {context.project_title or 'Untitled'}"]
        brand = context.brand_info
        if brand:
            project.append(f"Brand: {brand.name}")
            if brand.colors:
                project.append(f"Brand Colors: {', '.join(brand.colors)}")
            if brand.fonts:
                project.append(f"Brand Fonts: {', '.join(brand.fonts)}")
            if brand.style:
                project.append(f"Brand Style: {brand.style}")
        project.append(f"Existing Assets: {len(context.existing_assets)}")
        sections.append("# Project Context\n" + "\n".join(project))

    if task_input.attachments:
        sections.append("# Attachments\n" + describe_attachments(task_input.attachments))

    if skill_descriptions:
        sections.append("# Available Skills\n" + "\n".join(f"- {s}" for s in skill_descriptions))

    handoff = task_input.metadata.get("handoff_message")
    if handoff:
        sections.append(f"# Handoff Notes\n{handoff}")

    sections.append(f"# User Request\n{task_input.message}")
    return "\n\n".join(sections)


# ============================================================================
# Skill call preparation
# ============================================================================

class AttachmentResolver:
    """Turns ATTACHMENT_<n> sentinels into data URLs, reading each file once."""

    def __init__(self, attachments: List[Attachment]):
        self.attachments = attachments
        self._urls: Dict[int, str] = {}

    def url(self, index: int) -> Optional[str]:
        if not 0 <= index < len(self.attachments):
            return None
        if index not in self._urls:
            self._urls[index] = self.attachments[index].to_data_url()
        return self._urls[index]

    def first_image_url(self) -> Optional[str]:
        for i, attachment in enumerate(self.attachments):
            if attachment.is_image:
                return self.url(i)
        return None

    def resolve_value(self, value: Any) -> Any:
        """Resolved URL for a sentinel, the value unchanged otherwise, None for a dangling sentinel."""
        if not isinstance(value, str):
            return value
        match = ATTACHMENT_SENTINEL.match(value.strip())
        if not match:
            return value
        url = self.url(int(match.group(1)))
        if url is None:
            logger.warning("Dropping unresolved attachment reference %s (%d attachments)",
                           value, len(self.attachments))
        return url

    def resolve_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        resolved = dict(params)
        for key in ATTACHMENT_PARAM_KEYS:
            if key in resolved:
                value = self.resolve_value(resolved[key])
                if value is None:
                    del resolved[key]
                else:
                    resolved[key] = value
        if isinstance(resolved.get("referenceImages"), list):
            refs = [self.resolve_value(v) for v in resolved["referenceImages"]]
            resolved["referenceImages"] = [r for r in refs if r]
        return resolved


def prepare_skill_call(
    call: SkillCall,
    resolver: AttachmentResolver,
    brand_context: Optional[Dict[str, Any]] = None,
) -> SkillCall:
    """Canonical name, resolved attachments, injected reference image and brand context."""
    name = resolve_skill_name(call.skill_name)
    params = resolver.resolve_params(call.params)

    if name == "generateImage" and not params.get("referenceImage"):
        first_image = resolver.first_image_url()
        if first_image:
            params["referenceImage"] = first_image

    if name in ("generateImage", "generateVideo") and brand_context and "brandContext" not in params:
        params["brandContext"] = brand_context

    return SkillCall(skill_name=name, params=params)


def extract_assets(calls: List[SkillCall], agent_id: AgentType) -> List[GeneratedAsset]:
    assets = []
    for call in calls:
        asset_type = MEDIA_SKILLS.get(call.skill_name)
        if asset_type is None or not call.success:
            continue
        if not isinstance(call.result, str) or not call.result:
            continue
        assets.append(GeneratedAsset(
            type=AssetType(asset_type),
            url=call.result,
            metadata={
                "prompt": call.params.get("prompt"),
                "model": call.params.get("model"),
                "agentId": agent_id.value,
            },
        ))
    return assets
