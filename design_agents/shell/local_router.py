"""
Local Pre-Router - Zero-latency keyword routing.

Runs before any network call. Returns an AgentType when the message clearly
belongs to one agent, or None to defer to the API router.

Order:
1. Edit/modify vocabulary → None (needs context the API router has)
2. Chit-chat (greeting, thanks, farewell, ack, identity, how-to) → None
3. Keyword scoring across ROUTE_RULES: most hits wins, ties → lower priority
4. No hits and more than 2 non-space chars → POSTER, else None

Pure function: no I/O, no state, deterministic.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from design_agents.models import AgentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteRule:
    keywords: Tuple[str, ...]
    agent: AgentType
    priority: int  # Lower wins ties


# ============================================================================
# Rule table
# ============================================================================

ROUTE_RULES: List[RouteRule] = [
    RouteRule(
        ("logo", "vi", "品牌", "标志", "商标", "brand", "视觉识别", "品牌手册", "色彩系统"),
        AgentType.VIREO, 1,
    ),
    RouteRule(
        ("故事板", "分镜", "storyboard", "脚本", "剧本", "镜头", "shot list", "场景设计"),
        AgentType.CAMERON, 2,
    ),
    RouteRule(
        ("包装", "package", "packaging", "礼盒", "瓶身", "标签", "盒子", "瓶子", "罐子", "unboxing"),
        AgentType.PACKAGE, 3,
    ),
    RouteRule(
        ("动画", "motion", "动效", "gif", "animation", "视频", "video", "片头", "转场", "vfx", "3d动画"),
        AgentType.MOTION, 4,
    ),
    RouteRule(
        ("营销", "campaign", "推广", "电商", "亚马逊", "amazon", "副图", "listing", "主图", "详情图",
         "shopify", "淘宝", "天猫", "小红书", "一套", "一组", "系列", "套图"),
        AgentType.CAMPAIGN, 5,
    ),
    RouteRule(
        ("海报", "poster", "banner", "宣传", "广告", "传单", "社交媒体", "instagram", "朋友圈", "封面",
         "邀请函", "贺卡", "名片", "证书", "节日", "春节", "新年", "圣诞", "中秋"),
        AgentType.POSTER, 6,
    ),
    # Generic creation vocabulary, lowest priority
    RouteRule(
        ("设计", "做", "生成", "画", "制作", "创作", "帮我", "图片", "图", "海报", "卡片", "素材", "风格",
         "请", "一张", "一个", "几张"),
        AgentType.POSTER, 99,
    ),
]

EDIT_KEYWORDS: Tuple[str, ...] = (
    "换成", "改成", "改为", "替换", "修改", "调整", "变成", "去掉", "删除", "移除", "加上", "添加",
    "放大", "缩小", "旋转", "翻转", "裁剪", "去背景", "换背景", "换颜色", "改颜色", "变色",
    "粉色", "红色", "蓝色", "绿色", "黑色", "白色", "不要", "去除", "抠图", "高清", "放大画质",
    "upscale", "remove", "replace", "change", "edit", "modify", "recolor",
)

CHAT_PATTERNS = [
    re.compile(r"^(你好|hi|hello|hey|嗨|哈喽|早上好|下午好|晚上好|早安|晚安)", re.I),
    re.compile(r"^(谢谢|感谢|thanks|thank you|thx)", re.I),
    re.compile(r"^(再见|拜拜|bye|goodbye)", re.I),
    re.compile(r"^(好的|ok|okay|嗯|明白|了解|收到)", re.I),
    re.compile(r"^(你是谁|你叫什么|介绍一下|你能做什么|帮助|help)", re.I),
    re.compile(r"^(怎么用|如何使用|教我|指导)", re.I),
]

VAGUE_PATTERNS = [
    re.compile(r"^(帮我|请|给我)?(做|设计|画|生成|制作)(一?个|一?张|点)?(东西|图|图片|设计)?[。.!！?？]*$"),
    re.compile(r"^(随便|随意|都行|你看着办|看着办)"),
    re.compile(r"^(make|design|create)\s+(something|anything)\b", re.I),
]


def is_edit_request(message: str) -> bool:
    lower = message.lower()
    return any(keyword in lower for keyword in EDIT_KEYWORDS)


def is_chat_message(message: str) -> bool:
    trimmed = message.strip()
    return any(pattern.match(trimmed) for pattern in CHAT_PATTERNS)


def is_vague_request(message: str) -> bool:
    """True for requests with no subject ("帮我做个图", "随便设计点东西")."""
    trimmed = message.strip()
    if not trimmed:
        return True
    return any(pattern.match(trimmed) for pattern in VAGUE_PATTERNS)


def score_rules(message: str) -> List[Tuple[RouteRule, int]]:
    """Per-rule keyword hit counts, rules with zero hits omitted."""
    lower = message.lower()
    scores = []
    for rule in ROUTE_RULES:
        hits = sum(1 for keyword in rule.keywords if keyword in lower)
        if hits:
            scores.append((rule, hits))
    return scores


def local_pre_route(message: str) -> Optional[AgentType]:
    """Route by keywords, or None to defer to the API router."""
    if is_edit_request(message):
        logger.debug("Local router deferred (edit request): %s", message[:50])
        return None
    if is_chat_message(message):
        logger.debug("Local router deferred (chat): %s", message[:50])
        return None

    scores = score_rules(message)
    if scores:
        best_rule, best_hits = min(scores, key=lambda item: (-item[1], item[0].priority))
        logger.info("LOCAL ROUTE: '%s' → %s (%d hits, p%d)",
                    message[:50], best_rule.agent.value, best_hits, best_rule.priority)
        return best_rule.agent

    if len(message.strip()) > 2:
        logger.info("LOCAL ROUTE: '%s' → %s (default)", message[:50], AgentType.POSTER.value)
        return AgentType.POSTER
    return None
