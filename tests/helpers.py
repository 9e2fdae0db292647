"""Test doubles for planners, skill executors and plan payloads."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

PNG_BYTES = b"\x89PNG\r\n\x1a\n fake"
DATA_URL = "data:image/png;base64,AAAA"


class FakePlanner:
    """Returns queued responses (str, dict or exception); the last one repeats."""

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.prompts: List[str] = []

    async def __call__(self, prompt: str, attachments) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response, ensure_ascii=False)
        return response

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeSkills:
    """Skill executor keyed on prompt substrings; records every call."""

    def __init__(self, results: Optional[Dict[str, Any]] = None, default: Any = DATA_URL):
        self.results = results or {}
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, name: str, params: Dict[str, Any]) -> Any:
        self.calls.append({"name": name, "params": params})
        result = self.default
        for needle, value in self.results.items():
            if needle in str(params.get("prompt", "")):
                result = value
                break
        if isinstance(result, BaseException):
            raise result
        return result


def image_call(prompt: str, **params: Any) -> Dict[str, Any]:
    return {"skillName": "generateImage", "params": dict({"prompt": prompt, "aspectRatio": "1:1"}, **params)}


def proposal(pid: str, prompt: str) -> Dict[str, Any]:
    return {"id": pid, "title": f"Option {pid}", "description": prompt, "skillCalls": [image_call(prompt)]}
