"""Shared fixtures: isolated env and fresh registries per test."""

from __future__ import annotations

import pytest

from design_agents.agents import reset_agents
from design_agents.agents.base_agent import ExecutionConfig
from design_agents.errors import error_handler
from design_agents.libs.genai_client import reset_genai_client
from design_agents.models import BrandInfo, ProjectContext
from design_agents.providers import reset_providers


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY", "REPLICATE_API_TOKEN", "KLING_API_KEY",
                "DESIGN_API_BASE_URL", "DESIGN_API_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    reset_genai_client()
    error_handler.clear_error_log()
    reset_agents()
    reset_providers()
    yield
    reset_providers()
    reset_agents()
    error_handler.clear_error_log()


@pytest.fixture
def project_context() -> ProjectContext:
    return ProjectContext(
        project_id="proj-1",
        project_title="Coffee Launch",
        brand_info=BrandInfo(name="Bean There", colors=["#3B2F2F", "#F5E6CC"], fonts=["Inter"], style="warm minimal"),
    )


@pytest.fixture
def fast_config() -> ExecutionConfig:
    return ExecutionConfig(max_retries=2, timeout=5, enable_cache=True, retry_delay=0)
