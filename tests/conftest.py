"""Shared pytest fixtures and helpers for vibecode tests."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from vibecode.config import AgentConfig
from vibecode.permissions import ApprovalGate
from vibecode.renderer import Renderer


@pytest.fixture
def workspace(tmp_path):
    """A temporary directory that acts as the workspace root."""
    return tmp_path


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def renderer(output):
    """Renderer writing to a StringIO so tests can inspect what was shown."""
    return Renderer(output_file=output)


@pytest.fixture
def config():
    return AgentConfig(model="ollama_chat/qwen3-coder:latest")


# ── Plain helper functions ─────────────────────────────────────────────────
# Test modules import these directly:
#   from conftest import FakeLLM, make_file, scripted_approvals

def make_file(workspace: Path, relative_path: str, content: str = "hello\n") -> Path:
    p = workspace / relative_path
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p


def scripted_approvals(*answers: bool, renderer=None) -> ApprovalGate:
    """An ApprovalGate that answers from a fixed list, then declines."""
    remaining = list(answers)
    return ApprovalGate(renderer, prompt_callback=lambda prompt: remaining.pop(0) if remaining else False)


class FakeLLM:
    """Scripted stand-in for LLMClient: replies in order, records every call."""

    def __init__(self, *replies: str | None):
        self.replies = list(replies)
        self.calls: list[dict] = []

    def chat(self, model_id: str, system_prompt: str, context: str) -> str | None:
        self.calls.append({"model": model_id, "system_prompt": system_prompt, "context": context})
        if not self.replies:
            raise AssertionError("FakeLLM ran out of scripted replies")
        return self.replies.pop(0)
