import json
from pathlib import Path

import pytest

from nabd.connectors.llm import BaseLLMClient
from nabd.schemas.skill import SkillExecutionOutput
from nabd.skills.registry import SkillRegistry

REPO_SKILLS_DIR = Path(__file__).resolve().parent.parent / "skills"


async def echo_handler(args):
    return SkillExecutionOutput(text=f"echo: {args.get('text', '')}", metadata={"args": args})


async def failing_handler(args):
    raise RuntimeError("upstream exploded")


def write_manifest(root: Path, dirname: str, **overrides) -> Path:
    manifest = {
        "id": dirname.replace("-", "_"),
        "name": f"{dirname} skill",
        "description": f"Test skill {dirname}",
        "category": "testing",
        "version": "1.0.0",
        "handler": "echo",
        "inputSchema": {
            "type": "object",
            "properties": {"text": {"type": "string", "description": "Text to echo."}},
            "required": [],
            "additionalProperties": False,
        },
    }
    manifest.update(overrides)
    skill_dir = root / dirname
    skill_dir.mkdir(parents=True, exist_ok=True)
    path = skill_dir / "skill.json"
    path.write_text(json.dumps(manifest, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def handlers():
    return {"echo": echo_handler, "boom": failing_handler}


@pytest.fixture
def skills_root(tmp_path):
    root = tmp_path / "skills"
    root.mkdir()
    return root


@pytest.fixture
def repo_registry():
    """Registry over the skills shipped in the repository, with real handlers."""
    return SkillRegistry(REPO_SKILLS_DIR, ttl_seconds=60)


class ScriptedLLMClient(BaseLLMClient):
    """Replays canned responses (or raises canned errors) and records every request."""

    def __init__(self, *responses, configured: bool = True):
        self.responses = list(responses)
        self.requests = []
        self.configured = configured

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def _complete(self, messages, tools=None):
        self.requests.append({"messages": list(messages), "tools": tools})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
