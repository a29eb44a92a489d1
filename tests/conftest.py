from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from project_stickies.llm import ModelReply, ReplyBlock, ReplyCitation
from project_stickies.models import DiscoveryResult


class FakeLister:
    """DirectoryLister that returns a fixed listing and counts calls."""

    def __init__(self, tree: str = "src/\n  auth.ts\n  db.ts\n", error: Exception | None = None):
        self.tree = tree
        self.error = error
        self.calls = 0

    async def list_tree(self, project_root: Path, max_depth: int) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.tree


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_reply(*texts: str, citations: dict[int, list[ReplyCitation]] | None = None) -> ModelReply:
    """ModelReply with one text block per argument; ``None`` adds a tool-use block."""
    blocks = []
    for index, text in enumerate(texts):
        if text is None:
            blocks.append(ReplyBlock(index=index, type="server_tool_use"))
        else:
            blocks.append(
                ReplyBlock(
                    index=index,
                    type="text",
                    text=text,
                    citations=(citations or {}).get(index, []),
                )
            )
    return ModelReply(provider="anthropic", model="test-model", blocks=blocks, stop_reason="end_turn")


def write_files(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def project_root(tmp_path):
    """Small TypeScript project: auth.ts imports db.ts."""
    return write_files(
        tmp_path / "project",
        {
            "src/auth.ts": 'import { query } from "./db";\n\nexport function login() {\n  return query();\n}\n',
            "src/db.ts": "export function query() {\n  return 1;\n}\n",
            "README.md": "# Demo\n",
        },
    )


@pytest.fixture
def chain_root(tmp_path):
    """Import chain a -> b -> c -> d, one level deeper than the loader follows."""
    return write_files(
        tmp_path / "chain",
        {
            "src/a.ts": 'import { b } from "./b";\nexport const a = b;\n',
            "src/b.ts": 'import { c } from "../lib/c";\nexport const b = c;\n',
            "lib/c.ts": 'const d = require("./d");\nexport const c = d;\n',
            "lib/d.ts": "module.exports = 4;\n",
        },
    )


@pytest.fixture
def mock_client():
    """LLMClient stand-in whose create_message is an AsyncMock."""
    client = MagicMock()
    client.create_message = AsyncMock(return_value=make_reply("{}"))
    return client


@pytest.fixture
def empty_selector():
    """FileSelector stand-in that selects nothing."""
    selector = MagicMock()
    selector.select_files = AsyncMock(return_value=DiscoveryResult())
    return selector


@pytest.fixture
def fake_lister():
    return FakeLister()
