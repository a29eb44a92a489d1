"""Unit tests for the directory listing cache and subprocess lister."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock, patch

import pytest

from project_stickies.context.exceptions import FileTreeError
from project_stickies.context.file_tree import (
    EXCLUDED_DIRS,
    FILE_TREE_CACHE_TTL,
    FileTreeCache,
    SubprocessDirectoryLister,
)

from conftest import FakeClock


class TestFileTreeCache:
    def test_miss_then_hit(self, tmp_path):
        cache = FileTreeCache(clock=FakeClock())
        assert cache.get(tmp_path) is None
        cache.put(tmp_path, "tree")
        assert cache.get(tmp_path) == "tree"

    def test_shared_between_worker_threads(self, tmp_path):
        cache = FileTreeCache(clock=FakeClock())
        roots = [tmp_path / f"p{i}" for i in range(8)]

        def churn(root):
            for n in range(200):
                cache.put(root, f"{root.name}:{n}")
                assert cache.get(root).startswith(root.name)
            return cache.get(root)

        with ThreadPoolExecutor(max_workers=8) as pool:
            finals = list(pool.map(churn, roots))

        assert finals == [f"{root.name}:199" for root in roots]

    def test_entry_expires_after_ttl(self, tmp_path):
        clock = FakeClock()
        cache = FileTreeCache(clock=clock)
        cache.put(tmp_path, "tree")

        clock.now += FILE_TREE_CACHE_TTL - 1
        assert cache.get(tmp_path) == "tree"
        clock.now += 1
        assert cache.get(tmp_path) is None

    def test_reads_do_not_extend_expiry(self, tmp_path):
        clock = FakeClock()
        cache = FileTreeCache(ttl=10, clock=clock)
        cache.put(tmp_path, "tree")
        clock.now += 9
        assert cache.get(tmp_path) == "tree"
        clock.now += 1
        assert cache.get(tmp_path) is None

    def test_keys_are_resolved_paths(self, tmp_path):
        cache = FileTreeCache(clock=FakeClock())
        cache.put(tmp_path / "sub" / "..", "tree")
        assert cache.get(tmp_path) == "tree"

    def test_invalidate(self, tmp_path):
        cache = FileTreeCache(clock=FakeClock())
        other = tmp_path / "other"
        cache.put(tmp_path, "a")
        cache.put(other, "b")

        cache.invalidate(tmp_path)
        assert cache.get(tmp_path) is None
        assert cache.get(other) == "b"

        cache.invalidate()
        assert cache.get(other) is None


class TestSubprocessDirectoryLister:
    def test_commands_exclude_build_directories(self, tmp_path):
        lister = SubprocessDirectoryLister()
        tree = lister._tree_command(tmp_path, 4)
        find = lister._find_command(tmp_path, 4)

        assert tree[:3] == ["tree", "-L", "4"]
        assert "node_modules" in tree[4]
        assert find[:4] == ["find", str(tmp_path), "-maxdepth", "4"]
        assert find.count("-path") == len(EXCLUDED_DIRS)

    async def test_falls_back_to_find(self, tmp_path):
        lister = SubprocessDirectoryLister()
        run = AsyncMock(side_effect=[FileNotFoundError("tree"), "a.ts\n"])
        with patch.object(lister, "_run", run):
            assert await lister.list_tree(tmp_path, 4) == "a.ts\n"
        assert run.await_args_list[1].args[0][0] == "find"

    async def test_raises_when_every_tool_fails(self, tmp_path):
        lister = SubprocessDirectoryLister()
        run = AsyncMock(side_effect=[FileNotFoundError("tree"), FileTreeError("boom")])
        with patch.object(lister, "_run", run):
            with pytest.raises(FileTreeError, match="Failed to generate file tree"):
                await lister.list_tree(tmp_path, 4)
