# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for the batch indexing scheduler."""

import asyncio

import pytest

from victor_index.codebase.indexer import IndexingState, WorkspaceIndexer
from victor_index.config import IndexingConfig

FAST = IndexingConfig(yield_seconds=0)


def make_indexer(roots, model=None, **config):
    settings = FAST.model_copy(update=config) if config else FAST
    if not isinstance(roots, (list, tuple)):
        roots = [roots]
    return WorkspaceIndexer(roots, embedding_model=model, config=settings)


class TestFullScan:
    """index_workspace over a real directory tree."""

    @pytest.mark.asyncio
    async def test_batches_and_progress(self, workspace, write_files, fake_model):
        write_files(workspace, {f"src/mod{i:02d}.ts": f"export const v{i} = {i};\n" for i in range(25)})
        indexer = make_indexer(workspace, fake_model)
        calls = []

        report = await indexer.index_workspace(
            batch_size=10, on_progress=lambda *args: calls.append(args)
        )

        assert calls == [(1, 10, 25), (2, 20, 25), (3, 25, 25)]
        assert report.batches == 3
        assert report.indexed_files == 25
        assert len(indexer.store) == 25
        assert indexer.session.state == IndexingState.IDLE

    @pytest.mark.asyncio
    async def test_async_progress_callback_is_awaited(self, workspace, write_files):
        write_files(workspace, {"a.ts": "", "b.ts": "", "c.ts": ""})
        indexer = make_indexer(workspace)
        seen = []

        async def on_progress(batch_index, processed, total):
            await asyncio.sleep(0)
            seen.append(processed)

        await indexer.index_workspace(batch_size=2, on_progress=on_progress)
        assert seen == [2, 3]

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_abort_scan(self, workspace, write_files):
        write_files(workspace, {"a.ts": "", "b.ts": ""})
        indexer = make_indexer(workspace)

        def on_progress(*args):
            raise RuntimeError("display closed")

        report = await indexer.index_workspace(batch_size=1, on_progress=on_progress)
        assert report.indexed_files == 2

    @pytest.mark.asyncio
    async def test_excluded_files_are_not_indexed(self, workspace, write_files):
        write_files(
            workspace,
            {
                "src/app.ts": "export function main() {}\n",
                "node_modules/lib/index.js": "module.exports = {};\n",
                "dist/app.js": "var x;\n",
                "generated/api.ts": "export const api = 1;\n",
                "generated/keep.ts": "export const keep = 1;\n",
                ".smileignore": "generated/\n!generated/keep.ts\n",
            },
        )
        (workspace / "logo.png").write_bytes(b"\x89PNG\r\n")
        indexer = make_indexer(workspace)

        await indexer.index_workspace()

        assert sorted(indexer.store.paths()) == [".smileignore", "generated/keep.ts", "src/app.ts"]

    @pytest.mark.asyncio
    async def test_entry_contents(self, workspace, write_files, make_model, util_ts):
        write_files(workspace, {"src/util.ts": util_ts})
        model = make_model(vectors={"round": [0.0, 1.0, 0.0]})
        indexer = make_indexer(workspace, model)

        await indexer.index_workspace()

        entry = indexer.store.get("src/util.ts")
        assert entry.content == util_ts
        assert entry.language == "typescript"
        assert entry.imports == ["./math"]
        assert [s.name for s in entry.symbols] == ["add", "zero"]
        assert entry.embedding == [0.0, 1.0, 0.0]
        assert entry.embedding_model == "fake:fake-model"
        assert entry.parse_error is None
        assert entry.last_modified > 0

    @pytest.mark.asyncio
    async def test_unparsed_files_get_language_from_extension(self, workspace, write_files):
        write_files(workspace, {"README.md": "# Readme\n", "package.json": "{}\n"})
        indexer = make_indexer(workspace)

        await indexer.index_workspace()

        assert indexer.store.get("README.md").language == "markdown"
        assert indexer.store.get("package.json").language == "json"
        assert indexer.store.get("README.md").symbols == []

    @pytest.mark.asyncio
    async def test_malformed_file_does_not_block_its_batch(self, workspace, write_files, util_ts):
        write_files(workspace, {"bad.ts": "function broken( {\n", "src/util.ts": util_ts})
        indexer = make_indexer(workspace)

        report = await indexer.index_workspace(batch_size=10)

        bad = indexer.store.get("bad.ts")
        assert bad.symbols == []
        assert bad.parse_error == "syntax error"
        assert len(indexer.store.get("src/util.ts").symbols) == 2
        assert report.indexed_files == 2
        assert report.failed_files == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_empty_vector(self, workspace, write_files, make_model):
        write_files(workspace, {"a.ts": "const ok = 1;\n", "b.ts": "const EMBED_FAIL = 1;\n"})
        indexer = make_indexer(workspace, make_model(fail_on=["EMBED_FAIL"]))

        await indexer.index_workspace()

        failed = indexer.store.get("b.ts")
        assert failed.embedding == []
        assert failed.embedding_model is None
        assert [s.name for s in failed.symbols] == ["EMBED_FAIL"]
        assert indexer.store.get("a.ts").embedding == [1.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_embedding_uses_leading_characters_only(self, workspace, write_files, fake_model):
        write_files(workspace, {"long.md": "x" * 50})
        indexer = make_indexer(workspace, fake_model, max_embedding_chars=10)

        await indexer.index_workspace()

        assert fake_model.calls == ["x" * 10]

    @pytest.mark.asyncio
    async def test_oversized_and_binary_content_is_skipped(self, workspace, write_files):
        write_files(workspace, {"big.ts": "const x = 1;\n" * 10, "small.ts": "const y = 1;\n"})
        (workspace / "blob.txt").write_bytes(b"head\x00tail")
        indexer = make_indexer(workspace, max_file_bytes=50)

        report = await indexer.index_workspace()

        assert indexer.store.paths() == ["small.ts"]
        assert report.skipped_files == 2

    @pytest.mark.asyncio
    async def test_stale_entries_are_removed(self, workspace, write_files):
        write_files(workspace, {"a.ts": "", "b.ts": "", "c.ts": ""})
        indexer = make_indexer(workspace)
        await indexer.index_workspace()

        (workspace / "a.ts").unlink()
        write_files(workspace, {".smileignore": "b.ts\n"})
        report = await indexer.index_workspace()

        assert sorted(indexer.store.paths()) == [".smileignore", "c.ts"]
        assert report.removed_files == 2

    @pytest.mark.asyncio
    async def test_unreadable_file_fails_alone(self, workspace, write_files, monkeypatch):
        write_files(workspace, {"a.ts": "", "b.ts": ""})
        indexer = make_indexer(workspace)
        original = indexer._build_entry

        async def flaky(located):
            if located.key == "a.ts":
                raise OSError("permission denied")
            return await original(located)

        monkeypatch.setattr(indexer, "_build_entry", flaky)
        report = await indexer.index_workspace()

        assert report.failed_files == 1
        assert indexer.store.paths() == ["b.ts"]

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_session_and_propagates(self, workspace, monkeypatch):
        indexer = make_indexer(workspace)

        def explode(start=None):
            raise RuntimeError("walk failed")

        monkeypatch.setattr(indexer, "_collect_candidates", explode)
        with pytest.raises(RuntimeError, match="walk failed"):
            await indexer.index_workspace()

        assert indexer.session.state == IndexingState.FAILED
        assert indexer.session.failed
        assert indexer.session.last_error == "walk failed"
        assert indexer.get_stats()["state"] == "failed"

        monkeypatch.undo()
        await indexer.index_workspace()
        assert indexer.session.state == IndexingState.IDLE
        assert not indexer.session.failed

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, workspace):
        with pytest.raises(ValueError):
            await make_indexer(workspace).index_workspace(batch_size=0)


class TestConcurrency:
    """One scan at a time; updates wait for the scan."""

    @pytest.mark.asyncio
    async def test_second_scan_and_attach_are_skipped_while_scanning(self, workspace, write_files):
        write_files(workspace, {"a.ts": "", "b.ts": ""})
        indexer = make_indexer(workspace)
        started, release = asyncio.Event(), asyncio.Event()

        async def on_progress(*args):
            started.set()
            await release.wait()

        task = asyncio.create_task(indexer.index_workspace(batch_size=1, on_progress=on_progress))
        await started.wait()

        assert indexer.session.in_progress
        second = await indexer.index_workspace()
        assert second.skipped
        assert await indexer.attach_file("a.ts") is None

        release.set()
        report = await task
        assert not report.skipped
        assert report.indexed_files == 2

    @pytest.mark.asyncio
    async def test_cancel_stops_at_batch_boundary(self, workspace, write_files):
        write_files(workspace, {f"f{i}.ts": "" for i in range(6)})
        indexer = make_indexer(workspace)
        assert not indexer.cancel()

        def on_progress(batch_index, processed, total):
            if batch_index == 1:
                assert indexer.cancel()

        report = await indexer.index_workspace(batch_size=2, on_progress=on_progress)

        assert report.cancelled
        assert report.batches == 1
        assert len(indexer.store) == 2
        assert indexer.session.state == IndexingState.IDLE


class TestIncrementalUpdates:
    """attach_file, attach_folder and remove_file."""

    @pytest.mark.asyncio
    async def test_attach_replaces_entry(self, workspace, write_files):
        write_files(workspace, {"a.ts": "export function before() {}\n"})
        indexer = make_indexer(workspace)
        await indexer.index_workspace()

        write_files(workspace, {"a.ts": "export function after() {}\n"})
        entry = await indexer.attach_file(workspace / "a.ts")

        assert [s.name for s in entry.symbols] == ["after"]
        assert indexer.store.find_by_name("before") == []
        assert "a.ts" in indexer.attached_files

    @pytest.mark.asyncio
    async def test_attach_is_idempotent(self, workspace, write_files, fake_model, util_ts):
        write_files(workspace, {"src/util.ts": util_ts})
        indexer = make_indexer(workspace, fake_model)

        first = await indexer.attach_file("src/util.ts")
        second = await indexer.attach_file("src/util.ts")

        assert len(indexer.store) == 1
        assert first.model_dump(exclude={"indexed_at"}) == second.model_dump(exclude={"indexed_at"})

    @pytest.mark.asyncio
    async def test_attach_missing_file_removes_entry(self, workspace, write_files):
        write_files(workspace, {"a.ts": ""})
        indexer = make_indexer(workspace)
        await indexer.index_workspace()

        (workspace / "a.ts").unlink()
        assert await indexer.attach_file("a.ts") is None
        assert "a.ts" not in indexer.store

    @pytest.mark.asyncio
    async def test_attach_excluded_or_outside_file(self, workspace, write_files, tmp_path):
        write_files(workspace, {"node_modules/x/index.js": ""})
        outside = tmp_path / "elsewhere.ts"
        outside.write_text("")
        indexer = make_indexer(workspace)

        assert await indexer.attach_file("node_modules/x/index.js") is None
        assert await indexer.attach_file(outside) is None
        assert len(indexer.store) == 0

    @pytest.mark.asyncio
    async def test_attach_folder(self, workspace, write_files):
        write_files(workspace, {"src/a.ts": "", "src/lib/b.ts": "", "docs/readme.md": ""})
        indexer = make_indexer(workspace)

        report = await indexer.attach_folder("src")

        assert report.indexed_files == 2
        assert sorted(indexer.store.paths()) == ["src/a.ts", "src/lib/b.ts"]
        assert indexer.attached_folders == {"src"}

    @pytest.mark.asyncio
    async def test_attach_folder_rejects_non_folder(self, workspace, write_files):
        write_files(workspace, {"a.ts": ""})
        with pytest.raises(ValueError):
            await make_indexer(workspace).attach_folder("a.ts")

    @pytest.mark.asyncio
    async def test_remove_file(self, workspace, write_files):
        write_files(workspace, {"a.ts": ""})
        indexer = make_indexer(workspace)
        await indexer.index_workspace()

        assert indexer.remove_file(workspace / "a.ts")
        assert not indexer.remove_file("a.ts")


class TestMultiRoot:
    @pytest.mark.asyncio
    async def test_keys_are_prefixed_with_root_name(self, tmp_path, write_files):
        write_files(tmp_path / "api", {"main.ts": ""})
        write_files(tmp_path / "web", {"main.ts": ""})
        indexer = make_indexer([tmp_path / "api", tmp_path / "web"])

        await indexer.index_workspace()

        assert sorted(indexer.store.paths()) == ["api/main.ts", "web/main.ts"]
        assert indexer.key_for(tmp_path / "web" / "main.ts") == "web/main.ts"

    @pytest.mark.asyncio
    async def test_roots_with_the_same_name_get_distinct_prefixes(self, tmp_path, write_files):
        first = tmp_path / "a" / "project"
        second = tmp_path / "b" / "project"
        write_files(first, {"index.ts": "const a = 1;\n"})
        write_files(second, {"index.ts": "const b = 2;\n"})
        indexer = make_indexer([first, second])

        await indexer.index_workspace()

        assert sorted(indexer.store.paths()) == ["project-2/index.ts", "project/index.ts"]
        assert indexer.key_for(second / "index.ts") == "project-2/index.ts"
        assert indexer.store.get("project-2/index.ts").content == "const b = 2;\n"
        assert indexer.store.get("project/index.ts").content == "const a = 1;\n"

    @pytest.mark.asyncio
    async def test_duplicate_roots_are_indexed_once(self, workspace, write_files):
        write_files(workspace, {"index.ts": ""})
        indexer = make_indexer([workspace, workspace])

        await indexer.index_workspace()

        assert indexer.roots == [workspace]
        assert indexer.store.paths() == ["index.ts"]

    def test_roots_are_required(self):
        with pytest.raises(ValueError):
            WorkspaceIndexer([])


class TestReembedding:
    @pytest.mark.asyncio
    async def test_reembed_entries_from_previous_model(self, workspace, write_files, make_model):
        write_files(workspace, {"a.ts": "const a = 1;\n", "b.ts": "const b = 1;\n"})
        indexer = make_indexer(workspace, make_model(model="old"))
        await indexer.index_workspace()

        indexer.embedding_model = make_model(model="new", default=[0.0, 0.0, 1.0])
        updated = await indexer.reembed_mismatched()

        assert updated == 2
        for entry in indexer.store.entries():
            assert entry.embedding_model == "fake:new"
            assert entry.embedding == [0.0, 0.0, 1.0]

    @pytest.mark.asyncio
    async def test_reembed_without_model(self, workspace):
        assert await make_indexer(workspace).reembed_mismatched() == 0


class TestStats:
    @pytest.mark.asyncio
    async def test_get_stats(self, workspace, write_files, fake_model):
        write_files(workspace, {"a.ts": "const a = 1;\n"})
        indexer = make_indexer(workspace, fake_model)
        await indexer.index_workspace()

        stats = indexer.get_stats()
        assert stats["total_files"] == 1
        assert stats["embedded_files"] == 1
        assert stats["state"] == "idle"
        assert stats["embedding_model"] == "fake:fake-model"
        assert stats["last_indexed"] is not None
